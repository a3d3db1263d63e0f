from flask import Blueprint, jsonify, request

from smartqueue.clock import isoformat, utcnow
from smartqueue.services import entry_service, queue_service
from smartqueue.validators import validate_pagination

queue_bp = Blueprint('queue', __name__)


@queue_bp.route('/current', methods=['GET'])
def current_queue():
    """
    Current queue in FIFO order (WAITING and BILLED customers)
    ---
    tags:
      - Queue
    responses:
      200:
        description: Active queue with statistics
    """
    entries = queue_service.active_ordered()
    return jsonify({
        "success": True,
        "data": {
            "queue": [entry.to_dict() for entry in entries],
            "statistics": queue_service.queue_statistics(),
            "queue_size": len(entries),
            "timestamp": isoformat(utcnow())
        }
    }), 200


@queue_bp.route('/position/<customer_id>', methods=['GET'])
def queue_position(customer_id):
    """
    Place in line for a customer
    ---
    tags:
      - Queue
    parameters:
      - name: customer_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: queue_position is null when the customer has already been verified
      404:
        description: Customer not found
    """
    position = entry_service.queue_position(customer_id)
    entry = entry_service.get_entry(customer_id)
    data = {
        "customer_id": entry.customer_id,
        "position": entry.position,
        "status": entry.status,
        "queue_position": position,
    }
    if position is None:
        return jsonify({
            "success": True,
            "message": "Customer has already been verified",
            "data": data
        }), 200

    data["customers_ahead"] = position - 1
    data["estimated_wait_minutes"] = queue_service.estimated_wait(position)
    return jsonify({"success": True, "data": data}), 200


@queue_bp.route('/next', methods=['GET'])
def next_customer():
    """
    Next customer waiting for the billing counter
    ---
    tags:
      - Queue
    responses:
      200:
        description: Lowest-numbered WAITING customer, or null when the queue is empty
    """
    entry = queue_service.next_to_serve()
    if entry is None:
        return jsonify({"success": True, "message": "Queue is empty", "data": None}), 200
    return jsonify({"success": True, "data": entry.to_dict()}), 200


@queue_bp.route('/statistics', methods=['GET'])
def statistics():
    """
    Queue and customer counts
    ---
    tags:
      - Queue
    responses:
      200:
        description: Queue statistics
    """
    return jsonify({
        "success": True,
        "data": {
            "queue": queue_service.queue_statistics(),
            "customers": queue_service.status_counts(),
            "timestamp": isoformat(utcnow())
        }
    }), 200


@queue_bp.route('/history', methods=['GET'])
def history():
    """
    Completed queue slots, most recent first
    ---
    tags:
      - Queue
    parameters:
      - name: page
        in: query
        type: integer
        default: 1
      - name: per_page
        in: query
        type: integer
        default: 50
    responses:
      200:
        description: Page of completed slots
    """
    page, per_page = validate_pagination(
        request.args.get('page', 1, type=int),
        request.args.get('per_page', 50, type=int)
    )
    pagination = queue_service.completed_history(page, per_page)
    return jsonify({
        "success": True,
        "data": [slot.to_dict() for slot in pagination.items],
        "pagination": {
            'page': page,
            'per_page': per_page,
            'total': pagination.total,
            'total_pages': pagination.pages
        }
    }), 200
