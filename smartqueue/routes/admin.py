from flask import Blueprint, jsonify, request

from smartqueue.errors import ValidationFailed
from smartqueue.services import customer_service, entry_service, queue_service
from smartqueue.validators import validate_body, validate_optional_text

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/search', methods=['GET'])
def search_customers():
    """
    Search customers by name, phone or customer id
    ---
    tags:
      - Admin
    parameters:
      - name: query
        in: query
        type: string
        required: true
      - name: field
        in: query
        type: string
        enum: [name, phone, customer_id]
        default: name
    responses:
      200:
        description: Up to 20 matches, newest first
      400:
        description: Missing query
    """
    query = (request.args.get('query') or '').strip()
    if not query:
        raise ValidationFailed('query', 'Search query is required')

    entries = customer_service.search(query, request.args.get('field', 'name'))
    return jsonify({
        "success": True,
        "data": [entry.to_dict() for entry in entries],
        "count": len(entries)
    }), 200


@admin_bp.route('/customer/<customer_id>', methods=['GET'])
def customer_details(customer_id):
    """
    Customer record, queue slot, timeline and audit events
    ---
    tags:
      - Admin
    parameters:
      - name: customer_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Customer details for administrators
      404:
        description: Customer not found
    """
    return jsonify({
        "success": True,
        "data": customer_service.timeline(customer_id)
    }), 200


@admin_bp.route('/customer/<customer_id>', methods=['DELETE'])
def purge_customer(customer_id):
    """
    Permanently remove a customer (use with caution)
    ---
    tags:
      - Admin
    parameters:
      - name: customer_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: false
        schema:
          type: object
          properties:
            actor:
              type: string
            reason:
              type: string
    responses:
      200:
        description: Customer purged, queue position is not reused
      404:
        description: Customer not found
    """
    data = validate_body(request.get_json(silent=True))
    actor = validate_optional_text('actor', data.get('actor'), 100)
    reason = validate_optional_text('reason', data.get('reason'), 500)

    purged = entry_service.purge(customer_id, actor=actor, reason=reason)
    return jsonify({
        "success": True,
        "message": "Customer deleted successfully",
        "data": purged
    }), 200


@admin_bp.route('/integrity', methods=['GET'])
def integrity():
    """
    Check queue positions, slots and the counter for consistency
    ---
    tags:
      - Admin
    responses:
      200:
        description: Integrity report
    """
    return jsonify({
        "success": True,
        "data": queue_service.integrity_report()
    }), 200
