from flask import Blueprint, jsonify, request

from smartqueue.models.entry import BILLED
from smartqueue.services import entry_service, queue_service
from smartqueue.validators import validate_body, validate_optional_text

billing_bp = Blueprint('billing', __name__)


@billing_bp.route('/complete/<customer_id>', methods=['POST'])
def complete_billing(customer_id):
    """
    Mark a customer as billed at the checkout counter
    ---
    tags:
      - Billing
    parameters:
      - name: customer_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Customer billed (repeat calls are a successful no-op)
      404:
        description: Customer not found
      409:
        description: Customer already verified and exited
    """
    already_billed = False
    current = entry_service.find_entry(customer_id)
    if current is not None and current.status == BILLED:
        already_billed = True

    entry = entry_service.mark_billed(customer_id)
    return jsonify({
        "success": True,
        "message": "Customer is already billed" if already_billed else "Billing completed successfully",
        "data": entry.to_dict()
    }), 200


@billing_bp.route('/undo/<customer_id>', methods=['POST'])
def undo_billing(customer_id):
    """
    Revert a mistaken billing (BILLED back to WAITING)
    ---
    tags:
      - Billing
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
              description: operator performing the reversal
            reason:
              type: string
    responses:
      200:
        description: Billing undone, audit event recorded
      404:
        description: Customer not found
      409:
        description: Customer is not in BILLED state
    """
    data = validate_body(request.get_json(silent=True))
    actor = validate_optional_text('actor', data.get('actor'), 100)
    reason = validate_optional_text('reason', data.get('reason'), 500)

    entry = entry_service.undo_billing(customer_id, actor=actor, reason=reason)
    return jsonify({
        "success": True,
        "message": "Billing undone successfully",
        "data": entry.to_dict()
    }), 200


@billing_bp.route('/ready', methods=['GET'])
def billed_customers():
    """
    Customers billed and heading for the exit, oldest billing first
    ---
    tags:
      - Billing
    responses:
      200:
        description: Billed customers not yet verified
    """
    entries = queue_service.billed_awaiting_exit()
    return jsonify({
        "success": True,
        "data": [entry.to_dict() for entry in entries],
        "count": len(entries)
    }), 200
