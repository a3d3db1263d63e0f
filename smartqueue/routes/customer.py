from flask import Blueprint, jsonify, request

from smartqueue.services import customer_service
from smartqueue.validators import validate_pagination, validate_status

customer_bp = Blueprint('customers', __name__)


@customer_bp.route('/register', methods=['POST'])
def register():
    """
    Register a customer in the billing queue
    ---
    tags:
      - Customers
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - name
            - phone
            - cart_value
          properties:
            name:
              type: string
            phone:
              type: string
              description: exactly 10 digits
            cart_value:
              type: number
    responses:
      201:
        description: Customer registered, QR payload issued
      400:
        description: Invalid input
      503:
        description: Queue store unavailable
    """
    registration = customer_service.register(request.get_json(silent=True))
    return jsonify({
        "success": True,
        "message": "Customer registered successfully",
        "data": registration.to_dict()
    }), 201


@customer_bp.route('/all', methods=['GET'])
def list_customers():
    """
    List customers ordered by queue position
    ---
    tags:
      - Customers
    parameters:
      - name: page
        in: query
        type: integer
        default: 1
      - name: per_page
        in: query
        type: integer
        default: 20
      - name: status
        in: query
        type: string
        enum: [WAITING, BILLED, VERIFIED]
    responses:
      200:
        description: Page of customers
      400:
        description: Invalid pagination or status filter
    """
    page, per_page = validate_pagination(
        request.args.get('page', 1, type=int),
        request.args.get('per_page', 20, type=int)
    )
    status = validate_status(request.args.get('status'))

    pagination = customer_service.list_customers(page, per_page, status)
    return jsonify({
        "success": True,
        "data": [entry.to_dict() for entry in pagination.items],
        "pagination": {
            'page': page,
            'per_page': per_page,
            'total': pagination.total,
            'total_pages': pagination.pages
        }
    }), 200


@customer_bp.route('/<customer_id>', methods=['GET'])
def get_customer(customer_id):
    """
    Get a customer with their current place in line
    ---
    tags:
      - Customers
    parameters:
      - name: customer_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Customer details, queue_position is null once verified
      404:
        description: Customer not found
    """
    return jsonify({
        "success": True,
        "data": customer_service.describe(customer_id)
    }), 200


@customer_bp.route('/<customer_id>/qr', methods=['GET'])
def get_customer_qr(customer_id):
    """
    Get the QR payload issued to a customer
    ---
    tags:
      - Customers
    parameters:
      - name: customer_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Encoded credential payload
      404:
        description: Customer not found
    """
    return jsonify({
        "success": True,
        "data": customer_service.credential_for(customer_id)
    }), 200
