from flask import Blueprint, jsonify, request

from smartqueue.errors import ValidationFailed
from smartqueue.models.entry import VERIFIED, Entry
from smartqueue.services import verification_service
from smartqueue.validators import validate_body, validate_pagination

verification_bp = Blueprint('verification', __name__)

MAX_BULK_PAYLOADS = 100

STATUS_CODES = {
    None: 200,
    verification_service.INVALID_QR: 400,
    verification_service.DATA_MISMATCH: 400,
    verification_service.DUPLICATE_SCAN: 409,
    verification_service.NOT_BILLED: 409,
}


@verification_bp.route('/qr', methods=['POST'])
def verify_qr():
    """
    Verify a customer's QR code at the exit gate
    ---
    tags:
      - Verification
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - qrData
          properties:
            qrData:
              type: string
              description: payload read from the customer's QR code
    responses:
      200:
        description: SUCCESS, customer may exit
      400:
        description: INVALID_QR or DATA_MISMATCH
      409:
        description: DUPLICATE_SCAN or NOT_BILLED
      503:
        description: Queue store unavailable
    """
    data = validate_body(request.get_json(silent=True))
    qr_data = data.get('qrData')
    if not qr_data:
        raise ValidationFailed('qrData', 'QR code data is required')

    result = verification_service.verify(qr_data)
    return jsonify(result.to_dict()), STATUS_CODES[result.reason]


@verification_bp.route('/bulk', methods=['POST'])
def verify_bulk():
    """
    Verify several QR codes in one call
    ---
    tags:
      - Verification
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - qrDataArray
          properties:
            qrDataArray:
              type: array
              items:
                type: string
    responses:
      200:
        description: One result per payload, in request order
      400:
        description: Missing or oversized payload list
    """
    data = validate_body(request.get_json(silent=True))
    payloads = data.get('qrDataArray')
    if not isinstance(payloads, list) or not payloads:
        raise ValidationFailed('qrDataArray', 'QR data array is required')
    if len(payloads) > MAX_BULK_PAYLOADS:
        raise ValidationFailed('qrDataArray', f'At most {MAX_BULK_PAYLOADS} QR codes per request')

    results, summary = verification_service.verify_many(payloads)
    return jsonify({
        "success": True,
        "data": [result.to_dict() for result in results],
        "summary": summary
    }), 200


@verification_bp.route('/history', methods=['GET'])
def verification_history():
    """
    Verified customers, most recent exit first
    ---
    tags:
      - Verification
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
        description: Page of verified customers
    """
    page, per_page = validate_pagination(
        request.args.get('page', 1, type=int),
        request.args.get('per_page', 50, type=int)
    )
    pagination = (
        Entry.query
        .filter_by(status=VERIFIED)
        .order_by(Entry.verified_at.desc())
        .paginate(page=page, per_page=per_page, error_out=False)
    )
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
