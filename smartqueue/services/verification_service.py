"""
Verification Gate - Queue Service
Exit scan of a customer's QR payload.

Checks run in a fixed order and the first failure wins:
    1. payload does not decode         -> INVALID_QR
    2. no such customer                -> INVALID_QR (same signal as 1)
    3. position differs from the store -> DATA_MISMATCH
    4. already VERIFIED                -> DUPLICATE_SCAN (nothing is written)
    5. still WAITING                   -> NOT_BILLED
    6. BILLED                          -> mark_verified, SUCCESS
Store failures are not turned into a result; StoreUnavailable propagates.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from smartqueue.clock import isoformat
from smartqueue.errors import AlreadyVerified, CredentialError, NotFound, NotYetBilled
from smartqueue.extensions import store_guard
from smartqueue.models.entry import VERIFIED, WAITING
from smartqueue.services import credential_codec, entry_service

logger = logging.getLogger(__name__)

SUCCESS = "SUCCESS"
FAILED = "FAILED"

INVALID_QR = "INVALID_QR"
DATA_MISMATCH = "DATA_MISMATCH"
DUPLICATE_SCAN = "DUPLICATE_SCAN"
NOT_BILLED = "NOT_BILLED"

MESSAGES = {
    SUCCESS: "Verification successful",
    INVALID_QR: "Invalid QR code",
    DATA_MISMATCH: "QR code data mismatch",
    DUPLICATE_SCAN: "QR code already used",
    NOT_BILLED: "Customer has not been billed yet",
}


@dataclass
class VerificationResult:
    verification: str
    reason: Optional[str] = None
    customer_id: Optional[str] = None
    entry: Optional[object] = None
    verified_at: Optional[object] = None

    @property
    def succeeded(self):
        return self.verification == SUCCESS

    @property
    def message(self):
        return MESSAGES[self.reason or SUCCESS]

    def to_dict(self):
        data = {
            "success": self.succeeded,
            "verification": self.verification,
            "reason": self.reason,
            "message": self.message,
        }
        if self.succeeded:
            data["data"] = self.entry.to_dict()
        elif self.reason == DUPLICATE_SCAN:
            # audit aid for security staff; identity details stay out
            data["data"] = {
                "customer_id": self.customer_id,
                "previous_verification": isoformat(self.verified_at),
            }
        return data


def _failed(reason, customer_id=None, verified_at=None):
    logger.warning("Exit scan rejected: %s (customer %s)", reason, customer_id or "unknown")
    return VerificationResult(FAILED, reason, customer_id=customer_id, verified_at=verified_at)


@store_guard
def verify(payload):
    prefix = current_app.config.get("CUSTOMER_ID_PREFIX", credential_codec.DEFAULT_PREFIX)
    try:
        credential = credential_codec.decode(payload, prefix=prefix)
    except CredentialError as exc:
        logger.debug("Credential decode failed: %s", exc)
        return _failed(INVALID_QR)

    entry = entry_service.find_entry(credential.customer_id)
    if entry is None:
        return _failed(INVALID_QR)

    if entry.position != credential.position:
        return _failed(DATA_MISMATCH, entry.customer_id)

    if entry.status == VERIFIED:
        return _failed(DUPLICATE_SCAN, entry.customer_id, entry.verified_at)

    if entry.status == WAITING:
        return _failed(NOT_BILLED, entry.customer_id)

    try:
        entry = entry_service.mark_verified(entry.customer_id)
    except AlreadyVerified as exc:
        return _failed(DUPLICATE_SCAN, exc.customer_id, exc.verified_at)
    except NotYetBilled:
        return _failed(NOT_BILLED, credential.customer_id)
    except NotFound:
        # purged between the lookup and the transition
        return _failed(INVALID_QR)

    return VerificationResult(SUCCESS, customer_id=entry.customer_id, entry=entry, verified_at=entry.verified_at)


def verify_many(payloads):
    results = [verify(payload) for payload in payloads]
    summary = {
        "total": len(results),
        "successful": sum(1 for r in results if r.succeeded),
        "failed": sum(1 for r in results if not r.succeeded),
    }
    return results, summary
