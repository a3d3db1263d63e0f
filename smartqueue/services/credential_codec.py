"""
Credential Codec
Encodes and decodes the exit credential (QR payload).

The payload is a compact JSON object carrying exactly
    {"externalId": ..., "position": ..., "issuedAt": ...}
Decoding is purely structural: it never looks at the store.
"""

import json
import re
from collections import namedtuple
from datetime import datetime

from smartqueue.clock import as_utc
from smartqueue.errors import InvalidIdentifierFormat, InvalidPosition, MalformedPayload

DEFAULT_PREFIX = "SM"
PAYLOAD_KEYS = ("externalId", "position", "issuedAt")

Credential = namedtuple("Credential", ("customer_id", "position", "issued_at"))

_patterns = {}


def id_pattern(prefix=DEFAULT_PREFIX):
    pattern = _patterns.get(prefix)
    if pattern is None:
        pattern = re.compile(rf"^{re.escape(prefix)}-\d{{4,}}$")
        _patterns[prefix] = pattern
    return pattern


def is_valid_customer_id(customer_id, prefix=DEFAULT_PREFIX):
    return isinstance(customer_id, str) and bool(id_pattern(prefix).match(customer_id))


def _check_position(position):
    if isinstance(position, bool) or not isinstance(position, int) or position < 1:
        raise InvalidPosition()
    return position


def encode(customer_id, position, issued_at, prefix=DEFAULT_PREFIX):
    if not is_valid_customer_id(customer_id, prefix):
        raise InvalidIdentifierFormat()
    _check_position(position)
    payload = {
        "externalId": customer_id,
        "position": position,
        "issuedAt": as_utc(issued_at).isoformat(timespec="microseconds"),
    }
    return json.dumps(payload, separators=(",", ":"))


def decode(payload, prefix=DEFAULT_PREFIX):
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedPayload()
    if not isinstance(payload, str):
        raise MalformedPayload()

    try:
        data = json.loads(payload)
    except ValueError:
        raise MalformedPayload()

    if not isinstance(data, dict) or any(key not in data for key in PAYLOAD_KEYS):
        raise MalformedPayload("Credential payload is missing required fields")

    try:
        issued_at = datetime.fromisoformat(data["issuedAt"])
    except (TypeError, ValueError):
        raise MalformedPayload("Credential issue time is not a valid timestamp")

    customer_id = data["externalId"]
    if not is_valid_customer_id(customer_id, prefix):
        raise InvalidIdentifierFormat()

    position = _check_position(data["position"])

    return Credential(customer_id, position, as_utc(issued_at))
