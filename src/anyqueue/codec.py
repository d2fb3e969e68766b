""" Message body encoding shared by every provider.

Outgoing payloads are always reduced to text: byte sequences are base64
encoded, any other non-string value is serialized as JSON, and strings are
passed through untouched. Incoming text is interpreted with the reverse
heuristic in :func:`decode`.

The heuristic is lossy: any string that happens to look like base64, which
includes short JSON documents such as ``true``, ``null`` or ``1234``, will
be decoded to bytes.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any

from . import json


BASE64 = re.compile(
    r'^([A-Za-z0-9+/]{4})*([A-Za-z0-9+/]{4}|[A-Za-z0-9+/]{3}=|[A-Za-z0-9+/]{2}==)$'
)


def encode(value: Any) -> str:
    """ Return the wire representation of *value*.
    """

    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode('ascii')

    if isinstance(value, str):
        return value

    return json.dumps(value)


def decode(raw: Any) -> Any:
    """ Interpret an inbound message body. Base64 text becomes bytes, JSON
        text becomes the corresponding Python value, and anything else is
        returned as the original string. This never raises.
    """

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError:
            return bytes(raw)

    if not isinstance(raw, str):
        return raw

    if BASE64.fullmatch(raw):
        try:
            return base64.b64decode(raw, validate=True)
        except binascii.Error:
            pass

    try:
        return json.loads(raw)
    except (ValueError, RecursionError):
        return raw
