"""Data URL encoding and decoding.

Images travel through the JSON API as ``data:<mime>;base64,<payload>``
strings: ``POST /analyze`` echoes the uploaded image back in this form and
``POST /download`` accepts it to place the image in the report.

Decoding is strict.  A value that carries a ``data:`` header must declare
base64 encoding, and the payload must be valid base64; anything else raises
:class:`~plantreport.core.errors.ValidationError`.  A bare base64 string
without a header is accepted and reported with the generic
``application/octet-stream`` type.
"""

from __future__ import annotations

import base64
import binascii
import re

from plantreport.core.errors import ValidationError

DEFAULT_MIME_TYPE = "application/octet-stream"

_DATA_URL_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[\w.+-]+=[\w.+-]+)*)(?P<base64>;base64)?,",
    re.IGNORECASE,
)


def encode_data_url(mime_type: str, data: bytes) -> str:
    """Encode raw bytes as a base64 data URL.

    Args:
        mime_type: MIME type recorded in the URL header.
        data: Raw bytes to encode.

    Returns:
        String of the form ``data:<mime_type>;base64,<payload>``.
    """
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def decode_data_url(value: str) -> tuple[str, bytes]:
    """Decode a base64 data URL into its MIME type and bytes.

    Args:
        value: A ``data:`` URL, or a bare base64 payload.

    Returns:
        Tuple of ``(mime_type, data)``.

    Raises:
        ValidationError: If the header is malformed, the URL is not base64
            encoded, or the payload is not valid base64.
    """
    text = value.strip()
    mime_type = DEFAULT_MIME_TYPE

    if text[:5].lower() == "data:":
        match = _DATA_URL_RE.match(text)
        if match is None:
            raise ValidationError("Malformed data URL header")
        if not match.group("base64"):
            raise ValidationError("Data URL must be base64 encoded")
        mime_type = (match.group("mime") or DEFAULT_MIME_TYPE).lower()
        text = text[match.end():]

    # Whitespace inside the payload is tolerated (line-wrapped base64).
    payload = "".join(text.split())
    if not payload:
        raise ValidationError("Data URL payload is empty")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 payload: {e}") from e

    return mime_type, data
