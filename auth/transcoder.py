"""
auth/transcoder.py -- Legacy credential transcoding.

Stored credentials come out of SP_IS_VALID_LOGIN_NAME as VARBINARY bytes that
were written by the legacy desktop client: each character of the password
shifted up by 10, NUL-terminated, then serialized through UTF-7. Reading one
back means:

  1. decode the bytes as UTF-7 (the "legacy text layer");
  2. walk the result as 16-bit UTF-16 code units;
  3. stop at the first 0 unit, subtract 10 from every unit before it.

Subtraction wraps within 16 bits ((unit - 10) & 0xFFFF) the same way the
legacy 16-bit char arithmetic did. Units below 10 are not clamped or rejected.

encode() applies the very same walk to freshly typed plaintext. It does NOT
add 10; see DESIGN.md (open question on the encode/decode asymmetry) before
changing that -- doing so changes which stored credentials match.

Layer rule: no imports from api/ or store/.
"""

from __future__ import annotations

import base64
import re
import struct
from typing import Union

from core.errors import CredentialDecodeError

_SHIFT = 10

EncodedCredential = Union[bytes, bytearray, memoryview, str, list, None]

# A UTF-7 shift run inside already-decoded text. "+-" is a literal "+".
_SHIFT_RUN = re.compile(r"\+([A-Za-z0-9/]*)-?")


def _as_bytes(encoded: EncodedCredential) -> bytes:
    if isinstance(encoded, (bytes, bytearray, memoryview)):
        return bytes(encoded)
    if isinstance(encoded, str):
        # Drivers occasionally hand VARBINARY back as a byte-per-char string.
        try:
            return encoded.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise CredentialDecodeError("credential string is not byte-per-char") from exc
    if isinstance(encoded, list):
        try:
            return bytes(encoded)
        except (TypeError, ValueError) as exc:
            raise CredentialDecodeError("credential list is not a list of byte values") from exc
    raise CredentialDecodeError(f"unsupported credential type: {type(encoded).__name__}")


def _utf16_units(text: str) -> tuple[int, ...]:
    data = text.encode("utf-16-le", "surrogatepass")
    return struct.unpack(f"<{len(data) // 2}H", data)


def _run_units(chunk: str) -> list[int]:
    """UTF-16 units carried by the base64 body of one shift run.

    A trailing sextet that cannot form a byte is dropped, and an odd trailing
    byte becomes the high half of a final unit.
    """
    if len(chunk) % 4 == 1:
        chunk = chunk[:-1]
    data = base64.b64decode(chunk + "=" * (-len(chunk) % 4))
    if len(data) % 2:
        data += b"\x00"
    return list(struct.unpack(f">{len(data) // 2}H", data))


def _text_layer_units(text: str) -> list[int]:
    """Decode the UTF-7 shift runs in text, keeping every other character as-is."""
    units: list[int] = []
    pos = 0
    for match in _SHIFT_RUN.finditer(text):
        units.extend(_utf16_units(text[pos : match.start()]))
        chunk = match.group(1)
        units.extend(_run_units(chunk) if chunk else _utf16_units("+"))
        pos = match.end()
    units.extend(_utf16_units(text[pos:]))
    return units


def _walk(units) -> str:
    shifted: list[int] = []
    for unit in units:
        if unit == 0:
            break
        shifted.append((unit - _SHIFT) & 0xFFFF)

    return struct.pack(f"<{len(shifted)}H", *shifted).decode("utf-16-le", "surrogatepass")


def _shift_units(raw: bytes) -> str:
    try:
        text = raw.decode("utf-7")
    except UnicodeDecodeError as exc:
        raise CredentialDecodeError("credential is not valid UTF-7") from exc
    return _walk(_utf16_units(text))


def decode(encoded: EncodedCredential) -> str:
    """Return the plaintext held in a stored legacy credential.

    Empty or missing input yields "". Raises CredentialDecodeError when the
    bytes cannot be read as UTF-7 or the input type is not byte-like.
    """
    if encoded is None:
        return ""
    raw = _as_bytes(encoded)
    if not raw:
        return ""
    return _shift_units(raw)


def encode(plaintext: str) -> str:
    """Run freshly typed plaintext through the legacy text layer and shift walk.

    The text layer works on the string itself: only "+...-" runs are
    base64-decoded, so non-ASCII characters pass through to the walk unchanged.
    Same subtraction as decode(); decode(encode(x)) == x does not hold in general.
    """
    if not plaintext:
        return ""
    return _walk(_text_layer_units(plaintext))
