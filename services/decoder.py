"""Conversion of raw protocol tokens into numeric readings."""

from __future__ import annotations

import re
from enum import Enum
from typing import Callable, Dict, Mapping

from models.fields import FieldKind

_HEX_RE = re.compile(r"[0-9A-Fa-f]+")
_INT_RE = re.compile(r"[0-9]+")

_UINT16_MAX = 0xFFFF
_TEMP_SIGN_BIT = 0x8000
_TEMP_MAGNITUDE_MASK = 0x7FFF


class DecodeFailure(str, Enum):
    unknown_token = "unknown_token"
    invalid_hex = "invalid_hex"
    invalid_int = "invalid_int"
    bad_length = "bad_length"
    unknown_kind = "unknown_kind"


class DecodeError(ValueError):
    """Raised when a token cannot be decoded for its field kind."""

    def __init__(self, reason: DecodeFailure, token: str, kind: object) -> None:
        self.reason = reason
        self.token = token
        self.kind = kind
        super().__init__(f"cannot decode {token!r} as {kind}: {reason.value}")


def _parse_uint16(token: str, pattern: re.Pattern[str], base: int, failure: DecodeFailure, kind: FieldKind) -> int:
    if not pattern.fullmatch(token):
        raise DecodeError(failure, token, kind)
    parsed = int(token, base)
    if parsed > _UINT16_MAX:
        raise DecodeError(failure, token, kind)
    return parsed


def _decode_battery(token: str) -> float:
    if token == "OK":
        return 1.0
    if token == "LOW":
        return 0.0
    raise DecodeError(DecodeFailure.unknown_token, token, FieldKind.BATTERY)


def _decode_onoff(token: str) -> float:
    if token == "ON":
        return 1.0
    if token == "OFF":
        return 0.0
    raise DecodeError(DecodeFailure.unknown_token, token, FieldKind.ONOFF)


def _decode_hex(token: str) -> float:
    return float(_parse_uint16(token, _HEX_RE, 16, DecodeFailure.invalid_hex, FieldKind.HEX))


def _decode_hex_div10(token: str) -> float:
    return _parse_uint16(token, _HEX_RE, 16, DecodeFailure.invalid_hex, FieldKind.HEX_DIV10) / 10


def _decode_int(token: str) -> float:
    return float(_parse_uint16(token, _INT_RE, 10, DecodeFailure.invalid_int, FieldKind.INT))


def _decode_temp(token: str) -> float:
    """Decode a 2-byte signed-magnitude temperature in tenths of a degree.

    ``010A`` is 0000 0001 0000 1010: bit 15 is the sign, the remaining 15 bits
    hold 266, which gives 26.6. ``810A`` is the same magnitude negated.
    """
    if len(token) != 4:
        raise DecodeError(DecodeFailure.bad_length, token, FieldKind.TEMP)
    if not _HEX_RE.fullmatch(token):
        raise DecodeError(DecodeFailure.invalid_hex, token, FieldKind.TEMP)

    raw = int(token, 16)
    magnitude = raw & _TEMP_MAGNITUDE_MASK
    if magnitude == 0:
        # 0x8000 would otherwise yield -0.0
        return 0.0
    sign = -1 if raw & _TEMP_SIGN_BIT else 1
    return sign * magnitude / 10


_DECODERS: Dict[FieldKind, Callable[[str], float]] = {
    FieldKind.BATTERY: _decode_battery,
    FieldKind.ONOFF: _decode_onoff,
    FieldKind.HEX: _decode_hex,
    FieldKind.HEX_DIV10: _decode_hex_div10,
    FieldKind.INT: _decode_int,
    FieldKind.TEMP: _decode_temp,
}


def decode(token: str, kind: FieldKind) -> float:
    """Decode ``token`` according to ``kind``.

    String fields carry no numeric value, so ``FieldKind.STRING`` and any
    kind without a registered decoder raise ``DecodeError`` with
    ``DecodeFailure.unknown_kind``.
    """
    decoder = _DECODERS.get(kind) if isinstance(kind, FieldKind) else None
    if decoder is None:
        raise DecodeError(DecodeFailure.unknown_kind, token, kind)
    return decoder(token)


def validate_schema(schema: Mapping[str, FieldKind]) -> None:
    """Ensure every schema entry maps to a kind the decoder understands."""
    for key, kind in schema.items():
        if not isinstance(kind, FieldKind):
            raise ValueError(f"Field {key!r} has unsupported kind {kind!r}.")
        if kind is not FieldKind.STRING and kind not in _DECODERS:
            raise ValueError(f"Field {key!r} has no decoder for kind {kind.value!r}.")
