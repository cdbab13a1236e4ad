"""
I80F48 fixed-point codec.

Marginfi publishes every pool figure as a signed 128-bit integer with 48
fractional bits, serialized as 16 little-endian bytes.
"""

from decimal import Decimal, Context, ROUND_HALF_EVEN, localcontext
from typing import Any, List

FRACTIONAL_BITS = 48
RAW_BYTES = 16

# 2**48 needs 15 digits and a raw I80F48 up to 39; keep headroom for the
# share * value products and the compounding step downstream.
DECIMAL_CONTEXT = Context(prec=60, rounding=ROUND_HALF_EVEN)

_SCALE = Decimal(1 << FRACTIONAL_BITS)
_RAW_MIN = -(1 << (RAW_BYTES * 8 - 1))
_RAW_MAX = (1 << (RAW_BYTES * 8 - 1)) - 1


def raw_to_int(raw: Any) -> int:
    """
    Extract the signed raw integer from the wire shapes Marginfi uses:
    `{"value": [16 bytes]}`, a bare byte list, or an integer (or integer string).
    """
    if isinstance(raw, dict):
        if "value" not in raw:
            raise ValueError("fixed-point object has no 'value'")
        raw = raw["value"]

    if isinstance(raw, (list, tuple, bytes, bytearray)):
        data = bytes(raw)
        if len(data) != RAW_BYTES:
            raise ValueError(f"expected {RAW_BYTES} bytes, got {len(data)}")
        return int.from_bytes(data, "little", signed=True)

    if isinstance(raw, bool):
        raise ValueError("boolean is not a fixed-point value")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        value = int(raw.strip())
    else:
        raise ValueError(f"unsupported fixed-point encoding: {type(raw).__name__}")

    if not _RAW_MIN <= value <= _RAW_MAX:
        raise ValueError("fixed-point raw value out of i128 range")
    return value


def decode_i80f48(raw: Any) -> Decimal:
    """decimal = signed_raw_integer / 2**48"""
    integer = raw_to_int(raw)
    with localcontext(DECIMAL_CONTEXT):
        return Decimal(integer) / _SCALE


def encode_i80f48(value: Decimal) -> List[int]:
    """Inverse of `decode_i80f48`, rounding to the nearest representable step."""
    with localcontext(DECIMAL_CONTEXT):
        raw = int((Decimal(value) * _SCALE).to_integral_value(rounding=ROUND_HALF_EVEN))
    if not _RAW_MIN <= raw <= _RAW_MAX:
        raise ValueError(f"{value} does not fit in I80F48")
    return list(raw.to_bytes(RAW_BYTES, "little", signed=True))
