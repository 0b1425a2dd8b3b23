"""Type coercion — form strings into field values.

One function per ``Kind``. Each takes the field type, the ordered form
values for the field, and the field's current value, and returns the
value to assign. Empty input leaves scalars at their current value.

Scalars read only the first value. Numbers are strict: base-10, ASCII
digits, no surrounding whitespace, and bounded by the declared width.
Failures raise ``ValueError``; the walker wraps them with the field name.
"""

import math
import re
import struct
from collections.abc import Callable, Sequence
from typing import Any, TypeAlias

from former.binding.fields import FieldType, Kind

_INT = re.compile(r"[+-]?[0-9]+")
_UINT = re.compile(r"[0-9]+")
_FLOAT = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_FLOAT_SPECIAL = re.compile(r"[+-]?(?:inf|infinity|nan)", re.IGNORECASE)

# Strict boolean literals
_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})

# What an HTML checkbox may submit for "checked"
_CHECKED = frozenset({"on", "1", "true"})


# ---------------------------------------------------------------------------
# Scalar parsing
# ---------------------------------------------------------------------------


def parse_bool(text: str) -> bool:
    """Parse a boolean literal; unrecognised text is ``True`` only for checkbox values."""
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return text in _CHECKED


def int_bounds(bits: int, *, signed: bool) -> tuple[int, int]:
    """Inclusive range of a *bits*-wide integer."""
    if signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def check_int(value: int, bits: int, *, signed: bool) -> int:
    """Return *value* if it fits the width, else raise ``ValueError``."""
    low, high = int_bounds(bits, signed=signed)
    if not low <= value <= high:
        name = f"int{bits}" if signed else f"uint{bits}"
        msg = f"value out of range: {value} does not fit in {name}"
        raise ValueError(msg)
    return value


def parse_int(text: str, bits: int = 64, *, signed: bool = True) -> int:
    """Parse a base-10 integer bounded to *bits*."""
    pattern = _INT if signed else _UINT
    if pattern.fullmatch(text) is None:
        msg = f"invalid syntax: {text!r} is not a base-10 {'integer' if signed else 'unsigned integer'}"
        raise ValueError(msg)
    return check_int(int(text), bits, signed=signed)


def narrow_float(value: float, bits: int) -> float:
    """Round *value* to the precision of a *bits*-wide float.

    Finite values that overflow the width raise ``ValueError``.
    """
    if bits == 32 and math.isfinite(value):
        try:
            return struct.unpack("<f", struct.pack("<f", value))[0]
        except OverflowError as exc:
            msg = f"value out of range: {value!r} does not fit in float32"
            raise ValueError(msg) from exc
    return value


def parse_float(text: str, bits: int = 64) -> float:
    """Parse a base-10 float bounded to *bits*.

    Accepts decimal and exponent notation plus ``inf``, ``infinity`` and
    ``nan`` in any case.
    """
    if _FLOAT_SPECIAL.fullmatch(text) is not None:
        return float(text)
    if _FLOAT.fullmatch(text) is None:
        msg = f"invalid syntax: {text!r} is not a base-10 number"
        raise ValueError(msg)
    value = float(text)
    if math.isinf(value):
        msg = f"value out of range: {text!r} does not fit in float{bits}"
        raise ValueError(msg)
    return narrow_float(value, bits)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

Coercer: TypeAlias = Callable[[FieldType, Sequence[str], Any], Any]


def coerce(ftype: FieldType, values: Sequence[str], current: Any = None) -> Any:
    """Convert *values* into a value of *ftype*.

    Args:
        ftype: The field's semantic type.
        values: Form values for the field, in submission order.
        current: The field's present value; returned unchanged when there
            is nothing to bind, and used as the base for fixed arrays.

    Raises:
        ValueError: If a value cannot be converted.
    """
    return _COERCERS[ftype.kind](ftype, values, current)


def _text(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    if not values:
        return current
    return values[0]


def _bool(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    if not values:
        return current
    return parse_bool(values[0])


def _int(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    if not values:
        return current
    return parse_int(values[0], ftype.bits, signed=ftype.kind is Kind.INT)


def _float(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    if not values:
        return current
    return parse_float(values[0], ftype.bits)


def _sequence(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    item = _require_item(ftype)
    container = ftype.container or list
    return container(coerce(item, [value], item.zero()) for value in values)


def _array(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    item = _require_item(ftype)
    slots = list(current) if current is not None else []
    # Pad or trim a mis-sized default to the declared capacity
    slots = slots[: ftype.size] + [item.zero() for _ in range(ftype.size - len(slots))]
    for index, value in enumerate(values[: ftype.size]):
        slots[index] = coerce(item, [value], slots[index])
    return tuple(slots)


def _mapping(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    item = _require_item(ftype)
    key_type = ftype.key
    assert key_type is not None
    result: dict[Any, Any] = {}
    for value in values:
        raw_key, sep, raw_value = value.partition(":")
        if not sep:
            continue
        key = coerce(key_type, [raw_key], key_type.zero())
        result[key] = coerce(item, [raw_value], item.zero())
    return result


def _optional(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    if not values:
        return current
    item = _require_item(ftype)
    return coerce(item, values, item.zero() if current is None else current)


def _record(ftype: FieldType, values: Sequence[str], current: Any) -> Any:
    msg = f"{ftype.describe()} is a record; records are bound by the schema walker"
    raise RuntimeError(msg)


def _require_item(ftype: FieldType) -> FieldType:
    if ftype.item is None:
        msg = f"{ftype.kind.name} field type has no element type"
        raise RuntimeError(msg)
    return ftype.item


_COERCERS: dict[Kind, Coercer] = {
    Kind.TEXT: _text,
    Kind.BOOL: _bool,
    Kind.INT: _int,
    Kind.UINT: _int,
    Kind.FLOAT: _float,
    Kind.SEQUENCE: _sequence,
    Kind.ARRAY: _array,
    Kind.MAPPING: _mapping,
    Kind.OPTIONAL: _optional,
    Kind.RECORD: _record,
    Kind.EMBEDDED: _record,
}
