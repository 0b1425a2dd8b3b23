"""Whole-value JSON for nested record fields.

A nested record can arrive either as dot-path children
(``contact.phone=...``) or as one JSON document in its own key
(``contact={"phone": "..."}``). ``looks_like_structured`` decides which;
``decode_into`` applies the document to the record in place.

JSON keys match a field's ``json`` name, else its attribute name, else
its attribute name ignoring case. Keys without a matching field are
ignored; fields without a matching key keep their value.
"""

import json
from typing import Any

from former.binding.coerce import check_int, coerce, narrow_float
from former.binding.fields import FieldSpec, FieldType, Kind, RecordSchema


def looks_like_structured(text: str) -> bool:
    """True if *text* is wrapped in ``{...}`` or ``[...]`` (after trimming)."""
    s = text.strip()
    return (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]"))


def decode_into(record: Any, schema: RecordSchema, text: str) -> None:
    """Decode the JSON document *text* into *record*.

    Raises:
        ValueError: If *text* is not valid JSON, is not an object, a
            value does not fit its field's type, or the document nests
            too deeply to decode.
    """
    try:
        document = json.loads(text)
        _assign_record(record, schema, document)
    except RecursionError as exc:
        msg = "JSON document nests too deeply"
        raise ValueError(msg) from exc


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _mismatch(value: Any, ftype: FieldType) -> ValueError:
    return ValueError(f"cannot unmarshal {_json_type(value)} into {ftype.describe()}")


def _lookup(document: dict[str, Any], spec: FieldSpec) -> tuple[bool, Any]:
    name = spec.json_name or spec.name
    if name in document:
        return True, document[name]
    folded = name.casefold()
    for key, value in document.items():
        if key.casefold() == folded:
            return True, value
    return False, None


def _assign_record(record: Any, schema: RecordSchema, document: Any) -> None:
    if document is None:
        return
    if not isinstance(document, dict):
        msg = f"cannot unmarshal {_json_type(document)} into {schema.cls.__name__}"
        raise ValueError(msg)

    for spec in schema.json_fields:
        if spec.kind is Kind.EMBEDDED:
            # Embedded fields read from the same object as their parent
            assert spec.type.record is not None
            child = getattr(record, spec.name)
            if child is None:
                child = schema.child(spec.type.record).zero()
                setattr(record, spec.name, child)
            _assign_record(child, schema.child(spec.type.record), document)
            continue

        found, value = _lookup(document, spec)
        if not found:
            continue
        current = getattr(record, spec.name)
        setattr(record, spec.name, _convert(spec.type, value, current, schema))


def _convert(ftype: FieldType, value: Any, current: Any, schema: RecordSchema) -> Any:
    """Convert one decoded JSON value into a value of *ftype*."""
    kind = ftype.kind

    if value is None:
        return None if kind is Kind.OPTIONAL else current

    match kind:
        case Kind.TEXT:
            if isinstance(value, str):
                return value
        case Kind.BOOL:
            if isinstance(value, bool):
                return value
        case Kind.INT | Kind.UINT:
            if isinstance(value, int) and not isinstance(value, bool):
                return check_int(value, ftype.bits, signed=kind is Kind.INT)
        case Kind.FLOAT:
            if isinstance(value, int | float) and not isinstance(value, bool):
                return narrow_float(float(value), ftype.bits)
        case Kind.SEQUENCE:
            if isinstance(value, list):
                assert ftype.item is not None
                item = ftype.item
                return (ftype.container or list)(
                    _convert(item, element, item.zero(), schema) for element in value
                )
        case Kind.ARRAY:
            if isinstance(value, list):
                assert ftype.item is not None
                item = ftype.item
                slots = [item.zero() for _ in range(ftype.size)]
                for index, element in enumerate(value[: ftype.size]):
                    slots[index] = _convert(item, element, slots[index], schema)
                return tuple(slots)
        case Kind.MAPPING:
            if isinstance(value, dict):
                assert ftype.key is not None and ftype.item is not None
                key_type, item = ftype.key, ftype.item
                return {
                    coerce(key_type, [k], key_type.zero()): _convert(item, v, item.zero(), schema)
                    for k, v in value.items()
                }
        case Kind.OPTIONAL:
            assert ftype.item is not None
            item = ftype.item
            return _convert(item, value, item.zero() if current is None else current, schema)
        case Kind.RECORD:
            if isinstance(value, dict):
                assert ftype.record is not None
                child_schema = schema.child(ftype.record)
                child = child_schema.zero() if current is None else current
                _assign_record(child, child_schema, value)
                return child

    raise _mismatch(value, ftype)
