"""Schema walking — visit a record's fields and bind each one.

Fields are visited in declaration order. Embedded records are walked
with the parent's prefix, so their keys read as the parent's own.
Nested records extend the prefix (``contact`` → ``contact.phone``) or,
when their key holds a JSON literal, are decoded from it instead.
Optional fields stay ``None`` unless their key (or, for optional
records, one of the record's own keys) is present.

The first failure stops the walk. The record may be partly populated
at that point; callers should discard it.
"""

import logging
from typing import Any

from former.binding.coerce import coerce
from former.binding.fields import FieldSpec, Kind, RecordSchema
from former.binding.resolver import ValueResolver
from former.binding.structured import decode_into, looks_like_structured
from former.errors import ConversionError, StructuredDecodeError

logger = logging.getLogger("former.binder")


def walk(record: Any, schema: RecordSchema, resolver: ValueResolver, prefix: str = "") -> None:
    """Bind every form field of *schema* on *record*.

    Args:
        record: The dataclass instance to populate in place.
        schema: The schema of ``type(record)``.
        resolver: Payload lookups.
        prefix: Key prefix of the enclosing nested records (empty at top level).

    Raises:
        ConversionError: If a value does not convert to its field's type.
        StructuredDecodeError: If a JSON literal for a nested record is invalid.
    """
    for spec in schema.fields:
        match spec.kind:
            case Kind.EMBEDDED:
                assert spec.type.record is not None
                child_schema = schema.child(spec.type.record)
                walk(_ensure(record, spec, child_schema), child_schema, resolver, prefix)
            case Kind.RECORD:
                _bind_record(record, spec, schema, resolver, prefix)
            case Kind.OPTIONAL:
                _bind_optional(record, spec, schema, resolver, prefix)
            case _:
                assert spec.key is not None
                values = resolver.resolve_field(prefix, spec.key)
                if values:
                    _assign(record, spec, values)


def _bind_record(
    record: Any,
    spec: FieldSpec,
    schema: RecordSchema,
    resolver: ValueResolver,
    prefix: str,
) -> None:
    assert spec.key is not None and spec.type.record is not None
    full_key = resolver.qualify(prefix, spec.key)
    child_schema = schema.child(spec.type.record)
    child = _ensure(record, spec, child_schema)

    values = resolver.resolve(full_key)
    if values and looks_like_structured(values[0]):
        logger.debug("decoding %r as JSON into %s", full_key, child_schema.cls.__name__)
        try:
            decode_into(child, child_schema, values[0])
        except ValueError as exc:
            raise StructuredDecodeError(spec.name, exc) from exc
        return

    walk(child, child_schema, resolver, full_key)


def _bind_optional(
    record: Any,
    spec: FieldSpec,
    schema: RecordSchema,
    resolver: ValueResolver,
    prefix: str,
) -> None:
    assert spec.key is not None and spec.type.item is not None
    full_key = resolver.qualify(prefix, spec.key)
    pointee = spec.type.item

    if pointee.kind is Kind.RECORD:
        assert pointee.record is not None
        child_schema = schema.child(pointee.record)
        if not resolver.has_values(full_key, child_schema.keys):
            return
        walk(_ensure(record, spec, child_schema), child_schema, resolver, full_key)
        return

    values = resolver.resolve(full_key)
    if values:
        _assign(record, spec, values)


def _ensure(record: Any, spec: FieldSpec, child_schema: RecordSchema) -> Any:
    """Return the nested record held by *spec*, allocating it if absent."""
    child = getattr(record, spec.name)
    if child is None:
        child = child_schema.zero()
        setattr(record, spec.name, child)
    return child


def _assign(record: Any, spec: FieldSpec, values: list[str]) -> None:
    try:
        value = coerce(spec.type, values, getattr(record, spec.name))
    except ValueError as exc:
        raise ConversionError(spec.name, exc) from exc
    setattr(record, spec.name, value)
