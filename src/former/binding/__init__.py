"""The binding engine — schemas, value resolution, coercion, walking.

Usage::

    from former.binding import ValueResolver, schema_for, walk

    schema = schema_for(Signup)
    record = schema.zero()
    walk(record, schema, ValueResolver(form))
"""

from former.binding.coerce import coerce, parse_bool, parse_float, parse_int
from former.binding.fields import (
    FieldSpec,
    FieldType,
    Kind,
    RecordSchema,
    Width,
    clear_cache,
    formfield,
    schema_for,
    zero_record,
)
from former.binding.resolver import ValueResolver
from former.binding.structured import decode_into, looks_like_structured
from former.binding.walker import walk

__all__ = [
    "FieldSpec",
    "FieldType",
    "Kind",
    "RecordSchema",
    "ValueResolver",
    "Width",
    "clear_cache",
    "coerce",
    "decode_into",
    "formfield",
    "looks_like_structured",
    "parse_bool",
    "parse_float",
    "parse_int",
    "schema_for",
    "walk",
    "zero_record",
]
