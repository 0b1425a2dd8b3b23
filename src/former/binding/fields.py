"""Binding schemas — dataclass fields described as a closed set of kinds.

A dataclass is introspected once: its public fields, their form keys
(from field metadata), and their annotations classified into a
``Kind``. The resulting ``RecordSchema`` is cached per class and reused
by every bind. Annotations that do not map to a kind are rejected here,
when the schema is built, never in the middle of a bind.

Declaring fields::

    @dataclass
    class Signup:
        email: str = formfield("email")
        age: Int8 = formfield("age", default=0)
        tags: list[str] = formfield("tag", default_factory=list)
        password_hash: str = formfield("-", default="")  # never bound
        address: Address = field(default_factory=Address)  # embedded
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import types
from dataclasses import dataclass
from enum import Enum, auto
from typing import Annotated, Any, TypeVar, Union, get_args, get_origin, get_type_hints

from former.errors import SchemaError

T = TypeVar("T")

logger = logging.getLogger("former.schema")

TAG = "formfield"
JSON_TAG = "json"
SKIP = "-"


def formfield(key: str, *, json: str | None = None, **kwargs: Any) -> Any:
    """Declare a dataclass field bound to the form key *key*.

    ``json`` names the field inside a whole-value JSON literal when it
    differs from the attribute name. Remaining keyword arguments go to
    ``dataclasses.field``.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG] = key
    if json is not None:
        metadata[JSON_TAG] = json
    return dataclasses.field(metadata=metadata, **kwargs)


@dataclass(frozen=True, slots=True)
class Width:
    """Numeric width marker for ``Annotated[int, ...]`` / ``Annotated[float, ...]``."""

    bits: int
    signed: bool = True

    def __post_init__(self) -> None:
        if self.bits not in (8, 16, 32, 64):
            msg = f"Width bits must be 8, 16, 32 or 64, got {self.bits}"
            raise SchemaError(msg)


class Kind(Enum):
    TEXT = auto()
    BOOL = auto()
    INT = auto()
    UINT = auto()
    FLOAT = auto()
    SEQUENCE = auto()
    ARRAY = auto()
    MAPPING = auto()
    OPTIONAL = auto()
    RECORD = auto()
    EMBEDDED = auto()


SCALAR_KINDS = frozenset({Kind.TEXT, Kind.BOOL, Kind.INT, Kind.UINT, Kind.FLOAT})
_RECORD_KINDS = frozenset({Kind.RECORD, Kind.EMBEDDED})
_SEQUENCE_ORIGINS: tuple[type, ...] = (list, set, frozenset)


@dataclass(frozen=True, slots=True)
class FieldType:
    """The semantic type of a field, or of an element inside one.

    ``item`` is the element type of a sequence or array, the value type
    of a mapping, or the pointee of an optional. ``key`` is a mapping's
    key type.
    """

    kind: Kind
    bits: int = 0
    item: FieldType | None = None
    key: FieldType | None = None
    size: int = 0
    container: type | None = None
    record: type | None = None

    def describe(self) -> str:
        """Human-readable type name for error messages."""
        match self.kind:
            case Kind.TEXT:
                return "str"
            case Kind.BOOL:
                return "bool"
            case Kind.INT:
                return f"int{self.bits}"
            case Kind.UINT:
                return f"uint{self.bits}"
            case Kind.FLOAT:
                return f"float{self.bits}"
            case Kind.SEQUENCE:
                name = self.container.__name__ if self.container else "list"
                return f"{name}[{self.item.describe()}]" if self.item else name
            case Kind.ARRAY:
                return f"{self.item.describe()}[{self.size}]" if self.item else "array"
            case Kind.MAPPING:
                if self.key and self.item:
                    return f"dict[{self.key.describe()}, {self.item.describe()}]"
                return "dict"
            case Kind.OPTIONAL:
                return f"{self.item.describe()} | None" if self.item else "None"
        return self.record.__name__ if self.record else "record"

    def zero(self) -> Any:
        """The value a field of this type holds when nothing was bound."""
        match self.kind:
            case Kind.TEXT:
                return ""
            case Kind.BOOL:
                return False
            case Kind.INT | Kind.UINT:
                return 0
            case Kind.FLOAT:
                return 0.0
            case Kind.SEQUENCE:
                return (self.container or list)()
            case Kind.ARRAY:
                assert self.item is not None
                return tuple(self.item.zero() for _ in range(self.size))
            case Kind.MAPPING:
                return {}
            case Kind.OPTIONAL:
                return None
        assert self.record is not None
        return zero_record(self.record)


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One bindable dataclass field.

    ``key`` is ``None`` only for embedded records and for fields that
    take part in JSON decoding but not in form binding.
    """

    name: str
    key: str | None
    type: FieldType
    json_name: str | None = None

    @property
    def kind(self) -> Kind:
        return self.type.kind


@dataclass(frozen=True, slots=True)
class RecordSchema:
    """The binding description of one dataclass.

    Attributes:
        cls: The dataclass.
        fields: Fields driven by form keys, in declaration order
            (keyed fields and embedded records).
        json_fields: Fields a whole-value JSON literal may set: the
            form fields plus keyless public fields of a known kind.
        tag: Metadata key the form keys were read from.
        skip: The skip marker in effect.
    """

    cls: type
    fields: tuple[FieldSpec, ...]
    json_fields: tuple[FieldSpec, ...]
    tag: str = TAG
    skip: str = SKIP

    @property
    def keys(self) -> tuple[str, ...]:
        """Form keys declared directly on this record."""
        return tuple(f.key for f in self.fields if f.key is not None)

    def child(self, record: type) -> RecordSchema:
        """Schema for a nested record, under the same tag and skip marker."""
        return schema_for(record, self.tag, self.skip)

    def records(self) -> set[type]:
        """Record types reachable one level down from this schema."""
        found: set[type] = set()
        for spec in self.json_fields:
            ftype = spec.type
            if ftype.kind is Kind.OPTIONAL and ftype.item is not None:
                ftype = ftype.item
            if ftype.kind in _RECORD_KINDS and ftype.record is not None:
                found.add(ftype.record)
        return found

    def zero(self) -> Any:
        """A fresh instance with zero values for required fields."""
        return zero_record(self.cls)


# ---------------------------------------------------------------------------
# Schema cache
# ---------------------------------------------------------------------------

_cache: dict[tuple[type, str, str], RecordSchema] = {}
_lock = threading.Lock()


def schema_for(cls: type, tag: str = TAG, skip: str = SKIP) -> RecordSchema:
    """Return the cached schema for *cls*, building it on first use.

    Nested record schemas are built and validated in the same pass, so
    an unsupported annotation anywhere below *cls* fails here.

    Raises:
        SchemaError: If *cls* or a nested record cannot be bound.
    """
    if not isinstance(cls, type):
        _require_record(cls)
    cache_key = (cls, tag, skip)
    schema = _cache.get(cache_key)
    if schema is not None:
        return schema

    with _lock:
        schema = _cache.get(cache_key)
        if schema is not None:
            return schema

        pending: dict[type, RecordSchema] = {}
        todo = [cls]
        while todo:
            current = todo.pop()
            if current in pending or (current, tag, skip) in _cache:
                continue
            built = _build(current, tag, skip)
            pending[current] = built
            todo.extend(built.records())

        for record, built in pending.items():
            _cache[(record, tag, skip)] = built
        logger.debug("built binding schemas for %s", ", ".join(r.__name__ for r in pending))
        return pending[cls]


def clear_cache() -> None:
    """Drop all cached schemas (for tests and code reloading)."""
    with _lock:
        _cache.clear()


def _build(cls: type, tag: str, skip: str) -> RecordSchema:
    _require_record(cls)
    hints = _hints(cls)

    form_fields: list[FieldSpec] = []
    json_fields: list[FieldSpec] = []

    for f in dataclasses.fields(cls):
        # Private attributes are never bound
        if f.name.startswith("_"):
            continue

        hint = hints.get(f.name, f.type)
        where = f"{cls.__name__}.{f.name}"
        key = f.metadata.get(tag) or None
        json_name = f.metadata.get(JSON_TAG)

        if key == skip:
            continue

        if key is None:
            if _record_type(hint) is not None:
                spec = FieldSpec(
                    f.name, None, FieldType(Kind.EMBEDDED, record=_classify(hint, where).record)
                )
                form_fields.append(spec)
                json_fields.append(spec)
                continue
            # Keyless fields only take part in JSON decoding, when their type allows
            try:
                ftype = _classify(hint, where)
            except SchemaError:
                continue
            json_fields.append(FieldSpec(f.name, None, ftype, json_name))
            continue

        spec = FieldSpec(f.name, key, _classify(hint, where), json_name)
        form_fields.append(spec)
        json_fields.append(spec)

    return RecordSchema(cls, tuple(form_fields), tuple(json_fields), tag, skip)


# ---------------------------------------------------------------------------
# Annotation classification
# ---------------------------------------------------------------------------


def _require_record(cls: Any) -> None:
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        msg = f"{cls!r} is not a dataclass — binding targets must be dataclasses"
        raise SchemaError(msg)
    if cls.__dataclass_params__.frozen:  # type: ignore[attr-defined]
        msg = f"{cls.__name__} is a frozen dataclass — binding needs a mutable dataclass"
        raise SchemaError(msg)


def _hints(cls: type) -> dict[str, Any]:
    try:
        return get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as exc:
        msg = f"cannot resolve annotations of {cls.__name__}: {exc}"
        raise SchemaError(msg) from exc


def _record_type(hint: Any) -> type | None:
    if get_origin(hint) is Annotated:
        hint = get_args(hint)[0]
    if isinstance(hint, type) and dataclasses.is_dataclass(hint):
        return hint
    return None


def _classify(hint: Any, where: str) -> FieldType:
    """Map an annotation onto a ``FieldType``, or raise ``SchemaError``."""
    width: Width | None = None
    if get_origin(hint) is Annotated:
        hint, *extras = get_args(hint)
        width = next((e for e in extras if isinstance(e, Width)), None)

    if hint is int:
        width = width or Width(64)
        return FieldType(Kind.INT if width.signed else Kind.UINT, bits=width.bits)

    if hint is float:
        width = width or Width(64)
        if width.bits not in (32, 64) or not width.signed:
            msg = f"{where}: float width must be 32 or 64 bits, got {width}"
            raise SchemaError(msg)
        return FieldType(Kind.FLOAT, bits=width.bits)

    if width is not None:
        msg = f"{where}: Width applies only to int and float, not {hint!r}"
        raise SchemaError(msg)

    if hint is str:
        return FieldType(Kind.TEXT)
    if hint is bool:
        return FieldType(Kind.BOOL)

    origin = get_origin(hint)
    args = get_args(hint)

    if origin is Union or origin is types.UnionType:
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) != 1 or len(args) == len(non_none):
            msg = f"{where}: unsupported field type {hint!r} (only X | None unions bind)"
            raise SchemaError(msg)
        item = _classify(non_none[0], where)
        return FieldType(Kind.OPTIONAL, item=item)

    if origin in _SEQUENCE_ORIGINS:
        item = _element(args, where, hint)
        if origin is not list and item.kind not in SCALAR_KINDS:
            msg = f"{where}: {origin.__name__} elements must be scalars, got {item.describe()}"
            raise SchemaError(msg)
        return FieldType(Kind.SEQUENCE, item=item, container=origin)

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            item = _element(args[:1], where, hint)
            return FieldType(Kind.SEQUENCE, item=item, container=tuple)
        if args and all(a == args[0] for a in args):
            item = _element(args[:1], where, hint)
            return FieldType(Kind.ARRAY, item=item, size=len(args))
        msg = f"{where}: unsupported field type {hint!r} (tuples must be tuple[T, ...] or homogeneous)"
        raise SchemaError(msg)

    if origin is dict:
        if len(args) != 2:
            msg = f"{where}: dict fields need key and value types"
            raise SchemaError(msg)
        key = _classify(args[0], where)
        if key.kind not in SCALAR_KINDS:
            msg = f"{where}: dict keys must be scalars, got {key.describe()}"
            raise SchemaError(msg)
        return FieldType(Kind.MAPPING, key=key, item=_element(args[1:], where, hint))

    record = _record_type(hint)
    if record is not None:
        _require_record(record)
        return FieldType(Kind.RECORD, record=record)

    msg = f"{where}: unsupported field type {hint!r}"
    raise SchemaError(msg)


def _element(args: tuple[Any, ...], where: str, hint: Any) -> FieldType:
    """Classify a collection's element type; records cannot be elements."""
    if not args:
        msg = f"{where}: unsupported field type {hint!r} (missing element type)"
        raise SchemaError(msg)
    item = _classify(args[0], where)
    inner = item.item if item.kind is Kind.OPTIONAL else item
    if inner is not None and inner.kind in _RECORD_KINDS:
        msg = f"{where}: records are not supported inside collections ({hint!r})"
        raise SchemaError(msg)
    return item


# ---------------------------------------------------------------------------
# Zero values
# ---------------------------------------------------------------------------


def zero_record(cls: type[T]) -> T:
    """Instantiate *cls*, filling required init fields with zero values.

    Fields with defaults keep them. Raises ``SchemaError`` if a required
    field's type has no zero value.
    """
    _require_record(cls)
    hints = _hints(cls)
    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):  # type: ignore[arg-type]
        if not f.init:
            continue
        if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
            continue
        kwargs[f.name] = _classify(hints.get(f.name, f.type), f"{cls.__name__}.{f.name}").zero()
    return cls(**kwargs)
