"""Form binding — populate dataclasses from HTTP form submissions.

Declare the target with ``formfield`` keys, then populate an instance
from a request::

    @dataclass
    class LoginForm:
        username: str = formfield("username", default="")
        password: str = formfield("password", default="")
        remember: bool = formfield("remember", default=False)

    async def login(request: Request):
        form = LoginForm()
        try:
            await populate(request, form)
        except FormerError as exc:
            return f"bad form: {exc}", 400

Or let the binder build the instance::

    form = await bind(request, LoginForm)

The request is parsed (URL-encoded or multipart) before any field is
bound; binding itself is synchronous and touches only the target.
Uploaded files are not bound; fetch them with ``get_file`` after the
form has been parsed.
"""

import dataclasses
import logging
from typing import Any, Protocol, TypeVar

from former._internal.multimap import FormValues
from former.binding.fields import RecordSchema, schema_for
from former.binding.resolver import ValueResolver
from former.binding.walker import walk
from former.config import BinderConfig
from former.errors import DestinationError, NoMultipartDataError
from former.http.forms import FormData, UploadFile

T = TypeVar("T")

logger = logging.getLogger("former.binder")


class FormSource(Protocol):
    """Anything that can produce a parsed form, like ``Request``."""

    async def form(self, *, max_memory: int = ...) -> FormData: ...


class Binder:
    """Binds form payloads onto dataclass instances.

    A binder is immutable and holds no per-call state; one instance can
    serve every request.
    """

    __slots__ = ("config",)

    def __init__(self, config: BinderConfig | None = None) -> None:
        self.config = config or BinderConfig()

    def schema(self, cls: type) -> RecordSchema:
        """The cached binding schema for *cls* under this binder's tag."""
        return schema_for(cls, self.config.tag, self.config.skip_marker)

    async def populate(self, request: FormSource, dest: Any) -> None:
        """Parse *request*'s form and bind it onto *dest* in place.

        Raises:
            DestinationError: If *dest* is not a mutable dataclass instance.
                Raised before the request body is read.
            PayloadParseError: If the form body is malformed.
            ConversionError: If a value does not convert to its field's type.
            StructuredDecodeError: If a nested record's JSON literal is invalid.
            SchemaError: If *dest*'s class has an unsupported field.
        """
        schema = self._check_destination(dest)
        form = await request.form(max_memory=self.config.max_memory)
        self._walk(form, dest, schema)

    def populate_form(self, form: FormValues, dest: Any) -> None:
        """Bind an already-parsed form onto *dest* in place.

        Same errors as ``populate``, minus payload parsing.
        """
        schema = self._check_destination(dest)
        self._walk(form, dest, schema)

    async def bind(self, request: FormSource, cls: type[T]) -> T:
        """Create a zero-valued *cls* instance and populate it from *request*."""
        if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
            msg = f"destination must be a dataclass type, got {cls!r}"
            raise DestinationError(msg)
        dest = self.schema(cls).zero()
        await self.populate(request, dest)
        return dest

    def get_file(self, request: Any, field_name: str) -> UploadFile:
        """Return the uploaded file for *field_name* from an already-parsed form.

        *request* is a ``Request`` whose ``.form()`` has run (for example
        through ``populate``), or a ``FormData``.

        Raises:
            NoMultipartDataError: If the form was not parsed, or was not
                a multipart submission.
            KeyError: If the form has no file under *field_name*.
        """
        form = request if isinstance(request, FormData) else getattr(request, "parsed_form", None)
        if form is None or not form.is_multipart:
            raise NoMultipartDataError()
        return form.files[field_name]

    def _check_destination(self, dest: Any) -> RecordSchema:
        if isinstance(dest, type) or not dataclasses.is_dataclass(dest):
            msg = f"destination must be a dataclass instance, got {type(dest).__name__}"
            raise DestinationError(msg)
        cls = type(dest)
        if cls.__dataclass_params__.frozen:  # type: ignore[attr-defined]
            msg = f"destination must be a mutable dataclass instance, {cls.__name__} is frozen"
            raise DestinationError(msg)
        return self.schema(cls)

    def _walk(self, form: FormValues, dest: Any, schema: RecordSchema) -> None:
        walk(dest, schema, ValueResolver(form, self.config.separator))
        logger.debug("bound %s from %d form keys", schema.cls.__name__, len(form))


# ---------------------------------------------------------------------------
# Module-level shortcuts (default configuration)
# ---------------------------------------------------------------------------

_default = Binder()


async def populate(request: FormSource, dest: Any) -> None:
    """Parse *request*'s form and bind it onto *dest*. See ``Binder.populate``."""
    await _default.populate(request, dest)


def populate_form(form: FormValues, dest: Any) -> None:
    """Bind an already-parsed form onto *dest*. See ``Binder.populate_form``."""
    _default.populate_form(form, dest)


async def bind(request: FormSource, cls: type[T]) -> T:
    """Create and populate a *cls* instance. See ``Binder.bind``."""
    return await _default.bind(request, cls)


def get_file(request: Any, field_name: str) -> UploadFile:
    """Fetch an uploaded file from a parsed form. See ``Binder.get_file``."""
    return _default.get_file(request, field_name)
