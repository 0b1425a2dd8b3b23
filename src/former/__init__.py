"""Former — bind HTTP form submissions to dataclasses.

Maps URL-encoded and multipart form fields onto dataclass attributes
using per-field keys, converting strings to the annotated types and
recursing into nested records.

Basic usage::

    from dataclasses import dataclass
    from former import formfield, populate

    @dataclass
    class LoginForm:
        username: str = formfield("username", default="")
        remember: bool = formfield("remember", default=False)
        interests: list[str] = formfield("interests", default_factory=list)

    async def login(request):
        form = LoginForm()
        await populate(request, form)

Nested records bind from dot paths (``profile.age=30``) or from a JSON
literal in their own key (``profile={"age": 30}``). A dataclass field
without a key is embedded: its keys read as the parent's own.
"""

__version__ = "0.1.0"
__all__ = [
    "Binder",
    "BinderConfig",
    "BindingError",
    "ConfigurationError",
    "ConversionError",
    "DestinationError",
    "FormData",
    "FormerError",
    "NoMultipartDataError",
    "PayloadParseError",
    "Request",
    "SchemaError",
    "StructuredDecodeError",
    "UploadFile",
    "Width",
    "bind",
    "formfield",
    "get_file",
    "populate",
    "populate_form",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import former`` fast while providing a clean top-level API.
    """
    if name in ("Binder", "bind", "get_file", "populate", "populate_form"):
        from former import binder as _binder

        return getattr(_binder, name)

    if name == "BinderConfig":
        from former.config import BinderConfig

        return BinderConfig

    if name in ("Width", "formfield"):
        from former.binding import fields as _fields

        return getattr(_fields, name)

    if name in ("FormData", "UploadFile"):
        from former.http import forms as _forms

        return getattr(_forms, name)

    if name == "Request":
        from former.http.request import Request

        return Request

    if name in (
        "BindingError",
        "ConfigurationError",
        "ConversionError",
        "DestinationError",
        "FormerError",
        "NoMultipartDataError",
        "PayloadParseError",
        "SchemaError",
        "StructuredDecodeError",
    ):
        from former import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
