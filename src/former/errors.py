"""Former exception hierarchy.

Shared across the schema builder, payload parsing, and the binder so
every module raises and catches the same types.
"""


class FormerError(Exception):
    """Base for all former-specific errors."""


class ConfigurationError(FormerError):
    """Raised when binder configuration is invalid or an optional
    dependency is missing.
    """


class SchemaError(FormerError, TypeError):
    """Raised when a dataclass cannot be described as a binding schema.

    Happens once, when the schema is first built: unsupported annotations,
    frozen record types, records inside collections.
    """


class DestinationError(FormerError, TypeError):
    """The bind target is not a mutable dataclass instance.

    Raised before the request body is read.
    """


class PayloadParseError(FormerError, ValueError):
    """The URL-encoded or multipart payload is malformed."""


class NoMultipartDataError(FormerError):
    """A file was requested from a form that was not parsed as multipart."""

    def __init__(self, detail: str = "no multipart form data") -> None:
        super().__init__(detail)


class BindingError(FormerError, ValueError):
    """A single field could not be bound.

    Attributes:
        field: The attribute name of the offending dataclass field.
    """

    prefix = "failed to bind field"

    def __init__(self, field: str, cause: Exception) -> None:
        self.field = field
        super().__init__(f"{self.prefix} {field}: {cause}")


class ConversionError(BindingError):
    """A form value could not be converted to the field's type."""

    prefix = "failed to set field"


class StructuredDecodeError(BindingError):
    """A field value looked like JSON but failed to decode into the record."""

    prefix = "failed to parse JSON for field"
