"""Value resolution — form keys to candidate values.

The resolver qualifies a field's key with the current prefix and looks
it up in the payload. Any ``FormValues`` works as a payload;
``FormData`` consults its URL-encoded values before its multipart text
parts. Uploaded files are never returned here.
"""

import logging
from collections.abc import Iterable

from former._internal.multimap import FormValues

logger = logging.getLogger("former.binder")


class ValueResolver:
    """Looks up form values by fully-qualified key.

    Holds only a read-only reference to the payload, so one payload can
    back any number of concurrent binds.
    """

    __slots__ = ("_separator", "_source")

    def __init__(self, source: FormValues, separator: str = ".") -> None:
        self._source = source
        self._separator = separator

    def qualify(self, prefix: str, key: str) -> str:
        """Join *key* onto *prefix* (``contact`` + ``phone`` → ``contact.phone``)."""
        if prefix:
            return f"{prefix}{self._separator}{key}"
        return key

    def resolve(self, key: str) -> list[str]:
        """All values for *key*, in submission order; empty when absent."""
        return self._source.get_list(key)

    def resolve_field(self, prefix: str, key: str) -> list[str]:
        """Values for *key* under *prefix*, falling back to the bare key.

        The fallback lets a flat payload (``phone=...``) fill a nested
        field (``contact.phone``) when the qualified key is missing.
        """
        values = self.resolve(self.qualify(prefix, key))
        if values or not prefix:
            return values
        values = self.resolve(key)
        if values:
            logger.debug("no values for %r, using bare key %r", self.qualify(prefix, key), key)
        return values

    def has_values(self, full_key: str, child_keys: Iterable[str] = ()) -> bool:
        """True if *full_key* or any ``full_key.child`` resolves to a value."""
        if self.resolve(full_key):
            return True
        return any(self.resolve(self.qualify(full_key, child)) for child in child_keys)
