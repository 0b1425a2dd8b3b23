"""Request headers, decoded once from the ASGI scope."""

from collections.abc import Iterable

from former._internal.multimap import MultiDict


class Headers(MultiDict):
    """Case-insensitive request headers; names are stored lowercased.

    Built from the raw ``(name, value)`` byte pairs of an ASGI scope.
    Only the binder's needs are covered: the form content type.
    """

    __slots__ = ()

    @classmethod
    def from_raw(cls, raw: Iterable[tuple[bytes, bytes]]) -> "Headers":
        return cls((name.decode("latin-1"), value.decode("latin-1")) for name, value in raw)

    @staticmethod
    def _fold(key: str) -> str:
        return key.lower()

    @property
    def content_type(self) -> str | None:
        """The Content-Type header, if sent."""
        return self.get("content-type")

    @property
    def media_type(self) -> str | None:
        """Content-Type without parameters, lowercased (``multipart/form-data``)."""
        if self.content_type is None:
            return None
        return self.content_type.split(";", 1)[0].strip().lower()
