"""Immutable HTTP request.

Frozen metadata with async body access. The request is honest about
what it is: received data that doesn't change.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from former._internal.asgi import Receive, Scope
from former.config import DEFAULT_MAX_MEMORY
from former.http.headers import Headers
from former.http.query import QueryParams

if TYPE_CHECKING:
    from former.http.forms import FormData

logger = logging.getLogger("former.forms")

# Methods whose body is read as form data
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, query) is frozen at creation.
    Body is accessed asynchronously via ``.body()`` and ``.form()``.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams

    # Private: ASGI receive callable for body streaming
    _receive: Receive

    # Private: mutable cache for body and parsed form data
    # (dict contents are mutable even though the field reference is frozen)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.content_type

    @property
    def is_multipart(self) -> bool:
        """True if the Content-Type announces ``multipart/form-data``."""
        return self.headers.media_type == "multipart/form-data"

    @property
    def parsed_form(self) -> FormData | None:
        """The form parsed by an earlier ``.form()`` call, if any."""
        return self._cache.get("_form")

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        Result is cached — the ASGI receive is consumed once, then
        the same bytes are returned on subsequent calls.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def form(self, *, max_memory: int = DEFAULT_MAX_MEMORY) -> FormData:
        """Parse the request as form data (URL-encoded or multipart).

        Result is cached — the body is read and parsed once, then
        the same ``FormData`` is returned on subsequent calls.

        Only ``POST``, ``PUT`` and ``PATCH`` bodies are parsed. A missing
        Content-Type means an opaque body (``application/octet-stream``),
        so like any other non-form content type the body stays unread.
        Query string values always join the URL-encoded namespace.

        Raises:
            PayloadParseError: If the body is malformed.
            ConfigurationError: If multipart is needed but
                ``python-multipart`` is not installed.
        """
        if "_form" in self._cache:
            return self._cache["_form"]

        from former.http.forms import MULTIPART, URLENCODED, FormData, parse_form_data

        ct = self.content_type or "application/octet-stream"

        has_form_body = self.headers.media_type in (URLENCODED, MULTIPART)
        if self.method.upper() in BODY_METHODS and has_form_body:
            raw = await self.body()
            result = await parse_form_data(
                raw, ct, query=self.query.lists(), max_memory=max_memory
            )
        else:
            logger.debug("form body not parsed: %s %s (%s)", self.method, self.path, ct)
            result = FormData(self.query.lists())

        self._cache["_form"] = result
        return result

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=Headers.from_raw(scope.get("headers", ())),
            query=QueryParams.parse(scope.get("query_string", b"")),
            _receive=receive,
        )
