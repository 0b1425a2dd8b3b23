"""Test helpers — build requests without a server.

Requests go through the same ASGI receive path as production, so form
parsing and caching behave exactly as they would behind a server::

    body, content_type = encode_multipart({"name": "alice"}, files={
        "avatar": ("me.png", b"...", "image/png"),
    })
    request = build_request("POST", "/profile", body=body, content_type=content_type)
    await populate(request, profile)
"""

from collections.abc import Mapping, Sequence
from typing import Any, TypeAlias
from urllib.parse import urlencode

from former.http.request import Request

FieldValues: TypeAlias = Mapping[str, str | Sequence[str]]


def encode_urlencoded(fields: FieldValues) -> bytes:
    """Encode *fields* as an ``application/x-www-form-urlencoded`` body.

    Sequence values repeat the key once per value, in order.
    """
    pairs: list[tuple[str, str]] = []
    for name, value in fields.items():
        if isinstance(value, str):
            pairs.append((name, value))
        else:
            pairs.extend((name, v) for v in value)
    return urlencode(pairs).encode("ascii")


def encode_multipart(
    fields: FieldValues,
    files: Mapping[str, tuple[str, bytes, str]] | None = None,
    *,
    boundary: str = "former-test-boundary",
) -> tuple[bytes, str]:
    """Encode *fields* and *files* as a ``multipart/form-data`` body.

    Args:
        fields: Text fields; sequence values become repeated parts.
        files: ``{field: (filename, content, content_type)}``.
        boundary: Part boundary.

    Returns:
        ``(body, content_type)`` with the boundary set in the content type.
    """
    chunks: list[bytes] = []
    for name, value in fields.items():
        values = [value] if isinstance(value, str) else list(value)
        for v in values:
            chunks.append(
                f"--{boundary}\r\n"
                f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
                f"{v}\r\n".encode()
            )
    for name, (filename, content, content_type) in (files or {}).items():
        chunks.append(
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            f"Content-Type: {content_type}\r\n\r\n".encode()
            + content
            + b"\r\n"
        )
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks), f"multipart/form-data; boundary={boundary}"


def build_request(
    method: str = "POST",
    path: str = "/",
    *,
    body: bytes = b"",
    content_type: str | None = None,
    headers: dict[str, str] | None = None,
    chunk_size: int | None = None,
) -> Request:
    """Build a ``Request`` whose body is delivered through ASGI receive.

    Args:
        method: HTTP method.
        path: Request path, optionally with a ``?query`` string.
        body: Raw body bytes.
        content_type: Sets the Content-Type header when given.
        headers: Extra headers.
        chunk_size: Deliver the body in chunks of this size
            (``more_body=True`` between them); one chunk when ``None``.
    """
    path_part, _, query_string = path.partition("?")

    raw_headers: list[tuple[bytes, bytes]] = []
    for name, value in (headers or {}).items():
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
    if content_type is not None:
        raw_headers.append((b"content-type", content_type.encode("latin-1")))

    scope: dict[str, Any] = {
        "type": "http",
        "method": method.upper(),
        "path": path_part,
        "query_string": query_string.encode("latin-1"),
        "headers": raw_headers,
    }

    size = chunk_size or max(len(body), 1)
    chunks = [body[i : i + size] for i in range(0, len(body), size)] or [b""]
    position = 0

    async def receive() -> dict[str, Any]:
        nonlocal position
        if position >= len(chunks):
            return {"type": "http.disconnect"}
        chunk = chunks[position]
        position += 1
        return {"type": "http.request", "body": chunk, "more_body": position < len(chunks)}

    return Request.from_asgi(scope, receive)
