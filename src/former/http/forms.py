"""Form data parsing — URL-encoded and multipart.

``FormData`` implements ``FormValues``, the payload interface the binder
reads.

A parsed form keeps two text namespaces apart: the URL-encoded one
(body values followed by query string values) and the multipart one
(text parts of a ``multipart/form-data`` body). Lookups consult them in
that order. Uploaded files live beside them and are never returned as
text values.

URL-encoded forms use stdlib ``urllib.parse``. Multipart forms use
``python-multipart``.
"""

import logging
import re
import tempfile
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import IO, Any

from former.config import DEFAULT_MAX_MEMORY
from former.errors import ConfigurationError, PayloadParseError

logger = logging.getLogger("former.forms")

URLENCODED = "application/x-www-form-urlencoded"
MULTIPART = "multipart/form-data"

# A "%" not followed by two hex digits
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True, slots=True)
class UploadFile:
    """An uploaded file from a multipart form submission.

    Immutable metadata with a file handle for the content. Content up to
    the parser's ``max_memory`` stays in memory; larger uploads roll over
    to a temporary file on disk.
    """

    filename: str
    content_type: str
    size: int
    file: IO[bytes] = field(repr=False, compare=False)
    headers: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)

    async def read(self) -> bytes:
        """Return the file content as bytes."""
        self.file.seek(0)
        return self.file.read()

    async def save(self, path: Path) -> None:
        """Write the file content to disk.

        Args:
            path: Destination file path. Parent directories must exist.
        """
        path.write_bytes(await self.read())

    def close(self) -> None:
        """Release the underlying file (and its temp file, if any)."""
        self.file.close()

    def __repr__(self) -> str:
        return f"UploadFile({self.filename!r}, {self.content_type!r}, {self.size} bytes)"


class FormData(Mapping[str, str]):
    """Immutable parsed form data.

    Implements ``Mapping[str, str]`` and the ``FormValues`` protocol.

    ``__getitem__`` returns the first value for a key.
    ``get_list`` returns all values for a key, URL-encoded namespace first.
    ``files`` provides access to uploaded files by field name.

    Usage::

        form = await request.form()
        username = form["username"]
        avatar = form.files.get("avatar")  # UploadFile or None
    """

    __slots__ = ("_data", "_files", "_parts")

    def __init__(
        self,
        data: dict[str, list[str]],
        files: dict[str, UploadFile] | None = None,
        *,
        parts: dict[str, list[str]] | None = None,
    ) -> None:
        object.__setattr__(self, "_data", data)
        object.__setattr__(self, "_files", files or {})
        object.__setattr__(self, "_parts", parts)

    @property
    def files(self) -> Mapping[str, UploadFile]:
        """Uploaded files by field name."""
        return MappingProxyType(self._files)

    @property
    def is_multipart(self) -> bool:
        """True if the form came from a ``multipart/form-data`` body."""
        return self._parts is not None

    @property
    def namespaces(self) -> tuple[Mapping[str, list[str]], ...]:
        """Text namespaces in lookup order: URL-encoded, then multipart."""
        if self._parts is None:
            return (MappingProxyType(self._data),)
        return (MappingProxyType(self._data), MappingProxyType(self._parts))

    def __getitem__(self, key: str) -> str:
        values = self.get_list(key)
        if not values:
            raise KeyError(key)
        return values[0]

    def __contains__(self, key: object) -> bool:
        return any(key in namespace for namespace in self.namespaces)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for namespace in self.namespaces:
            for key in namespace:
                if key not in seen:
                    seen.add(key)
                    yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"FormData({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self.get_list(key)
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key* (checkboxes, multi-selects).

        The first namespace holding *key* wins; namespaces are not merged.
        """
        for namespace in self.namespaces:
            if key in namespace:
                return list(namespace[key])
        return []


async def parse_form_data(
    body: bytes,
    content_type: str,
    *,
    query: Mapping[str, list[str]] | None = None,
    max_memory: int = DEFAULT_MAX_MEMORY,
) -> FormData:
    """Parse form body into FormData.

    Supports:
    - ``application/x-www-form-urlencoded`` (stdlib, no extra dependency)
    - ``multipart/form-data`` (``python-multipart``)

    Args:
        body: Raw request body bytes.
        content_type: The Content-Type header value.
        query: Parsed query string values, appended to the URL-encoded
            namespace after the body's own values.
        max_memory: Bytes of a file part held in memory before it rolls
            over to a temporary file.

    Returns:
        Parsed FormData instance.

    Raises:
        PayloadParseError: If the body is malformed or the content type
            is not a form encoding.
        ConfigurationError: If ``python-multipart`` is not installed.
    """
    ct_lower = content_type.lower().split(";")[0].strip()

    if ct_lower == URLENCODED:
        data = _parse_urlencoded(body)
        return FormData(_merge_query(data, query))

    if ct_lower == MULTIPART:
        parts, files = _parse_multipart(body, content_type, max_memory)
        return FormData(_merge_query({}, query), files, parts=parts)

    msg = f"Unsupported form content type: {content_type!r}"
    raise PayloadParseError(msg)


def _merge_query(
    data: dict[str, list[str]],
    query: Mapping[str, list[str]] | None,
) -> dict[str, list[str]]:
    for key, values in (query or {}).items():
        data.setdefault(key, []).extend(values)
    return data


def _parse_urlencoded(body: bytes) -> dict[str, list[str]]:
    """Parse URL-encoded form data using stdlib."""
    from urllib.parse import parse_qs

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        msg = f"failed to parse form: {exc}"
        raise PayloadParseError(msg) from exc

    bad = _BAD_ESCAPE.search(text)
    if bad is not None:
        msg = f"failed to parse form: invalid URL escape {text[bad.start() : bad.start() + 3]!r}"
        raise PayloadParseError(msg)

    return parse_qs(text, keep_blank_values=True)


def _parse_multipart(
    body: bytes,
    content_type: str,
    max_memory: int,
) -> tuple[dict[str, list[str]], dict[str, UploadFile]]:
    """Parse multipart form data using python-multipart.

    Raises ``ConfigurationError`` if ``python-multipart`` is not installed.
    """
    try:
        from python_multipart.multipart import MultipartParser, parse_options_header
    except ImportError:
        msg = (
            "Multipart form parsing requires the 'python-multipart' package. "
            "Install it with: pip install python-multipart"
        )
        raise ConfigurationError(msg) from None

    # Extract boundary from content type
    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if not boundary:
        msg = "failed to parse multipart form: missing boundary parameter"
        raise PayloadParseError(msg)

    data: dict[str, list[str]] = {}
    files: dict[str, UploadFile] = {}

    # Track current part state
    current_headers: dict[str, str] = {}
    current_data = bytearray()
    current_file: Any = None
    current_size = 0
    current_field_name: str | None = None
    current_filename: str | None = None
    ended = False

    def on_part_begin() -> None:
        nonlocal current_headers, current_data, current_file, current_size
        nonlocal current_field_name, current_filename
        current_headers = {}
        current_data = bytearray()
        current_file = None
        current_size = 0
        current_field_name = None
        current_filename = None

    def on_part_data(data_chunk: bytes, start: int, end: int) -> None:
        nonlocal current_file, current_size
        chunk = data_chunk[start:end]
        if current_filename is None:
            current_data.extend(chunk)
            return
        if current_file is None:
            current_file = tempfile.SpooledTemporaryFile(max_size=max_memory)
        current_file.write(chunk)
        current_size += len(chunk)

    def on_part_end() -> None:
        if current_field_name is None:
            # Unnamed parts are dropped
            if current_file is not None:
                current_file.close()
            return

        if current_filename is not None:
            handle = current_file or tempfile.SpooledTemporaryFile(max_size=max_memory)
            handle.seek(0)
            upload = UploadFile(
                filename=current_filename,
                content_type=current_headers.get("content-type", "application/octet-stream"),
                size=current_size,
                file=handle,
                headers=dict(current_headers),
            )
            # First file for a field name wins
            if current_field_name in files:
                upload.close()
            else:
                files[current_field_name] = upload
        else:
            value = current_data.decode("utf-8", errors="replace")
            data.setdefault(current_field_name, []).append(value)

    def on_header_field(hdata: bytes, start: int, end: int) -> None:
        current_headers["_pending_field"] = hdata[start:end].decode("latin-1").lower()

    def on_header_value(hdata: bytes, start: int, end: int) -> None:
        nonlocal current_field_name, current_filename
        name = current_headers.pop("_pending_field", "")
        value = hdata[start:end].decode("latin-1")
        current_headers[name] = value

        # Extract field name and filename from Content-Disposition
        if name == "content-disposition":
            _, params = parse_options_header(value.encode("latin-1"))
            field_name = params.get(b"name")
            if field_name is not None:
                current_field_name = field_name.decode("utf-8")
            # An empty filename (a file input left blank) is a text part
            filename = params.get(b"filename")
            if filename:
                current_filename = filename.decode("utf-8")

    def on_end() -> None:
        nonlocal ended
        ended = True

    callbacks: dict[str, Any] = {
        "on_part_begin": on_part_begin,
        "on_part_data": on_part_data,
        "on_part_end": on_part_end,
        "on_header_field": on_header_field,
        "on_header_value": on_header_value,
        "on_end": on_end,
    }

    parser = MultipartParser(boundary, callbacks)
    try:
        parser.write(body)
        parser.finalize()
        if not ended:
            msg = "unexpected end of body (no closing boundary)"
            raise ValueError(msg)
    except ValueError as exc:
        if current_file is not None:
            current_file.close()
        for upload in files.values():
            upload.close()
        msg = f"failed to parse multipart form: {exc}"
        raise PayloadParseError(msg) from exc

    logger.debug("parsed multipart form: %d text fields, %d files", len(data), len(files))
    return data, files
