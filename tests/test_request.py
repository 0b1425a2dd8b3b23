"""Tests for the Request body and form access."""

import pytest

from former.errors import PayloadParseError
from former.http.headers import Headers
from former.http.query import QueryParams
from former.http.request import Request
from former.testing import build_request, encode_multipart, encode_urlencoded

URLENCODED = "application/x-www-form-urlencoded"


class TestRequestMetadata:
    def test_from_asgi(self) -> None:
        request = build_request("post", "/users?page=2", content_type=URLENCODED)
        assert request.method == "POST"
        assert request.path == "/users"
        assert request.query.get("page") == "2"
        assert isinstance(request.headers, Headers)
        assert isinstance(request.query, QueryParams)

    def test_content_type(self) -> None:
        request = build_request(content_type="text/plain")
        assert request.content_type == "text/plain"

    def test_content_type_missing(self) -> None:
        assert build_request().content_type is None

    def test_is_multipart(self) -> None:
        assert build_request(content_type="multipart/form-data; boundary=x").is_multipart
        assert not build_request(content_type=URLENCODED).is_multipart

    def test_frozen(self) -> None:
        request = build_request()
        with pytest.raises(AttributeError):
            request.method = "GET"  # type: ignore[misc]


class TestRequestBody:
    async def test_body(self) -> None:
        request = build_request(body=b"hello world")
        assert await request.body() == b"hello world"

    async def test_body_chunked(self) -> None:
        request = build_request(body=b"abcdefghij", chunk_size=3)
        assert await request.body() == b"abcdefghij"

    async def test_body_cached(self) -> None:
        request = build_request(body=b"once")
        assert await request.body() == b"once"
        # The receive channel is exhausted; the cached copy is returned
        assert await request.body() == b"once"

    async def test_stream(self) -> None:
        request = build_request(body=b"abcdef", chunk_size=2)
        chunks = [chunk async for chunk in request.stream()]
        assert chunks == [b"ab", b"cd", b"ef"]


class TestRequestForm:
    async def test_urlencoded(self) -> None:
        body = encode_urlencoded({"name": "alice", "tag": ["a", "b"]})
        request = build_request(body=body, content_type=URLENCODED)
        form = await request.form()
        assert form["name"] == "alice"
        assert form.get_list("tag") == ["a", "b"]

    async def test_urlencoded_chunked(self) -> None:
        body = encode_urlencoded({"name": "alice", "bio": "x" * 100})
        request = build_request(body=body, content_type=URLENCODED, chunk_size=7)
        form = await request.form()
        assert form["bio"] == "x" * 100

    async def test_missing_content_type_leaves_body_unread(self) -> None:
        request = build_request("POST", "/?page=1", body=b"name=alice")
        form = await request.form()
        assert "name" not in form
        assert form["page"] == "1"
        assert await request.body() == b"name=alice"

    async def test_multipart(self) -> None:
        body, ct = encode_multipart({"name": "alice"}, files={"doc": ("a.txt", b"A", "text/plain")})
        request = build_request(body=body, content_type=ct)
        form = await request.form()
        assert form.is_multipart
        assert form["name"] == "alice"
        assert form.files["doc"].filename == "a.txt"

    async def test_query_values_merged(self) -> None:
        request = build_request(
            "POST", "/?tag=query&page=1", body=b"tag=body", content_type=URLENCODED
        )
        form = await request.form()
        assert form.get_list("tag") == ["body", "query"]
        assert form["page"] == "1"

    async def test_get_binds_from_query_only(self) -> None:
        request = build_request("GET", "/?name=alice", body=b"name=ignored", content_type=URLENCODED)
        form = await request.form()
        assert form.get_list("name") == ["alice"]
        assert not form.is_multipart

    async def test_non_form_content_type_leaves_body_unread(self) -> None:
        request = build_request("POST", "/?q=1", body=b'{"a": 1}', content_type="application/json")
        form = await request.form()
        assert dict(form) == {"q": "1"}
        assert await request.body() == b'{"a": 1}'

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH"])
    async def test_body_methods(self, method: str) -> None:
        request = build_request(method, body=b"a=1", content_type=URLENCODED)
        assert (await request.form())["a"] == "1"

    async def test_form_cached(self) -> None:
        request = build_request(body=b"a=1", content_type=URLENCODED)
        first = await request.form()
        second = await request.form()
        assert first is second

    async def test_parsed_form(self) -> None:
        request = build_request(body=b"a=1", content_type=URLENCODED)
        assert request.parsed_form is None
        form = await request.form()
        assert request.parsed_form is form

    async def test_malformed_body(self) -> None:
        request = build_request(body=b"a=%G1", content_type=URLENCODED)
        with pytest.raises(PayloadParseError):
            await request.form()
        assert request.parsed_form is None

    async def test_max_memory_forwarded(self) -> None:
        body, ct = encode_multipart({}, files={"f": ("f.bin", b"z" * 64, "application/octet-stream")})
        request = build_request(body=body, content_type=ct)
        form = await request.form(max_memory=8)
        assert form.files["f"].file._rolled is True  # type: ignore[attr-defined]


class TestRequestDirect:
    async def test_direct_construction(self) -> None:
        async def receive() -> dict:
            return {"type": "http.request", "body": b"x=1", "more_body": False}

        request = Request(
            method="POST",
            path="/",
            headers=Headers.from_raw([(b"content-type", URLENCODED.encode())]),
            query=QueryParams.parse(b""),
            _receive=receive,
        )
        form = await request.form()
        assert form["x"] == "1"
