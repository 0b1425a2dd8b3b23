"""Query string values.

They join the URL-encoded namespace of a parsed form after the body's
own values, and are all a request without a form body binds from.
"""

from urllib.parse import parse_qsl

from former._internal.multimap import MultiDict


class QueryParams(MultiDict):
    """Parsed query string; blank values (``?note=``) are kept."""

    __slots__ = ()

    @classmethod
    def parse(cls, query_string: bytes) -> "QueryParams":
        return cls(parse_qsl(query_string.decode("latin-1"), keep_blank_values=True))
