"""
URL helpers: request origin and redirect construction.
"""
from urllib.parse import urlencode, urlsplit, urlunsplit

from fastapi import Request


def request_origin(request: Request) -> str:
    """scheme://host[:port] of the incoming request; metadata URLs derive from it."""
    return f"{request.url.scheme}://{request.url.netloc}"


def add_query_params(url: str, params: dict[str, str | None]) -> str:
    """
    Append params to url. An existing query is kept byte-for-byte so the result
    still starts with the registered redirect URI. None values are skipped.
    """
    parts = urlsplit(url)
    added = urlencode([(k, v) for k, v in params.items() if v is not None])
    query = f"{parts.query}&{added}" if parts.query and added else parts.query or added
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def same_origin(url: str, origin: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc) and f"{parts.scheme}://{parts.netloc}" == origin
