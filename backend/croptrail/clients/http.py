"""Shared outbound HTTP client.

One `httpx.AsyncClient` is created at startup and stored on `app.state`.
Routers receive it through `get_http_client`, which tests override with a
client backed by `httpx.MockTransport`.
"""

import httpx
from fastapi import Request

from croptrail.config import settings


def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.http_timeout_seconds)


async def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def body_excerpt(response: httpx.Response, limit: int = 300) -> str:
    """First few hundred characters of a response body, for logs."""
    try:
        return response.text[:limit]
    except (httpx.ResponseNotRead, UnicodeDecodeError, LookupError):
        return "<unreadable body>"
