from __future__ import annotations

from typing import Any

from fastapi import Request


def bearer_token(request: Request) -> str | None:
    """Credential from an ``Authorization: Bearer <value>`` header, if any."""
    header = request.headers.get("Authorization")
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1]


async def json_body(request: Request) -> dict[str, Any]:
    """Request body as a dict; an empty or non-JSON body reads as {}."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
