from __future__ import annotations

from uuid import uuid4

from fastapi import Request, Response

CORRELATION_HEADER = "X-Correlation-ID"
_MAX_LEN = 128


def resolve_correlation_id(request: Request) -> str:
    """Reuse the id already assigned to this request, else the client's, else a new one."""
    existing = getattr(request.state, "correlation_id", None)
    if isinstance(existing, str) and existing:
        return existing
    incoming = (request.headers.get(CORRELATION_HEADER) or "").strip()[:_MAX_LEN]
    cid = incoming if incoming else uuid4().hex[:16]
    request.state.correlation_id = cid
    return cid


def correlation_id(request: Request, response: Response) -> str:
    cid = resolve_correlation_id(request)
    response.headers[CORRELATION_HEADER] = cid
    return cid
