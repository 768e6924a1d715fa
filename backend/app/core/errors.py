"""
Error taxonomy shared by dependencies, services and routers.

Each class is an HTTPException with a fixed status so services can raise them
directly and the exception handlers in `app.core.middleware` render them as
`{"error": "..."}`.
"""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException, status


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Missing auth token"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Not authorized"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ValidationError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UpstreamFailure(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def raise_upstream(exc: BaseException, *, context: str) -> NoReturn:
    """Re-raise a provider exception (PostgREST, storage, auth) as UpstreamFailure."""
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    raise UpstreamFailure(f"{context}: {message}") from exc
