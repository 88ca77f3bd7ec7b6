"""Translate domain exceptions into HTTP errors."""

from fastapi import HTTPException

from app.exceptions import NotFoundError, RepositoryError


def http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, RepositoryError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))
