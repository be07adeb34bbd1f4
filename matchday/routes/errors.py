"""Translate competition engine errors into HTTP errors."""

from fastapi import HTTPException

from matchday.services.exceptions import CompetitionError, ConfirmationError, DataIntegrityError


def http_error(exc: CompetitionError) -> HTTPException:
    if isinstance(exc, ConfirmationError) and exc.unauthorized:
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, DataIntegrityError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))
