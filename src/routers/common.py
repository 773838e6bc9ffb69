from fastapi import Header, HTTPException, status

from src.db.core import (
    NotFoundError,
    InvalidInputError,
    AuthorizationError,
    PolicyViolationError,
    ConsistencyError
)


# This is a placeholder for a proper authentication dependency.
# In a real app, this would decode a JWT token to get the current user.
def get_current_user_id(x_user_id: int = Header(1)) -> int:
    return x_user_id


def to_http_exception(e: Exception) -> HTTPException:
    """Map domain errors to HTTP status codes"""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, AuthorizationError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, PolicyViolationError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, ConsistencyError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "retryable": True}
        )
    if isinstance(e, (InvalidInputError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


DOMAIN_ERRORS = (NotFoundError, AuthorizationError, PolicyViolationError, ConsistencyError, ValueError)
