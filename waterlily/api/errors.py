import logging

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

INTERNAL_ERROR_DETAIL = "Internal server error"
VALIDATION_ERROR_DETAIL = "Missing or invalid fields"


def internal_error(action: str) -> HTTPException:
    """Log the active exception and build the generic 500 for the client.

    Call from inside an ``except`` block so the traceback is logged.
    """
    logger.exception("Error %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR_DETAIL
    )


def invalid_fields() -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=VALIDATION_ERROR_DETAIL)
