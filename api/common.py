"""Translation of domain errors into HTTP responses."""

import logging

from fastapi import HTTPException, status

from errors import MarketplaceError

logger = logging.getLogger(__name__)

SERVER_ERROR = "Server error"


def http_error(error: MarketplaceError) -> HTTPException:
    """HTTP exception carrying a domain error's status and message."""
    return HTTPException(status_code=error.status_code, detail=error.message)


def server_error(error: Exception, action: str) -> HTTPException:
    """Log an unexpected failure and hide its details from the client."""
    logger.exception(f"Error {action}: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=SERVER_ERROR
    )
