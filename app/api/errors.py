from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.logging import get_logger
from app.services.auction.exceptions import (
    AuctionClosed,
    AuctionError,
    BidTooLow,
    NotFound,
    PermissionDenied,
    SelfBidForbidden,
    StorageUnavailable,
    ValidationError,
)
from app.services.user.exceptions import UserNotAuthenticated

logger = get_logger(__name__)

STATUS_CODES = {
    NotFound: status.HTTP_404_NOT_FOUND,
    AuctionClosed: status.HTTP_409_CONFLICT,
    BidTooLow: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SelfBidForbidden: status.HTTP_403_FORBIDDEN,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def auction_error_handler(request: Request, error: AuctionError) -> JSONResponse:
    status_code = STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST)
    if isinstance(error, BidTooLow):
        detail = {"message": str(error), "minimum_bid": f"{error.minimum:.2f}"}
    elif isinstance(error, ValidationError):
        detail = {"message": error.message, "field": error.field}
    else:
        detail = str(error)

    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=str(error))
    return JSONResponse(status_code=status_code, content={"detail": detail})


async def not_authenticated_handler(
    request: Request, error: UserNotAuthenticated
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": str(error)}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuctionError, auction_error_handler)
    app.add_exception_handler(UserNotAuthenticated, not_authenticated_handler)
