import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from exceptions.base import ShopException
from exceptions.payment import PaymentGatewayException
from services.notification import NotificationService

logger = logging.getLogger(__name__)


def error_body(kind: str, message: str) -> dict:
    return {"kind": kind, "message": message}


async def shop_exception_handler(request: Request, exc: ShopException) -> JSONResponse:
    if isinstance(exc, PaymentGatewayException):
        logger.error(f"Payment gateway error on {request.url.path}: {exc!r}")
    elif exc.status_code >= 500:
        logger.error(f"{exc.kind} error on {request.url.path}: {exc!r}")
    else:
        logger.info(f"{exc.kind} error on {request.url.path}: {exc!r}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.message))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else first.get("msg", "invalid request")
    return JSONResponse(status_code=400, content=error_body("validation", message))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    dispatcher = getattr(request.app.state, "notification_dispatcher", None)
    if dispatcher is not None:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        dispatcher.dispatch(
            NotificationService.admin_alert(f"Critical error on {request.url.path}: {exc}\n\n{stack[-1500:]}"),
            "admin-error"
        )
    return JSONResponse(status_code=500, content=error_body("internal", "An unexpected error occurred"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopException, shop_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
