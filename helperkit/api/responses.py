"""
Uniform JSON response envelope for FastAPI handlers.

Every response body has the shape::

    {"statusCode": int, "message": str, "data": ..., "error": ...}

Handlers either build one fluently::

    return ResponseEnvelope(items).success().send()

or raise a `ResponseError` subclass and let the handler installed by
`install_response_handlers` render it.
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from helperkit.utils.logger import get_logger

T = TypeVar("T")
E = TypeVar("E")

logger = get_logger(__name__)

SUCCESS = {"status_code": 200, "message": "Success"}
PARTIAL_DATA = {"status_code": 206, "message": "Partial Data"}


class ResponseError(Exception, Generic[E]):
    """HTTP-mappable error carrying an optional structured payload."""

    def __init__(self, message: str, status_code: int, error: Optional[E] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error = error


class NoDataError(ResponseError[E]):
    def __init__(self, error: Optional[E] = None):
        super().__init__("No Data", 204, error)


class BadRequestError(ResponseError[E]):
    """e.g. ``BadRequestError({"email": "Please provide an email"})``"""

    def __init__(self, error: Optional[E] = None):
        super().__init__("Bad Request", 400, error)


class UnauthorizedError(ResponseError[E]):
    def __init__(self, error: Optional[E] = None):
        super().__init__("Unauthorized Error", 401, error)


class ForbiddenError(ResponseError[E]):
    def __init__(self, error: Optional[E] = None):
        super().__init__("Forbidden", 403, error)


class NotFoundError(ResponseError[E]):
    def __init__(self, error: Optional[E] = None):
        super().__init__("Not Found", 404, error)


class NotAcceptedError(ResponseError[E]):
    def __init__(self, error: Optional[E] = None):
        super().__init__("Not Accepted", 406, error)


class AlreadyExistsError(ResponseError[E]):
    def __init__(self, error: Optional[E] = None):
        super().__init__("Already Existed (Conflict)", 409, error)


class InternalServerError(ResponseError[E]):
    def __init__(self, error: Optional[E] = None):
        super().__init__("Internal Server Error", 500, error)


def is_miscellaneous_error(err: Any) -> bool:
    """True when `err` lacks a status code or message, i.e. is not a ResponseError-like."""
    return not getattr(err, "status_code", None) or not getattr(err, "message", None)


class ResponseEnvelope(Generic[T, E]):
    """Fluent builder for the JSON envelope."""

    def __init__(
        self,
        data: Optional[T] = None,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        error: Optional[E] = None,
    ):
        self.data = data
        self.message = message
        self.status_code = status_code
        self.error = error
        self._has_data = True
        self._has_error = True

    def _apply_success(self, outcome: Dict[str, Any]) -> "ResponseEnvelope[T, E]":
        self.status_code = outcome["status_code"]
        self.message = outcome["message"]
        self.error = None
        self._has_error = False
        return self

    def _apply_error(self, err: ResponseError[E]) -> "ResponseEnvelope[T, E]":
        self.status_code = err.status_code
        self.message = err.message
        self.error = err.error
        self.data = None
        self._has_data = False
        return self

    def success(self) -> "ResponseEnvelope[T, E]":
        return self._apply_success(SUCCESS)

    def partial_data(self) -> "ResponseEnvelope[T, E]":
        return self._apply_success(PARTIAL_DATA)

    def no_data(self, error: Optional[E] = None) -> "ResponseEnvelope[T, E]":
        return self._apply_error(NoDataError(error))

    def bad_request(self, error: Optional[E] = None) -> "ResponseEnvelope[T, E]":
        return self._apply_error(BadRequestError(error))

    def unauthorized(self, error: Optional[E] = None) -> "ResponseEnvelope[T, E]":
        return self._apply_error(UnauthorizedError(error))

    def forbidden(self, error: Optional[E] = None) -> "ResponseEnvelope[T, E]":
        return self._apply_error(ForbiddenError(error))

    def not_found(self, error: Optional[E] = None) -> "ResponseEnvelope[T, E]":
        return self._apply_error(NotFoundError(error))

    def not_accepted(self, error: Optional[E] = None) -> "ResponseEnvelope[T, E]":
        return self._apply_error(NotAcceptedError(error))

    def already_exists(self, error: Optional[E] = None) -> "ResponseEnvelope[T, E]":
        return self._apply_error(AlreadyExistsError(error))

    def internal_server_error(self, error: Optional[E] = None) -> "ResponseEnvelope[T, E]":
        return self._apply_error(InternalServerError(error))

    def from_error(self, err: ResponseError[E]) -> "ResponseEnvelope[T, E]":
        return self._apply_error(err)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "statusCode": self.status_code,
            "message": self.message,
        }
        if self._has_data:
            body["data"] = self.data
        if self._has_error:
            body["error"] = self.error
        return body

    def send(self) -> Response:
        status = self.status_code or 200
        if status == 204:
            # 204 responses carry no body
            return Response(status_code=204)
        return JSONResponse(status_code=status, content=self.to_dict())


def get_response_from_data(
    data: Any, status_code: int, errors: Any = None
) -> Response:
    """Map a service-layer (data, status_code, errors) triple onto the envelope."""
    envelope: ResponseEnvelope[Any, Any] = ResponseEnvelope(data)
    if status_code == 200:
        return envelope.success().send()
    if status_code == 400:
        return envelope.bad_request(errors).send()
    return envelope.internal_server_error(errors).send()


async def _response_error_handler(request: Request, exc: ResponseError[Any]) -> Response:
    logger.info(
        "Response error raised",
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
    )
    return ResponseEnvelope().from_error(exc).send()


def install_response_handlers(app: FastAPI) -> FastAPI:
    """Render raised ResponseError subclasses as envelope JSON."""
    app.add_exception_handler(ResponseError, _response_error_handler)
    return app
