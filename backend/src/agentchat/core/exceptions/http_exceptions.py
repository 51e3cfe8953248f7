# ruff: noqa
from fastcrud.exceptions.http_exceptions import (
    CustomException,
    BadRequestException,
    NotFoundException,
    ForbiddenException,
    UnauthorizedException,
    UnprocessableEntityException,
)


class ServiceUnavailableException(CustomException):
    """Exception for 503 Service Unavailable errors."""

    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(status_code=503, detail=detail)


class BadGatewayException(CustomException):
    """Exception for 502 errors raised when an upstream service fails."""

    def __init__(self, detail: str = "Upstream request failed"):
        super().__init__(status_code=502, detail=detail)
