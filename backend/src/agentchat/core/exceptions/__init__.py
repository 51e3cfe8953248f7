from .http_exceptions import (
    BadGatewayException,
    BadRequestException,
    CustomException,
    ForbiddenException,
    NotFoundException,
    ServiceUnavailableException,
    UnauthorizedException,
)
