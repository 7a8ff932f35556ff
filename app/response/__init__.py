from .response import (
    APIError,
    CamelModel,
    ErrorPayload,
    Meta,
    Pagination,
    StandardResponse,
    error_json_response,
    make_error_response,
    make_success_response,
    server_misconfigured,
)

__all__ = [
    "APIError",
    "CamelModel",
    "Pagination",
    "Meta",
    "ErrorPayload",
    "StandardResponse",
    "make_success_response",
    "make_error_response",
    "error_json_response",
    "server_misconfigured",
]
