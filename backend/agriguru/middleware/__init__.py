from agriguru.middleware.auth import OptionalAPIKeyMiddleware, get_valid_api_keys
from agriguru.middleware.language import LanguageMiddleware
from agriguru.middleware.request_logging import RequestLoggingMiddleware

__all__ = ["LanguageMiddleware", "OptionalAPIKeyMiddleware", "RequestLoggingMiddleware", "get_valid_api_keys"]
