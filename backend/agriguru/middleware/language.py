"""Resolve the caller's UI language once per request and advertise it in Content-Language."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from agriguru.i18n.translations import Translations, parse_accept_language


class LanguageMiddleware(BaseHTTPMiddleware):
    """
    Order of precedence: ?lang=, X-Language header, Accept-Language, default.
    The resolved code is stored on request.state.language for response formatting.
    """

    def __init__(self, app, translations: Translations):
        super().__init__(app)
        self.translations = translations

    async def dispatch(self, request: Request, call_next):
        candidates = [request.query_params.get("lang"), request.headers.get("X-Language")]
        candidates.extend(parse_accept_language(request.headers.get("Accept-Language")))
        language = self.translations.resolve(candidates)
        request.state.language = language
        response = await call_next(request)
        response.headers["Content-Language"] = language
        return response


def language_context(request: Request, translations: Translations) -> dict:
    """{"code", "translations"} block appended to successful JSON envelopes."""
    code = getattr(request.state, "language", None) or translations.default
    return {"code": code, "translations": dict(translations.table(code))}
