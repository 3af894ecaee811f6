from shared.security.jwt_utils import AuthTokenPayload, JWTManager
from shared.security.sanitize import sanitize_html_text, strip_html_tags

__all__ = [
    "AuthTokenPayload",
    "JWTManager",
    "sanitize_html_text",
    "strip_html_tags",
]
