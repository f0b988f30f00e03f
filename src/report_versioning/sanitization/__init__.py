# HTML sanitization module

from .sanitizer import (
    SANITIZER_VERSION,
    HtmlSanitizer,
    log_sanitization_event,
    sanitize_html,
)

__all__ = [
    "HtmlSanitizer",
    "SANITIZER_VERSION",
    "sanitize_html",
    "log_sanitization_event",
]
