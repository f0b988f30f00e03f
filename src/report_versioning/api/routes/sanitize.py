"""
Sanitization endpoint - cleans untrusted HTML before it reaches an editor.
"""

from fastapi import APIRouter

from ...models.api_models import SanitizeRequest
from ...models.sanitization import SanitizationResult
from ...sanitization import log_sanitization_event, sanitize_html

router = APIRouter()


@router.post("/sanitize", response_model=SanitizationResult)
async def sanitize(request: SanitizeRequest) -> SanitizationResult:
    """
    Sanitize an HTML fragment.

    Used for content arriving from outside the editor (pasted HTML, AI
    suggestions) before it is displayed or merged.
    """
    result = sanitize_html(request.html)
    log_sanitization_event("api.sanitize", result)
    return result
