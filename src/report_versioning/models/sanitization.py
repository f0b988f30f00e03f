"""
Sanitization result model.
"""

from typing import Dict

from pydantic import BaseModel, Field, computed_field

from .version import CAMEL_CASE_CONFIG


class SanitizationResult(BaseModel):
    """
    Outcome of a single sanitize call.

    Produced fresh on every call and never persisted; only ``sanitized`` ends
    up in storage.
    """

    sanitized: str = Field(description="Sanitized HTML")
    removed: int = Field(0, ge=0, description="Number of discrete violations neutralized")
    original_length: int = Field(0, ge=0, description="Length of the input in characters")
    removals: Dict[str, int] = Field(
        default_factory=dict, description="Violation counts per rule category"
    )

    model_config = {**CAMEL_CASE_CONFIG, "frozen": True}

    @computed_field
    @property
    def is_clean(self) -> bool:
        """True exactly when nothing was removed."""
        return self.removed == 0
