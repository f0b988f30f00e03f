"""
Diff models - renderable line listings and comparison summaries.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .version import CAMEL_CASE_CONFIG, DiffStats


class DiffLine(BaseModel):
    """One line of a rendered diff."""

    kind: Literal["added", "removed", "unchanged"] = Field(description="Line tag")
    content: str = Field(description="Line text without the trailing newline")
    old_line_no: Optional[int] = Field(None, description="1-based line number in the old content")
    new_line_no: Optional[int] = Field(None, description="1-based line number in the new content")

    model_config = {**CAMEL_CASE_CONFIG, "frozen": True}


class DiffResult(BaseModel):
    """Statistics plus the renderable listing for a pair of snapshots."""

    stats: DiffStats
    lines: List[DiffLine] = Field(default_factory=list)

    model_config = CAMEL_CASE_CONFIG

    @property
    def has_differences(self) -> bool:
        return bool(self.lines)


class LineDifference(BaseModel):
    """Added, removed and paired ("modified") lines between two snapshots."""

    added: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)
    modified: List[str] = Field(default_factory=list)


class VersionComparison(BaseModel):
    """Human-oriented comparison of two stored versions."""

    has_differences: bool
    stats: DiffStats
    summary: str = Field(description='e.g. "3 additions, 1 deletions" or "No changes"')

    model_config = CAMEL_CASE_CONFIG
