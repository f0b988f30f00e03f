# Line-level diffing module

from .diff_engine import calculate_diff_stats, compute_diff, diff_lines, get_line_difference

__all__ = [
    "calculate_diff_stats",
    "compute_diff",
    "diff_lines",
    "get_line_difference",
]
