"""
Line-level diff between two HTML snapshots.

Comparison is line based (not character based). After trimming the common
leading and trailing lines, lines that occur exactly once in both snapshots
anchor the alignment (patience style), and only the gaps between anchors are
handed to difflib's SequenceMatcher. Edits scattered across a large report
therefore cost roughly linear time instead of one full rescan per hunk.

``modifications`` is a heuristic: within every contiguous run of changed lines
the removed and added non-blank lines are paired in emission order, and the
number of pairs is counted. It is not an edit-distance alignment.
"""

from bisect import bisect_left
from difflib import SequenceMatcher
from typing import Dict, List, Sequence, Tuple

from ..models.diff import DiffLine, DiffResult, LineDifference
from ..models.version import DiffStats

Opcode = Tuple[str, int, int, int, int]

_MIRRORED_TAGS = {"insert": "delete", "delete": "insert", "replace": "replace", "equal": "equal"}

# Nesting limit for re-anchoring inside gaps
_MAX_ANCHOR_DEPTH = 8


def _split_lines(content: str) -> List[str]:
    return content.splitlines() if content else []


def _matcher_opcodes(a: Sequence[str], b: Sequence[str]) -> List[Opcode]:
    """
    Opcodes turning ``a`` into ``b``.

    Matching is computed on a fixed ordering of the pair, so swapping the
    arguments yields exactly mirrored opcodes (and mirrored statistics).
    """
    if a <= b:
        return _anchored_opcodes(a, b)

    return [
        (_MIRRORED_TAGS[tag], j1, j2, i1, i2)
        for tag, i1, i2, j1, j2 in _anchored_opcodes(b, a)
    ]


def _unique_pairs(
    a: Sequence[str], b: Sequence[str], alo: int, ahi: int, blo: int, bhi: int
) -> List[Tuple[int, int]]:
    """Positions of lines occurring exactly once in both ranges, ordered by ``a``."""
    a_index: Dict[str, int] = {}
    for i in range(alo, ahi):
        a_index[a[i]] = -1 if a[i] in a_index else i
    b_index: Dict[str, int] = {}
    for j in range(blo, bhi):
        b_index[b[j]] = -1 if b[j] in b_index else j

    return [
        (i, b_index[line])
        for line, i in a_index.items()
        if i >= 0 and b_index.get(line, -1) >= 0
    ]


def _longest_increasing(pairs: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Longest subsequence of ``pairs`` (ordered by i) whose j also increases."""
    tails: List[int] = []
    tail_values: List[int] = []
    previous = [-1] * len(pairs)
    for index, (_, j) in enumerate(pairs):
        position = bisect_left(tail_values, j)
        if position:
            previous[index] = tails[position - 1]
        if position == len(tails):
            tails.append(index)
            tail_values.append(j)
        else:
            tails[position] = index
            tail_values[position] = j

    chain: List[Tuple[int, int]] = []
    index = tails[-1] if tails else -1
    while index != -1:
        chain.append(pairs[index])
        index = previous[index]
    chain.reverse()
    return chain


def _match_lines(
    a: Sequence[str],
    b: Sequence[str],
    alo: int,
    ahi: int,
    blo: int,
    bhi: int,
    matches: List[Tuple[int, int]],
    depth: int = 0,
) -> None:
    """
    Append matched ``(i, j)`` line pairs for the given ranges, in order.

    Lines unique to both ranges anchor the alignment and the gaps between
    anchors are matched recursively, so each edit is aligned within its own
    small gap instead of against the whole document. Gaps without unique
    lines fall back to SequenceMatcher.
    """
    while alo < ahi and blo < bhi and a[alo] == b[blo]:
        matches.append((alo, blo))
        alo += 1
        blo += 1

    tail: List[Tuple[int, int]] = []
    while alo < ahi and blo < bhi and a[ahi - 1] == b[bhi - 1]:
        ahi -= 1
        bhi -= 1
        tail.append((ahi, bhi))

    if alo < ahi and blo < bhi:
        anchors = (
            _longest_increasing(_unique_pairs(a, b, alo, ahi, blo, bhi))
            if depth < _MAX_ANCHOR_DEPTH
            else []
        )
        if anchors:
            i, j = alo, blo
            for anchor_i, anchor_j in anchors:
                _match_lines(a, b, i, anchor_i, j, anchor_j, matches, depth + 1)
                matches.append((anchor_i, anchor_j))
                i, j = anchor_i + 1, anchor_j + 1
            _match_lines(a, b, i, ahi, j, bhi, matches, depth + 1)
        else:
            matcher = SequenceMatcher(None, a[alo:ahi], b[blo:bhi])
            for i, j, size in matcher.get_matching_blocks():
                matches.extend((alo + i + k, blo + j + k) for k in range(size))

    matches.extend(reversed(tail))


def _anchored_opcodes(a: Sequence[str], b: Sequence[str]) -> List[Opcode]:
    matches: List[Tuple[int, int]] = []
    _match_lines(a, b, 0, len(a), 0, len(b), matches)

    opcodes: List[Opcode] = []
    i = j = 0
    for match_i, match_j in matches + [(len(a), len(b))]:
        if i < match_i and j < match_j:
            opcodes.append(("replace", i, match_i, j, match_j))
        elif i < match_i:
            opcodes.append(("delete", i, match_i, j, match_j))
        elif j < match_j:
            opcodes.append(("insert", i, match_i, j, match_j))

        if match_i < len(a):
            last = opcodes[-1] if opcodes else None
            if last is not None and last[0] == "equal" and last[2] == match_i:
                opcodes[-1] = ("equal", last[1], match_i + 1, last[3], match_j + 1)
            else:
                opcodes.append(("equal", match_i, match_i + 1, match_j, match_j + 1))
        i, j = match_i + 1, match_j + 1

    return opcodes


def _opcodes(old_lines: List[str], new_lines: List[str]) -> List[Opcode]:
    """Opcodes with the common prefix and suffix handled outside the matcher."""
    limit = min(len(old_lines), len(new_lines))
    prefix = 0
    while prefix < limit and old_lines[prefix] == new_lines[prefix]:
        prefix += 1

    suffix = 0
    while (
        suffix < limit - prefix
        and old_lines[len(old_lines) - 1 - suffix] == new_lines[len(new_lines) - 1 - suffix]
    ):
        suffix += 1

    old_end = len(old_lines) - suffix
    new_end = len(new_lines) - suffix

    opcodes: List[Opcode] = []
    if prefix:
        opcodes.append(("equal", 0, prefix, 0, prefix))

    for tag, i1, i2, j1, j2 in _matcher_opcodes(
        old_lines[prefix:old_end], new_lines[prefix:new_end]
    ):
        opcodes.append((tag, i1 + prefix, i2 + prefix, j1 + prefix, j2 + prefix))

    if suffix:
        opcodes.append(("equal", old_end, len(old_lines), new_end, len(new_lines)))

    return opcodes


def diff_lines(old_content: str, new_content: str) -> List[DiffLine]:
    """
    Renderable line listing tagged added / removed / unchanged.

    Within a change run, removed lines are emitted before added lines.

    Args:
        old_content: Older HTML snapshot
        new_content: Newer HTML snapshot

    Returns:
        List of DiffLine; empty when the inputs are identical
    """
    old_content = old_content or ""
    new_content = new_content or ""
    if old_content == new_content:
        return []

    old_lines = _split_lines(old_content)
    new_lines = _split_lines(new_content)

    lines: List[DiffLine] = []
    for tag, i1, i2, j1, j2 in _opcodes(old_lines, new_lines):
        if tag == "equal":
            for offset in range(i2 - i1):
                lines.append(
                    DiffLine(
                        kind="unchanged",
                        content=old_lines[i1 + offset],
                        old_line_no=i1 + offset + 1,
                        new_line_no=j1 + offset + 1,
                    )
                )
            continue

        for index in range(i1, i2):
            lines.append(DiffLine(kind="removed", content=old_lines[index], old_line_no=index + 1))
        for index in range(j1, j2):
            lines.append(DiffLine(kind="added", content=new_lines[index], new_line_no=index + 1))

    return lines


def _change_runs(lines: List[DiffLine]) -> List[Tuple[List[str], List[str]]]:
    """Group non-blank removed/added lines into contiguous change runs."""
    runs: List[Tuple[List[str], List[str]]] = []
    removed: List[str] = []
    added: List[str] = []

    for line in lines:
        if line.kind == "unchanged":
            if removed or added:
                runs.append((removed, added))
                removed, added = [], []
            continue
        if not line.content.strip():
            continue
        if line.kind == "removed":
            removed.append(line.content)
        else:
            added.append(line.content)

    if removed or added:
        runs.append((removed, added))
    return runs


def _stats_from_lines(lines: List[DiffLine]) -> DiffStats:
    additions = deletions = modifications = 0
    for removed, added in _change_runs(lines):
        additions += len(added)
        deletions += len(removed)
        modifications += min(len(added), len(removed))
    return DiffStats(additions=additions, deletions=deletions, modifications=modifications)


def calculate_diff_stats(old_content: str, new_content: str) -> DiffStats:
    """
    Count added, deleted and paired lines between two snapshots.

    Blank lines are ignored in the counts.

    Examples:
        >>> calculate_diff_stats("<p>a</p>", "<p>a</p>\\n<p>b</p>")
        DiffStats(additions=1, deletions=0, modifications=0)
    """
    return _stats_from_lines(diff_lines(old_content, new_content))


def compute_diff(old_content: str, new_content: str) -> DiffResult:
    """Statistics and listing in one pass."""
    lines = diff_lines(old_content, new_content)
    return DiffResult(stats=_stats_from_lines(lines), lines=lines)


def get_line_difference(old_content: str, new_content: str) -> LineDifference:
    """
    Added, removed and modified lines.

    Lines paired by the modification heuristic are reported once as
    ``"Modified: <old> → <new>"`` and left out of ``added``/``removed``.
    """
    result = LineDifference()
    for removed, added in _change_runs(diff_lines(old_content, new_content)):
        pairs = min(len(removed), len(added))
        result.modified.extend(
            f"Modified: {old} → {new}" for old, new in zip(removed[:pairs], added[:pairs])
        )
        result.removed.extend(removed[pairs:])
        result.added.extend(added[pairs:])
    return result
