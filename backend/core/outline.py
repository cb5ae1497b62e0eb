"""
Outline (WBS) Parser

Turns free text with dotted numeric outline codes into flat node records:

    1.0 Project
    1.1 Design
    1.1.1 Wireframes
    1.2 Build

GRAMMAR:
========
One item per line, ``^(\\d+(\\.\\d+)*)\\s+(.+)$`` (code, whitespace, label).
Lines that do not match are skipped individually and reported, never fatal.

PARENT RULES:
=============
- X.Y.Z (3+ segments) -> X.Y
- X.Y with Y != 0     -> X.0
- X.0                 -> root level
- X (single segment)  -> treated as X.0
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging
import re

from ..contracts.base import NodeId
from ..contracts.records import NodeRecord, IMPORTED_NODE_COLOR


logger = logging.getLogger(__name__)

OUTLINE_LINE = re.compile(r"^(\d+(\.\d+)*)\s+(.+)$")


@dataclass(frozen=True)
class OutlineParseResult:
    """Parsed records plus what was skipped and why."""
    records: Tuple[NodeRecord, ...]
    skipped_lines: Tuple[int, ...] = ()      # 1-based line numbers
    duplicate_codes: Tuple[str, ...] = ()
    reattached_roots: Tuple[str, ...] = ()   # extra root-level codes moved under the first
    orphaned_codes: Tuple[str, ...] = ()     # items whose parent code never appears

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def root(self) -> Optional[NodeRecord]:
        for record in self.records:
            if record.parent_id is None:
                return record
        return None

    @property
    def next_id(self) -> int:
        return next_id_after_import(self.records)


def canonical_code(code: str) -> str:
    return code if "." in code else f"{code}.0"


def outline_parent(code: str) -> Optional[str]:
    """Parent code of an outline code, or None for a root-level item."""
    segments = canonical_code(code).split(".")
    if len(segments) >= 3:
        return ".".join(segments[:-1])
    if int(segments[1]) == 0:
        return None
    return f"{segments[0]}.0"


def numeric_value(node_id: NodeId) -> Optional[int]:
    """
    Integer part of a numeric-looking id ("7" -> 7, "12.0" -> 12).
    Multi-dot outline codes are not numeric-looking.
    """
    if isinstance(node_id, int):
        return node_id
    try:
        return int(float(node_id))
    except (TypeError, ValueError, OverflowError):
        return None


def next_id_after_import(records) -> int:
    values = [v for v in (numeric_value(r.id) for r in records) if v is not None]
    return max(values, default=0) + 1


def parse_outline(text: str, color: str = IMPORTED_NODE_COLOR) -> OutlineParseResult:
    """
    Parse outline text into node records (ids are the outline codes).

    Duplicate codes keep their first occurrence. When more than one
    root-level item is present the first one becomes the chart root and
    the others are attached under it, so the result has at most one root.
    Items whose parent code is missing (e.g. ``2.1`` without ``2.0``) are
    left out of the records and reported in ``orphaned_codes``.
    """
    records: List[NodeRecord] = []
    seen = set()
    skipped: List[int] = []
    duplicates: List[str] = []

    for line_no, raw in enumerate((text or "").splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        match = OUTLINE_LINE.match(line)
        if not match:
            skipped.append(line_no)
            continue
        code = canonical_code(match.group(1))
        if code in seen:
            duplicates.append(code)
            continue
        seen.add(code)
        records.append(NodeRecord(
            id=code,
            parent_id=outline_parent(code),
            name=match.group(3).strip(),
            color=color,
        ))

    reattached: List[str] = []
    root_id = None
    for record in records:
        if record.parent_id is not None:
            continue
        if root_id is None:
            root_id = record.id
        else:
            record.parent_id = root_id
            reattached.append(str(record.id))

    orphaned: List[str] = []
    if root_id is not None:
        records, orphaned = _reachable_from(root_id, records)

    if skipped or duplicates or orphaned:
        logger.info(
            "Outline parse: %d items, %d skipped lines, %d duplicate codes, %d orphaned items",
            len(records), len(skipped), len(duplicates), len(orphaned),
        )

    return OutlineParseResult(
        records=tuple(records),
        skipped_lines=tuple(skipped),
        duplicate_codes=tuple(duplicates),
        reattached_roots=tuple(reattached),
        orphaned_codes=tuple(orphaned),
    )


def _reachable_from(root_id: str, records: List[NodeRecord]) -> Tuple[List[NodeRecord], List[str]]:
    """Split records into those under ``root_id`` and the codes of the rest, text order kept."""
    by_parent = {}
    for record in records:
        by_parent.setdefault(record.parent_id, []).append(record.id)
    reachable = {root_id}
    stack = [root_id]
    while stack:
        for child_id in by_parent.get(stack.pop(), []):
            if child_id not in reachable:
                reachable.add(child_id)
                stack.append(child_id)
    kept = [r for r in records if r.id in reachable]
    dropped = [str(r.id) for r in records if r.id not in reachable]
    return kept, dropped
