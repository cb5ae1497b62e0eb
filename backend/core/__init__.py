"""
Core Chart Structure

Pure functions over node records: nesting/flattening, export formats and
outline parsing. Nothing here touches storage or in-memory session state.
"""

from .tree import (
    TreeNode, build_tree, flatten,
    export_record, to_export, export_tree, export_flat,
    record_from_export, records_from_export, EXPORT_FIELDS,
)
from .outline import (
    OutlineParseResult, parse_outline, outline_parent, canonical_code,
    next_id_after_import, numeric_value, OUTLINE_LINE,
)

__all__ = [
    'TreeNode', 'build_tree', 'flatten',
    'export_record', 'to_export', 'export_tree', 'export_flat',
    'record_from_export', 'records_from_export', 'EXPORT_FIELDS',
    'OutlineParseResult', 'parse_outline', 'outline_parent', 'canonical_code',
    'next_id_after_import', 'numeric_value', 'OUTLINE_LINE',
]
