"""
API Mapper
==========

Transforms chart records into the JSON shapes the browser client expects.
"""
from typing import Any, Dict, List, Sequence

from ..contracts.records import ChartMeta, NodeRecord
from ..core import records_from_export


def map_chart(meta: ChartMeta) -> Dict[str, Any]:
    """Chart summary for the dashboard."""
    return meta.to_dict()


def map_charts(charts: Sequence[ChartMeta]) -> List[Dict[str, Any]]:
    return [map_chart(meta) for meta in charts]


def map_nodes(records: Sequence[NodeRecord]) -> List[Dict[str, Any]]:
    """Flat node records with camelCase keys and the id included."""
    return [record.to_dict() for record in records]


def map_incoming_nodes(data: Any) -> List[NodeRecord]:
    """Nodes posted by a client, nested export or flat list."""
    if data is None:
        return []
    try:
        return records_from_export(data)
    except KeyError as e:
        raise ValueError(f"Node is missing required field {e}") from e


def export_filename(chart_id: str, flat: bool) -> str:
    return f"{chart_id}-{'records' if flat else 'tree'}.json"
