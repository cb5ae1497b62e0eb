"""
Chart templates and seed charts.

Templates are starting node sets for a new chart; seed charts populate an
empty store so the dashboard has something to show.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Tuple

from ..contracts.records import NodeRecord, DEFAULT_NODE_COLOR


# (id, parentId, name, description)
_TEMPLATES: Dict[str, Tuple[Tuple[int, Optional[int], str, str], ...]] = {
    "blank": (
        (1, None, "Root Node", "Click to edit"),
    ),
    "startup": (
        (1, None, "CEO / Founder", "Chief Executive Officer"),
        (2, 1, "CTO", "Chief Technology Officer"),
        (3, 1, "Head of Product", "Product Lead"),
        (4, 2, "Lead Developer", "Senior Engineer"),
        (5, 2, "Designer", "UX/UI Designer"),
    ),
    "enterprise": (
        (1, None, "Chief Executive Officer", "CEO"),
        (2, 1, "Chief Technology Officer", "CTO"),
        (3, 1, "Chief Financial Officer", "CFO"),
        (4, 1, "Chief Operating Officer", "COO"),
        (5, 1, "Chief Marketing Officer", "CMO"),
        (6, 2, "VP Engineering", "Vice President"),
        (7, 2, "VP Product", "Vice President"),
        (8, 3, "Finance Director", "Director"),
        (9, 4, "HR Director", "Director"),
        (10, 5, "Marketing Director", "Director"),
    ),
}

TEMPLATE_NAMES = tuple(_TEMPLATES)


def template_records(name: str) -> List[NodeRecord]:
    """Fresh records for a named template. Unknown names raise ValueError."""
    try:
        rows = _TEMPLATES[name]
    except KeyError:
        raise ValueError(
            f"Unknown template {name!r}; expected one of {', '.join(TEMPLATE_NAMES)}"
        ) from None
    return [
        NodeRecord(id=node_id, parent_id=parent_id, name=title, description=description)
        for node_id, parent_id, title, description in rows
    ]


# =============================================================================
# SEED CHARTS
# =============================================================================

# (id, parentId, name, description, responsible, cost, color)
_SEED_CHARTS = (
    ("acme-corp", "Acme Corp - Executive Team", (
        (1, None, "CEO", "Chief Executive Officer", "John Smith", "$500k", DEFAULT_NODE_COLOR),
        (2, 1, "CTO", "Chief Technology Officer", "Jane Doe", "$350k", DEFAULT_NODE_COLOR),
        (3, 1, "CFO", "Chief Financial Officer", "Bob Wilson", "$350k", DEFAULT_NODE_COLOR),
        (4, 1, "COO", "Chief Operating Officer", "Alice Brown", "$350k", DEFAULT_NODE_COLOR),
        (5, 2, "Engineering Lead", "Leads engineering team", "Mike Johnson", "$200k", DEFAULT_NODE_COLOR),
        (6, 2, "Product Manager", "Product management", "Sarah Lee", "$180k", DEFAULT_NODE_COLOR),
        (7, 3, "Finance Manager", "Finance operations", "Tom Davis", "$150k", DEFAULT_NODE_COLOR),
        (8, 5, "Senior Developer", "Senior software engineer", "Chris Martinez", "$120k", DEFAULT_NODE_COLOR),
    )),
    ("techstart-eng", "TechStart - Engineering Team", (
        (1, None, "VP Engineering", "Vice President of Engineering", "Maria Garcia", "$400k", "#6B21A8"),
        (2, 1, "Frontend Lead", "Frontend Development Lead", "James Liu", "$220k", "#2563EB"),
        (3, 1, "Backend Lead", "Backend Development Lead", "Sarah Johnson", "$220k", "#2563EB"),
        (4, 1, "DevOps Lead", "DevOps & Infrastructure Lead", "Alex Chen", "$220k", "#2563EB"),
        (5, 2, "React Developer", "Senior React Developer", "Emma Wilson", "$140k", "#059669"),
        (6, 2, "UI Engineer", "UI/UX Engineer", "Ryan Park", "$130k", "#059669"),
        (7, 3, "API Developer", "Backend API Developer", "Nina Patel", "$135k", "#059669"),
        (8, 4, "SRE Engineer", "Site Reliability Engineer", "Tom Anderson", "$145k", "#059669"),
    )),
    ("global-marketing", "Global Marketing Division", (
        (1, None, "CMO", "Chief Marketing Officer", "Jennifer Adams", "$380k", "#DC2626"),
        (2, 1, "Brand Director", "Brand Strategy Director", "Michael Brown", "$200k", "#D97706"),
        (3, 1, "Digital Marketing", "Digital Marketing Director", "Lisa Zhang", "$200k", "#D97706"),
        (4, 1, "Content Director", "Content Strategy Director", "David Kim", "$190k", "#D97706"),
        (5, 2, "Brand Manager", "Brand Management", "Sophie Martin", "$110k", "#059669"),
        (6, 3, "SEO Specialist", "Search Engine Optimization", "Chris Lee", "$95k", "#059669"),
        (7, 3, "Social Media", "Social Media Manager", "Amy Taylor", "$90k", "#059669"),
        (8, 4, "Content Writer", "Senior Content Writer", "Robert Clark", "$85k", "#059669"),
    )),
)


def seed_charts() -> List[Tuple[str, str, List[NodeRecord]]]:
    """(chart id, title, records) for every seed chart."""
    out = []
    for chart_id, title, rows in _SEED_CHARTS:
        records = [
            NodeRecord(
                id=node_id, parent_id=parent_id, name=name, description=description,
                responsible=responsible, status="Active", cost=cost, color=color,
            )
            for node_id, parent_id, name, description, responsible, cost, color in rows
        ]
        out.append((chart_id, title, records))
    return out
