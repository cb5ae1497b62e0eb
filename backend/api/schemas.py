"""
Request bodies for the chart API.

Field names follow the browser client's camelCase wire format. Unknown
fields are ignored, which is how update-node restricts what a client can
change.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from ..contracts.records import DEFAULT_TEXT_COLOR


WireId = Union[int, str]


class CreateChartRequest(BaseModel):
    title: Optional[str] = None
    template: Optional[str] = None
    # Nested export (dict with children) or flat records (list)
    nodes: Optional[Union[List[Dict[str, Any]], Dict[str, Any]]] = None


class RenameChartRequest(BaseModel):
    title: str = Field(min_length=1)


class DuplicateChartRequest(BaseModel):
    title: Optional[str] = None


class AddNodeRequest(BaseModel):
    id: Optional[WireId] = None
    parentId: Optional[WireId] = None
    name: str = ""
    description: str = ""
    responsible: str = ""
    status: str = ""
    cost: str = ""
    url: str = ""
    color: Optional[str] = None
    textColor: Optional[str] = None


class UpdateNodeRequest(BaseModel):
    id: WireId
    parentId: Optional[WireId] = None
    name: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    responsible: Optional[str] = None
    status: Optional[str] = None
    cost: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """Only the fields the client actually sent."""
        return self.model_dump(exclude_unset=True, exclude={"id"})


class NodeChanges(BaseModel):
    id: WireId
    changes: Dict[str, Any]


class UpdateNodesRequest(BaseModel):
    updates: List[NodeChanges]


class UpdateNodeColorRequest(BaseModel):
    id: WireId
    color: str
    textColor: str = DEFAULT_TEXT_COLOR


class DeleteNodesRequest(BaseModel):
    ids: List[WireId]


class ImportRequest(BaseModel):
    """Outline text, or already-structured nodes (nested or flat)."""
    text: Optional[str] = None
    nodes: Optional[Union[List[Dict[str, Any]], Dict[str, Any]]] = None
    nextId: Optional[int] = None
