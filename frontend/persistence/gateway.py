"""
Node Gateways

The persistence collaborator seen by an editing session, bound to one
chart. Two implementations:

- LocalNodeGateway: calls a ChartRepository in-process
- HttpNodeGateway:  calls the HTTP API with httpx

Both raise GatewayError (or GatewayNotFound) and nothing else, so the
session has a single exception type to catch at its operation boundary.

Gateways are synchronous. Inside an event loop the debounced writer runs
them on the loop's executor; direct session actions still block the caller.
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
import logging

import httpx

from backend.contracts import NodeId, NodeRecord, normalize_node_id
from backend.charts import ChartRepository, ChartNotFound, NodeNotFound
from backend.storage import StoreError


logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """A persistence call failed (store, transport or server error)."""


class GatewayNotFound(GatewayError):
    """The chart or node the call referenced does not exist."""


class NodeGateway:
    """
    Abstract per-chart persistence interface.
    """

    chart_id: str

    def list_nodes(self) -> List[NodeRecord]:
        raise NotImplementedError

    def next_id(self) -> Optional[int]:
        """Persisted id counter, or None when the backend has none."""
        raise NotImplementedError

    def add_node(
        self,
        fields: Mapping[str, Any],
        parent_id: Optional[NodeId],
        node_id: Optional[NodeId] = None,
    ) -> NodeId:
        raise NotImplementedError

    def update_node(self, node_id: NodeId, changes: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def update_nodes(self, changes_by_id: Mapping[NodeId, Mapping[str, Any]]) -> None:
        raise NotImplementedError

    def update_node_color(self, node_id: NodeId, color: str, text_color: str) -> None:
        raise NotImplementedError

    def delete_nodes(self, node_ids: Iterable[NodeId]) -> int:
        raise NotImplementedError

    def replace_nodes(self, records: Sequence[NodeRecord], next_id: Optional[int] = None) -> None:
        raise NotImplementedError


# =============================================================================
# IN-PROCESS
# =============================================================================

class LocalNodeGateway(NodeGateway):
    """Gateway over a ChartRepository in the same process."""

    def __init__(self, repository: ChartRepository, chart_id: str):
        self._repository = repository
        self.chart_id = chart_id

    def _call(self, fn, *args):
        try:
            return fn(self.chart_id, *args)
        except (ChartNotFound, NodeNotFound) as e:
            raise GatewayNotFound(str(e)) from e
        except StoreError as e:
            raise GatewayError(str(e)) from e

    def list_nodes(self) -> List[NodeRecord]:
        return self._call(self._repository.list_nodes)

    def next_id(self) -> Optional[int]:
        return self._call(self._repository.next_node_id)

    def add_node(
        self,
        fields: Mapping[str, Any],
        parent_id: Optional[NodeId],
        node_id: Optional[NodeId] = None,
    ) -> NodeId:
        return self._call(self._repository.add_node, fields, parent_id, node_id)

    def update_node(self, node_id: NodeId, changes: Mapping[str, Any]) -> None:
        self._call(self._repository.update_node, node_id, changes)

    def update_nodes(self, changes_by_id: Mapping[NodeId, Mapping[str, Any]]) -> None:
        self._call(self._repository.update_nodes, changes_by_id)

    def update_node_color(self, node_id: NodeId, color: str, text_color: str) -> None:
        self._call(self._repository.update_node_color, node_id, color, text_color)

    def delete_nodes(self, node_ids: Iterable[NodeId]) -> int:
        return self._call(self._repository.delete_nodes, list(node_ids))

    def replace_nodes(self, records: Sequence[NodeRecord], next_id: Optional[int] = None) -> None:
        self._call(self._repository.replace_nodes, records, next_id)


# =============================================================================
# HTTP
# =============================================================================

class HttpNodeGateway(NodeGateway):
    """
    Gateway over the chart HTTP API.

    Accepts any ``httpx.Client`` (a FastAPI TestClient works too) or builds
    one from ``base_url``.
    """

    def __init__(
        self,
        chart_id: str,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self.chart_id = chart_id
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpNodeGateway:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _url(self, suffix: str) -> str:
        return f"/api/charts/{self.chart_id}/{suffix}"

    def _request(self, method: str, suffix: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self._client.request(method, self._url(suffix), json=payload)
        except httpx.HTTPError as e:
            logger.warning("Request %s %s failed: %s", method, suffix, e)
            raise GatewayError(f"Network error: {e}") from e
        if response.status_code == 404:
            raise GatewayNotFound(_detail(response))
        if response.status_code >= 400:
            raise GatewayError(f"Server error {response.status_code}: {_detail(response)}")
        return response.json() if response.content else None

    def list_nodes(self) -> List[NodeRecord]:
        return [NodeRecord.from_dict(item) for item in self._request("GET", "nodes")]

    def next_id(self) -> Optional[int]:
        value = self._request("GET", "meta").get("nextId")
        return int(value) if value is not None else None

    def add_node(
        self,
        fields: Mapping[str, Any],
        parent_id: Optional[NodeId],
        node_id: Optional[NodeId] = None,
    ) -> NodeId:
        payload = dict(fields)
        payload["parentId"] = parent_id
        if node_id is not None:
            payload["id"] = node_id
        return normalize_node_id(self._request("POST", "add-node", payload)["id"])

    def update_node(self, node_id: NodeId, changes: Mapping[str, Any]) -> None:
        payload = dict(changes)
        payload["id"] = node_id
        self._request("POST", "update-node", payload)

    def update_nodes(self, changes_by_id: Mapping[NodeId, Mapping[str, Any]]) -> None:
        updates = [{"id": node_id, "changes": dict(changes)} for node_id, changes in changes_by_id.items()]
        self._request("POST", "update-nodes", {"updates": updates})

    def update_node_color(self, node_id: NodeId, color: str, text_color: str) -> None:
        self._request("POST", "update-node-color", {"id": node_id, "color": color, "textColor": text_color})

    def delete_nodes(self, node_ids: Iterable[NodeId]) -> int:
        return int(self._request("POST", "delete-nodes", {"ids": list(node_ids)})["deleted"])

    def replace_nodes(self, records: Sequence[NodeRecord], next_id: Optional[int] = None) -> None:
        payload = {"nodes": [r.to_dict() for r in records], "nextId": next_id}
        self._request("POST", "import-wbs", payload)


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)
