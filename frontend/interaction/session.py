"""
Chart Editing Session (Interaction Engine)

RESPONSIBILITY: Apply user actions to the in-memory hierarchy and mirror
them to persistence
ALLOWED INPUTS: Node ids, pointer coordinates, field values, outline text
OUTPUTS: OperationResult per action; notifications; node card view-models

POLICY:
=======
- Validation happens before any mutation; a rejected action changes
  nothing and writes nothing
- The in-memory tree is the source of truth: it is mutated first, then
  persisted. A failed write is logged and surfaced as a notification and
  the mutation is NOT rolled back
- Structural actions (add, delete, reparent, import) are written
  immediately; content and style edits are collected per node and written
  by one debounced batch
- Dragging moves positions only; the drop is the only point that writes
- Every persistence exception stops here: nothing propagates out of a
  session action
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import threading

from backend.contracts import (
    NodeId, NodeRecord, ErrorCode, Error, OperationResult, AuditEventType,
)
from backend.core import parse_outline, export_tree, export_flat
from backend.core.outline import OutlineParseResult
from backend.observability import AuditLog
from frontend.config import SessionConfig
from frontend.interaction.collision import first_overlap
from frontend.persistence.debounce import DebouncedWriter
from frontend.persistence.gateway import NodeGateway, GatewayError, GatewayNotFound
from frontend.presentation.notifications import Notifier
from frontend.presentation.viewmodels import (
    NodeCardViewModel, NotificationLevel, SaveStatus, contrast_text_color, node_card,
)
from frontend.state.hierarchy import HierarchyViewModel
from frontend.visualization.layout import layout_tree


logger = logging.getLogger(__name__)

# keyword argument -> document key, for content edits
CONTENT_FIELDS = {
    "name": "name",
    "description": "description",
    "responsible": "responsible",
    "status": "status",
    "cost": "cost",
    "url": "url",
}


@dataclass
class DragState:
    node_id: NodeId
    origin: Tuple[float, float]


class ChartSession:
    """
    Editing context for one chart.

    Owns the view-model, selection, delete mode, drag state and the
    pending (debounced) field changes. There is no module-level state.
    """

    def __init__(
        self,
        gateway: NodeGateway,
        config: Optional[SessionConfig] = None,
        notifier: Optional[Notifier] = None,
        scheduler=None,
        audit: Optional[AuditLog] = None,
    ):
        self.config = config or SessionConfig()
        self.gateway = gateway
        self.view_model = HierarchyViewModel()
        self.notifier = notifier or Notifier()
        self.audit = audit or AuditLog(layer="interaction")
        self.selected_id: Optional[NodeId] = None
        self.delete_mode = False
        self.save_status = SaveStatus.IDLE
        self._drag: Optional[DragState] = None
        self._pending: Dict[NodeId, Dict[str, Any]] = {}
        # Guards _pending; the debounced flush may run on a timer thread.
        self._pending_lock = threading.Lock()
        self._writer = DebouncedWriter(
            self.flush_pending,
            delay=self.config.save_delay_seconds,
            scheduler=scheduler,
            on_complete=self._on_flushed,
        )

    @property
    def chart_id(self) -> str:
        return self.gateway.chart_id

    @property
    def has_pending_writes(self) -> bool:
        return self._writer.pending

    @property
    def default_size(self) -> Tuple[float, float]:
        return (self.config.node_width, self.config.node_height)

    # =========================================================================
    # RESULT HELPERS
    # =========================================================================

    def _ok(self, action: str, value: Any = None, message: str = "", **context: Any) -> OperationResult:
        logger.info("Edit OK: %s %s", action, message or context)
        return OperationResult.success(value, message)

    def _reject(self, action: str, code: ErrorCode, message: str, **context: Any) -> OperationResult:
        logger.info("Edit FAIL: %s rejected: %s", action, message)
        self.audit.record(AuditEventType.REJECTED, action, context.get("node_id"),
                          chart_id=self.chart_id, code=code.name)
        self.notifier.notify(message, NotificationLevel.WARNING)
        return OperationResult.reject(code, message, **context)

    def _missing(self, action: str, node_id: NodeId) -> OperationResult:
        return self._reject(action, ErrorCode.NODE_NOT_FOUND, f"Node {node_id} not found", node_id=node_id)

    def _persist(
        self,
        action: str,
        call: Callable[..., Any],
        *args: Any,
        not_found: ErrorCode = ErrorCode.NODE_NOT_FOUND,
    ) -> Tuple[Any, Optional[Error]]:
        """Run one gateway call; failures become (None, Error) plus a toast."""
        try:
            value = call(*args)
        except GatewayNotFound as e:
            error = Error(code=not_found, message=str(e))
        except GatewayError as e:
            error = Error(code=ErrorCode.PERSISTENCE_FAILURE, message=f"Could not save ({action}): {e}")
        else:
            return value, None

        logger.warning("Edit FAIL: %s: %s", action, error.message)
        self.audit.record(AuditEventType.ERROR, action, chart_id=self.chart_id, code=error.code.name)
        self.notifier.error(error.message)
        return None, error.with_context("action", action)

    def _relayout(self) -> None:
        layout_tree(self.view_model, self.config)

    # =========================================================================
    # LOAD
    # =========================================================================

    def load(self) -> OperationResult:
        """Build the hierarchy from the persisted node collection."""
        records, error = self._persist("load", self.gateway.list_nodes, not_found=ErrorCode.CHART_NOT_FOUND)
        if error:
            return OperationResult.failure(error)
        self.view_model.rebuild(records)
        if self.config.collapse_on_load:
            self.view_model.collapse_below(1)
        self._relayout()
        self.audit.record(AuditEventType.SYSTEM, "load", chart_id=self.chart_id, count=len(self.view_model))
        return self._ok("load", len(self.view_model), f"Loaded {len(self.view_model)} nodes")

    def reload(self) -> OperationResult:
        """Full teardown and rebuild. Pending debounced writes are abandoned."""
        if self._writer.cancel():
            logger.info("Abandoned %d pending node change(s) on reload", len(self._pending))
        with self._pending_lock:
            self._pending.clear()
        self._drag = None
        self.selected_id = None
        return self.load()

    # =========================================================================
    # VIEW STATE
    # =========================================================================

    def toggle(self, node_id: NodeId) -> OperationResult:
        if node_id not in self.view_model:
            return self._missing("toggle", node_id)
        changed = self.view_model.toggle_collapse(node_id)
        if changed:
            self._relayout()
        return OperationResult.success(changed)

    def collapse_all(self) -> OperationResult:
        self.view_model.collapse_all()
        self._relayout()
        return OperationResult.success(len(self.view_model.visible_nodes()))

    def expand_all(self) -> OperationResult:
        self.view_model.expand_all()
        self._relayout()
        return OperationResult.success(len(self.view_model.visible_nodes()))

    def select(self, node_id: Optional[NodeId]) -> OperationResult:
        if node_id is not None and node_id not in self.view_model:
            return self._missing("select", node_id)
        self.selected_id = node_id
        return OperationResult.success(node_id)

    def toggle_delete_mode(self) -> bool:
        self.delete_mode = not self.delete_mode
        return self.delete_mode

    def click(self, node_id: NodeId) -> OperationResult:
        """Delete in delete mode, otherwise select."""
        if self.delete_mode:
            return self.delete_node(node_id)
        return self.select(node_id)

    def node_cards(self) -> List[NodeCardViewModel]:
        feedback = self.drop_feedback(self._drag.node_id) if self._drag else None
        return [node_card(node, self.selected_id, feedback) for node in self.view_model.visible_nodes()]

    # =========================================================================
    # DRAG AND DROP
    # =========================================================================

    def begin_drag(self, node_id: NodeId) -> OperationResult:
        if node_id not in self.view_model:
            return self._missing("drag", node_id)
        self._drag = DragState(node_id, self.view_model.require(node_id).position)
        return OperationResult.success(node_id)

    def drag_to(self, node_id: NodeId, x: float, y: float) -> OperationResult:
        """Move the dragged node. Positions are never persisted."""
        node = self.view_model.get(node_id)
        if node is None:
            return self._missing("drag", node_id)
        node.position = (float(x), float(y))
        return OperationResult.success(node.position)

    def drop_target(self, node_id: NodeId):
        """First visible node overlapping ``node_id``, in pre-order."""
        dragged = self.view_model.require(node_id)
        return first_overlap(dragged, self.view_model.visible_nodes(), self.default_size)

    def drop_feedback(self, node_id: NodeId) -> Optional[Tuple[NodeId, bool]]:
        """(candidate id, valid) for highlighting, or None when nothing overlaps."""
        if node_id not in self.view_model:
            return None
        target = self.drop_target(node_id)
        if target is None:
            return None
        return target.node_id, self._reparent_problem(node_id, target.node_id) is None

    def end_drag(self, node_id: NodeId) -> OperationResult:
        """
        Drop: reparent onto the first overlapping visible node when that is
        valid. With no overlap the node just stays where it was dropped.
        """
        self._drag = None
        if node_id not in self.view_model:
            return self._missing("drop", node_id)
        target = self.drop_target(node_id)
        if target is None:
            return OperationResult.success(None, "Moved")
        return self.reparent(node_id, target.node_id)

    def _reparent_problem(self, node_id: NodeId, target_id: NodeId) -> Optional[Tuple[ErrorCode, str]]:
        if node_id not in self.view_model:
            return ErrorCode.NODE_NOT_FOUND, f"Node {node_id} not found"
        if target_id not in self.view_model:
            return ErrorCode.NODE_NOT_FOUND, f"Node {target_id} not found"
        if node_id == target_id:
            return ErrorCode.REPARENT_ONTO_SELF, "A node cannot be moved onto itself"
        if self.view_model.is_descendant(node_id, target_id):
            return ErrorCode.REPARENT_ONTO_DESCENDANT, "A node cannot be moved under its own descendant"
        if self.view_model.require(node_id).parent_id == target_id:
            return ErrorCode.REPARENT_ONTO_CURRENT_PARENT, "Node is already under that parent"
        return None

    def can_reparent(self, node_id: NodeId, target_id: NodeId) -> OperationResult:
        problem = self._reparent_problem(node_id, target_id)
        if problem:
            code, message = problem
            return OperationResult.reject(code, message, node_id=node_id, target_id=target_id)
        return OperationResult.success(target_id)

    def reparent(self, node_id: NodeId, target_id: NodeId) -> OperationResult:
        """
        Move ``node_id`` (with its subtree) under ``target_id`` and write the
        new parentId. A collapsed target is expanded.
        """
        problem = self._reparent_problem(node_id, target_id)
        if problem:
            code, message = problem
            return self._reject("reparent", code, message, node_id=node_id, target_id=target_id)

        old_parent = self.view_model.require(node_id).parent_id
        delta = self.view_model.reparent(node_id, target_id)
        self._relayout()
        self.audit.record(AuditEventType.STRUCTURE, "reparent", node_id, chart_id=self.chart_id,
                          old_parent=old_parent, new_parent=target_id)

        _, error = self._persist("reparent", self.gateway.update_node, node_id, {"parentId": target_id})
        if error:
            return OperationResult.failure(error)
        return self._ok("reparent", {"node_id": node_id, "parent_id": target_id, "depth_delta": delta},
                        f"Moved under {self.view_model.require(target_id).record.name}")

    # =========================================================================
    # ADD / DELETE
    # =========================================================================

    def _allocate_id(self) -> NodeId:
        next_id = None
        try:
            next_id = self.gateway.next_id()
        except GatewayError as e:
            logger.info("No persisted id counter, using tree maximum: %s", e)
        candidate = next_id if next_id is not None else self.view_model.max_numeric_id() + 1
        while candidate in self.view_model:
            candidate += 1
        return candidate

    def add_node(self, parent_id: Optional[NodeId] = None) -> OperationResult:
        """
        Add a node under ``parent_id`` (default: the root), named
        ``"New Node N"`` with N one above the highest existing N.
        """
        root = self.view_model.root
        if parent_id is None and root is not None:
            parent_id = root.node_id
        if parent_id is not None and parent_id not in self.view_model:
            return self._missing("add", parent_id)

        prefix = self.config.new_node_prefix
        record = NodeRecord(
            id=self._allocate_id(),
            name=f"{prefix} {self.view_model.max_name_suffix(prefix) + 1}",
            color=self.config.default_color,
            text_color=self.config.default_text_color,
        )
        self.view_model.insert_child(parent_id, record)
        self._relayout()

        fields = record.to_document()
        del fields["parentId"]
        new_id, error = self._persist("add", self.gateway.add_node, fields, parent_id, record.id)
        if error:
            return OperationResult.failure(error)
        if new_id != record.id:
            logger.warning("Store assigned id %s instead of %s", new_id, record.id)
            self.view_model.rekey(record.id, new_id)
        self.audit.record(AuditEventType.STRUCTURE, "add", new_id, chart_id=self.chart_id, parent_id=parent_id)
        self.notifier.success(f"Added {record.name}")
        return self._ok("add", new_id, f"Added {record.name}")

    def delete_node(self, node_id: NodeId) -> OperationResult:
        """Delete a node and its whole subtree with one batched write."""
        node = self.view_model.get(node_id)
        if node is None:
            return self._missing("delete", node_id)
        if node.parent_id is None and not node.is_leaf:
            return self._reject("delete", ErrorCode.ROOT_HAS_CHILDREN,
                                "The root cannot be deleted while it has children", node_id=node_id)

        removed = self.view_model.remove_subtree(node_id)
        removed_set = set(removed)
        if self.selected_id in removed_set:
            self.selected_id = None
        with self._pending_lock:
            for removed_id in removed:
                self._pending.pop(removed_id, None)
        self._relayout()
        self.audit.record(AuditEventType.STRUCTURE, "delete", node_id, chart_id=self.chart_id, count=len(removed))

        _, error = self._persist("delete", self.gateway.delete_nodes, removed)
        if error:
            return OperationResult.failure(error)
        noun = "node" if len(removed) == 1 else "nodes"
        self.notifier.success(f"Deleted {len(removed)} {noun}")
        return self._ok("delete", removed, f"Deleted {len(removed)} {noun}")

    # =========================================================================
    # CONTENT AND STYLE (debounced)
    # =========================================================================

    def _queue(self, node_id: NodeId, changes: Dict[str, Any]) -> None:
        with self._pending_lock:
            self._pending.setdefault(node_id, {}).update(changes)
        self.save_status = SaveStatus.PENDING
        self._writer.schedule()

    def edit_node(self, node_id: NodeId, **fields: Any) -> OperationResult:
        """Update content fields now; persist them with the next debounced batch."""
        unknown = set(fields) - set(CONTENT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown node field(s): {', '.join(sorted(unknown))}")
        if node_id not in self.view_model:
            return self._missing("edit", node_id)
        changes = {CONTENT_FIELDS[k]: ("" if v is None else str(v)) for k, v in fields.items()}
        self.view_model.update_record(node_id, changes)
        self._queue(node_id, changes)
        return OperationResult.success(node_id)

    def recolor_node(self, node_id: NodeId, color: str, text_color: Optional[str] = None) -> OperationResult:
        if node_id not in self.view_model:
            return self._missing("recolor", node_id)
        changes = {"color": color, "textColor": text_color or contrast_text_color(color)}
        self.view_model.update_record(node_id, changes)
        self._queue(node_id, changes)
        return OperationResult.success(changes["textColor"])

    def flush_pending(self) -> OperationResult:
        """Write every pending field change in one batched call."""
        with self._pending_lock:
            batch = {
                node_id: changes
                for node_id, changes in self._pending.items()
                if node_id in self.view_model
            }
            self._pending.clear()
        if not batch:
            return OperationResult.success(0)
        _, error = self._persist("save", self.gateway.update_nodes, batch)
        if error:
            return OperationResult.failure(error)
        return self._ok("save", len(batch), f"Saved {len(batch)} node(s)")

    def save_now(self) -> OperationResult:
        """Write pending changes immediately instead of waiting for the timer."""
        result = self._writer.flush()
        return result if result is not None else OperationResult.success(0)

    def _on_flushed(self, result: OperationResult) -> None:
        self.save_status = SaveStatus.SAVED if result.is_success else SaveStatus.FAILED

    # =========================================================================
    # IMPORT / EXPORT
    # =========================================================================

    def import_outline(self, text: str, confirm: Callable[[OutlineParseResult], bool]) -> OperationResult:
        """
        Replace the whole chart with the nodes parsed from outline text.

        ``confirm`` is asked (with the parse result) before anything changes.
        """
        parsed = parse_outline(text)
        if parsed.count == 0:
            return self._reject("import", ErrorCode.EMPTY_IMPORT, "No outline items found in the text")
        if parsed.root is None:
            return self._reject("import", ErrorCode.NO_ROOT, "Outline has no root item (X.0)")
        if not confirm(parsed):
            return self._reject("import", ErrorCode.IMPORT_NOT_CONFIRMED, "Import cancelled")

        self._writer.cancel()
        with self._pending_lock:
            self._pending.clear()
        self.selected_id = None
        records = list(parsed.records)
        self.view_model.rebuild(records)
        self._relayout()
        self.audit.record(AuditEventType.IMPORT, "import", chart_id=self.chart_id,
                          count=parsed.count, skipped=len(parsed.skipped_lines))

        _, error = self._persist("import", self.gateway.replace_nodes, records, parsed.next_id)
        if error:
            return OperationResult.failure(error)
        message = f"Imported {parsed.count} nodes"
        if parsed.skipped_lines:
            message += f" ({len(parsed.skipped_lines)} lines skipped)"
        if parsed.orphaned_codes:
            message += f" ({len(parsed.orphaned_codes)} items without a parent left out)"
        self.notifier.success(message)
        return self._ok("import", parsed.count, message)

    def export_tree(self) -> Dict[str, Any]:
        return export_tree(self.view_model.records())

    def export_flat(self) -> List[Dict[str, Any]]:
        return export_flat(self.view_model.records())
