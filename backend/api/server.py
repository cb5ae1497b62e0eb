"""
OrgFlow: Chart API Server
=========================

HTTP surface over the chart repository.

Endpoints:
- GET    /health
- GET    /api/charts                         -> charts, most recently updated first
- POST   /api/charts                         -> create (title, template or nodes)
- PATCH  /api/charts/{id}                    -> rename
- DELETE /api/charts/{id}                    -> delete chart and nodes
- POST   /api/charts/{id}/duplicate
- GET    /api/charts/{id}/meta
- GET    /api/charts/{id}/nodes              -> flat records
- GET    /api/charts/{id}/tree               -> nested tree of the root ({} if empty)
- POST   /api/charts/{id}/add-node
- POST   /api/charts/{id}/update-node        -> content fields and parentId only
- POST   /api/charts/{id}/update-nodes       -> batched partial updates
- POST   /api/charts/{id}/update-node-color
- DELETE /api/charts/{id}/delete-node?id=    -> node and its subtree
- POST   /api/charts/{id}/delete-nodes       -> exactly the given ids
- POST   /api/charts/{id}/import-wbs         -> replace all nodes
- GET    /api/charts/{id}/export             -> attachment (nested, or ?flat=true)

Usage:
    uvicorn backend.api.server:app --reload
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..charts import ChartNotFound, NodeNotFound
from ..contracts.base import normalize_node_id
from ..core import parse_outline, export_tree, export_flat, next_id_after_import
from ..engine import OrgFlowBackend, BackendConfig
from ..storage import StoreError
from .mapper import map_chart, map_charts, map_nodes, map_incoming_nodes, export_filename
from .schemas import (
    CreateChartRequest, RenameChartRequest, DuplicateChartRequest,
    AddNodeRequest, UpdateNodeRequest, UpdateNodesRequest, UpdateNodeColorRequest,
    DeleteNodesRequest, ImportRequest,
)


logger = logging.getLogger(__name__)


def create_app(config: Optional[BackendConfig] = None, backend: Optional[OrgFlowBackend] = None) -> FastAPI:
    """
    Build the application. A given backend is used as is; otherwise one is
    created at startup from ``config`` (or the environment).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.backend is None:
            cfg = config or BackendConfig.from_env()
            logger.info("Initializing backend (storage=%s)", cfg.storage.backend_type)
            app.state.backend = OrgFlowBackend(cfg)
        yield
        logger.info("Shutting down backend")

    app = FastAPI(
        title="OrgFlow Chart API",
        version="0.1.0",
        description="Org chart / WBS editor persistence API",
        lifespan=lifespan,
    )
    app.state.backend = backend

    cors_origins = (backend.config if backend else (config or BackendConfig.from_env())).api.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # ERROR MAPPING
    # =========================================================================

    @app.exception_handler(ChartNotFound)
    @app.exception_handler(NodeNotFound)
    async def not_found_handler(request: Request, exc: LookupError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def validation_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": f"Storage error: {exc}"})

    def charts(request: Request):
        backend_instance = request.app.state.backend
        if backend_instance is None:
            raise HTTPException(status_code=503, detail="Backend not initialized")
        return backend_instance.charts

    # =========================================================================
    # ENDPOINTS: CHARTS
    # =========================================================================

    @app.get("/health")
    def health_check(request: Request):
        """System status."""
        backend_instance = request.app.state.backend
        if backend_instance is None:
            raise HTTPException(status_code=503, detail="Backend not initialized")
        return backend_instance.get_system_status()

    @app.get("/api/charts")
    def list_charts(request: Request):
        return map_charts(charts(request).list_charts())

    @app.post("/api/charts", status_code=201)
    def create_chart(body: CreateChartRequest, request: Request):
        records = map_incoming_nodes(body.nodes)
        meta = charts(request).create_chart(title=body.title, nodes=records or None, template=body.template)
        return map_chart(meta)

    @app.patch("/api/charts/{chart_id}")
    def rename_chart(chart_id: str, body: RenameChartRequest, request: Request):
        return map_chart(charts(request).rename_chart(chart_id, body.title))

    @app.delete("/api/charts/{chart_id}")
    def delete_chart(chart_id: str, request: Request):
        deleted = charts(request).delete_chart(chart_id)
        return {"success": True, "deletedNodes": deleted}

    @app.post("/api/charts/{chart_id}/duplicate", status_code=201)
    def duplicate_chart(chart_id: str, request: Request, body: Optional[DuplicateChartRequest] = None):
        title = body.title if body else None
        return map_chart(charts(request).duplicate_chart(chart_id, title=title))

    @app.get("/api/charts/{chart_id}/meta")
    def chart_meta(chart_id: str, request: Request):
        return map_chart(charts(request).get_chart(chart_id))

    # =========================================================================
    # ENDPOINTS: NODES
    # =========================================================================

    @app.get("/api/charts/{chart_id}/nodes")
    def list_nodes(chart_id: str, request: Request):
        return map_nodes(charts(request).list_nodes(chart_id))

    @app.get("/api/charts/{chart_id}/tree")
    def get_tree(chart_id: str, request: Request):
        return export_tree(charts(request).list_nodes(chart_id))

    @app.post("/api/charts/{chart_id}/add-node", status_code=201)
    def add_node(chart_id: str, body: AddNodeRequest, request: Request):
        fields = body.model_dump(exclude={"id", "parentId"}, exclude_none=True)
        new_id = charts(request).add_node(chart_id, fields, parent_id=body.parentId, node_id=body.id)
        return {"id": new_id}

    @app.post("/api/charts/{chart_id}/update-node")
    def update_node(chart_id: str, body: UpdateNodeRequest, request: Request):
        charts(request).update_node(chart_id, normalize_node_id(body.id), body.changes())
        return {"success": True}

    @app.post("/api/charts/{chart_id}/update-nodes")
    def update_nodes(chart_id: str, body: UpdateNodesRequest, request: Request):
        changes = {normalize_node_id(item.id): item.changes for item in body.updates}
        updated = charts(request).update_nodes(chart_id, changes)
        return {"success": True, "updated": updated}

    @app.post("/api/charts/{chart_id}/update-node-color")
    def update_node_color(chart_id: str, body: UpdateNodeColorRequest, request: Request):
        charts(request).update_node_color(chart_id, normalize_node_id(body.id), body.color, body.textColor)
        return {"success": True}

    @app.delete("/api/charts/{chart_id}/delete-node")
    def delete_node(chart_id: str, request: Request, node_id: str = Query(alias="id")):
        removed = charts(request).delete_subtree(chart_id, normalize_node_id(node_id))
        return {"success": True, "deleted": len(removed), "ids": removed}

    @app.post("/api/charts/{chart_id}/delete-nodes")
    def delete_nodes(chart_id: str, body: DeleteNodesRequest, request: Request):
        deleted = charts(request).delete_nodes(chart_id, body.ids)
        return {"success": True, "deleted": deleted}

    # =========================================================================
    # ENDPOINTS: IMPORT / EXPORT
    # =========================================================================

    @app.post("/api/charts/{chart_id}/import-wbs")
    def import_wbs(chart_id: str, body: ImportRequest, request: Request):
        repository = charts(request)
        repository.get_chart(chart_id)
        skipped, orphaned = [], []
        if body.text is not None:
            parsed = parse_outline(body.text)
            records = list(parsed.records)
            skipped = list(parsed.skipped_lines)
            orphaned = list(parsed.orphaned_codes)
        else:
            records = map_incoming_nodes(body.nodes)
        if not records:
            raise HTTPException(status_code=400, detail="No valid WBS items found")
        next_id = body.nextId or next_id_after_import(records)
        count = repository.replace_nodes(chart_id, records, next_id=next_id)
        return {
            "success": True, "count": count, "skippedLines": skipped,
            "orphanedItems": orphaned, "nextId": next_id,
        }

    @app.get("/api/charts/{chart_id}/export")
    def export_chart(chart_id: str, request: Request, flat: bool = False):
        records = charts(request).list_nodes(chart_id)
        content = export_flat(records) if flat else export_tree(records)
        headers = {"Content-Disposition": f'attachment; filename="{export_filename(chart_id, flat)}"'}
        return JSONResponse(content=content, headers=headers)

    return app


app = create_app()
