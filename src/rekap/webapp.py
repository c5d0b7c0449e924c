"""FastAPI application exposing today's recap as a local JSON API."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .collector import SnapshotCollector
from .config import RekapConfig, load_config
from .demo import build_demo_snapshot
from .paths import get_config_path
from .permissions import Capabilities, capability_matrix, check_capabilities
from .schemas import build_document

logger = logging.getLogger(__name__)


def create_app(
    *,
    config: Optional[RekapConfig] = None,
    collector: Optional[SnapshotCollector] = None,
    capabilities_check: Callable[[], Capabilities] = check_capabilities,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_config = config or load_config()
    resolved_collector = collector or SnapshotCollector(resolved_config)

    app = FastAPI(title="rekap", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = resolved_config
    app.state.collector = resolved_collector

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        collector: SnapshotCollector = request.app.state.collector
        return {
            "version": __version__,
            "config_path": str(get_config_path()),
            "knowledge_db": str(collector.knowledge_db),
            "deadline_seconds": collector.config.collection.deadline.total_seconds(),
            "probes": [probe.name for probe in collector.probes],
        }

    @app.get("/api/summary")
    def summary(
        request: Request,
        demo: bool = Query(default=False, description="Return the sample snapshot."),
    ) -> Dict[str, Any]:
        if demo:
            snapshot = build_demo_snapshot(request.app.state.config)
        else:
            snapshot = request.app.state.collector.collect()
        document = build_document(snapshot).model_dump(mode="json", exclude_none=True)
        document["empty"] = snapshot.is_empty
        return document

    @app.get("/api/doctor")
    def doctor() -> Dict[str, Any]:
        caps = capabilities_check()
        return {
            "capabilities": caps.as_dict(),
            "sections": capability_matrix(caps),
        }

    return app
