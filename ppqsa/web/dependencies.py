from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, Request, status

from ppqsa.application.api import AssessmentService
from ppqsa.infrastructure.config import get_settings
from ppqsa.infrastructure.kv import KeyValueStore, create_key_value_store
from ppqsa.infrastructure.logging import get_logger
from ppqsa.infrastructure.preferences import AdminGate

logger = get_logger(__name__)


def ensure_kv(app: FastAPI) -> KeyValueStore:
    kv = getattr(app.state, "kv", None)
    if kv is None:
        kv = create_key_value_store(get_settings().database)
        app.state.kv = kv
    return kv


def init_service(app: FastAPI) -> AssessmentService:
    """Build the service and copy any legacy snapshot log into the current key."""
    service = AssessmentService(ensure_kv(app))
    migrated = service.migrate_legacy()
    if migrated:
        logger.info(f"Migrated {migrated} legacy snapshots at startup")
    app.state.service = service
    return service


def get_kv(request: Request) -> KeyValueStore:
    return ensure_kv(request.app)


def get_service(request: Request, kv: KeyValueStore = Depends(get_kv)) -> AssessmentService:
    service = getattr(request.app.state, "service", None)
    if service is None or service.kv is not kv:
        service = AssessmentService(kv)
        request.app.state.service = service
    return service


def get_admin_gate(request: Request) -> AdminGate:
    gate = getattr(request.app.state, "admin_gate", None)
    if gate is None:
        gate = AdminGate(get_settings().admin)
        request.app.state.admin_gate = gate
    return gate


def require_admin(request: Request, gate: AdminGate = Depends(get_admin_gate)) -> None:
    supplied = request.headers.get(gate.config.header_name)
    if not gate.verify(supplied):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin passcode required")
