# gridsync/routers/sync.py
# FastAPI router for the shared-state synchronization protocol

from __future__ import annotations

import json
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as PayloadError

from gridsync.constants import PRESENCE_UPDATE
from gridsync.dependencies import get_context, optional_client_id, required_client_id
from gridsync.middleware.error_handler import ValidationError
from gridsync.observability.metrics import UPDATES_APPENDED
from gridsync.schemas.common import StateResponse, StatusResponse, UpdatesResponse
from gridsync.schemas.updates import PresenceHeartbeat, PresenceUpdate, parse_update_payload
from gridsync.state.context import SyncContext
from gridsync.utils.logger import log_info, log_update


router = APIRouter(tags=["Sync"])


async def _read_json(request: Request) -> Any:
    """Decode the raw body; anything undecodable is a 400 and never reaches state."""
    raw = await request.body()
    try:
        return json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid JSON body", details={"reason": str(e)})


def _validate(parse: Callable[[Any], Any], body: Any, what: str) -> Any:
    try:
        return parse(body)
    except PayloadError as e:
        errors = [
            {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid {what}", details={"errors": errors})


@router.get("/state", response_model=StateResponse)
async def get_state(
    context: SyncContext = Depends(get_context),
    client_id: Optional[str] = Depends(optional_client_id),
) -> dict[str, Any]:
    """Full snapshot for a newly synchronizing client."""
    return context.snapshot(client_id)


@router.post("/update", response_model=StatusResponse)
async def post_update(
    request: Request,
    context: SyncContext = Depends(get_context),
    client_id: Optional[str] = Depends(optional_client_id),
) -> StatusResponse:
    """Apply one tagged payload and append it to the update log."""
    body = await _read_json(request)
    payload = _validate(parse_update_payload, body, "update payload")

    if isinstance(payload, PresenceUpdate) and not (client_id or payload.client_id):
        raise ValidationError("presence-update needs a clientId or X-Client-ID header")

    record = context.apply_update(payload, client_id)
    UPDATES_APPENDED.labels(payload.type).inc()
    log_update(record)
    return StatusResponse(success=True)


@router.get("/updates", response_model=UpdatesResponse)
async def get_updates(
    since: int = Query(default=0),
    context: SyncContext = Depends(get_context),
    client_id: Optional[str] = Depends(optional_client_id),
) -> dict[str, Any]:
    """Records with id > since, oldest first, plus the live client count."""
    return context.updates_since(since, client_id)


@router.post("/presence", response_model=StatusResponse)
async def post_presence(
    request: Request,
    context: SyncContext = Depends(get_context),
    client_id: str = Depends(required_client_id),
) -> StatusResponse:
    """Presence heartbeat. The header is the identity; a null position clears presence."""
    body = await _read_json(request)
    heartbeat = _validate(PresenceHeartbeat.model_validate, body, "presence body")

    record = context.heartbeat(client_id, heartbeat.color, heartbeat.position)
    log_update(record, route="presence")
    UPDATES_APPENDED.labels(PRESENCE_UPDATE).inc()
    return StatusResponse(success=True)


@router.post("/disconnect", response_model=StatusResponse)
async def post_disconnect(
    context: SyncContext = Depends(get_context),
    client_id: str = Depends(required_client_id),
) -> StatusResponse:
    """Explicit "tab closed" signal. The header is the identity; the body is not needed."""
    record = context.disconnect(client_id)
    if record is not None:
        UPDATES_APPENDED.labels(PRESENCE_UPDATE).inc()
    log_info(f"POST /api/disconnect: client={client_id}")
    return StatusResponse(success=True)
