# gridsync/routers/metrics.py
# Prometheus scrape endpoint

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from gridsync.dependencies import get_context
from gridsync.observability.metrics import LATEST_UPDATE_ID, LIVE_CLIENTS, PRESENCE_RECORDS
from gridsync.state.context import SyncContext

router = APIRouter(tags=["Metrics"])


@router.get("/metrics", include_in_schema=False)
async def metrics(context: SyncContext = Depends(get_context)) -> Response:
    # gauges are sampled at scrape time
    stats = context.stats()
    LIVE_CLIENTS.set(stats["live_clients"])
    PRESENCE_RECORDS.set(stats["presence_records"])
    LATEST_UPDATE_ID.set(stats["latest_id"])
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
