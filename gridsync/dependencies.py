# gridsync/dependencies.py
# FastAPI dependencies shared by the routers

from typing import Optional

from fastapi import Header, Request

from gridsync.middleware.error_handler import MissingClientIdError
from gridsync.state.context import SyncContext


def get_context(request: Request) -> SyncContext:
    """The SyncContext built once by create_app()."""
    return request.app.state.sync_context


def optional_client_id(x_client_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_client_id.strip() if x_client_id and x_client_id.strip() else None


def required_client_id(x_client_id: Optional[str] = Header(default=None)) -> str:
    client_id = optional_client_id(x_client_id)
    if client_id is None:
        raise MissingClientIdError()
    return client_id
