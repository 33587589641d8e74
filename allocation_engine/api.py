"""FastAPI router exposing the positional allocation functions."""
from __future__ import annotations
import os
from common.logging import configure_logging
configure_logging(os.getenv("LOG_FORMAT", "json"), service_name="allocation_engine")

from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, status
from prometheus_client import make_asgi_app
from pydantic import BaseModel, Field

from common.auth import require_token

from .errors import AllocationError
from .invoker import FUNCTIONS, Invoker, build_invoker

# ---------------------------------------------------------------------------
# Dependency injection helpers
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_invoker() -> Invoker:  # pragma: no cover – overridden in tests
    return build_invoker()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------


class InvokeRequest(BaseModel):
    args: List[str] = Field(default_factory=list)


class InvokeResponse(BaseModel):
    function: str
    accepted: bool
    result: Optional[Dict[str, Any]] = None


router = APIRouter(prefix="/allocation", tags=["allocation"])


@router.post("/{function}", response_model=InvokeResponse)
async def invoke(
    function: str,
    body: InvokeRequest,
    invoker: Invoker = Depends(get_invoker),
    _: None = Depends(require_token),
):
    if function not in FUNCTIONS:
        await invoker.invoke(function, body.args)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Received unknown function invocation")
    try:
        result = await invoker.invoke(function, body.args)
    except AllocationError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.as_payload()) from exc
    return InvokeResponse(function=function, accepted=result is not None, result=result)


def create_app() -> FastAPI:
    app = FastAPI(title="Collateral Allocation Engine")
    app.include_router(router)
    app.mount("/metrics", make_asgi_app())

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    return app


app = create_app()
