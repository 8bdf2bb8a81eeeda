"""FastAPI entrypoint for the system management agent."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from .agent import SystemAgent
from .constants import API_PING_ROUTE, LIFECYCLE_OPERATIONS
from .models import ConfigurationResponse, OperationRequest
from .storage import ConfigRepository

log = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[1]

repo = ConfigRepository(ROOT_DIR)
agent = SystemAgent.from_config(repo.load_agent())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close service and registry clients on shutdown."""
    yield
    log.info("Shutting down, closing service clients")
    agent.close()


app = FastAPI(title="System Management Agent", version="0.1.0", lifespan=lifespan)


def _split_services(services: str) -> List[str]:
    names = [name.strip() for name in services.split(",") if name.strip()]
    if not names:
        raise HTTPException(status_code=400, detail="no services requested")
    return names


@app.get(API_PING_ROUTE, response_class=PlainTextResponse)
def ping() -> str:
    """Report that the agent is up."""
    return "pong"


@app.post("/api/v1/operation")
def invoke_operation(request: OperationRequest) -> List[Dict[str, Any]]:
    """Start, stop or restart each requested service."""
    if request.action not in LIFECYCLE_OPERATIONS:
        raise HTTPException(status_code=400, detail=f"unsupported action: {request.action}")
    return agent.invoke_operation(request.action, request.services)


@app.get("/api/v1/metrics/{services}")
def get_metrics(services: str) -> List[Dict[str, Any]]:
    """Return one metrics envelope per comma-separated service."""
    return agent.invoke_metrics(_split_services(services))


@app.get("/api/v1/config/{services}", response_model=ConfigurationResponse)
@app.get("/api/v1/configuration/{services}", response_model=ConfigurationResponse)
def get_config(services: str) -> Dict[str, Any]:
    """Return each service's own configuration document, or the error fetching it."""
    return agent.get_config(_split_services(services))


@app.get("/api/v1/health/{services}")
def get_health(services: str) -> Dict[str, Any]:
    """Return ``true`` per healthy service, or the registry's error message."""
    return agent.get_health(_split_services(services))
