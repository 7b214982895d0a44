"""Assistant tool endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from replenish.services.assistant_tools import TOOLS, execute_tool, function_definitions
from replenish.web.deps import DBSession, OrgScope
from replenish.web.schemas import ToolCallRequest, ToolInfo

router = APIRouter(prefix="/api/v1/assistant", tags=["Assistant"])


@router.get("/tools", response_model=list[ToolInfo])
def list_tools(org_id: OrgScope):
    """Registered tools with their JSON-schema parameters."""
    return [
        ToolInfo(name=t.name, description=t.description, parameters=t.parameters)
        for t in TOOLS.values()
    ]


@router.get("/functions")
def functions(org_id: OrgScope) -> list[dict[str, Any]]:
    """Function-calling definitions for an external agent."""
    return function_definitions()


@router.post("/tools/{name}")
def call_tool(name: str, body: ToolCallRequest, org_id: OrgScope, db: DBSession) -> dict[str, Any]:
    """Run a read-only tool scoped to the caller's organization."""
    return {"tool": name, "result": execute_tool(db, org_id, name, body.arguments)}
