"""
campaign_insights/routes/mcp.py – tool listing and search_campaigns execution endpoints.
"""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from campaign_insights.config import settings
from campaign_insights.models import ErrorResponse, SearchResponse, ToolDescriptor
from campaign_insights.services.orchestrator import search_campaigns

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp", tags=["MCP"])

SEARCH_TOOL = "search_campaigns"

TOOLS: list[ToolDescriptor] = [
    ToolDescriptor(
        name=SEARCH_TOOL,
        description=(
            "Search Klaviyo campaigns by keyword and return subjects, metrics, and themes."
        ),
        args={
            "type": "object",
            "properties": {
                "keyword": {"type": "string"},
                "days": {"type": "number"},
                "limit": {"type": "number"},
            },
            "required": ["keyword"],
        },
    )
]

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing keyword or unsupported tool."},
    500: {"model": ErrorResponse, "description": "Server misconfigured or internal error."},
    502: {"model": ErrorResponse, "description": "Klaviyo campaign listing failed."},
    504: {"model": ErrorResponse, "description": "Search timed out."},
}


def get_upstream_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for Klaviyo calls; None means the real network."""
    return None


def _get_request_id(request: Request) -> str:
    return request.state.request_id if hasattr(request.state, "request_id") else str(uuid.uuid4())


async def _read_body(request: Request) -> dict[str, Any]:
    """Decoded JSON object body; anything unparseable counts as empty."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return {}
    return body if isinstance(body, dict) else {}


def _tool_input(body: dict[str, Any]) -> dict[str, Any]:
    tool_input = body.get("input") or body.get("args") or body
    return tool_input if isinstance(tool_input, dict) else {}


def _tool_name(body: dict[str, Any]) -> str:
    return str(body.get("tool") or body.get("name") or "")


async def _run_search(
    tool_input: dict[str, Any],
    request: Request,
    transport: Optional[httpx.AsyncBaseTransport],
) -> SearchResponse:
    request_id = _get_request_id(request)
    logger.info(
        "search_campaigns invoked",
        extra={"request_id": request_id, "keyword": tool_input.get("keyword")},
    )
    return await search_campaigns(
        tool_input,
        config=settings,
        transport=transport,
        timeout=settings.request_timeout_seconds,
    )


# ── Routes ────────────────────────────────────────────────────────────────────


@router.get(
    "",
    summary="Service banner",
    description="Describes the available endpoints.",
)
async def mcp_index() -> dict[str, str]:
    return {
        "message": "MCP helper: GET /api/mcp/tools, POST /api/mcp/execute or POST /api/mcp"
    }


@router.get(
    "/tools",
    response_model=list[ToolDescriptor],
    summary="List available tools",
)
async def list_tools() -> list[ToolDescriptor]:
    return TOOLS


@router.post(
    "/execute",
    response_model=SearchResponse,
    status_code=status.HTTP_200_OK,
    summary="Execute a tool",
    description=(
        "Accepts `{tool, input}` (or `{name, args}`). Only `search_campaigns` is supported."
    ),
    responses=_ERROR_RESPONSES,
)
async def execute_tool(
    request: Request,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
):
    body = await _read_body(request)
    tool = _tool_name(body)
    if tool != SEARCH_TOOL:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "unsupported_tool",
                "details": f"Only {SEARCH_TOOL} is supported",
            },
        )
    return await _run_search(_tool_input(body), request, transport)


@router.post(
    "",
    response_model=SearchResponse,
    status_code=status.HTTP_200_OK,
    summary="Search campaigns (legacy)",
    description=(
        "Legacy entry point. A `search_campaigns` tool envelope is unwrapped; "
        "any other body is used directly as the search input."
    ),
    responses=_ERROR_RESPONSES,
)
async def legacy_search(
    request: Request,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
) -> SearchResponse:
    body = await _read_body(request)
    tool_input = _tool_input(body) if _tool_name(body) == SEARCH_TOOL else body
    return await _run_search(tool_input, request, transport)
