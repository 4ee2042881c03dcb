"""
Catch-all Router
================
Every request that is not an admin or static route ends up here and is handed
to the Dispatcher stored on `app.state`.
"""

import logging

from fastapi import APIRouter, Request, Response

from mockproxy.core.models import InboundRequest
from mockproxy.utils.request_parsing import parse_body

logger = logging.getLogger("mockproxy")

router = APIRouter()

METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


async def to_inbound(request: Request) -> InboundRequest:
    raw_body = await request.body()
    return InboundRequest(
        method=request.method,
        path=request.url.path,
        query=request.url.query,
        headers=dict(request.headers),
        body=parse_body(raw_body, request.headers.get("content-type", "")),
        raw_body=raw_body,
    )


@router.api_route("/{path:path}", methods=METHODS, include_in_schema=False)
async def catch_all(request: Request, path: str):
    state = request.app.state
    inbound = await to_inbound(request)
    logger.info(f"[Request] {inbound.method} {inbound.logical_path}")

    envelope = await state.dispatcher.handle(inbound)

    if envelope is None:
        await state.recent_log.add(inbound.method, inbound.logical_path, 502, "Dropped")
        return Response(status_code=502)

    status = envelope.status
    logger.info(f" [{inbound.method} {inbound.logical_path}] --> {status}")
    await state.recent_log.add(inbound.method, inbound.logical_path, status, envelope.source)

    return Response(
        content=envelope.body,
        status_code=status,
        headers=envelope.emitted_headers(),
    )
