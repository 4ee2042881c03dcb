"""
Admin Router
============
Runtime inspection and the operator override for the serving mode. Lives under
/_admin so it does not shadow fixture paths.
"""

from fastapi import APIRouter, HTTPException, Request

from mockproxy.core.models import ServingMode

router = APIRouter(prefix="/_admin")


@router.get("/config")
async def get_config(request: Request):
    state = request.app.state
    settings = state.settings
    return {
        **state.controller.snapshot(),
        "upstream_url": settings.upstream_url,
        "proxy_timeout": settings.timeout_seconds,
        "capture_enabled": settings.capture_enabled,
        "fixture_root": settings.fixture_root,
        "proxy_first_passthrough": settings.proxy_first_passthrough,
    }


@router.post("/mode")
async def set_mode(request: Request):
    """
    Switch the serving mode, e.g. to bring proxying back after the
    circuit breaker latched FULL_MOCK.

    Body:
        mode: str, one of FULL_PROXY, MOCK_FIRST, PROXY_FIRST, FULL_MOCK
    """
    state = request.app.state
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be JSON")

    raw_mode = str(data.get("mode", "")).upper() if isinstance(data, dict) else ""
    try:
        mode = ServingMode(raw_mode)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown mode '{raw_mode}'. Expected one of {[m.value for m in ServingMode]}",
        )

    if mode.uses_proxy and not state.settings.upstream_url:
        raise HTTPException(status_code=400, detail=f"{mode.value} needs a proxy target")
    if mode is not ServingMode.FULL_PROXY and not state.settings.fixture_root:
        raise HTTPException(status_code=400, detail=f"{mode.value} needs a fixture directory")

    await state.controller.set_mode(mode)
    return {"status": "success", "mode": mode.value}


@router.get("/logs")
async def get_recent_logs(request: Request):
    return await request.app.state.recent_log.entries()
