from fastapi import APIRouter, Request

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", summary="Reports which services finished initialising")
async def ready(request: Request) -> dict[str, bool]:
    state = request.app.state
    return {
        name: getattr(state, name, None) is not None
        for name in ("ticket_service", "verification_engine", "dispatcher", "scheduler")
    }
