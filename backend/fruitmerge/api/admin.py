"""
Password-gated admin endpoints backing the dashboard page.

Every route depends on ``require_admin``, which rejects a wrong or missing
password with 401 before the handler runs.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from fruitmerge.api.dependencies import get_persistence, get_store, require_admin
from fruitmerge.config import Settings, get_settings
from fruitmerge.records import now_ms
from fruitmerge.schemas import ResetAllRequest
from fruitmerge.store import GameStore
from fruitmerge.weeks import week_info

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

RECENT_WINDOW = 30
TOP_LIMIT = 20


@router.get("/dashboard", summary="Dashboard snapshot")
async def dashboard(store: GameStore = Depends(get_store)):
    store.sweep_offline()
    store.check_week_rollover()
    return {
        "stats": store.counters(),
        "onlineUsers": store.online_players(),
        "recentPayments": store.recent_payments(RECENT_WINDOW),
        "topPlayers": store.top_players(TOP_LIMIT),
        "topSpenders": store.top_spenders(TOP_LIMIT),
        "recentActivity": store.recent_activity(RECENT_WINDOW),
        "week": week_info(),
        "serverTime": now_ms(),
    }


@router.get("/users", summary="All users")
async def users(store: GameStore = Depends(get_store)):
    rows = sorted(store.users.values(), key=lambda u: u.last_seen, reverse=True)
    return {"users": [u.dump() for u in rows], "total": len(rows)}


@router.get("/payments", summary="All payments")
async def payments(store: GameStore = Depends(get_store)):
    return {
        "payments": store.recent_payments(),
        "total": len(store.payments),
        "totalRevenue": store.stats.total_revenue,
    }


@router.post("/save", summary="Force a save")
async def force_save(persistence=Depends(get_persistence)):
    if persistence is None or not persistence.flush(reason="admin"):
        return JSONResponse(status_code=500, content={"success": False, "message": "Save failed"})
    return {"success": True, "message": "Data saved"}


@router.post("/reset-week", summary="Reset the current weekly board")
async def reset_week(store: GameStore = Depends(get_store), persistence=Depends(get_persistence)):
    store.check_week_rollover()
    store.reset_current_week()
    if persistence is not None:
        persistence.flush(reason="reset-week")
    return {"success": True, "week": store.current_week}


async def _read_reset_request(request: Request) -> ResetAllRequest:
    try:
        raw = await request.json()
        if isinstance(raw, dict):
            return ResetAllRequest.model_validate(raw)
    except ValueError as e:
        logger.warning(f"Ignoring unreadable reset-all body: {e}")
    return ResetAllRequest()


@router.post("/reset-all", summary="Wipe all data")
async def reset_all(
    request: Request,
    store: GameStore = Depends(get_store),
    persistence=Depends(get_persistence),
    settings: Settings = Depends(get_settings),
):
    """
    Requires ``{"confirm": "RESET_ALL_DATA"}`` in the body.

    The body is read here rather than declared as a parameter so that a wrong
    password is answered with 401 even when the body is malformed.
    """
    confirm = (await _read_reset_request(request)).confirm
    if confirm != settings.reset_confirmation:
        raise HTTPException(
            status_code=400,
            detail=f"Confirmation required: send {{\"confirm\": \"{settings.reset_confirmation}\"}}",
        )
    logger.warning(f"Full data reset: wiping {len(store.users)} users and {len(store.payments)} payments")
    store.reset()
    if persistence is not None:
        persistence.flush(reason="reset-all")
    return {"success": True, "message": "All data wiped"}
