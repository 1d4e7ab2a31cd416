"""
Player endpoints: presence heartbeat, game lifecycle events and cheat reports.
"""
import logging

from fastapi import APIRouter, Depends, Request

from fruitmerge.api.dependencies import get_store, get_telegram
from fruitmerge.config import Settings, get_settings
from fruitmerge.schemas import (
    CheatReport,
    GameStartRequest,
    HeartbeatRequest,
    HeartbeatResponse,
    ScoreResponse,
    ScoreSubmission,
)
from fruitmerge.store import BOARD_ALL_TIME, BOARD_GLOBAL, BOARD_WEEKLY, GameStore
from fruitmerge.telegram_client import TelegramGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["players"])


@router.post("/heartbeat", response_model=HeartbeatResponse, summary="Mark a player online")
async def heartbeat(body: HeartbeatRequest, store: GameStore = Depends(get_store)):
    """Refresh the player's presence entry and permanent record."""
    online = store.heartbeat(
        body.user_id,
        username=body.username,
        first_name=body.first_name,
        last_name=body.last_name,
        avatar=body.avatar,
        score=body.score,
    )
    return HeartbeatResponse(online=online)


@router.post("/game/start", summary="Record the start of a game")
async def game_start(body: GameStartRequest, store: GameStore = Depends(get_store)):
    store.record_game_start(body.user_id, body.username)
    return {"success": True}


@router.post("/game/end", response_model=ScoreResponse, summary="Record the end of a game")
async def game_end(body: ScoreSubmission, request: Request, store: GameStore = Depends(get_store)):
    """
    Record a finished game.

    Updates the player's high score and submits the score to the global,
    weekly and all-time leaderboards. Stored scores never go down.
    """
    logger.info(
        f"Game ended: user_id={body.user_id}, score={body.score}, "
        f"client_ip={request.client.host if request.client else 'unknown'}"
    )
    ranks = store.record_game_end(
        body.user_id,
        body.score,
        username=body.username,
        avatar=body.avatar,
        vip_tier=body.vip_tier,
        name_color=body.name_color,
    )
    entry = store.leaderboard.find(body.user_id)
    return ScoreResponse(
        user_id=body.user_id,
        score=entry.score if entry else 0,
        rank=ranks[BOARD_GLOBAL],
        weekly_rank=ranks[BOARD_WEEKLY],
        all_time_rank=ranks[BOARD_ALL_TIME],
        total=len(store.leaderboard),
    )


@router.post("/report-cheat", summary="Report a suspected cheater")
async def report_cheat(
    body: CheatReport,
    store: GameStore = Depends(get_store),
    telegram: TelegramGateway = Depends(get_telegram),
    settings: Settings = Depends(get_settings),
):
    """Log the report and forward it to the admin's Telegram chat."""
    reporter = store.resolve_name(body.reporter_id)
    store.add_activity("cheat_report", {
        "reporterId": body.reporter_id,
        "suspectId": body.suspect_id,
        "reason": body.reason,
    })
    logger.warning(f"Cheat report from {body.reporter_id} about {body.suspect_id}: {body.reason}")

    forwarded = False
    if settings.admin_telegram_id:
        lines = ["🚨 Cheat Report", "", f"From: {reporter} ({body.reporter_id})"]
        if body.suspect_id:
            lines.append(f"Suspect: {store.resolve_name(body.suspect_id)} ({body.suspect_id})")
        lines.append(f"Reason: {body.reason}")
        forwarded = await telegram.send_message(settings.admin_telegram_id, "\n".join(lines))
    return {"success": True, "forwarded": forwarded}
