"""
Leaderboard endpoints.

Three boards are kept: ``global`` (top 100), ``weekly`` (top 100 per ISO
week) and ``alltime`` (top 500). Reading the weekly board first checks
whether a new week has started.
"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from fruitmerge.api.dependencies import get_store
from fruitmerge.schemas import (
    LeaderboardResponse,
    PlayerRankResponse,
    ScoreResponse,
    ScoreSubmission,
)
from fruitmerge.store import BOARD_ALL_TIME, BOARD_GLOBAL, BOARD_WEEKLY, GameStore
from fruitmerge.weeks import is_week_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])

BoardName = Literal["global", "weekly", "alltime"]


def _board_response(store: GameStore, board: str, limit: int) -> LeaderboardResponse:
    selected = store.board(board)
    return LeaderboardResponse(
        board=board,
        week=store.current_week if board == BOARD_WEEKLY else None,
        entries=selected.top(limit),
        total=len(selected),
    )


@router.get("", response_model=LeaderboardResponse, summary="Get a leaderboard")
async def get_leaderboard(
    board: BoardName = Query(default=BOARD_GLOBAL, description="Which board to read"),
    limit: int = Query(default=100, ge=1, le=500, description="Number of rows (1-500)"),
    store: GameStore = Depends(get_store),
):
    return _board_response(store, board, limit)


@router.post("/submit", response_model=ScoreResponse, summary="Submit a score")
async def submit_score(body: ScoreSubmission, store: GameStore = Depends(get_store)):
    """
    Submit a score to every board without counting a finished game.

    The stored score for the player becomes the maximum of the previous
    score and this one.
    """
    ranks = store.submit_score(
        body.user_id,
        body.score,
        username=body.username,
        avatar=body.avatar,
        vip_tier=body.vip_tier,
        name_color=body.name_color,
    )
    entry = store.leaderboard.find(body.user_id)
    logger.debug(f"Score submitted: user_id={body.user_id}, score={body.score}, ranks={ranks}")
    return ScoreResponse(
        user_id=body.user_id,
        score=entry.score if entry else 0,
        rank=ranks[BOARD_GLOBAL],
        weekly_rank=ranks[BOARD_WEEKLY],
        all_time_rank=ranks[BOARD_ALL_TIME],
        total=len(store.leaderboard),
    )


@router.get("/rank/{user_id}", response_model=PlayerRankResponse, summary="Get a player's rank")
async def get_player_rank(
    user_id: str = Path(..., min_length=1),
    board: BoardName = Query(default=BOARD_GLOBAL),
    store: GameStore = Depends(get_store),
):
    """Rank is null when the player is not on the board."""
    selected = store.board(board)
    entry = selected.find(user_id)
    return PlayerRankResponse(
        user_id=user_id,
        board=board,
        rank=selected.rank(user_id),
        score=entry.score if entry else None,
        total=len(selected),
    )


@router.get("/alltime", response_model=LeaderboardResponse, summary="Get the all-time board")
async def get_all_time(
    limit: int = Query(default=100, ge=1, le=500),
    store: GameStore = Depends(get_store),
):
    return _board_response(store, BOARD_ALL_TIME, limit)


@router.get("/week/{week_key}", response_model=LeaderboardResponse, summary="Get a past week")
async def get_week(
    week_key: str,
    limit: int = Query(default=100, ge=1, le=500),
    store: GameStore = Depends(get_store),
):
    """Board for a given ISO week (``YYYY-W##``); unknown weeks are empty."""
    if not is_week_key(week_key):
        raise HTTPException(status_code=400, detail="Week must look like 2026-W07")
    store.check_week_rollover()
    selected = store.week_board(week_key)
    return LeaderboardResponse(
        board=BOARD_WEEKLY,
        week=week_key,
        entries=selected.top(limit) if selected else [],
        total=len(selected) if selected else 0,
    )


@router.get("/history", summary="List stored weeks")
async def get_history(store: GameStore = Depends(get_store)):
    store.check_week_rollover()
    return {"currentWeek": store.current_week, "weeks": store.week_history()}


@router.get("/friends/{user_id}", response_model=LeaderboardResponse, summary="Friends leaderboard")
async def get_friends_leaderboard(
    user_id: str = Path(..., min_length=1),
    board: BoardName = Query(default=BOARD_GLOBAL),
    store: GameStore = Depends(get_store),
):
    """The player and their friends, in board order, at most 50 rows."""
    entries = store.friends_leaderboard(user_id, board)
    return LeaderboardResponse(
        board=board,
        week=store.current_week if board == BOARD_WEEKLY else None,
        entries=entries,
        total=len(entries),
    )
