"""
Username registry and friends graph endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from fruitmerge.api.dependencies import get_store
from fruitmerge.schemas import (
    FriendRequest,
    ReferralRequest,
    UsernameCheckResponse,
    UsernameRegistration,
)
from fruitmerge.store import USERNAME_PATTERN, GameStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["social"])


@router.get("/check-username", response_model=UsernameCheckResponse, summary="Check a username")
async def check_username(
    username: str = Query(..., min_length=1),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    store: GameStore = Depends(get_store),
):
    """A name the caller already owns is reported as available."""
    clean = username.strip()
    valid = bool(USERNAME_PATTERN.match(clean))
    return UsernameCheckResponse(
        username=clean,
        valid=valid,
        available=valid and store.is_username_available(clean, user_id),
    )


@router.post("/register-username", summary="Claim a username")
async def register_username(body: UsernameRegistration, store: GameStore = Depends(get_store)):
    """Conflicts and invalid names surface as 400 through the domain error handler."""
    name = store.register_username(body.user_id, body.username)
    logger.info(f"Username registered: user_id={body.user_id}, username={name}")
    return {"success": True, "username": name}


@router.get("/friends/{user_id}", summary="List a player's friends")
async def list_friends(user_id: str = Path(..., min_length=1), store: GameStore = Depends(get_store)):
    store.sweep_offline()
    friends = store.friend_profiles(user_id)
    return {"friends": friends, "total": len(friends)}


@router.post("/friends/add", summary="Add a friend")
async def add_friend(body: FriendRequest, store: GameStore = Depends(get_store)):
    added = store.add_friend(body.user_id, body.friend_id)
    return {"success": True, "added": added}


@router.post("/referral", summary="Record a referral")
async def referral(body: ReferralRequest, store: GameStore = Depends(get_store)):
    """Befriends the newcomer with their referrer and logs the referral."""
    added = store.apply_referral(body.user_id, body.referrer_id, body.username)
    logger.info(f"Referral recorded: user_id={body.user_id}, referrer_id={body.referrer_id}")
    return {"success": True, "added": added}
