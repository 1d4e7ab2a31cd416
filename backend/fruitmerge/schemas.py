from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from fruitmerge.records import CamelModel


def _identity(value: Any) -> Any:
    """Telegram ids arrive as numbers or strings; the store keys on strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


Identity = Annotated[str, BeforeValidator(_identity), Field(min_length=1)]


class HeartbeatRequest(CamelModel):
    """
    Presence ping sent by the game client every few seconds.

    Example:
        {"userId": 42, "username": "alice", "firstName": "Alice", "score": 120}
    """
    user_id: Identity
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    score: Optional[int] = Field(default=0, ge=0)


class HeartbeatResponse(CamelModel):
    success: bool = True
    online: int


class GameStartRequest(CamelModel):
    user_id: Identity
    username: Optional[str] = None


class ScoreSubmission(CamelModel):
    """
    Score reported at the end of a game, or submitted directly.

    Example:
        {"userId": 42, "username": "alice", "score": 1500, "vipTier": 1}
    """
    user_id: Identity
    score: int = Field(..., ge=0, le=100_000_000)
    username: Optional[str] = None
    avatar: Optional[str] = None
    vip_tier: Optional[int] = Field(default=None, ge=0)
    name_color: Optional[str] = None


class ScoreResponse(CamelModel):
    success: bool = True
    user_id: str
    score: int = Field(..., description="Best stored score on the global board")
    rank: Optional[int] = None
    weekly_rank: Optional[int] = None
    all_time_rank: Optional[int] = None
    total: int


class LeaderboardResponse(CamelModel):
    board: str
    week: Optional[str] = None
    entries: list[dict]
    total: int


class PlayerRankResponse(CamelModel):
    user_id: str
    board: str
    rank: Optional[int] = None
    score: Optional[int] = None
    total: int


class UsernameCheckResponse(CamelModel):
    username: str
    available: bool
    valid: bool


class UsernameRegistration(CamelModel):
    user_id: Identity
    username: str = Field(..., min_length=1)


class FriendRequest(CamelModel):
    user_id: Identity
    friend_id: Identity


class ReferralRequest(CamelModel):
    user_id: Identity
    referrer_id: Identity
    username: Optional[str] = None


class BuyStarsRequest(CamelModel):
    package_id: str
    user_id: Identity
    username: Optional[str] = None


class CreateInvoiceRequest(CamelModel):
    item_id: str
    title: str = Field(..., min_length=1, max_length=32)
    description: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., gt=0)
    user_id: Identity


class InvoiceResponse(CamelModel):
    success: bool = True
    invoice_link: str


class CheatReport(CamelModel):
    reporter_id: Identity
    suspect_id: Optional[Identity] = None
    reason: str = Field(..., min_length=1, max_length=1000)


class ResetAllRequest(CamelModel):
    confirm: str = ""


# ----------------------------------------------------------------------
# Inbound Telegram updates (only the fields the webhook reads)
# ----------------------------------------------------------------------

class TelegramUser(BaseModel):
    id: int
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: int


class SuccessfulPayment(BaseModel):
    currency: str
    total_amount: int
    invoice_payload: str
    telegram_payment_charge_id: Optional[str] = None
    provider_payment_charge_id: Optional[str] = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[int] = None
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    chat: Optional[TelegramChat] = None
    text: Optional[str] = None
    successful_payment: Optional[SuccessfulPayment] = None


class PreCheckoutQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    currency: Optional[str] = None
    total_amount: Optional[int] = None
    invoice_payload: str = ""


class TelegramUpdate(BaseModel):
    update_id: Optional[Union[int, str]] = None
    message: Optional[TelegramMessage] = None
    pre_checkout_query: Optional[PreCheckoutQuery] = None
