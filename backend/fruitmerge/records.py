"""
In-memory records held by the game store.

These are the rows of the store's tables. They serialize with camelCase keys,
which is also the layout written to the persisted snapshot.
"""
import time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_AVATAR = "🎮"


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True)


class User(CamelModel):
    """Permanent player record."""

    user_id: str
    username: str
    avatar: str = DEFAULT_AVATAR
    first_name: str = ""
    last_name: str = ""
    telegram_username: Optional[str] = None
    registered_name: Optional[str] = None
    first_seen: int = Field(default_factory=now_ms)
    last_seen: int = Field(default_factory=now_ms)
    games_played: int = 0
    high_score: int = 0
    total_spent: int = 0
    stars_balance: int = 0
    total_stars_purchased: int = 0
    purchased_items: list[str] = Field(default_factory=list)
    vip_tier: Optional[int] = None
    name_color: Optional[str] = None
    referred_by: Optional[str] = None


class PresenceEntry(CamelModel):
    """A player currently considered online."""

    user_id: str
    username: str
    avatar: str = DEFAULT_AVATAR
    last_seen: int
    joined_at: int
    score: int = 0


class LeaderboardEntry(CamelModel):
    """One row of a leaderboard; at most one per identity per board."""

    user_id: str
    username: str
    avatar: str = DEFAULT_AVATAR
    score: int
    vip_tier: Optional[int] = None
    name_color: Optional[str] = None
    updated_at: int = Field(default_factory=now_ms)


class PaymentRecord(CamelModel):
    user_id: str
    username: str
    telegram_username: Optional[str] = None
    amount: int
    currency: str
    item: str
    charge_id: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)


class ActivityEvent(CamelModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=now_ms)


class Stats(CamelModel):
    total_users: int = 0
    total_games_played: int = 0
    total_revenue: int = 0
    total_referrals: int = 0


class StarPackage(CamelModel):
    """A purchasable bundle of stars priced in XTR."""

    id: str
    stars: int
    price: int
    bonus: int = 0

    @property
    def total_stars(self) -> int:
        return self.stars + self.bonus

    @property
    def description(self) -> str:
        if self.bonus > 0:
            return f"{self.stars} Stars + {self.bonus} Bonus"
        return f"{self.stars} Stars"


STAR_PACKAGES = [
    StarPackage(id="stars_100", stars=100, price=10, bonus=0),
    StarPackage(id="stars_500", stars=500, price=45, bonus=50),
    StarPackage(id="stars_1000", stars=1000, price=80, bonus=200),
    StarPackage(id="stars_5000", stars=5000, price=350, bonus=1500),
]


def find_package(package_id: str) -> Optional[StarPackage]:
    for package in STAR_PACKAGES:
        if package.id == package_id:
            return package
    return None


def display_name(user_id: str, username: Optional[str] = None,
                 first_name: Optional[str] = None, last_name: Optional[str] = None) -> str:
    """Pick the name shown for a player who has not registered one."""
    if username:
        return username
    if first_name:
        return " ".join(part for part in (first_name, last_name) if part)
    return f"Player_{str(user_id)[-4:]}"
