"""
In-memory game store.

Owns every table of the backend: users, online presence, leaderboards,
friends, the username registry, payments, the activity log and aggregate
counters. Methods are synchronous and never await, so each call is atomic with
respect to other requests on the event loop.

The store knows nothing about where its data is persisted; ``snapshot()`` and
``restore()`` convert to and from the plain-dict layout a repository saves.
"""
import logging
import re
from datetime import datetime
from typing import Optional

from fruitmerge.errors import InvalidUsernameError, SelfFriendshipError, UsernameTakenError
from fruitmerge.leaderboard import (
    ALL_TIME_CAPACITY,
    GLOBAL_CAPACITY,
    WEEKLY_CAPACITY,
    Leaderboard,
)
from fruitmerge.records import (
    DEFAULT_AVATAR,
    ActivityEvent,
    PaymentRecord,
    PresenceEntry,
    Stats,
    User,
    display_name,
    now_ms,
)
from fruitmerge.weeks import get_week_key

logger = logging.getLogger(__name__)

ACTIVITY_LOG_SIZE = 200
PRESENCE_TTL_SECONDS = 300
USERNAME_PATTERN = re.compile(r"^\w{3,20}$")

BOARD_GLOBAL = "global"
BOARD_WEEKLY = "weekly"
BOARD_ALL_TIME = "alltime"
BOARDS = (BOARD_GLOBAL, BOARD_WEEKLY, BOARD_ALL_TIME)


def normalize_username(name: str) -> str:
    return (name or "").strip().lower()


def _load_rows(model, rows, label: str) -> list:
    """Validate saved rows one by one, skipping the ones that do not parse."""
    loaded = []
    for row in rows or []:
        try:
            loaded.append(model.model_validate(row))
        except ValueError as e:
            logger.warning(f"Skipping malformed {label} {row!r}: {e}")
    return loaded


class GameStore:
    """Process-wide state of the game backend."""

    def __init__(self, presence_ttl: int = PRESENCE_TTL_SECONDS):
        self.presence_ttl_ms = presence_ttl * 1000
        self.reset()

    def reset(self):
        """Drop every table and counter."""
        self.users: dict[str, User] = {}
        self.online: dict[str, PresenceEntry] = {}
        self.leaderboard = Leaderboard(GLOBAL_CAPACITY)
        self.all_time = Leaderboard(ALL_TIME_CAPACITY)
        self.weekly: dict[str, Leaderboard] = {}
        self.friends: dict[str, list[str]] = {}
        self.usernames: dict[str, str] = {}
        self.payments: list[PaymentRecord] = []
        self.activity_log: list[ActivityEvent] = []
        self.stats = Stats()
        self.current_week = get_week_key()
        self.weekly[self.current_week] = Leaderboard(WEEKLY_CAPACITY)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def add_activity(self, event_type: str, data: Optional[dict] = None):
        self.activity_log.insert(0, ActivityEvent(type=event_type, data=data or {}))
        del self.activity_log[ACTIVITY_LOG_SIZE:]

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def ensure_user(self, user_id: str, username: Optional[str] = None,
                    now: Optional[int] = None) -> User:
        """Return the user, creating a minimal record on first sight."""
        user = self.users.get(user_id)
        if user is not None:
            return user
        now = now or now_ms()
        user = User(
            user_id=user_id,
            username=username or display_name(user_id),
            first_seen=now,
            last_seen=now,
        )
        self.users[user_id] = user
        self.stats.total_users += 1
        self.add_activity("new_user", {"userId": user_id, "username": user.username})
        logger.info(f"New user registered: user_id={user_id}, username={user.username}")
        return user

    def resolve_name(self, user_id: str, username: Optional[str] = None) -> str:
        """Registered name wins over whatever name the client sends."""
        user = self.users.get(user_id)
        if user is not None and user.registered_name:
            return user.registered_name
        if username:
            return username
        if user is not None:
            return user.username
        return display_name(user_id)

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    def heartbeat(
        self,
        user_id: str,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        avatar: Optional[str] = None,
        score: Optional[int] = None,
        now: Optional[int] = None,
    ) -> int:
        """
        Mark ``user_id`` online and upsert its permanent record.

        Returns:
            Number of players currently online
        """
        now = now or now_ms()
        name = self.resolve_name(user_id, display_name(user_id, username, first_name, last_name))

        previous = self.online.get(user_id)
        self.online[user_id] = PresenceEntry(
            user_id=user_id,
            username=name,
            avatar=avatar or DEFAULT_AVATAR,
            last_seen=now,
            joined_at=previous.joined_at if previous else now,
            score=score or 0,
        )

        user = self.ensure_user(user_id, name, now=now)
        user.last_seen = now
        user.username = name
        if first_name:
            user.first_name = first_name
        if last_name:
            user.last_name = last_name
        if username:
            user.telegram_username = username
        if avatar:
            user.avatar = avatar
        return len(self.online)

    def sweep_offline(self, now: Optional[int] = None) -> int:
        """Drop presence entries idle for longer than the TTL; return how many."""
        now = now or now_ms()
        stale = [
            user_id for user_id, entry in self.online.items()
            if now - entry.last_seen > self.presence_ttl_ms
        ]
        for user_id in stale:
            del self.online[user_id]
        if stale:
            logger.debug(f"Presence sweep removed {len(stale)} offline players")
        return len(stale)

    def online_players(self) -> list[dict]:
        entries = sorted(self.online.values(), key=lambda e: e.last_seen, reverse=True)
        return [entry.dump() for entry in entries]

    # ------------------------------------------------------------------
    # Games and leaderboards
    # ------------------------------------------------------------------

    def record_game_start(self, user_id: str, username: Optional[str] = None):
        self.stats.total_games_played += 1
        user = self.users.get(user_id)
        if user is not None:
            user.games_played += 1
        self.add_activity("game_start", {
            "userId": user_id,
            "username": self.resolve_name(user_id, username),
        })

    def record_game_end(
        self,
        user_id: str,
        score: int,
        username: Optional[str] = None,
        avatar: Optional[str] = None,
        vip_tier: Optional[int] = None,
        name_color: Optional[str] = None,
    ) -> dict:
        """Update the player's high score and submit to every board."""
        name = self.resolve_name(user_id, username)
        user = self.users.get(user_id)
        if user is not None:
            if score > user.high_score:
                user.high_score = score
            user.username = name
            if vip_tier is not None:
                user.vip_tier = vip_tier
            if name_color is not None:
                user.name_color = name_color

        ranks = self.submit_score(user_id, score, name, avatar, vip_tier, name_color)
        self.add_activity("game_end", {"userId": user_id, "username": name, "score": score})
        return ranks

    def submit_score(
        self,
        user_id: str,
        score: int,
        username: Optional[str] = None,
        avatar: Optional[str] = None,
        vip_tier: Optional[int] = None,
        name_color: Optional[str] = None,
    ) -> dict:
        """Submit ``score`` to the global, weekly and all-time boards."""
        name = self.resolve_name(user_id, username)
        user = self.users.get(user_id)
        if user is not None:
            avatar = avatar or user.avatar
            vip_tier = vip_tier if vip_tier is not None else user.vip_tier
            name_color = name_color if name_color is not None else user.name_color

        self.check_week_rollover()
        kwargs = dict(avatar=avatar, vip_tier=vip_tier, name_color=name_color)
        return {
            BOARD_GLOBAL: self.leaderboard.submit(user_id, name, score, **kwargs),
            BOARD_WEEKLY: self.current_weekly().submit(user_id, name, score, **kwargs),
            BOARD_ALL_TIME: self.all_time.submit(user_id, name, score, **kwargs),
        }

    def check_week_rollover(self, dt: Optional[datetime] = None) -> bool:
        """Switch to a new weekly bucket when the ISO week changes."""
        week = get_week_key(dt)
        if week == self.current_week:
            return False
        logger.info(f"Week rollover: {self.current_week} -> {week}")
        self.current_week = week
        self.weekly.setdefault(week, Leaderboard(WEEKLY_CAPACITY))
        return True

    def current_weekly(self) -> Leaderboard:
        return self.weekly.setdefault(self.current_week, Leaderboard(WEEKLY_CAPACITY))

    def board(self, name: str) -> Leaderboard:
        if name == BOARD_WEEKLY:
            self.check_week_rollover()
            return self.current_weekly()
        if name == BOARD_ALL_TIME:
            return self.all_time
        return self.leaderboard

    def week_board(self, week_key: str) -> Optional[Leaderboard]:
        if week_key == self.current_week:
            return self.current_weekly()
        return self.weekly.get(week_key)

    def week_history(self) -> list[dict]:
        """Every stored week, newest first, with its size and leader."""
        history = []
        for week in sorted(self.weekly, reverse=True):
            board = self.weekly[week]
            history.append({
                "week": week,
                "players": len(board),
                "leader": board.top(1)[0] if len(board) else None,
                "current": week == self.current_week,
            })
        return history

    def reset_current_week(self):
        self.weekly[self.current_week] = Leaderboard(WEEKLY_CAPACITY)
        logger.warning(f"Weekly leaderboard {self.current_week} reset")

    # ------------------------------------------------------------------
    # Username registry
    # ------------------------------------------------------------------

    def is_username_available(self, name: str, user_id: Optional[str] = None) -> bool:
        owner = self.usernames.get(normalize_username(name))
        return owner is None or owner == user_id

    def register_username(self, user_id: str, name: str) -> str:
        """
        Claim ``name`` for ``user_id``.

        The previous name of the identity is released and the new display name
        is written into the user record and every leaderboard row it owns.

        Raises:
            InvalidUsernameError: name is not 3-20 word characters
            UsernameTakenError: another identity owns the normalized name
        """
        clean = (name or "").strip()
        if not USERNAME_PATTERN.match(clean):
            raise InvalidUsernameError("Username must be 3-20 letters, digits or underscores")

        key = normalize_username(clean)
        owner = self.usernames.get(key)
        if owner is not None and owner != user_id:
            raise UsernameTakenError(clean)

        for existing, existing_owner in list(self.usernames.items()):
            if existing_owner == user_id and existing != key:
                del self.usernames[existing]
        self.usernames[key] = user_id

        user = self.ensure_user(user_id, clean)
        user.registered_name = clean
        user.username = clean

        self.leaderboard.rename(user_id, clean)
        self.all_time.rename(user_id, clean)
        for board in self.weekly.values():
            board.rename(user_id, clean)
        if user_id in self.online:
            self.online[user_id].username = clean

        self.add_activity("username", {"userId": user_id, "username": clean})
        return clean

    # ------------------------------------------------------------------
    # Friends
    # ------------------------------------------------------------------

    def friends_of(self, user_id: str) -> list[str]:
        return list(self.friends.get(user_id, []))

    def add_friend(self, user_id: str, friend_id: str) -> bool:
        """
        Link two identities symmetrically.

        Returns:
            True if either side gained a new link
        """
        if user_id == friend_id:
            raise SelfFriendshipError()
        added = False
        for a, b in ((user_id, friend_id), (friend_id, user_id)):
            links = self.friends.setdefault(a, [])
            if b not in links:
                links.append(b)
                added = True
        return added

    def apply_referral(self, user_id: str, referrer_id: str,
                       username: Optional[str] = None) -> bool:
        """Befriend a newcomer with the player who invited them."""
        added = self.add_friend(user_id, referrer_id)
        user = self.ensure_user(user_id, username)
        if user.referred_by is None:
            user.referred_by = referrer_id
            self.stats.total_referrals += 1
        self.add_activity("referral", {
            "userId": user_id,
            "referrerId": referrer_id,
            "username": self.resolve_name(user_id, username),
        })
        return added

    def friend_profiles(self, user_id: str) -> list[dict]:
        profiles = []
        for friend_id in self.friends.get(user_id, []):
            user = self.users.get(friend_id)
            profiles.append({
                "userId": friend_id,
                "username": user.username if user else display_name(friend_id),
                "avatar": user.avatar if user else DEFAULT_AVATAR,
                "highScore": user.high_score if user else 0,
                "online": friend_id in self.online,
            })
        return profiles

    def friends_leaderboard(self, user_id: str, board: str = BOARD_GLOBAL) -> list[dict]:
        circle = set(self.friends.get(user_id, []))
        circle.add(user_id)
        return self.board(board).filter_to(circle)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def has_charge(self, charge_id: Optional[str]) -> bool:
        if not charge_id:
            return False
        return any(payment.charge_id == charge_id for payment in self.payments)

    def record_payment(self, record: PaymentRecord) -> User:
        """Append a payment and charge it to the paying identity."""
        self.payments.append(record)
        self.stats.total_revenue += record.amount
        user = self.ensure_user(record.user_id, record.username)
        user.total_spent += record.amount
        self.add_activity("payment", record.dump())
        return user

    def credit_stars(self, user_id: str, amount: int) -> User:
        user = self.ensure_user(user_id)
        user.stars_balance += amount
        user.total_stars_purchased += amount
        return user

    def grant_item(self, user_id: str, item_id: str) -> User:
        user = self.ensure_user(user_id)
        user.purchased_items.append(item_id)
        return user

    # ------------------------------------------------------------------
    # Admin projections
    # ------------------------------------------------------------------

    def top_players(self, limit: int = 20) -> list[dict]:
        users = [u for u in self.users.values() if u.high_score > 0]
        users.sort(key=lambda u: u.high_score, reverse=True)
        return [u.dump() for u in users[:limit]]

    def top_spenders(self, limit: int = 20) -> list[dict]:
        users = [u for u in self.users.values() if u.total_spent > 0]
        users.sort(key=lambda u: u.total_spent, reverse=True)
        return [u.dump() for u in users[:limit]]

    def recent_payments(self, limit: Optional[int] = None) -> list[dict]:
        payments = self.payments if limit is None else self.payments[-limit:]
        return [p.dump() for p in reversed(payments)]

    def recent_activity(self, limit: int = 30) -> list[dict]:
        return [event.dump() for event in self.activity_log[:limit]]

    def counters(self) -> dict:
        return {
            "onlineUsers": len(self.online),
            "totalUsers": len(self.users),
            "totalGamesPlayed": self.stats.total_games_played,
            "totalRevenue": self.stats.total_revenue,
            "totalPayments": len(self.payments),
            "totalReferrals": self.stats.total_referrals,
        }

    # ------------------------------------------------------------------
    # Snapshot conversion
    # ------------------------------------------------------------------

    def snapshot(self, payments_keep: int = 1000, activity_keep: int = 100) -> dict:
        """Plain-dict view of everything worth persisting; presence is not saved."""
        return {
            "users": {user_id: user.dump() for user_id, user in self.users.items()},
            "usernames": dict(self.usernames),
            "payments": [p.dump() for p in self.payments[-payments_keep:]],
            "leaderboard": self.leaderboard.dump(),
            "weeklyLeaderboards": {week: board.dump() for week, board in self.weekly.items()},
            "allTimeLeaderboard": self.all_time.dump(),
            "friends": {user_id: list(links) for user_id, links in self.friends.items()},
            "activityLog": [event.dump() for event in self.activity_log[:activity_keep]],
            "stats": self.stats.dump(),
            "currentWeek": self.current_week,
        }

    def restore(self, data: dict):
        """Replace the store contents with a previously saved snapshot."""
        self.reset()
        for user_id, row in (data.get("users") or {}).items():
            try:
                self.users[str(user_id)] = User.model_validate(dict(row, userId=str(user_id)))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed user {user_id}: {e}")

        self.usernames = {str(k): str(v) for k, v in (data.get("usernames") or {}).items()}
        self.payments = _load_rows(PaymentRecord, data.get("payments"), "payment")
        self.leaderboard = Leaderboard.load(GLOBAL_CAPACITY, data.get("leaderboard"))
        self.all_time = Leaderboard.load(ALL_TIME_CAPACITY, data.get("allTimeLeaderboard"))
        self.weekly = {
            week: Leaderboard.load(WEEKLY_CAPACITY, rows)
            for week, rows in (data.get("weeklyLeaderboards") or {}).items()
        }
        self.friends = {str(k): [str(f) for f in v] for k, v in (data.get("friends") or {}).items()}
        activity = _load_rows(ActivityEvent, data.get("activityLog"), "activity event")
        self.activity_log = activity[:ACTIVITY_LOG_SIZE]
        self.stats = Stats.model_validate(data.get("stats") or {})
        self.stats.total_users = len(self.users)

        self.current_week = data.get("currentWeek") or get_week_key()
        self.current_weekly()
        self.check_week_rollover()
