"""
Leaderboard engine.

A board is a list of entries kept sorted by score (highest first) and truncated
to a fixed capacity. Each identity owns at most one row and its score only ever
goes up. Boards are small (a few hundred rows), so every submission does a
linear lookup and a full re-sort.
"""
import logging
from typing import Iterable, Optional

from fruitmerge.records import DEFAULT_AVATAR, LeaderboardEntry, now_ms

logger = logging.getLogger(__name__)

GLOBAL_CAPACITY = 100
WEEKLY_CAPACITY = 100
ALL_TIME_CAPACITY = 500
FRIENDS_LIMIT = 50


class Leaderboard:
    """A single bounded, score-ordered board."""

    def __init__(self, capacity: int, entries: Optional[Iterable[LeaderboardEntry]] = None):
        self.capacity = capacity
        self.entries: list[LeaderboardEntry] = list(entries or [])
        self._normalize()

    def __len__(self) -> int:
        return len(self.entries)

    def _normalize(self):
        # Loaded data may predate the one-row-per-identity rule
        best: dict[str, LeaderboardEntry] = {}
        for entry in self.entries:
            current = best.get(entry.user_id)
            if current is None or entry.score > current.score:
                best[entry.user_id] = entry
        self.entries = sorted(best.values(), key=lambda e: e.score, reverse=True)[: self.capacity]

    def find(self, user_id: str) -> Optional[LeaderboardEntry]:
        for entry in self.entries:
            if entry.user_id == user_id:
                return entry
        return None

    def submit(
        self,
        user_id: str,
        username: str,
        score: int,
        avatar: Optional[str] = None,
        vip_tier: Optional[int] = None,
        name_color: Optional[str] = None,
    ) -> Optional[int]:
        """
        Insert or update the row for ``user_id`` and return its rank.

        Non-positive scores are ignored. The stored score becomes
        ``max(previous, score)``; name and cosmetics are always refreshed.

        Returns:
            1-based rank after the update, or None if the row did not make
            the board
        """
        if not user_id or score is None or score <= 0:
            return self.rank(user_id)

        entry = self.find(user_id)
        if entry is not None:
            if score > entry.score:
                entry.score = score
                entry.updated_at = now_ms()
            entry.username = username
            if avatar:
                entry.avatar = avatar
            if vip_tier is not None:
                entry.vip_tier = vip_tier
            if name_color is not None:
                entry.name_color = name_color
        else:
            self.entries.append(
                LeaderboardEntry(
                    user_id=user_id,
                    username=username,
                    avatar=avatar or DEFAULT_AVATAR,
                    score=score,
                    vip_tier=vip_tier,
                    name_color=name_color,
                )
            )

        self.entries.sort(key=lambda e: e.score, reverse=True)
        del self.entries[self.capacity:]
        return self.rank(user_id)

    def rank(self, user_id: str) -> Optional[int]:
        """1-based position of ``user_id`` or None if absent."""
        for index, entry in enumerate(self.entries):
            if entry.user_id == user_id:
                return index + 1
        return None

    def rename(self, user_id: str, username: str) -> bool:
        entry = self.find(user_id)
        if entry is None:
            return False
        entry.username = username
        return True

    def top(self, limit: Optional[int] = None) -> list[dict]:
        """Ranked rows as dicts ready for a response."""
        entries = self.entries if limit is None else self.entries[:limit]
        return [dict(entry.dump(), rank=index + 1) for index, entry in enumerate(entries)]

    def filter_to(self, user_ids: set[str], limit: int = FRIENDS_LIMIT) -> list[dict]:
        """Rows whose identity is in ``user_ids``, in board order, with full-board ranks."""
        rows = []
        for index, entry in enumerate(self.entries):
            if entry.user_id in user_ids:
                rows.append(dict(entry.dump(), rank=index + 1))
                if len(rows) >= limit:
                    break
        return rows

    def clear(self):
        self.entries = []

    def dump(self) -> list[dict]:
        return [entry.dump() for entry in self.entries]

    @classmethod
    def load(cls, capacity: int, rows: Optional[Iterable[dict]]) -> "Leaderboard":
        entries = []
        for row in rows or []:
            try:
                entries.append(LeaderboardEntry.model_validate(row))
            except ValueError as e:
                logger.warning(f"Skipping malformed leaderboard row {row!r}: {e}")
        return cls(capacity, entries)
