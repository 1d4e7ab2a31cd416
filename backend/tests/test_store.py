"""Unit tests for the in-memory game store."""
from datetime import datetime, timezone

import pytest

from fruitmerge.errors import InvalidUsernameError, SelfFriendshipError, UsernameTakenError
from fruitmerge.leaderboard import Leaderboard
from fruitmerge.records import PaymentRecord, now_ms
from fruitmerge.store import ACTIVITY_LOG_SIZE, GameStore


# ============================================================================
# Presence
# ============================================================================

def test_heartbeat_keeps_joined_at(store):
    store.heartbeat("1", username="ann", now=1_000)
    store.heartbeat("1", username="ann", now=5_000)
    entry = store.online["1"]
    assert entry.joined_at == 1_000
    assert entry.last_seen == 5_000
    assert store.users["1"].first_seen == 1_000
    assert store.users["1"].last_seen == 5_000


def test_sweep_removes_entries_older_than_ttl(store):
    now = now_ms()
    store.heartbeat("stale", now=now - 300_001)
    store.heartbeat("edge", now=now - 300_000)
    store.heartbeat("fresh", now=now)

    assert store.sweep_offline(now=now) == 1
    assert set(store.online) == {"edge", "fresh"}


def test_custom_presence_ttl():
    store = GameStore(presence_ttl=10)
    store.heartbeat("1", now=1)
    assert store.sweep_offline(now=10_002) == 1


# ============================================================================
# Username registry
# ============================================================================

def test_username_scenario(store):
    store.register_username("I", "Foo")
    with pytest.raises(UsernameTakenError):
        store.register_username("J", "foo")

    store.register_username("I", "Bar")
    assert store.is_username_available("foo")
    assert store.register_username("J", "foo") == "foo"
    assert store.usernames == {"bar": "I", "foo": "J"}


def test_reregistering_own_name_in_other_case(store):
    store.register_username("I", "nova")
    assert store.register_username("I", "Nova") == "Nova"
    assert store.usernames == {"nova": "I"}


@pytest.mark.parametrize("name", ["", "ab", "has space", "x" * 21, "semi;colon"])
def test_invalid_usernames(store, name):
    with pytest.raises(InvalidUsernameError):
        store.register_username("I", name)


def test_rename_reaches_past_weeks(store):
    store.weekly["2020-W01"] = Leaderboard(100)
    store.weekly["2020-W01"].submit("I", "old", 10)
    store.register_username("I", "Shiny")
    assert store.weekly["2020-W01"].find("I").username == "Shiny"


# ============================================================================
# Friends
# ============================================================================

def test_friendship_is_symmetric(store):
    assert store.add_friend("a", "b") is True
    assert store.add_friend("a", "b") is False
    assert store.friends_of("a") == ["b"]
    assert store.friends_of("b") == ["a"]


def test_self_friendship_rejected(store):
    with pytest.raises(SelfFriendshipError):
        store.add_friend("a", "a")


def test_referral_counts_once(store):
    store.apply_referral("new", "old")
    store.apply_referral("new", "other")
    assert store.users["new"].referred_by == "old"
    assert store.stats.total_referrals == 1
    assert sorted(store.friends_of("new")) == ["old", "other"]


def test_friends_leaderboard_caps_at_fifty(store):
    for i in range(60):
        store.add_friend("me", f"f{i}")
        store.submit_score(f"f{i}", 100 + i)
    store.submit_score("me", 5)
    rows = store.friends_leaderboard("me")
    assert len(rows) == 50
    assert rows[0]["userId"] == "f59"


# ============================================================================
# Weeks
# ============================================================================

def test_week_rollover_keeps_history(store):
    store.submit_score("a", 100)
    old_week = store.current_week

    rolled = store.check_week_rollover(datetime(2099, 1, 2, tzinfo=timezone.utc))
    assert rolled is True
    assert store.current_week == "2099-W01"
    assert len(store.weekly["2099-W01"]) == 0
    assert store.weekly[old_week].find("a").score == 100
    assert store.check_week_rollover(datetime(2099, 1, 4, tzinfo=timezone.utc)) is False


# ============================================================================
# Payments and logs
# ============================================================================

def test_record_payment_creates_unknown_user(store):
    store.record_payment(PaymentRecord(user_id="77", username="gift", amount=80,
                                       currency="XTR", item="stars:stars_1000:77", charge_id="c1"))
    assert store.users["77"].total_spent == 80
    assert store.stats.total_revenue == 80
    assert store.has_charge("c1")
    assert not store.has_charge(None)


def test_activity_log_is_capped_newest_first(store):
    for i in range(ACTIVITY_LOG_SIZE + 25):
        store.add_activity("game_start", {"n": i})
    assert len(store.activity_log) == ACTIVITY_LOG_SIZE
    assert store.activity_log[0].data["n"] == ACTIVITY_LOG_SIZE + 24


def test_snapshot_trims_payments_and_activity(store):
    for i in range(5):
        store.record_payment(PaymentRecord(user_id="1", username="p", amount=i + 1,
                                           currency="XTR", item=f"item:{i}:1"))
    snapshot = store.snapshot(payments_keep=2, activity_keep=3)
    assert [p["amount"] for p in snapshot["payments"]] == [4, 5]
    assert len(snapshot["activityLog"]) == 3
    assert "online" not in snapshot


def test_restore_recomputes_user_count(store):
    store.heartbeat("1")
    store.heartbeat("2")
    snapshot = store.snapshot()
    snapshot["stats"]["totalUsers"] = 99

    restored = GameStore()
    restored.restore(snapshot)
    assert restored.stats.total_users == 2
    assert restored.online == {}
