"""Unit tests for the leaderboard engine."""
import random

from fruitmerge.leaderboard import Leaderboard


def test_submit_inserts_and_ranks():
    board = Leaderboard(capacity=10)
    assert board.submit("a", "Ann", 100) == 1
    assert board.submit("b", "Bob", 300) == 1
    assert board.rank("a") == 2
    assert board.rank("missing") is None


def test_score_is_monotonic_per_identity():
    board = Leaderboard(capacity=10)
    board.submit("a", "Ann", 500)
    board.submit("a", "Annie", 200)
    entry = board.find("a")
    assert entry.score == 500
    # Name refreshes even when the score does not
    assert entry.username == "Annie"


def test_non_positive_scores_ignored():
    board = Leaderboard(capacity=10)
    assert board.submit("a", "Ann", 0) is None
    assert len(board) == 0


def test_truncates_to_capacity():
    board = Leaderboard(capacity=3)
    for i in range(1, 6):
        board.submit(str(i), f"p{i}", i * 10)
    assert [e.user_id for e in board.entries] == ["5", "4", "3"]
    assert board.submit("low", "Low", 1) is None


def test_invariants_hold_under_random_submissions():
    """One row per identity, sorted descending, score equals the best submitted."""
    rng = random.Random(7)
    board = Leaderboard(capacity=50)
    best = {}
    for _ in range(500):
        user_id = str(rng.randint(1, 30))
        score = rng.randint(1, 10_000)
        board.submit(user_id, f"user{user_id}", score)
        best[user_id] = max(best.get(user_id, 0), score)

    ids = [e.user_id for e in board.entries]
    assert len(ids) == len(set(ids))
    scores = [e.score for e in board.entries]
    assert scores == sorted(scores, reverse=True)
    for entry in board.entries:
        assert entry.score == best[entry.user_id]


def test_cosmetics_refresh():
    board = Leaderboard(capacity=10)
    board.submit("a", "Ann", 100, avatar="🍒")
    board.submit("a", "Ann", 50, vip_tier=2, name_color="#ffcc00")
    entry = board.find("a")
    assert entry.avatar == "🍒"
    assert entry.vip_tier == 2
    assert entry.name_color == "#ffcc00"


def test_filter_keeps_board_order_and_ranks():
    board = Leaderboard(capacity=10)
    for user_id, score in [("a", 50), ("b", 40), ("c", 30), ("d", 20)]:
        board.submit(user_id, user_id, score)
    rows = board.filter_to({"d", "b"})
    assert [(r["userId"], r["rank"]) for r in rows] == [("b", 2), ("d", 4)]
    assert len(board.filter_to({"a", "b", "c"}, limit=2)) == 2


def test_load_collapses_duplicate_rows():
    rows = [
        {"userId": "a", "username": "Ann", "score": 10},
        {"userId": "a", "username": "Ann", "score": 40},
        {"userId": "b", "username": "Bob", "score": 20},
        {"username": "broken"},
    ]
    board = Leaderboard.load(10, rows)
    assert [(e.user_id, e.score) for e in board.entries] == [("a", 40), ("b", 20)]
