"""
Seed the configured storage with demo players, games, friendships and payments.

Useful for trying the admin dashboard locally. Existing data is replaced.

    python scripts/seed_demo_data.py --players 300
"""
import argparse
import os
import random
import sys
import time

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
from faker import Faker

from fruitmerge.config import get_settings
from fruitmerge.persistence import PersistenceManager
from fruitmerge.records import STAR_PACKAGES, PaymentRecord
from fruitmerge.repository import build_repository
from fruitmerge.store import GameStore

fake = Faker()
settings = get_settings()

AVATARS = ["🍉", "🍒", "🍓", "🍇", "🍊", "🍋", "🍑", "🥝", "🎮"]


def generate_players(store: GameStore, total_players: int):
    """Create players with a heartbeat and some registered usernames."""
    print(f"\nGenerating {total_players:,} players...")
    player_ids = []
    for _ in range(total_players):
        user_id = str(random.randint(10_000_000, 7_999_999_999))
        store.heartbeat(
            user_id,
            username=fake.user_name() if random.random() < 0.6 else None,
            first_name=fake.first_name(),
            last_name=fake.last_name() if random.random() < 0.5 else None,
            avatar=random.choice(AVATARS),
        )
        if random.random() < 0.3:
            name = f"{fake.word()}{random.randint(1, 999)}"[:20]
            if store.is_username_available(name):
                store.register_username(user_id, name)
        player_ids.append(user_id)
    print(f"✓ Created {len(store.users):,} players")
    return player_ids


def generate_games(store: GameStore, player_ids: list):
    """Play games with a Zipf distribution: a few players play a lot."""
    print("\nGenerating games...")
    games = 0
    for user_id in player_ids:
        count = min(int(np.random.zipf(1.6)), 200)
        for _ in range(count):
            store.record_game_start(user_id)
            score = int(np.random.lognormal(mean=7.5, sigma=0.8))
            store.record_game_end(user_id, score)
            games += 1
    print(f"✓ Played {games:,} games")


def generate_friendships(store: GameStore, player_ids: list):
    print("\nGenerating friendships and referrals...")
    for user_id in player_ids:
        for friend_id in random.sample(player_ids, k=min(3, len(player_ids))):
            if friend_id == user_id:
                continue
            if random.random() < 0.2:
                store.apply_referral(user_id, friend_id)
            else:
                store.add_friend(user_id, friend_id)
    print(f"✓ {store.stats.total_referrals:,} referrals")


def generate_payments(store: GameStore, player_ids: list):
    print("\nGenerating payments...")
    buyers = random.sample(player_ids, k=max(1, len(player_ids) // 10))
    for user_id in buyers:
        package = random.choice(STAR_PACKAGES)
        store.record_payment(PaymentRecord(
            user_id=user_id,
            username=store.resolve_name(user_id),
            amount=package.price,
            currency="XTR",
            item=f"stars:{package.id}:{user_id}",
            charge_id=fake.uuid4(),
        ))
        store.credit_stars(user_id, package.total_stars)
    print(f"✓ {len(store.payments):,} payments, revenue {store.stats.total_revenue:,} XTR")


def print_statistics(store: GameStore):
    print("\n" + "=" * 60)
    print("SEEDED DATA")
    print("=" * 60)
    for key, value in store.counters().items():
        print(f"{key}: {value:,}")
    print("\nTop 5 Players:")
    for row in store.leaderboard.top(5):
        print(f"  {row['rank']}. {row['username']}: {row['score']:,}")
    print("=" * 60)


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--players", type=int, default=300)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    if args.seed is not None:
        random.seed(args.seed)
        np.random.seed(args.seed)
        Faker.seed(args.seed)

    print("=" * 60)
    print("FRUIT MERGE DEMO DATA")
    print(f"Storage: {settings.storage_backend}")
    print("=" * 60)

    start = time.time()
    store = GameStore(presence_ttl=settings.presence_ttl)
    player_ids = generate_players(store, args.players)
    generate_games(store, player_ids)
    generate_friendships(store, player_ids)
    generate_payments(store, player_ids)

    persistence = PersistenceManager(store, build_repository(settings),
                                     payments_keep=settings.payments_keep,
                                     activity_keep=settings.activity_keep)
    if not persistence.flush(reason="seed"):
        print("✗ Saving failed, see the log for details")
        sys.exit(1)

    print_statistics(store)
    print(f"\n✓ Done in {time.time() - start:.2f} seconds")


if __name__ == "__main__":
    main()
