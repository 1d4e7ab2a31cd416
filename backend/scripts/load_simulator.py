"""
Load simulation script to test API performance.
Simulates concurrent players sending heartbeats, finishing games and
reading leaderboards.
"""
import asyncio
import random
import statistics
import sys
import time
from collections import defaultdict
from datetime import datetime

import aiohttp


class LoadSimulator:
    """Load simulator for API testing."""

    def __init__(self, base_url: str, concurrent_users: int, duration_seconds: int):
        self.base_url = base_url
        self.concurrent_users = concurrent_users
        self.duration_seconds = duration_seconds
        self.results = defaultdict(list)
        self.errors = defaultdict(int)
        self.total_requests = 0
        self.start_time = None

    async def _call(self, session: aiohttp.ClientSession, name: str, method: str, path: str,
                    payload: dict = None, ok_statuses=(200,)):
        start = time.time()
        try:
            async with session.request(method, f"{self.base_url}{path}", json=payload) as response:
                self.results[name].append((time.time() - start) * 1000)
                self.total_requests += 1
                if response.status not in ok_statuses:
                    self.errors[name] += 1
        except aiohttp.ClientError as e:
            self.errors[name] += 1
            print(f"Error in {name}: {e}")

    async def heartbeat(self, session, user_id: int):
        await self._call(session, "heartbeat", "POST", "/api/heartbeat",
                         {"userId": user_id, "firstName": f"Bot{user_id}"})

    async def play_game(self, session, user_id: int):
        await self._call(session, "game_start", "POST", "/api/game/start", {"userId": user_id})
        await self._call(session, "game_end", "POST", "/api/game/end",
                         {"userId": user_id, "score": random.randint(100, 10000)})

    async def read_leaderboard(self, session):
        board = random.choice(["global", "weekly", "alltime"])
        await self._call(session, "leaderboard", "GET", f"/api/leaderboard?board={board}&limit=50")

    async def read_rank(self, session, user_id: int):
        await self._call(session, "rank", "GET", f"/api/leaderboard/rank/{user_id}")

    async def user_session(self, session: aiohttp.ClientSession, user_id: int):
        """Simulate a single player's behavior."""
        end_time = self.start_time + self.duration_seconds
        while time.time() < end_time:
            rand = random.random()
            if rand < 0.50:
                await self.heartbeat(session, user_id)
            elif rand < 0.75:
                await self.play_game(session, user_id)
            elif rand < 0.95:
                await self.read_leaderboard(session)
            else:
                await self.read_rank(session, user_id)
            await asyncio.sleep(random.uniform(0.1, 0.5))

    async def run(self):
        print("=" * 60)
        print("FRUIT MERGE LOAD SIMULATOR")
        print("=" * 60)
        print(f"Base URL: {self.base_url}")
        print(f"Concurrent Players: {self.concurrent_users}")
        print(f"Duration: {self.duration_seconds} seconds")
        print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print("=" * 60)

        self.start_time = time.time()
        connector = aiohttp.TCPConnector(limit=100)
        timeout = aiohttp.ClientTimeout(total=30)

        async with aiohttp.ClientSession(connector=connector, timeout=timeout) as session:
            user_ids = random.sample(range(1_000_000, 9_999_999), self.concurrent_users)
            await asyncio.gather(*(self.user_session(session, uid) for uid in user_ids))

        self.print_results()

    @staticmethod
    def calculate_percentile(data, percentile):
        if not data:
            return 0
        sorted_data = sorted(data)
        index = int(len(sorted_data) * percentile / 100)
        return sorted_data[min(index, len(sorted_data) - 1)]

    def print_results(self):
        total_duration = time.time() - self.start_time
        print("\n" + "=" * 60)
        print("SIMULATION RESULTS")
        print("=" * 60)
        print(f"Total Duration: {total_duration:.2f} seconds")
        print(f"Total Requests: {self.total_requests:,}")
        print(f"Requests/Second: {self.total_requests / total_duration:.2f}")
        print(f"Total Errors: {sum(self.errors.values())}")

        for name, latencies in sorted(self.results.items()):
            print(f"\n{name}:")
            print(f"  Requests: {len(latencies):,}  Errors: {self.errors[name]}")
            print(f"  Mean: {statistics.mean(latencies):.2f} ms")
            print(f"  p50: {self.calculate_percentile(latencies, 50):.2f} ms")
            print(f"  p95: {self.calculate_percentile(latencies, 95):.2f} ms")
            print(f"  p99: {self.calculate_percentile(latencies, 99):.2f} ms")
        print("=" * 60)


async def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3000"
    concurrent_users = int(sys.argv[2]) if len(sys.argv) > 2 else 50
    duration = int(sys.argv[3]) if len(sys.argv) > 3 else 30
    await LoadSimulator(base_url, concurrent_users, duration).run()


if __name__ == "__main__":
    asyncio.run(main())
