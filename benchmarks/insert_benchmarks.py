"""Benchmark suite for store writes.

Measures how long each on-disk backend takes to insert a batch of values,
with and without fsync after every write.

Run this script directly to execute all benchmarks:
    python benchmarks/insert_benchmarks.py
"""

import tempfile
import time
from pathlib import Path
from statistics import mean, stdev

from pydantic import BaseModel

from pkvstore.backends import DISK_BACKENDS
from pkvstore.config import StoreConfig
from pkvstore.store import PkvStore


class User(BaseModel):
    name: str
    age: int


def _insert_run(directory: Path, config: StoreConfig, count: int) -> float:
    """Insert ``count`` users into a fresh store and return elapsed ms."""
    with PkvStore.new_in_dir(directory, config=config) as store:
        store.clear()
        start = time.perf_counter()
        for i in range(count):
            store.set(f"user-{i}", User(name=f"user {i}", age=i % 100))
        return (time.perf_counter() - start) * 1000


def benchmark_inserts(count: int = 1000, runs: int = 3, sync_writes: bool = False) -> None:
    """Benchmark inserting distinct keys into each on-disk backend."""
    print("\n" + "=" * 70)
    print(f"BENCHMARK: {count} inserts (sync_writes={sync_writes})")
    print("=" * 70)

    for backend in DISK_BACKENDS:
        config = StoreConfig(backend=backend, sync_writes=sync_writes)
        times = []
        for _ in range(runs):
            with tempfile.TemporaryDirectory() as tmp:
                times.append(_insert_run(Path(tmp), config, count))

        print(f"\n{backend} (n={runs}):")
        print(f"  Mean: {mean(times):.2f}ms")
        print(f"  Std:  {stdev(times):.2f}ms" if len(times) > 1 else "  Std:  N/A")
        print(f"  Per insert: {mean(times) / count * 1000:.1f}us")


def benchmark_overwrites(count: int = 1000) -> None:
    """Benchmark overwriting one key repeatedly, which drives log compaction."""
    print("\n" + "=" * 70)
    print(f"BENCHMARK: {count} overwrites of a single key")
    print("=" * 70)

    for backend in DISK_BACKENDS:
        config = StoreConfig(backend=backend, sync_writes=False, compaction_threshold_bytes=4096)
        with tempfile.TemporaryDirectory() as tmp:
            with PkvStore.new_in_dir(tmp, config=config) as store:
                start = time.perf_counter()
                for i in range(count):
                    store.set("user", User(name="same", age=i))
                elapsed = (time.perf_counter() - start) * 1000
            size = sum(p.stat().st_size for p in Path(tmp).iterdir())

        print(f"\n{backend}:")
        print(f"  Total: {elapsed:.2f}ms")
        print(f"  File size: {size:,} bytes")


def main() -> None:
    benchmark_inserts(sync_writes=False)
    benchmark_inserts(count=100, sync_writes=True)
    benchmark_overwrites()


if __name__ == "__main__":
    main()
