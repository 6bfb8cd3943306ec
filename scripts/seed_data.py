#!/usr/bin/env python3
"""Seed the realtime store with thresholds and dummy readings for development."""

import argparse
import asyncio
import random
from datetime import UTC, datetime, timedelta

from warehouse.lib.config import get_settings
from warehouse.lib.models import ThresholdSet
from warehouse.lib.store import create_store
from warehouse.monitor import ReadingStore, ThresholdStore

DEFAULT_THRESHOLDS = ThresholdSet(
    temp_high=30.0, temp_low=10.0, hum_high=80.0, hum_low=20.0
)


def random_walk(
    current: float, drift: float, min_val: float, max_val: float
) -> float:
    """Generate next value using random walk with bounds."""
    change = random.gauss(0, drift)
    return max(min_val, min(max_val, current + change))


def generate_readings(
    num_records: int, interval: timedelta
) -> list[tuple[str, dict[str, float | str]]]:
    """Generate realistic readings keyed by timestamp using random walk."""
    now = datetime.now(UTC).replace(microsecond=0, tzinfo=None)
    data = []

    temperature = random.uniform(18.0, 22.0)
    humidity = random.uniform(45.0, 55.0)

    for i in range(num_records):
        recording_time = now - (interval * (num_records - 1 - i))
        temperature = random_walk(
            temperature, drift=0.4, min_val=5.0, max_val=35.0
        )
        humidity = random_walk(humidity, drift=1.0, min_val=15.0, max_val=90.0)
        key = recording_time.strftime("%Y-%m-%d_%H:%M:%S")
        data.append(
            (
                key,
                {
                    "createdAt_time": recording_time.isoformat(),
                    "temperature": round(temperature, 1),
                    "humidity": round(humidity, 1),
                },
            )
        )

    return data


async def seed_data(hours: int = 6, clear: bool = False) -> None:
    """Write default thresholds and readings for the past N hours."""
    paths = get_settings().paths
    interval = timedelta(minutes=2)
    num_records = (hours * 60) // 2

    async with create_store() as store:
        thresholds = ThresholdStore(store, paths.thresholds)
        readings = ReadingStore(store, paths.readings)

        if clear:
            print("Clearing existing readings...")
            await store.set(paths.readings, {})

        print("Writing thresholds...")
        await thresholds.write(DEFAULT_THRESHOLDS)

        print(f"Writing {num_records} readings...")
        for key, record in generate_readings(num_records, interval):
            await readings.add(key, record)

    print("Done!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Seed the store with dummy thresholds and readings"
    )
    parser.add_argument(
        "-hours",
        type=int,
        default=6,
        help="Hours of data to generate (default: 6)",
    )
    parser.add_argument(
        "-clear",
        action="store_true",
        help="Clear existing readings before seeding",
    )
    args = parser.parse_args()

    asyncio.run(seed_data(hours=args.hours, clear=args.clear))
