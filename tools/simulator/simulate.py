#!/usr/bin/env python3
"""Anchor watch drift simulator.

Pushes GPS fixes for a boat swinging at anchor, then dragging, to a
standalone server (one started without a SignalK URL).

Usage:
    # Swing for a minute, then drag at 0.5 m/s for a minute
    python -m tools.simulator.simulate --server http://localhost:8000

    # Tight radius, fast drag, 5 fixes per second
    python -m tools.simulator.simulate --radius 20 --drag-rate 2 --rate 5

    # Specific anchorage
    python -m tools.simulator.simulate --anchor 43.2965,5.3698
"""

from __future__ import annotations

import argparse
import asyncio
import math
import random
import time
from dataclasses import dataclass

import httpx

from anchorwatch.core.geo import destination_point


@dataclass
class SimBoat:
    anchor_lat: float
    anchor_lon: float
    distance_m: float
    bearing: float  # from anchor to boat
    heading: float
    fixes_sent: int = 0
    errors: int = 0

    def position(self) -> tuple[float, float]:
        return destination_point(self.anchor_lat, self.anchor_lon, self.bearing, self.distance_m)


def swing(boat: SimBoat, dt_seconds: float, swing_radius: float) -> None:
    """Move the boat around the anchor like a wind shift would."""
    boat.bearing = (boat.bearing + random.uniform(-3, 3) * dt_seconds) % 360
    target = swing_radius * random.uniform(0.8, 1.0)
    boat.distance_m += (target - boat.distance_m) * min(1.0, 0.2 * dt_seconds)
    # Bow points back at the anchor, give or take some yaw
    boat.heading = (boat.bearing + 180 + random.uniform(-10, 10)) % 360


def drag(boat: SimBoat, dt_seconds: float, drag_rate: float) -> None:
    """The anchor has let go: the boat moves straight downwind."""
    boat.distance_m += drag_rate * dt_seconds
    boat.heading = (boat.bearing + 180 + random.uniform(-5, 5)) % 360


async def push_fix(client: httpx.AsyncClient, server_url: str, boat: SimBoat) -> None:
    lat, lon = boat.position()
    # Some GPS noise, a couple of meters
    lat += random.gauss(0, 1.5) / 111_000
    lon += random.gauss(0, 1.5) / (111_000 * math.cos(math.radians(lat)))
    try:
        resp = await client.post(
            f"{server_url}/api/v1/feed/position",
            json={"position": {"latitude": lat, "longitude": lon}, "heading": round(boat.heading, 1)},
        )
        if resp.status_code == 202:
            boat.fixes_sent += 1
        else:
            boat.errors += 1
    except httpx.RequestError:
        boat.errors += 1


async def print_state(client: httpx.AsyncClient, server_url: str, phase: str) -> dict | None:
    try:
        resp = await client.get(f"{server_url}/api/v1/anchor")
    except httpx.RequestError as exc:
        print(f"  [{phase}] state unavailable: {exc}")
        return None
    state = resp.json()
    distance = state["current_radius"]
    print(f"  [{phase}] distance={distance if distance is None else round(distance, 1)}m "
          f"({state['display_percentage']:.0f}%) alarm={state['alarm_state']}"
          f"{' (silenced)' if state['alarm_silenced'] else ''}")
    return state


async def run_phase(
    client: httpx.AsyncClient,
    args: argparse.Namespace,
    boat: SimBoat,
    phase: str,
    duration_seconds: float,
) -> None:
    interval = 1.0 / args.rate
    end_time = time.monotonic() + duration_seconds
    next_report = 0.0

    while time.monotonic() < end_time:
        if phase == "swing":
            swing(boat, interval, args.swing_radius)
        else:
            drag(boat, interval, args.drag_rate)
        await push_fix(client, args.server, boat)

        if time.monotonic() >= next_report:
            # Give the feed consumer a moment to apply the fix
            await asyncio.sleep(0.05)
            state = await print_state(client, args.server, phase)
            next_report = time.monotonic() + args.report_every
            if (args.ack and state and state["alarm_state"] != "normal"
                    and not state["alarm_silenced"]):
                await client.post(f"{args.server}/api/v1/anchor/alarm/ack")
                print("  alarm acknowledged")

        await asyncio.sleep(interval)


async def run_simulation(args: argparse.Namespace) -> None:
    anchor_lat, anchor_lon = args.anchor
    boat = SimBoat(
        anchor_lat=anchor_lat,
        anchor_lon=anchor_lon,
        distance_m=0.0,
        bearing=random.uniform(0, 360),
        heading=0.0,
    )

    print("Starting drift simulation")
    print(f"  Anchor: {anchor_lat:.5f}, {anchor_lon:.5f}")
    print(f"  Alarm radius: {args.radius} m, swing radius: {args.swing_radius} m")
    print(f"  Swing: {args.swing}s, drag: {args.drag}s at {args.drag_rate} m/s")
    print(f"  Server: {args.server}")
    print()

    start = time.monotonic()

    async with httpx.AsyncClient(timeout=10.0) as client:
        # Boat sits over the anchor when it goes down
        await push_fix(client, args.server, boat)
        await asyncio.sleep(0.1)
        resp = await client.post(f"{args.server}/api/v1/anchor/drop", json={"radius": args.radius})
        if resp.status_code != 200:
            print(f"Drop failed: {resp.status_code} {resp.text}")
            return
        print("Anchor down")

        await run_phase(client, args, boat, "swing", args.swing)
        await run_phase(client, args, boat, "drag", args.drag)

        if args.raise_at_end:
            await client.post(f"{args.server}/api/v1/anchor/raise")
            print("Anchor up")

        elapsed = time.monotonic() - start
        print(f"\nSimulation complete in {elapsed:.1f}s")
        print(f"  Fixes sent: {boat.fixes_sent}")
        print(f"  Errors: {boat.errors}")

        # Check server stats
        try:
            resp = await client.get(f"{args.server}/api/v1/stats")
        except httpx.RequestError:
            return
        if resp.status_code == 200:
            stats = resp.json()
            print("\nServer stats:")
            print(f"  Positions received: {stats['positions_received']}")
            print(f"  Alarms raised: {stats['alarms_raised']}")
            print(f"  Alarms acknowledged: {stats['alarms_acknowledged']}")
            print(f"  Feed live: {stats['feed']['live']}")


def main():
    parser = argparse.ArgumentParser(description="Anchor watch drift simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--anchor", type=str, default="43.2965,5.3698",
                        help="Anchor lat,lon (default: Marseille Vieux-Port)")
    parser.add_argument("--radius", type=float, default=30.0, help="Alarm radius in meters")
    parser.add_argument("--swing-radius", type=float, default=18.0,
                        help="How far the boat lies from the anchor while holding")
    parser.add_argument("--swing", type=float, default=60, help="Seconds swinging before dragging")
    parser.add_argument("--drag", type=float, default=60, help="Seconds of dragging")
    parser.add_argument("--drag-rate", type=float, default=0.5, help="Drag speed in m/s")
    parser.add_argument("--rate", type=float, default=1.0, help="Fixes per second")
    parser.add_argument("--report-every", type=float, default=5.0, help="Seconds between state reports")
    parser.add_argument("--ack", action="store_true", help="Acknowledge alarms as they sound")
    parser.add_argument("--raise-at-end", action="store_true", help="Raise anchor when done")

    args = parser.parse_args()

    # Parse anchor
    lat, lon = args.anchor.split(",")
    args.anchor = (float(lat), float(lon))

    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
