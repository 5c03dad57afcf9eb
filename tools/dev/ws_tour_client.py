#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Sky Tour Relay - Dev WebSocket Tour Client (/ws/tour)
-----------------------------------------------------
Interactive console tool for taking a tour over WebSocket.

Features:
- Starts a tour on connect (passenger name / tour type from CLI flags).
- You type, Captain Sarah answers. Every server event is printed as it
  arrives, so you also see message_received acks and telemetry pushes.
- Slash commands:
      /flight   -> request_flight_info (1 s telemetry pushes)
      /ground   -> next messages claim we are on the ground
      /air      -> next messages claim we are airborne at --altitude
      /end      -> end_tour
      /quit     -> exit
- AUTO-RECONNECT with backoff when the connection drops. A reconnect starts
  a fresh tour; the old session stays on the server.

Meant for development on your laptop; the browser UI speaks the same
protocol.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict

import websockets
from websockets.exceptions import ConnectionClosed

DEFAULT_SERVER = "ws://127.0.0.1:3001/ws/tour"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sky Tour Relay - Dev WebSocket Tour Client (/ws/tour)",
    )
    parser.add_argument(
        "--server",
        type=str,
        default=DEFAULT_SERVER,
        help=f"WebSocket server URL (default: {DEFAULT_SERVER})",
    )
    parser.add_argument("--name", type=str, default="Guest", help="Passenger name.")
    parser.add_argument("--tour", type=str, default="scenic", help="Tour type / destination.")
    parser.add_argument(
        "--altitude",
        type=float,
        default=4500.0,
        help="Altitude (ft) reported with each message while airborne.",
    )
    parser.add_argument(
        "--quiet-telemetry",
        action="store_true",
        help="Do not print flight_info_update frames.",
    )
    return parser.parse_args()


def frame(event_type: str, **payload: Any) -> str:
    return json.dumps({"type": event_type, "payload": payload})


def show_event(data: Dict[str, Any], args: argparse.Namespace) -> None:
    kind = data.get("type")
    if kind == "pilot_message":
        print(f"\nCaptain: {data.get('message')}\n")
    elif kind == "tour_started":
        print(f"[server] tour started: {data.get('sessionId')}")
        print(f"\nCaptain: {data.get('message')}\n")
    elif kind == "flight_info_update":
        if args.quiet_telemetry:
            return
        info = data.get("data") or {}
        print(
            f"[telemetry:{data.get('source')}] alt={info.get('altitude', 0):.0f} ft "
            f"speed={info.get('speed', 0):.0f} kt hdg={info.get('heading', 0):.0f}"
        )
    elif kind == "error":
        print(f"[server error] {data.get('code')} - {data.get('message')}")
    elif kind == "message_received":
        print("[server] ...captain is typing")
    else:
        print(f"[server] {kind}: {data.get('message', '')}")


async def receive_loop(ws: Any, args: argparse.Namespace) -> None:
    async for raw in ws:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            print(f"Raw frame (not JSON): {raw}")
            continue
        if isinstance(data, dict):
            show_event(data, args)


async def run_single_session(args: argparse.Namespace) -> None:
    """One connect -> tour -> disconnect cycle."""
    on_ground = False

    async with websockets.connect(args.server, ping_interval=None) as ws:
        print("Connected. Type a message and press Enter (/quit to exit).\n")
        receiver = asyncio.create_task(receive_loop(ws, args))
        await ws.send(frame("start_tour", passengerName=args.name, tourType=args.tour))

        try:
            while True:
                text = (await asyncio.to_thread(input, "")).strip()
                if not text:
                    continue
                command = text.lower()
                if command in {"/quit", "/exit"}:
                    raise KeyboardInterrupt
                if command == "/flight":
                    await ws.send(frame("request_flight_info"))
                elif command == "/end":
                    await ws.send(frame("end_tour"))
                elif command == "/ground":
                    on_ground = True
                    print("[client] reporting onGround=true")
                elif command == "/air":
                    on_ground = False
                    print(f"[client] reporting airborne at {args.altitude:.0f} ft")
                else:
                    flight_data = {
                        "altitude": 0.0 if on_ground else args.altitude,
                        "onGround": on_ground,
                        "airspeed": 0.0 if on_ground else 110.0,
                    }
                    await ws.send(frame("passenger_message", message=text, flightData=flight_data))
                if receiver.done():
                    # Propagates ConnectionClosed to the reconnect loop.
                    receiver.result()
                    return
        finally:
            receiver.cancel()


async def run_with_reconnect(args: argparse.Namespace) -> None:
    """
    Reconnect when the connection fails.

    Backoff: 3s, 6s, 9s, ... capped at 30s. Ctrl+C to exit.
    """
    attempt = 0
    base_delay = 3

    while True:
        attempt += 1
        try:
            print(f"Connecting to '{args.server}' (attempt {attempt}) ...")
            await run_single_session(args)
            return
        except KeyboardInterrupt:
            print("\nBye.")
            return
        except ConnectionClosed as exc:
            print(f"\nConnection closed: {exc}")
        except OSError as exc:
            print(f"\nConnection error: {exc}")

        delay = min(base_delay * attempt, 30)
        print(f"Reconnecting in {delay} seconds... (Ctrl+C to stop)")
        await asyncio.sleep(delay)


def main() -> None:
    args = parse_args()
    try:
        asyncio.run(run_with_reconnect(args))
    except KeyboardInterrupt:
        print("\nBye.")
        sys.exit(0)


if __name__ == "__main__":
    main()
