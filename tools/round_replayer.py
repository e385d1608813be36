#!/usr/bin/env python3
"""Replay recorded rounds against a running balancer API.

Example:
    python tools/round_replayer.py --rounds tests/data/basic --url http://localhost:8080

Posts every round_*.json file (sorted by name) to /round and prints a short
summary of each report.
"""
from __future__ import annotations

import argparse
import json
import time
from pathlib import Path
from typing import List

import requests


def round_files(directory: Path) -> List[Path]:
    return sorted(directory.glob("round_*.json"))


def main() -> None:
    parser = argparse.ArgumentParser(description="Balancer round replayer")
    parser.add_argument("--rounds", required=True, type=Path, help="directory with round_*.json files")
    parser.add_argument("--url", default="http://localhost:8080")
    parser.add_argument("--interval", type=float, default=0.0, help="seconds between rounds")
    args = parser.parse_args()

    files = round_files(args.rounds)
    if not files:
        raise SystemExit(f"No round_*.json files in {args.rounds}")

    session = requests.Session()
    endpoint = f"{args.url.rstrip('/')}/round"
    for path in files:
        payload = json.loads(path.read_text(encoding="utf-8"))
        response = session.post(endpoint, json=payload, timeout=20)
        data = response.json()
        if response.status_code != 200:
            print(f"[{time.strftime('%H:%M:%S')}] {path.name}: rejected ({data.get('error')})")
        else:
            print(
                f"[{time.strftime('%H:%M:%S')}] {path.name}: round {data['round']} "
                f"failures={len(data['allocation_failures'])} "
                f"migrations={len(data['migrations'])} "
                f"underutilized={len(data['underutilized_hosts'])}"
            )
        if args.interval > 0:
            time.sleep(args.interval)


if __name__ == "__main__":
    main()
