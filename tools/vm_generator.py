#!/usr/bin/env python3
"""Append a synthetic VM to a round input file.

Example:
    python tools/vm_generator.py --input input.json --count 3

Handy next to `balancer watch`: every run changes the desired set so the
file driver picks up a new round.
"""
from __future__ import annotations

import argparse
import json
import random
from pathlib import Path
from typing import Any, Dict


def add_vm(data: Dict[str, Any], rng: random.Random) -> str:
	vms = data.setdefault("virtual_machines", {})
	index = len(vms) + 1
	vm_id = f"vm{index}"
	while vm_id in vms:
		index += 1
		vm_id = f"vm{index}"
	vms[vm_id] = {"cpu": rng.randint(1, 3), "ram": rng.randint(2, 5)}
	return vm_id


def main() -> None:
	parser = argparse.ArgumentParser(description="Synthetic VM generator")
	parser.add_argument("--input", default="input.json", type=Path)
	parser.add_argument("--count", type=int, default=1)
	parser.add_argument("--seed", type=int, default=None)
	args = parser.parse_args()

	if not args.input.exists():
		raise SystemExit(f"{args.input} not found")
	data = json.loads(args.input.read_text(encoding="utf-8"))
	rng = random.Random(args.seed)
	added = [add_vm(data, rng) for _ in range(max(0, args.count))]
	args.input.write_text(json.dumps(data, indent=2), encoding="utf-8")
	print(f"Added {', '.join(added) or 'nothing'} to {args.input}")


if __name__ == "__main__":
	main()
