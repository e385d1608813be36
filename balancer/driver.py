"""Drivers that feed rounds into a Reconciler.

- FileRoundDriver: polls an input JSON file on a fixed cadence and writes the
  report next to it (sleep function and stop event are injectable).
- StreamRoundDriver: JSON objects in, one JSON report line out per round.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TextIO

from balancer.errors import ValidationError
from balancer.reconciler import Reconciler

logger = logging.getLogger(__name__)


def iter_payloads(line: str) -> Iterator[Any]:
    """Yield every JSON value on a line (producers sometimes glue objects together)."""
    decoder = json.JSONDecoder()
    idx = 0
    end = len(line)
    while idx < end:
        while idx < end and line[idx].isspace():
            idx += 1
        if idx >= end:
            break
        obj, idx = decoder.raw_decode(line, idx)
        yield obj


class FileRoundDriver:
    def __init__(
        self,
        reconciler: Reconciler,
        input_path: str,
        output_path: str,
        interval_sec: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.reconciler = reconciler
        self.input_path = Path(input_path)
        self.output_path = Path(output_path)
        self.interval_sec = max(0.0, float(interval_sec))
        self._sleep = sleep
        self._stop_event = stop_event or threading.Event()
        self._last_payload: Optional[str] = None

    def tick(self) -> Optional[Dict[str, Any]]:
        """Run one round if the input file holds a new payload."""
        try:
            raw = self.input_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"Input {self.input_path} not found; waiting")
            return None
        if raw == self._last_payload:
            return None
        self._last_payload = raw

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping round: {self.input_path} is not valid JSON ({e})")
            return None
        try:
            report = self.reconciler.process(payload)
        except ValidationError as e:
            logger.warning(f"Skipping round: {e}")
            return None

        self._write_report(report)
        return report

    def _write_report(self, report: Dict[str, Any]) -> None:
        tmp = self.output_path.with_name(self.output_path.name + ".tmp")
        tmp.write_text(json.dumps(report, indent=2), encoding="utf-8")
        os.replace(tmp, self.output_path)

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Poll until stopped (or ``max_ticks`` ticks elapsed); returns rounds processed."""
        logger.info(
            f"Watching {self.input_path} every {self.interval_sec}s, writing {self.output_path}"
        )
        rounds = 0
        ticks = 0
        while not self._stop_event.is_set():
            if self.tick() is not None:
                rounds += 1
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            self._sleep(self.interval_sec)
        logger.info(f"File driver stopped after {rounds} rounds")
        return rounds

    def stop(self) -> None:
        self._stop_event.set()


class StreamRoundDriver:
    def __init__(self, reconciler: Reconciler, instream: TextIO, outstream: TextIO) -> None:
        self.reconciler = reconciler
        self.instream = instream
        self.outstream = outstream

    def run(self) -> int:
        rounds = 0
        for line in self.instream:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            payloads = iter_payloads(line)
            while True:
                try:
                    payload = next(payloads)
                except StopIteration:
                    break
                except json.JSONDecodeError as e:
                    # objects decoded before the bad one have already run
                    logger.warning(f"Skipping unparsable remainder of line: {e}")
                    self._emit({"error": f"invalid JSON: {e}"})
                    break
                if self._run_payload(payload):
                    rounds += 1
        return rounds

    def _run_payload(self, payload: Any) -> bool:
        try:
            report = self.reconciler.process(payload)
        except ValidationError as e:
            logger.warning(f"Skipping round: {e}")
            self._emit({"error": str(e)})
            return False
        self._emit(report)
        return True

    def _emit(self, obj: Dict[str, Any]) -> None:
        self.outstream.write(json.dumps(obj) + "\n")
        self.outstream.flush()
