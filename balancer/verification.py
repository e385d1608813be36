"""Round verification: ledger invariant checks and per-round CSV metrics."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Dict

from balancer.errors import InvariantViolation
from balancer.ledger import CapacityLedger
from balancer.state import RoundReport

logger = logging.getLogger(__name__)


def check_invariants(ledger: CapacityLedger) -> None:
	"""
	Verify ledger accounting against the assignment map.

	Raises:
		InvariantViolation: on the first inconsistency found
	"""
	seen: Dict[str, str] = {}
	for host_id, vm_ids in ledger.allocations().items():
		host = ledger.get_host(host_id)
		if not (0 <= host.cpu_used <= host.cpu_capacity and 0 <= host.ram_used <= host.ram_capacity):
			raise InvariantViolation(
				f"host {host_id} usage out of bounds: cpu {host.cpu_used}/{host.cpu_capacity}, "
				f"ram {host.ram_used}/{host.ram_capacity}"
			)
		cpu_sum = 0
		ram_sum = 0
		for vm_id in vm_ids:
			if vm_id in seen:
				raise InvariantViolation(f"vm {vm_id} assigned to both {seen[vm_id]} and {host_id}")
			seen[vm_id] = host_id
			vm = ledger.get_vm(vm_id)
			if vm is None:
				raise InvariantViolation(f"vm {vm_id} assigned to {host_id} has no recorded request")
			cpu_sum += vm.cpu_request
			ram_sum += vm.ram_request
		if cpu_sum != host.cpu_used or ram_sum != host.ram_used:
			raise InvariantViolation(
				f"host {host_id} usage ({host.cpu_used}, {host.ram_used}) does not match "
				f"assigned requests ({cpu_sum}, {ram_sum})"
			)


class RoundMetricsRecorder:
	"""Appends one CSV row per round with aggregate placement metrics."""

	HEADER = [
		'round',
		'vms_allocated',
		'allocation_failures',
		'migrations',
		'underutilized_hosts',
		'mean_utilization_pct',
		'total_score',
	]

	def __init__(self, csv_path: str) -> None:
		self.csv_path = Path(csv_path)
		self.csv_path.parent.mkdir(parents=True, exist_ok=True)
		logger.info(f"RoundMetricsRecorder writing to {self.csv_path}")

	def record(self, report: RoundReport) -> None:
		utilizations = list(report.host_utilizations.values())
		mean_pct = (
			sum(u.usage_percentage for u in utilizations) / len(utilizations)
			if utilizations else 0.0
		)
		file_exists = self.csv_path.exists()

		with open(self.csv_path, 'a', newline='') as f:
			writer = csv.writer(f)
			if not file_exists:
				writer.writerow(self.HEADER)
			writer.writerow([
				report.round,
				sum(len(vms) for vms in report.allocations.values()),
				len(report.allocation_failures),
				len(report.migrations),
				len(report.underutilized_hosts),
				f"{mean_pct:.2f}",
				f"{sum(u.score for u in utilizations):.4f}",
			])

		logger.debug(f"Exported round {report.round} metrics to {self.csv_path}")
