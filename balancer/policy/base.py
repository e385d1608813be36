from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from balancer.config import BalancerConfig
from balancer.ledger import CapacityLedger, EPSILON
from balancer.state import Host, VirtualMachine


class Planner:
	def __init__(self, ledger: CapacityLedger, config: BalancerConfig) -> None:
		self.ledger = ledger
		self.config = config

	def within_ceiling(self, host: Host, vm: VirtualMachine) -> bool:
		return self.ledger.projected_utilization(host.id, vm) <= self.config.upper_threshold + EPSILON

	def select_host(
		self,
		vm: VirtualMachine,
		exclude: Iterable[str] = (),
		descending: bool = False,
	) -> Optional[str]:
		"""First host in utilization order that has room and stays within the ceiling."""
		for host in self.ledger.ranked_hosts(exclude=exclude, descending=descending):
			if self.ledger.can_host(host.id, vm) and self.within_ceiling(host, vm):
				return host.id
		return None


class PlacementPolicy(Planner, ABC):
	@abstractmethod
	def place(self, vm: VirtualMachine) -> Optional[str]:
		raise NotImplementedError
