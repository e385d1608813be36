"""Rebalance planner.

Runs after a round's placements and performs two passes over the ledger:

1. Overload correction: every host above the band ceiling sheds VMs, largest
   share first, to the least utilized host that can take them without
   crossing the ceiling. When no such host exists, a relief move to a less
   utilized host is allowed as long as it does not raise the peak. A VM
   gets at most one relief move until it is released.
2. Assisted placement: for VMs the placement policy could not place, free
   room on a host by migrating one of its VMs elsewhere, then place the
   stranded VM on the freed host.

Underutilized hosts never trigger evictions here.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from balancer.config import BalancerConfig
from balancer.ledger import CapacityLedger, EPSILON
from balancer.policy.base import Planner
from balancer.state import Host, Migration, RebalanceResult, VirtualMachine

logger = logging.getLogger(__name__)


class RebalancePlanner(Planner):
    def __init__(self, ledger: CapacityLedger, config: BalancerConfig) -> None:
        super().__init__(ledger, config)
        self.round: int = 0
        self._migrations: List[Migration] = []
        self._moved_this_round: Set[str] = set()
        self._examined_hosts: Set[str] = set()
        self._last_migrated: Dict[str, int] = {}  # vm id -> round of last migration
        self._relief_moved: Set[str] = set()  # cleared only when the vm is released

    # -------- round lifecycle --------

    def begin_round(self, round_number: int) -> None:
        self.round = round_number
        self._migrations = []
        self._moved_this_round = set()
        self._examined_hosts = set()

    def forget(self, vm_id: str) -> None:
        self._last_migrated.pop(vm_id, None)
        self._relief_moved.discard(vm_id)

    @property
    def migrations(self) -> List[Migration]:
        return list(self._migrations)

    # -------- public entry --------

    def rebalance(self, stranded: Iterable[VirtualMachine] = ()) -> RebalanceResult:
        result = RebalanceResult()
        self._correct_overloads(result)
        for vm in sorted(stranded, key=lambda v: v.id):
            host_id = self._assisted_place(vm, result)
            if host_id is None:
                result.failures.append(vm.id)
            else:
                result.placed[vm.id] = host_id
        return result

    # -------- overload correction --------

    def _correct_overloads(self, result: RebalanceResult) -> None:
        ceiling = self.config.upper_threshold
        for host in self.ledger.list_hosts():
            if host.id in self._examined_hosts or host.utilization <= ceiling + EPSILON:
                continue
            self._examined_hosts.add(host.id)
            for vm in self._largest_first(host):
                if host.utilization <= ceiling + EPSILON:
                    break
                if not self._budget_left():
                    logger.info(f"Migration budget exhausted in round {self.round}")
                    return
                if vm.id in self._moved_this_round:
                    continue
                target = self.select_host(vm, exclude=[host.id])
                relief = False
                if target is None and self._relief_allowed(vm.id):
                    target = self._relief_target(host, vm)
                    relief = target is not None
                if target is None:
                    continue
                self._migrate(vm, host.id, target, result)
                if relief:
                    self._relief_moved.add(vm.id)
            if host.utilization > ceiling + EPSILON:
                logger.info(
                    f"Host {host.id} stays overloaded this round "
                    f"(utilization {host.utilization:.3f} > {ceiling})"
                )

    def _relief_target(self, source: Host, vm: VirtualMachine) -> Optional[str]:
        """Less utilized host whose post-move utilization stays at or below the source's."""
        peak = source.utilization
        for candidate in self.ledger.ranked_hosts(exclude=[source.id]):
            if candidate.utilization >= peak - EPSILON:
                break
            if not self.ledger.can_host(candidate.id, vm):
                continue
            if self.ledger.projected_utilization(candidate.id, vm) <= peak + EPSILON:
                return candidate.id
        return None

    def _relief_allowed(self, vm_id: str) -> bool:
        # one relief move per placement; a relieved vm never bounces back
        return vm_id not in self._relief_moved and self._cooled_down(vm_id)

    def _cooled_down(self, vm_id: str) -> bool:
        last = self._last_migrated.get(vm_id)
        return last is None or self.round - last >= self.config.migration_cooldown_rounds

    # -------- assisted placement --------

    def _assisted_place(self, vm: VirtualMachine, result: RebalanceResult) -> Optional[str]:
        for helper in self.ledger.ranked_hosts():
            for resident in self._largest_first(helper):
                if resident.id in self._moved_this_round:
                    continue
                if not self.ledger.fits_after_release(helper.id, vm, resident):
                    continue
                target = self.select_host(resident, exclude=[helper.id])
                if target is None:
                    continue
                if not self._budget_left():
                    return None
                self._migrate(resident, helper.id, target, result)
                self.ledger.allocate(helper.id, vm)
                logger.info(f"Assisted placement of vm {vm.id} on {helper.id} after moving {resident.id}")
                return helper.id
        logger.debug(f"Assisted placement found no room for vm {vm.id}")
        return None

    # -------- helpers --------

    def _largest_first(self, host: Host) -> List[VirtualMachine]:
        return sorted(
            self.ledger.vms_on(host.id),
            key=lambda vm: (-self.ledger.share(host.id, vm), vm.id),
        )

    def _budget_left(self) -> bool:
        cap = self.config.max_migrations_per_round
        return cap is None or len(self._migrations) < cap

    def _migrate(self, vm: VirtualMachine, source: str, target: str, result: RebalanceResult) -> None:
        self.ledger.move(vm, source, target)
        migration = Migration(vm=vm.id, source=source, target=target)
        self._migrations.append(migration)
        self._moved_this_round.add(vm.id)
        self._last_migrated[vm.id] = self.round
        result.migrations.append(migration)
        logger.info(f"Migrated vm {vm.id}: {source} -> {target}")
