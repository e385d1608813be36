"""Round-to-round reconciliation loop.

The :class:`Reconciler` owns all engine state for the lifetime of the
process: the capacity ledger (hosts + assignment), the desired VM set and the
active set. Each call to :meth:`Reconciler.reconcile_round` runs one full
cycle under a single lock:

    desired set -> deallocate removed -> place added -> rebalance -> report
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from balancer.config import BalancerConfig
from balancer.errors import InvariantViolation, ValidationError
from balancer.ledger import CapacityLedger
from balancer.policy import PlacementPolicy, RebalancePlanner, select_policy
from balancer.protocol import parse_round, render_report
from balancer.scoring import score
from balancer.state import Host, HostUtilization, RoundInput, RoundReport, VirtualMachine
from balancer.verification import RoundMetricsRecorder, check_invariants

logger = logging.getLogger(__name__)


class Reconciler:
    def __init__(self, config: Optional[BalancerConfig] = None) -> None:
        self.config = (config or BalancerConfig()).validate()
        self._lock = threading.RLock()
        self.ledger: Optional[CapacityLedger] = None
        self._placement: Optional[PlacementPolicy] = None
        self._rebalancer: Optional[RebalancePlanner] = None
        self._desired: Dict[str, VirtualMachine] = {}
        self._active: Set[str] = set()
        self.round: int = 0
        self._recorder = (
            RoundMetricsRecorder(self.config.metrics_csv_path)
            if self.config.metrics_csv_path else None
        )

    # -------- lifecycle --------

    @property
    def initialized(self) -> bool:
        return self.ledger is not None

    def initialize(self, hosts: Iterable[Host]) -> None:
        """Load hosts into the ledger. Happens exactly once per process."""
        with self._lock:
            if self.ledger is not None:
                raise InvariantViolation("reconciler is already initialized")
            hosts = list(hosts)
            if not hosts:
                raise ValidationError("at least one host is required")
            self.ledger = CapacityLedger(hosts)
            self._placement = select_policy(self.ledger, self.config)
            self._rebalancer = RebalancePlanner(self.ledger, self.config)
            logger.info(
                f"Initialized {len(hosts)} hosts, band "
                f"[{self.config.lower_threshold}, {self.config.upper_threshold}], "
                f"strategy={self.config.placement_strategy}"
            )

    def process(self, payload: Any) -> Dict[str, Any]:
        """Validate a raw payload, initialize on first use, run the round, render the report."""
        round_input = parse_round(payload)
        with self._lock:
            if not self.initialized:
                if not round_input.hosts:
                    raise ValidationError("the first round must include hosts")
                self.initialize(round_input.hosts.values())
            elif round_input.hosts is not None:
                self._warn_on_host_changes(round_input.hosts)
            return render_report(self.reconcile_round(round_input))

    # -------- the round --------

    def reconcile_round(self, round_input: RoundInput) -> RoundReport:
        with self._lock:
            if self.ledger is None:
                raise InvariantViolation("reconcile_round called before initialize")
            desired = self._next_desired(round_input)

            self.round += 1
            self._rebalancer.begin_round(self.round)

            for vm_id in sorted(self._active - desired.keys()):
                self._release(vm_id)
            self._desired = desired

            stranded: List[VirtualMachine] = []
            for vm_id in sorted(desired.keys() - self._active):
                vm = desired[vm_id]
                if self._placement.place(vm) is None:
                    stranded.append(vm)
                else:
                    self._active.add(vm_id)

            result = self._rebalancer.rebalance(stranded)
            self._active.update(result.placed)

            if self.config.verify_invariants:
                check_invariants(self.ledger)

            report = self._build_report(result.failures)
            if self._recorder is not None:
                self._recorder.record(report)
            logger.info(
                f"Round {self.round}: {len(self._active)} active, "
                f"{len(report.allocation_failures)} failed, {len(report.migrations)} migrations"
            )
            return report

    def _next_desired(self, round_input: RoundInput) -> Dict[str, VirtualMachine]:
        """Compute the desired set without mutating anything."""
        if round_input.is_diff:
            incoming = dict(self._desired)
            incoming.update(round_input.added)
            for vm_id in round_input.removed:
                if incoming.pop(vm_id, None) is None:
                    logger.warning(f"diff removes unknown vm {vm_id}; ignoring")
        else:
            incoming = dict(round_input.desired)

        desired: Dict[str, VirtualMachine] = {}
        for vm_id, vm in incoming.items():
            known = self._desired.get(vm_id)
            if known is not None and known != vm:
                logger.warning(
                    f"vm {vm_id} changed size ({known.cpu_request}/{known.ram_request} -> "
                    f"{vm.cpu_request}/{vm.ram_request}); keeping the original request"
                )
                vm = known
            desired[vm_id] = vm
        return desired

    def _release(self, vm_id: str) -> None:
        host_id = self.ledger.host_of(vm_id)
        vm = self.ledger.get_vm(vm_id)
        if host_id is None or vm is None:
            raise InvariantViolation(f"active vm {vm_id} has no assignment")
        self.ledger.deallocate(host_id, vm)
        self._active.discard(vm_id)
        self._rebalancer.forget(vm_id)
        logger.debug(f"Released vm {vm_id} from {host_id}")

    def _build_report(self, failures: List[str]) -> RoundReport:
        utilizations: Dict[str, HostUtilization] = {}
        underutilized: List[str] = []
        for host in self.ledger.list_hosts():
            u = host.utilization
            utilizations[host.id] = HostUtilization(usage_percentage=u * 100, score=score(u))
            if u < self.config.lower_threshold:
                underutilized.append(host.id)
        return RoundReport(
            round=self.round,
            allocations=self.ledger.allocations(),
            allocation_failures=sorted(failures),
            migrations=self._rebalancer.migrations,
            host_utilizations=utilizations,
            underutilized_hosts=underutilized,
        )

    # -------- read-only views --------

    @property
    def active_vms(self) -> Set[str]:
        with self._lock:
            return set(self._active)

    @property
    def pending_vms(self) -> List[str]:
        with self._lock:
            return sorted(self._desired.keys() - self._active)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            if self.ledger is None:
                return {"initialized": False, "round": self.round, "hosts": {}, "allocations": {}, "pending": []}
            return {
                "initialized": True,
                "round": self.round,
                "hosts": {
                    h.id: {
                        "cpu": h.cpu_capacity,
                        "ram": h.ram_capacity,
                        "cpu_used": h.cpu_used,
                        "ram_used": h.ram_used,
                        "usage_percentage": h.utilization * 100,
                    }
                    for h in self.ledger.list_hosts()
                },
                "allocations": self.ledger.allocations(),
                "pending": self.pending_vms,
            }

    def _warn_on_host_changes(self, hosts: Mapping[str, Host]) -> None:
        current = {h.id: (h.cpu_capacity, h.ram_capacity) for h in self.ledger.list_hosts()}
        incoming = {h.id: (h.cpu_capacity, h.ram_capacity) for h in hosts.values()}
        if incoming != current:
            logger.warning("Ignoring host changes after initialization; hosts are fixed for the process lifetime")
