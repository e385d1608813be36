"""Capacity ledger: per-host usage counters plus the VM -> host assignment."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from balancer.errors import InvariantViolation
from balancer.state import Host, VirtualMachine

logger = logging.getLogger(__name__)

# Float slack for band comparisons (projected utilization vs. thresholds)
EPSILON = 1e-9


class CapacityLedger:
    def __init__(self, hosts: Iterable[Host]) -> None:
        self._hosts: Dict[str, Host] = {}
        for host in hosts:
            if host.id in self._hosts:
                raise InvariantViolation(f"duplicate host id {host.id!r}")
            self._hosts[host.id] = host
        self._placements: Dict[str, str] = {}           # vm id -> host id
        self._vms: Dict[str, VirtualMachine] = {}       # vm id -> request

    # -------- hosts --------

    def get_host(self, host_id: str) -> Host:
        try:
            return self._hosts[host_id]
        except KeyError:
            raise InvariantViolation(f"unknown host {host_id!r}") from None

    def host_ids(self) -> List[str]:
        return sorted(self._hosts)

    def list_hosts(self) -> List[Host]:
        return [self._hosts[h] for h in self.host_ids()]

    def utilization(self, host_id: str) -> float:
        return self.get_host(host_id).utilization

    def ranked_hosts(self, exclude: Iterable[str] = (), descending: bool = False) -> List[Host]:
        """Hosts ordered by current utilization, ties broken by host id."""
        skip = set(exclude)
        hosts = [h for h in self._hosts.values() if h.id not in skip]
        if descending:
            return sorted(hosts, key=lambda h: (-h.utilization, h.id))
        return sorted(hosts, key=lambda h: (h.utilization, h.id))

    # -------- predicates --------

    def can_host(self, host_id: str, vm: VirtualMachine) -> bool:
        host = self.get_host(host_id)
        return (
            host.cpu_used + vm.cpu_request <= host.cpu_capacity
            and host.ram_used + vm.ram_request <= host.ram_capacity
        )

    def share(self, host_id: str, vm: VirtualMachine) -> float:
        """Utilization the VM contributes (or would contribute) on a host."""
        host = self.get_host(host_id)
        return (vm.cpu_request / host.cpu_capacity + vm.ram_request / host.ram_capacity) / 2

    def projected_utilization(self, host_id: str, vm: VirtualMachine) -> float:
        return self.utilization(host_id) + self.share(host_id, vm)

    def fits_after_release(self, host_id: str, vm: VirtualMachine, released: VirtualMachine) -> bool:
        """Would ``vm`` fit on the host once ``released`` (assigned there) leaves?"""
        host = self.get_host(host_id)
        return (
            host.cpu_used - released.cpu_request + vm.cpu_request <= host.cpu_capacity
            and host.ram_used - released.ram_request + vm.ram_request <= host.ram_capacity
        )

    # -------- mutations --------

    def allocate(self, host_id: str, vm: VirtualMachine) -> None:
        if vm.id in self._placements:
            raise InvariantViolation(
                f"vm {vm.id!r} already assigned to {self._placements[vm.id]!r}"
            )
        if not self.can_host(host_id, vm):
            raise InvariantViolation(f"host {host_id!r} has no room for vm {vm.id!r}")
        host = self._hosts[host_id]
        host.cpu_used += vm.cpu_request
        host.ram_used += vm.ram_request
        self._placements[vm.id] = host_id
        self._vms[vm.id] = vm

    def deallocate(self, host_id: str, vm: VirtualMachine) -> None:
        current = self._placements.get(vm.id)
        if current != host_id:
            raise InvariantViolation(
                f"vm {vm.id!r} is not assigned to {host_id!r} (assigned: {current!r})"
            )
        host = self._hosts[host_id]
        cpu_used = host.cpu_used - vm.cpu_request
        ram_used = host.ram_used - vm.ram_request
        if cpu_used < 0 or ram_used < 0:
            raise InvariantViolation(
                f"releasing vm {vm.id!r} drives host {host_id!r} usage negative "
                f"(cpu={cpu_used}, ram={ram_used})"
            )
        host.cpu_used = cpu_used
        host.ram_used = ram_used
        del self._placements[vm.id]
        del self._vms[vm.id]

    def move(self, vm: VirtualMachine, source: str, target: str) -> None:
        if source == target:
            raise InvariantViolation(f"vm {vm.id!r} migration source equals target {source!r}")
        if not self.can_host(target, vm):
            raise InvariantViolation(f"host {target!r} has no room for migrating vm {vm.id!r}")
        self.deallocate(source, vm)
        self.allocate(target, vm)

    # -------- assignment views --------

    def host_of(self, vm_id: str) -> Optional[str]:
        return self._placements.get(vm_id)

    def get_vm(self, vm_id: str) -> Optional[VirtualMachine]:
        return self._vms.get(vm_id)

    def vms_on(self, host_id: str) -> List[VirtualMachine]:
        return sorted(
            (self._vms[v] for v, h in self._placements.items() if h == host_id),
            key=lambda vm: vm.id,
        )

    def assignments(self) -> Dict[str, str]:
        return dict(self._placements)

    def allocations(self) -> Dict[str, List[str]]:
        """Every host id mapped to its sorted VM ids (empty hosts included)."""
        result: Dict[str, List[str]] = {h: [] for h in self.host_ids()}
        for vm_id, host_id in self._placements.items():
            result[host_id].append(vm_id)
        for vms in result.values():
            vms.sort()
        return result
