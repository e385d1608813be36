from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


# ----------------------------- data classes -----------------------------

@dataclass
class Host:
    """A physical host with fixed capacity and mutable usage counters.

    Usage is only changed through :class:`balancer.ledger.CapacityLedger`.
    """
    id: str
    cpu_capacity: int
    ram_capacity: int
    cpu_used: int = 0
    ram_used: int = 0

    @property
    def utilization(self) -> float:
        return (self.cpu_used / self.cpu_capacity + self.ram_used / self.ram_capacity) / 2

    @property
    def free_cpu(self) -> int:
        return self.cpu_capacity - self.cpu_used

    @property
    def free_ram(self) -> int:
        return self.ram_capacity - self.ram_used


@dataclass(frozen=True)
class VirtualMachine:
    id: str
    cpu_request: int
    ram_request: int


@dataclass(frozen=True)
class Migration:
    vm: str
    source: str
    target: str


@dataclass
class HostUtilization:
    usage_percentage: float
    score: float


@dataclass
class RoundInput:
    """Validated round payload.

    ``desired`` is the full desired VM set when ``is_diff`` is false. For a
    diff round, ``added`` carries the VMs to add (with their requests) and
    ``removed`` the ids to drop.
    """
    hosts: Optional[Dict[str, Host]] = None
    desired: Dict[str, VirtualMachine] = field(default_factory=dict)
    is_diff: bool = False
    added: Dict[str, VirtualMachine] = field(default_factory=dict)
    removed: List[str] = field(default_factory=list)


@dataclass
class RoundReport:
    round: int
    allocations: Dict[str, List[str]]
    allocation_failures: List[str]
    migrations: List[Migration]
    host_utilizations: Dict[str, HostUtilization]
    underutilized_hosts: List[str]


@dataclass
class RebalanceResult:
    migrations: List[Migration] = field(default_factory=list)
    placed: Dict[str, str] = field(default_factory=dict)  # vm -> host
    failures: List[str] = field(default_factory=list)
