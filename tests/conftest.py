import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from balancer.config import BalancerConfig
from balancer.ledger import CapacityLedger
from balancer.reconciler import Reconciler
from balancer.state import Host, VirtualMachine


DATA_DIR = Path(__file__).parent / "data"


def vm(vm_id: str, cpu: int, ram: int) -> VirtualMachine:
    return VirtualMachine(id=vm_id, cpu_request=cpu, ram_request=ram)


def host(host_id: str, cpu: int, ram: int) -> Host:
    return Host(id=host_id, cpu_capacity=cpu, ram_capacity=ram)


@pytest.fixture
def config():
    return BalancerConfig(verify_invariants=True)


@pytest.fixture
def two_hosts():
    return CapacityLedger([host("A", 10, 10), host("B", 10, 10)])


@pytest.fixture
def reconciler(config):
    return Reconciler(config)
