from __future__ import annotations

import logging
from typing import Optional

from balancer.config import BalancerConfig
from balancer.ledger import CapacityLedger
from balancer.policy.base import PlacementPolicy
from balancer.state import VirtualMachine

logger = logging.getLogger(__name__)


class BoundedBestFitPolicy(PlacementPolicy):
    """Least-utilized host that can take the VM without crossing the ceiling."""

    descending = False

    def place(self, vm: VirtualMachine) -> Optional[str]:
        host_id = self.select_host(vm, descending=self.descending)
        if host_id is None:
            logger.debug(f"No host can take vm {vm.id} within the band ceiling")
            return None
        self.ledger.allocate(host_id, vm)
        logger.debug(
            f"Placed vm {vm.id} on {host_id} "
            f"(utilization now {self.ledger.utilization(host_id):.3f})"
        )
        return host_id


class ConsolidatingPolicy(BoundedBestFitPolicy):
    """Most-utilized host first, packing hosts up to the ceiling."""

    descending = True


def select_policy(ledger: CapacityLedger, config: BalancerConfig) -> PlacementPolicy:
    name = (config.placement_strategy or "best_fit").lower()
    if name == "consolidate":
        return ConsolidatingPolicy(ledger, config)
    return BoundedBestFitPolicy(ledger, config)
