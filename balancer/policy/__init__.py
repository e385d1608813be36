"""Placement strategies and the rebalance planner."""

from balancer.policy.base import Planner, PlacementPolicy
from balancer.policy.placement import BoundedBestFitPolicy, ConsolidatingPolicy, select_policy
from balancer.policy.rebalance import RebalancePlanner

__all__ = [
    "Planner",
    "PlacementPolicy",
    "BoundedBestFitPolicy",
    "ConsolidatingPolicy",
    "RebalancePlanner",
    "select_policy",
]
