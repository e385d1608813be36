"""Exception hierarchy for the balancer engine."""

from __future__ import annotations


class BalancerError(Exception):
    """Base class for all balancer errors."""


class ValidationError(BalancerError, ValueError):
    """Malformed round payload or configuration.

    Raised before any state is touched, so the caller can skip the round and
    keep the previous placement state.
    """


class InvariantViolation(BalancerError, RuntimeError):
    """Ledger bookkeeping went wrong (over-release, double assignment, ...)."""
