"""Utilization quality score reported per host."""

from __future__ import annotations

import math


def score(utilization: float) -> float:
	"""
	Map a host utilization fraction to its quality score.

	The curve grows with utilization and climbs steeply near saturation.
	Reporting only; planners never consult it.

	Args:
		utilization: Utilization fraction in [0, 1]

	Returns:
		Score value
	"""
	if utilization < 0.0 or utilization > 1.0:
		raise ValueError(f"Utilization must be between 0 and 1, got {utilization}")
	x = utilization
	return -0.67466 + (42.385 / (-2.5 * x + 5.96)) * math.exp(-2 * math.log(-2.5 * x + 2.96))
