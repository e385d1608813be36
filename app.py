from __future__ import annotations

import logging

from balancer.api import create_app
from balancer.config import load_config
from balancer.reconciler import Reconciler

logger = logging.getLogger(__name__)


def build_app():
	"""Build the Flask app around a fresh reconciler using $BALANCER_CONFIG."""
	config = load_config()
	logging.basicConfig(level=config.log_level.upper())
	reconciler = Reconciler(config)
	logger.info(
		f"Reconciler ready: band [{config.lower_threshold}, {config.upper_threshold}], "
		f"strategy={config.placement_strategy}"
	)
	return create_app(reconciler)


# Build app at module level (for gunicorn)
app = build_app()


if __name__ == "__main__":
	app.run(host="0.0.0.0", port=8080)
