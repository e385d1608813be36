from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify, request

from balancer.errors import ValidationError
from balancer.reconciler import Reconciler

logger = logging.getLogger(__name__)


def create_app(reconciler: Reconciler) -> Flask:
	app = Flask(__name__)
	# Store the reconciler in app config so it's accessible in all endpoints
	app.config['reconciler'] = reconciler

	@app.post("/round")
	def run_round() -> Any:
		engine: Reconciler = app.config['reconciler']
		body = request.get_json(force=True, silent=True)
		if body is None:
			return jsonify({"error": "request body must be JSON"}), 400
		try:
			report = engine.process(body)
		except ValidationError as e:
			logger.warning(f"Rejected round: {e}")
			return jsonify({"error": str(e)}), 400
		return jsonify(report)

	@app.get("/snapshot")
	def snapshot() -> Any:
		engine: Reconciler = app.config['reconciler']
		return jsonify(engine.snapshot())

	@app.get("/config")
	def config() -> Any:
		engine: Reconciler = app.config['reconciler']
		return jsonify(engine.config.to_dict())

	@app.get("/healthz")
	def healthz() -> Any:
		engine: Reconciler = app.config['reconciler']
		return jsonify({
			"status": "ok",
			"initialized": engine.initialized,
			"round": engine.round,
		})

	return app
