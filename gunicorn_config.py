"""Gunicorn configuration for the balancer API."""
import sys

# Gunicorn config variables
bind = "0.0.0.0:8080"
# Placement state lives in process memory; a second worker would hold a
# second, diverging ledger.
workers = 1
threads = 4
timeout = 120
worker_class = "gthread"
preload_app = False

def post_worker_init(worker):
    """Called just after a worker has initialized the application."""
    try:
        app = worker.app.wsgi()
        reconciler = app.config.get('reconciler') if hasattr(app, 'config') else None
        if reconciler is not None:
            print(
                f"[Worker {worker.pid}] Reconciler attached (round {reconciler.round}, "
                f"initialized={reconciler.initialized})",
                file=sys.stderr,
                flush=True,
            )
        else:
            print(f"[Worker {worker.pid}] WARNING: No reconciler found in app.config", file=sys.stderr, flush=True)
    except Exception as e:
        print(f"[Worker {worker.pid}] ERROR in post_worker_init: {e}", file=sys.stderr, flush=True)
