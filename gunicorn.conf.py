# Gunicorn configuration for the Teleconsult API
import os
import sys

# Add src directory to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.join(current_dir, "src"))

bind = f"0.0.0.0:{os.environ.get('PORT', 8000)}"
wsgi_app = "teleconsult.app:app"
worker_class = "uvicorn.workers.UvicornWorker"
workers = int(os.environ.get("WEB_CONCURRENCY", 1))
timeout = 30
graceful_timeout = 30
keepalive = 5

# Recycle workers periodically
max_requests = 1000
max_requests_jitter = 50

accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
proc_name = "teleconsult-backend"

# The lifespan opens the database client and notification session per
# worker, so the app must not be imported before fork.
preload_app = False


def on_starting(server):
    backend = os.environ.get("DATABASE_BACKEND", "memory").lower()
    if workers > 1 and backend != "mongo":
        server.log.warning(
            "%d workers with the %s backend: each worker keeps its own doctor "
            "availability and requests. Set DATABASE_BACKEND=mongo to share them.",
            workers,
            backend,
        )
    if os.environ.get("AVAILABILITY_SWEEPER_ENABLED", "").lower() in ("1", "true", "yes") and workers > 1:
        server.log.info("Stale availability sweeper runs in every worker; consider sweeper_startup.py instead")
