"""Gunicorn production configuration."""
import multiprocessing
import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = 30
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
chdir = "backend"
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")


def on_starting(server):
    if os.getenv("STORAGE_BACKEND", "sql") == "memory" and workers > 1:
        server.log.warning(
            "STORAGE_BACKEND=memory keeps state per worker; run with GUNICORN_WORKERS=1."
        )
