"""
Gunicorn configuration for production deployment.

Rate-limiter state lives in each worker's memory, so limits are enforced
per worker. Keep WEB_CONCURRENCY at 1 unless per-worker limits are fine.
"""
import os

# Server Socket
bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"
backlog = 2048

# Worker Processes
workers = int(os.getenv('WEB_CONCURRENCY', '1'))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 0
timeout = 30
keepalive = 2

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.getenv('LOG_LEVEL', 'info')
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process Naming
proc_name = 'support-gate'

# Server Mechanics
daemon = False
pidfile = '/tmp/support-gate.pid'
user = None
group = None
tmp_upload_dir = None

wsgi_app = "support_gate.main:app"


def when_ready(server):
    """Called just after the server is started."""
    server.log.info(f"Server is ready. Spawning {workers} worker(s)")
    if workers > 1:
        server.log.warning("Rate limits are enforced per worker process")


def worker_int(worker):
    """Called just after a worker exited on SIGINT or SIGQUIT."""
    worker.log.info("Worker interrupted")


def worker_abort(worker):
    """Called when a worker received the SIGABRT signal."""
    worker.log.info("Worker aborted")
