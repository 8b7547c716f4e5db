"""Worker entrypoint for container platforms.

Runs both a health check server and a fixed-size Celery worker.
"""

import logging
import os
import subprocess
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

from reelforge.config import get_settings

logger = logging.getLogger(__name__)


class HealthHandler(BaseHTTPRequestHandler):
    """Simple health check handler."""

    def do_GET(self):
        if self.path == "/health" or self.path == "/":
            self.send_response(200)
            self.send_header("Content-type", "text/plain")
            self.end_headers()
            self.wfile.write(b"OK")
        else:
            self.send_response(404)
            self.end_headers()

    def log_message(self, format, *args):
        # Suppress access logs
        pass


def run_health_server():
    """Run the health check server."""
    port = int(os.environ.get("PORT", 8080))
    server = HTTPServer(("0.0.0.0", port), HealthHandler)
    logger.info("Health server running on port %d", port)
    server.serve_forever()


def build_worker_command() -> list[str]:
    settings = get_settings()
    return [
        "celery",
        "-A", "reelforge.celery_app",
        "worker",
        f"--loglevel={settings.log_level.lower()}",
        f"--concurrency={settings.worker_concurrency}",
        "--prefetch-multiplier=1",
    ]


def run_celery_worker() -> int:
    """Run the Celery worker."""
    return subprocess.run(build_worker_command()).returncode


def main() -> None:
    logging.basicConfig(level=get_settings().log_level.upper())

    # Start health server in background thread
    health_thread = threading.Thread(target=run_health_server, daemon=True)
    health_thread.start()

    # Run Celery worker in main thread
    raise SystemExit(run_celery_worker())


if __name__ == "__main__":
    main()
