"""
Per-request id and duration.

Every response carries ``X-Request-ID`` (the caller's, or a fresh one) and
``X-Request-Duration-Ms``. Requests slower than SLOW_REQUEST_MS and all 5xx
responses are logged with method, path, status and the session user.
Probes and blob downloads are left out of the log.
"""

import logging
import time
import uuid

from flask import g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000
UNLOGGED_PREFIXES = ("/api/health/", "/uploads/")


def _incoming_request_id():
    supplied = (request.headers.get("X-Request-ID") or "").strip()
    # Cap length so a client cannot stuff the log line
    return supplied[:64] if supplied else uuid.uuid4().hex[:16]


def init_request_timing(app):
    @app.before_request
    def _stamp_request():
        g.request_id = _incoming_request_id()
        g.request_started = time.perf_counter()

    @app.after_request
    def _report_duration(response):
        started = g.get("request_started")
        if started is None:
            return response

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = str(elapsed_ms)

        if request.path.startswith(UNLOGGED_PREFIXES):
            return response

        fields = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "remote_addr": request.remote_addr,
        }
        if response.status_code >= 500:
            logger.error("%s %s failed with %d", request.method, request.path,
                         response.status_code, extra=fields)
        elif elapsed_ms > SLOW_REQUEST_MS:
            logger.warning("%s %s took %.0fms", request.method, request.path,
                           elapsed_ms, extra=fields)
        else:
            logger.debug("%s %s %d", request.method, request.path,
                         response.status_code, extra=fields)
        return response
