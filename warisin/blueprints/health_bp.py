"""
Health probes.

    GET /api/health/ready   process is up (load balancer)
    GET /api/health/live    dependency report: database, redis, blob storage

Only the database decides the overall verdict; Redis just backs the
rate limiter and storage is reported for information.
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from warisin.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/health")


def _elapsed_ms(started):
    return round((time.perf_counter() - started) * 1000, 1)


def _probe_database():
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except Exception as exc:
        logger.error("Health probe: database unreachable: %s", exc)
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "latency_ms": _elapsed_ms(started)}


def _probe_redis(url):
    if not url.startswith("redis"):
        return {"status": "skipped", "detail": "no REDIS_URL configured"}
    try:
        import redis
    except ImportError:
        return {"status": "skipped", "detail": "redis package not installed"}

    started = time.perf_counter()
    try:
        redis.from_url(url, socket_timeout=2).ping()
    except Exception as exc:
        logger.warning("Health probe: redis ping failed: %s", exc)
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "latency_ms": _elapsed_ms(started)}


def _describe_storage(config):
    backend = config.get("STORAGE_BACKEND", "local")
    if backend == "s3":
        return {"backend": "s3", "bucket": config.get("S3_BUCKET")}
    return {"backend": backend, "folder": config.get("UPLOAD_FOLDER")}


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    config = current_app.config
    checks = {
        "database": _probe_database(),
        "redis": _probe_redis(config.get("REDIS_URL") or ""),
        "storage": _describe_storage(config),
    }
    healthy = checks["database"]["status"] == "ok"
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "environment": config.get("APP_ENV"),
        "checks": checks,
    }), (200 if healthy else 503)
