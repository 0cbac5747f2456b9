"""
Warisin
Admin blueprint — platform statistics for operators.

All endpoints require an operator API key (X-API-Key).

Endpoints:
    GET /api/admin/stats                 — users, applications, funnel, category success
                                           (?period=week|month|year for the funnel)
    GET /api/admin/users                 — user directory (?search=&role=)
    GET /api/admin/applications          — all applications (?status=)
"""

import logging

from flask import Blueprint, jsonify, request

from warisin.auth import require_api_key
from warisin.models.user import ROLE_APPLICANT
from warisin.services import application_service, user_service

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/stats", methods=["GET"])
@require_api_key("viewer")
def platform_stats():
    period = request.args.get("period", "month")
    return jsonify({
        "users": user_service.get_user_stats(),
        "applications": application_service.get_application_stats(),
        "funnel": application_service.get_application_funnel(period),
        "success_by_category": application_service.get_success_rate_by_category(),
    })


@admin_bp.route("/users", methods=["GET"])
@require_api_key("viewer")
def list_users():
    search = request.args.get("search")
    role = (request.args.get("role") or "").upper()
    if role == ROLE_APPLICANT and not search:
        users = user_service.list_applicants()
    else:
        users = user_service.search_users(search, role=role or None)
    items = [u.to_dict() for u in users]
    return jsonify({"items": items, "total": len(items)})


@admin_bp.route("/applications", methods=["GET"])
@require_api_key("viewer")
def list_applications():
    status = request.args.get("status")
    if status:
        applications = application_service.list_by_status(status)
    else:
        applications = application_service.list_applications()
    items = [a.to_dict(include_program=True, include_applicant=True) for a in applications]
    return jsonify({"items": items, "total": len(items)})
