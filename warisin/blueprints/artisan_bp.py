"""
Warisin
Artisan blueprint — the artisan's own profile, portfolio and dashboards.

All endpoints require an ARTISAN session.

Endpoints:
    GET, PUT /api/artisan/profile
    POST     /api/artisan/works                 — upload a work image (multipart "file")
    GET      /api/artisan/dashboard
    GET      /api/artisan/performance
    GET      /api/artisan/recommendations
    GET      /api/artisan/programs              — own programs with application stats
    GET      /api/artisan/applications          — applications to own programs (?status=)
    GET      /api/artisan/can-create-program
    GET      /api/artisan/category-suggestions
"""

import logging

from flask import Blueprint, jsonify, request

from warisin.blueprints import current_user, json_body
from warisin.middleware.session_auth import role_required
from warisin.models.user import ROLE_ARTISAN
from warisin.services import (
    application_service,
    artisan_service,
    category_service,
    storage_service,
    user_service,
)
from warisin.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

artisan_bp = Blueprint("artisan", __name__, url_prefix="/api/artisan")


@artisan_bp.before_request
@role_required(ROLE_ARTISAN)
def _require_artisan():
    return None


# ═══════════════════════════════════════════════════════════════════════════
#  PROFILE
# ═══════════════════════════════════════════════════════════════════════════

@artisan_bp.route("/profile", methods=["GET"])
def get_profile():
    user = current_user()
    profile = artisan_service.get_artisan_profile(user.id)
    return jsonify({
        "user": user_service.serialize_user(user),
        "profile": profile.to_dict() if profile else None,
    })


@artisan_bp.route("/profile", methods=["PUT"])
def update_profile():
    user = current_user()
    data = json_body()
    user_service.update_user(user, {k: data[k] for k in ("name", "bio", "location") if k in data})
    profile = artisan_service.upsert_artisan_profile(user, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"user": user_service.serialize_user(user), "profile": profile.to_dict()})


@artisan_bp.route("/works", methods=["POST"])
def upload_work():
    user = current_user()
    result = storage_service.upload_file(
        request.files.get("file"), "image", storage_service.artisan_works_prefix(user.id),
    )
    profile = artisan_service.add_work(user, result["url"])
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"url": result["url"], "works": list(profile.works or [])}), 201


# ═══════════════════════════════════════════════════════════════════════════
#  DASHBOARDS
# ═══════════════════════════════════════════════════════════════════════════

@artisan_bp.route("/dashboard", methods=["GET"])
def dashboard():
    return jsonify(artisan_service.get_artisan_dashboard(current_user().id))


@artisan_bp.route("/performance", methods=["GET"])
def performance():
    return jsonify(artisan_service.get_artisan_performance(current_user().id))


@artisan_bp.route("/recommendations", methods=["GET"])
def recommendations():
    return jsonify({
        "recommendations": artisan_service.get_artisan_recommendations(current_user().id),
    })


@artisan_bp.route("/programs", methods=["GET"])
def programs():
    items = artisan_service.list_programs_with_stats(current_user().id)
    return jsonify({"items": items, "total": len(items)})


@artisan_bp.route("/applications", methods=["GET"])
def applications():
    artisan_id = current_user().id
    apps = application_service.list_by_artisan(artisan_id, status=request.args.get("status"))
    items = [a.to_dict(include_program=True, include_applicant=True) for a in apps]
    return jsonify({
        "items": items,
        "total": len(items),
        "stats": application_service.get_artisan_application_stats(artisan_id),
    })


@artisan_bp.route("/can-create-program", methods=["GET"])
def can_create_program():
    user = current_user()
    result = user_service.can_create_program(user)
    result["profile_completion"] = user_service.calculate_profile_completion(user)
    return jsonify(result)


@artisan_bp.route("/category-suggestions", methods=["GET"])
def category_suggestions():
    return jsonify({
        "suggestions": category_service.suggest_categories_for_artisan(current_user().id),
    })
