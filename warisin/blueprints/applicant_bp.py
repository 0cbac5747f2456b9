"""
Warisin
Applicant blueprint — onboarding, profile and applicant dashboards.

All endpoints require an APPLICANT session.

Endpoints:
    POST     /api/applicant/onboard          — {name, location, dob}
    GET, PUT /api/applicant/profile
    GET      /api/applicant/dashboard
    GET      /api/applicant/recommendations  — open programs not yet applied to
    GET      /api/applicant/applications
    GET      /api/applicant/insights
"""

import logging

from flask import Blueprint, jsonify

from warisin.blueprints import current_user, json_body, parse_limit
from warisin.middleware.session_auth import role_required
from warisin.models.user import ROLE_APPLICANT
from warisin.services import applicant_service, application_service, user_service
from warisin.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

applicant_bp = Blueprint("applicant", __name__, url_prefix="/api/applicant")


@applicant_bp.before_request
@role_required(ROLE_APPLICANT)
def _require_applicant():
    return None


@applicant_bp.route("/onboard", methods=["POST"])
def onboard():
    user = applicant_service.onboard_applicant(current_user(), json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"user": user_service.serialize_user(user)})


@applicant_bp.route("/profile", methods=["GET"])
def get_profile():
    user = current_user()
    profile = applicant_service.get_applicant_profile(user.id)
    return jsonify({
        "user": user_service.serialize_user(user),
        "profile": profile.to_dict() if profile else None,
        "can_apply": user_service.can_apply_to_programs(user),
        "completion": applicant_service.applicant_profile_completion(user),
    })


@applicant_bp.route("/profile", methods=["PUT"])
def update_profile():
    user = current_user()
    data = json_body()
    user_service.update_user(user, {k: data[k] for k in ("name", "bio", "location") if k in data})
    profile = applicant_service.upsert_applicant_profile(user, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"user": user_service.serialize_user(user), "profile": profile.to_dict()})


@applicant_bp.route("/dashboard", methods=["GET"])
def dashboard():
    return jsonify(applicant_service.get_applicant_dashboard(current_user().id))


@applicant_bp.route("/recommendations", methods=["GET"])
def recommendations():
    programs = applicant_service.get_recommended_programs(
        current_user().id, limit=parse_limit(default=5, max_limit=50),
    )
    return jsonify({"items": [p.to_dict() for p in programs], "total": len(programs)})


@applicant_bp.route("/applications", methods=["GET"])
def applications():
    applicant_id = current_user().id
    apps = applicant_service.list_applicant_applications(applicant_id)
    items = [a.to_dict(include_program=True) for a in apps]
    return jsonify({
        "items": items,
        "total": len(items),
        "stats": application_service.get_applicant_application_stats(applicant_id),
    })


@applicant_bp.route("/insights", methods=["GET"])
def insights():
    return jsonify(applicant_service.get_application_insights(current_user()))
