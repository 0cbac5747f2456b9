"""
Warisin
Application blueprint — apply, review and withdraw.

Endpoints:
    POST /api/apply                        — create application (JSON)               (APPLICANT)
    POST /api/application/apply            — create application with CV (multipart)  (APPLICANT)
    POST /api/application/approve          — {id}                                    (ARTISAN)
    POST /api/application/reject           — {id, reason?}                           (ARTISAN)
    POST /api/application/complete         — {id}                                    (ARTISAN)
    POST /api/application/<id>/withdraw    — withdraw own pending application        (APPLICANT)
    GET  /api/application/<id>             — applicant owner or program owner
    PUT  /api/application/<id>             — edit own pending application            (APPLICANT)
"""

import logging

from flask import Blueprint, jsonify, request

from warisin.blueprints import current_user, json_body
from warisin.core.exceptions import NotFoundError, ValidationError
from warisin.middleware.session_auth import login_required, role_required
from warisin.models.user import ROLE_APPLICANT, ROLE_ARTISAN
from warisin.services import application_service, storage_service
from warisin.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

application_bp = Blueprint("application", __name__, url_prefix="/api")


def _program_id(data):
    program_id = data.get("program_id") or data.get("programId")
    if not program_id:
        raise ValidationError("program_id is required", details={"program_id": "required"})
    return program_id


def _application_id(data):
    application_id = data.get("id")
    if not application_id:
        raise ValidationError("id is required", details={"id": "required"})
    return application_id


# ═══════════════════════════════════════════════════════════════════════════
#  APPLY
# ═══════════════════════════════════════════════════════════════════════════

@application_bp.route("/apply", methods=["POST"])
@role_required(ROLE_APPLICANT)
def apply():
    data = json_body()
    application = application_service.create_application(
        current_user().id,
        _program_id(data),
        data.get("message"),
        motivation=data.get("motivation"),
        cv_url=data.get("cv_url"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(application.to_dict(include_program=True)), 201


@application_bp.route("/application/apply", methods=["POST"])
@role_required(ROLE_APPLICANT)
def apply_with_cv():
    form = request.form
    cv = request.files.get("cv") or request.files.get("file")
    if cv is None:
        raise ValidationError("CV file is required", details={"cv": "required"})

    application = application_service.create_application(
        current_user().id,
        _program_id(form),
        form.get("message"),
        motivation=form.get("motivation"),
    )
    stored = storage_service.upload_file(
        cv, "document", storage_service.application_prefix(application.id), name="cv",
    )
    application.cv_url = stored["url"]
    application.cv_path = stored["path"]

    err = db_commit_or_error()
    if err:
        storage_service.delete_file(stored["path"])
        return err
    return jsonify(application.to_dict(include_program=True)), 201


# ═══════════════════════════════════════════════════════════════════════════
#  REVIEW (program owner)
# ═══════════════════════════════════════════════════════════════════════════

@application_bp.route("/application/approve", methods=["POST"])
@role_required(ROLE_ARTISAN)
def approve():
    data = json_body()
    application = application_service.approve_application(
        _application_id(data), actor_id=current_user().id,
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(application.to_dict(include_applicant=True))


@application_bp.route("/application/reject", methods=["POST"])
@role_required(ROLE_ARTISAN)
def reject():
    data = json_body()
    application = application_service.reject_application(
        _application_id(data), actor_id=current_user().id, reason=data.get("reason"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(application.to_dict(include_applicant=True))


@application_bp.route("/application/complete", methods=["POST"])
@role_required(ROLE_ARTISAN)
def complete():
    data = json_body()
    application = application_service.complete_application(
        _application_id(data), actor_id=current_user().id,
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(application.to_dict(include_applicant=True))


# ═══════════════════════════════════════════════════════════════════════════
#  OWN APPLICATION
# ═══════════════════════════════════════════════════════════════════════════

@application_bp.route("/application/<application_id>/withdraw", methods=["POST"])
@role_required(ROLE_APPLICANT)
def withdraw(application_id):
    cv_path = application_service.withdraw_application(current_user().id, application_id)
    err = db_commit_or_error()
    if err:
        return err
    storage_service.delete_file(cv_path)
    return jsonify({"success": True, "withdrawn": application_id})


@application_bp.route("/application/<application_id>", methods=["GET"])
@login_required
def get_application(application_id):
    user = current_user()
    application = application_service.get_application(application_id)
    if user.id not in (application.applicant_id, application.program.artisan_id):
        raise NotFoundError("Application", application_id)
    return jsonify(application.to_dict(include_program=True, include_applicant=True))


@application_bp.route("/application/<application_id>", methods=["PUT"])
@role_required(ROLE_APPLICANT)
def update_application(application_id):
    application = application_service.get_application(application_id)
    if application.applicant_id != current_user().id:
        raise NotFoundError("Application", application_id)
    application_service.update_application(application, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(application.to_dict(include_program=True))
