"""
Warisin
Program blueprint — browsing, artisan-owned program CRUD and media.

Endpoints:
    GET    /api/programs                        — open programs
                                                  (?search=&categoryId=&location=&artisanId=&limit=)
    GET    /api/programs/<id>                   — program detail
    POST   /api/program/gallery                 — create program             (ARTISAN)
    PUT    /api/programs/<id>                   — update own program         (ARTISAN)
    DELETE /api/programs/<id>                   — delete own program         (ARTISAN)
    POST   /api/programs/<id>/toggle            — open / close own program   (ARTISAN)
    POST   /api/programs/<id>/media             — upload gallery media       (ARTISAN)
    POST   /api/program/image                   — upload program image       (ARTISAN)
    GET    /api/programs/<id>/applications      — applications to own program (ARTISAN)
    GET    /api/programs/<id>/stats             — application stats           (ARTISAN)
    GET    /api/programs/<id>/can-apply         — eligibility                 (APPLICANT)
"""

import logging

from flask import Blueprint, jsonify, request

from warisin.blueprints import current_user, json_body, parse_limit
from warisin.middleware.session_auth import role_required
from warisin.models.user import ROLE_APPLICANT, ROLE_ARTISAN
from warisin.services import application_service, program_service, storage_service, user_service
from warisin.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

program_bp = Blueprint("program", __name__, url_prefix="/api")


# ═══════════════════════════════════════════════════════════════════════════
#  BROWSE
# ═══════════════════════════════════════════════════════════════════════════

@program_bp.route("/programs", methods=["GET"])
def list_programs():
    programs = program_service.list_open_programs(
        search=request.args.get("search"),
        category_id=request.args.get("categoryId"),
        location=request.args.get("location"),
        artisan_id=request.args.get("artisanId"),
        limit=parse_limit(),
    )
    return jsonify({"items": [p.to_dict() for p in programs], "total": len(programs)})


@program_bp.route("/programs/<program_id>", methods=["GET"])
def get_program(program_id):
    program = program_service.get_program(program_id)
    d = program.to_dict(include_counts=True)
    d["phase"] = program_service.program_phase(program)
    d["artisan"] = user_service.serialize_user(program.artisan) if program.artisan else None
    return jsonify(d)


# ═══════════════════════════════════════════════════════════════════════════
#  ARTISAN-OWNED MUTATIONS
# ═══════════════════════════════════════════════════════════════════════════

@program_bp.route("/program/gallery", methods=["POST"])
@role_required(ROLE_ARTISAN)
def create_program():
    program = program_service.create_program(current_user(), json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(program.to_dict()), 201


@program_bp.route("/programs/<program_id>", methods=["PUT"])
@role_required(ROLE_ARTISAN)
def update_program(program_id):
    program = program_service.update_program(current_user(), program_id, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(program.to_dict())


@program_bp.route("/programs/<program_id>", methods=["DELETE"])
@role_required(ROLE_ARTISAN)
def delete_program(program_id):
    program_service.delete_program(current_user(), program_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True, "deleted": program_id})


@program_bp.route("/programs/<program_id>/toggle", methods=["POST"])
@role_required(ROLE_ARTISAN)
def toggle_program(program_id):
    data = json_body()
    if "is_open" in data:
        program = program_service.set_program_open(current_user(), program_id, data["is_open"])
    else:
        program = program_service.toggle_program(current_user(), program_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"id": program.id, "is_open": program.is_open})


@program_bp.route("/programs/<program_id>/media", methods=["POST"])
@role_required(ROLE_ARTISAN)
def upload_program_media(program_id):
    artisan = current_user()
    program_service.get_owned_program(artisan.id, program_id)
    result = storage_service.upload_file(
        request.files.get("file"), "media", storage_service.program_gallery_prefix(program_id),
    )
    thumbnail_url = None
    thumbnail = request.files.get("thumbnail")
    if thumbnail is not None:
        thumbnail_url = storage_service.upload_file(
            thumbnail, "image", storage_service.program_gallery_prefix(program_id),
        )["url"]
    program = program_service.add_gallery_item(artisan, program_id, result["url"], thumbnail_url)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({
        "url": result["url"],
        "thumbnail_url": thumbnail_url or result["url"],
        "gallery_urls": program.gallery_urls,
    }), 201


@program_bp.route("/program/image", methods=["POST"])
@role_required(ROLE_ARTISAN)
def upload_program_image():
    """Upload a cover image; attached to ?programId= when given, else returned for a later create."""
    artisan = current_user()
    program_id = request.form.get("programId") or request.args.get("programId")
    if program_id:
        program_service.get_owned_program(artisan.id, program_id)
        prefix = storage_service.program_prefix(program_id)
    else:
        prefix = f"{storage_service.artisan_works_prefix(artisan.id)}/programs"

    result = storage_service.upload_file(request.files.get("file"), "image", prefix)
    if program_id:
        program_service.update_program(artisan, program_id, {"program_image_url": result["url"]})
        err = db_commit_or_error()
        if err:
            return err
    return jsonify(result), 201


# ═══════════════════════════════════════════════════════════════════════════
#  APPLICATIONS PER PROGRAM
# ═══════════════════════════════════════════════════════════════════════════

@program_bp.route("/programs/<program_id>/applications", methods=["GET"])
@role_required(ROLE_ARTISAN)
def list_program_applications(program_id):
    program = program_service.get_owned_program(current_user().id, program_id)
    apps = application_service.list_by_program(program.id)
    items = [a.to_dict(include_applicant=True) for a in apps]
    return jsonify({
        "items": items,
        "total": len(items),
        "status_distribution": application_service.status_distribution(apps),
    })


@program_bp.route("/programs/<program_id>/stats", methods=["GET"])
@role_required(ROLE_ARTISAN)
def program_stats(program_id):
    program_service.get_owned_program(current_user().id, program_id)
    return jsonify(application_service.get_program_application_stats(program_id))


@program_bp.route("/programs/<program_id>/can-apply", methods=["GET"])
@role_required(ROLE_APPLICANT)
def can_apply(program_id):
    return jsonify(application_service.check_eligibility(current_user().id, program_id))
