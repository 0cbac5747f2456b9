"""
Warisin
User blueprint — own account and the public artisan directory.

Endpoints:
    PUT    /api/users/me          — update name, bio, location
    DELETE /api/users/me          — delete own account
    POST   /api/users/me/avatar   — upload profile image (multipart "file")
    GET    /api/artisans          — artisan directory (?search=)
    GET    /api/artisans/<id>     — public artisan profile with open programs
"""

import logging

from flask import Blueprint, jsonify, request

from warisin.blueprints import current_user, json_body
from warisin.middleware.session_auth import login_required, session_cookie_name
from warisin.models.user import ROLE_ARTISAN
from warisin.services import artisan_service, storage_service, user_service
from warisin.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

user_bp = Blueprint("user", __name__, url_prefix="/api")

SELF_EDITABLE_FIELDS = ("name", "bio", "location")


@user_bp.route("/users/me", methods=["PUT"])
@login_required
def update_me():
    data = json_body()
    user = user_service.update_user(
        current_user(), {k: data[k] for k in SELF_EDITABLE_FIELDS if k in data},
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"user": user_service.serialize_user(user)})


@user_bp.route("/users/me", methods=["DELETE"])
@login_required
def delete_me():
    user = current_user()
    user_id = user.id
    avatar = user.profile_image_url
    user_service.delete_user(user)
    err = db_commit_or_error()
    if err:
        return err

    # Only locally stored avatars live under our prefix
    prefix = f"/uploads/{storage_service.user_profile_prefix(user_id)}/"
    if avatar and avatar.startswith(prefix):
        storage_service.delete_file(avatar[len("/uploads/"):])

    response = jsonify({"success": True})
    response.delete_cookie(session_cookie_name(), path="/")
    return response


@user_bp.route("/users/me/avatar", methods=["POST"])
@login_required
def upload_avatar():
    user = current_user()
    result = storage_service.upload_file(
        request.files.get("file"), "image",
        storage_service.user_profile_prefix(user.id), name="profile",
    )
    user_service.update_user(user, {"profile_image_url": result["url"]})
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"url": result["url"], "user": user_service.serialize_user(user)})


@user_bp.route("/artisans", methods=["GET"])
def list_artisans():
    search = request.args.get("search")
    if search:
        artisans = user_service.search_users(search, role=ROLE_ARTISAN)
    else:
        artisans = user_service.list_artisans()
    items = [a.to_dict(include_profile=True) for a in artisans]
    return jsonify({"items": items, "total": len(items)})


@user_bp.route("/artisans/<artisan_id>", methods=["GET"])
def get_artisan(artisan_id):
    return jsonify(artisan_service.public_profile(artisan_id))
