"""
Warisin
Heritage category blueprint — taxonomy reads and operator management.

Endpoints:
    GET    /api/category               — all categories (?withStats=true adds counts)
    GET    /api/category/stats         — every category with counts and popularity
    GET    /api/category/trending      — by applications in the last 30 days (?limit=)
    GET    /api/category/<id>/stats    — one category's statistics
    POST   /api/category               — {name}             (API key, admin)
    PUT    /api/category/<id>          — {name}             (API key, admin)
    DELETE /api/category/<id>          — blocked while programs use it (API key, admin)
"""

import logging

from flask import Blueprint, jsonify, request

from warisin.auth import require_api_key
from warisin.blueprints import json_body, parse_limit
from warisin.services import category_service
from warisin.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

category_bp = Blueprint("category", __name__, url_prefix="/api/category")


@category_bp.route("", methods=["GET"])
def list_categories():
    if request.args.get("withStats", "").lower() == "true":
        items = category_service.categories_with_stats()
    else:
        items = [c.to_dict() for c in category_service.list_categories()]
    return jsonify({"items": items, "total": len(items)})


@category_bp.route("/stats", methods=["GET"])
def all_category_stats():
    items = category_service.categories_with_stats()
    return jsonify({"items": items, "total": len(items)})


@category_bp.route("/trending", methods=["GET"])
def trending():
    items = category_service.trending_categories(limit=parse_limit(default=5, max_limit=20))
    return jsonify({"items": items, "total": len(items)})


@category_bp.route("/<category_id>/stats", methods=["GET"])
def category_stats(category_id):
    return jsonify(category_service.get_category_stats(category_id))


@category_bp.route("", methods=["POST"])
@require_api_key("admin")
def create_category():
    category = category_service.create_category(json_body().get("name"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(category.to_dict()), 201


@category_bp.route("/<category_id>", methods=["PUT"])
@require_api_key("admin")
def update_category(category_id):
    category = category_service.update_category(category_id, json_body().get("name"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(category.to_dict())


@category_bp.route("/<category_id>", methods=["DELETE"])
@require_api_key("admin")
def delete_category(category_id):
    category_service.delete_category(category_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True, "deleted": category_id})
