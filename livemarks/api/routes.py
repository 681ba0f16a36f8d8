from __future__ import annotations

from flask import g, jsonify, request

from livemarks.api import api_bp
from livemarks.backend import RepositoryError, get_backend
from livemarks.services.bookmarks import (
    ERROR_AUTHORIZATION,
    ERROR_UPSTREAM,
    ActionResult,
    add_bookmark,
    delete_bookmark,
)
from livemarks.services.security import api_auth_required


_STATUS_BY_ERROR_KIND = {
    ERROR_AUTHORIZATION: 401,
    ERROR_UPSTREAM: 502,
}


def _result_response(result: ActionResult, success_status: int = 200):
    if result.ok:
        return jsonify(result.as_dict()), success_status
    return jsonify(result.as_dict()), _STATUS_BY_ERROR_KIND.get(result.kind, 400)


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    user = g.api_user
    try:
        items = get_backend().bookmarks.list_for_owner(user.id)
    except RepositoryError:
        return jsonify({"error": "Could not load bookmarks."}), 502
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid request body"}), 400
    result = add_bookmark(get_backend(), payload.get("title"), payload.get("url"))
    return _result_response(result, success_status=201)


@api_bp.route("/bookmarks/<bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: str):
    return _result_response(delete_bookmark(get_backend(), bookmark_id))
