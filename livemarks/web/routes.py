from __future__ import annotations

import json
import time

from flask import (
    Response,
    current_app,
    flash,
    g,
    redirect,
    render_template,
    request,
    stream_with_context,
    url_for,
)

from livemarks.backend import RepositoryError, get_backend
from livemarks.extensions import db
from livemarks.services.bookmarks import (
    add_bookmark,
    create_delete_token,
    delete_bookmark,
    verify_delete_token,
)
from livemarks.services.live_list import LiveBookmarkList
from livemarks.services.security import session_required
from livemarks.web import web_bp


def _sse(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"


@web_bp.route("/")
def index():
    return render_template("home.html", user=get_backend().sessions.get_user())


@web_bp.route("/bookmarks")
@session_required
def bookmarks():
    user = g.session_user
    try:
        items = get_backend().bookmarks.list_for_owner(user.id)
    except RepositoryError:
        current_app.logger.error("Failed to load bookmarks for %s", user.id)
        return (
            render_template(
                "bookmarks.html",
                user=user,
                items=[],
                load_error="Failed to load bookmarks. Please try again.",
            ),
            502,
        )
    return render_template("bookmarks.html", user=user, items=items, load_error=None)


@web_bp.route("/bookmarks", methods=["POST"])
@session_required
def bookmarks_add():
    result = add_bookmark(
        get_backend(), request.form.get("title"), request.form.get("url")
    )
    if result.ok:
        flash("Bookmark saved.", "success")
    else:
        flash(result.error, "error")
    return redirect(url_for("web.bookmarks"))


@web_bp.route("/bookmarks/<bookmark_id>/delete", methods=["POST"])
@session_required
def bookmarks_delete(bookmark_id: str):
    user = g.session_user
    try:
        bookmark = get_backend().bookmarks.get(bookmark_id, user.id)
    except RepositoryError:
        current_app.logger.error("Failed to load bookmark %s for %s", bookmark_id, user.id)
        flash("Could not delete bookmark.", "error")
        return redirect(url_for("web.bookmarks"))
    if not bookmark:
        return redirect(url_for("web.bookmarks"))

    token = create_delete_token(current_app.config["SECRET_KEY"], user.id, bookmark.id)
    return render_template(
        "confirm_delete.html", user=user, bookmark=bookmark, token=token
    )


@web_bp.route("/bookmarks/delete/confirm", methods=["POST"])
@session_required
def bookmarks_delete_confirm():
    user = g.session_user
    bookmark_id = verify_delete_token(
        current_app.config["SECRET_KEY"],
        request.form.get("token"),
        max_age=current_app.config["DELETE_CONFIRM_TTL_SECONDS"],
        owner_id=user.id,
    )
    if not bookmark_id:
        flash("Delete confirmation expired. Please try again.", "error")
        return redirect(url_for("web.bookmarks"))

    result = delete_bookmark(get_backend(), bookmark_id)
    if result.ok:
        flash("Bookmark deleted.", "success")
    else:
        flash(result.error, "error")
    return redirect(url_for("web.bookmarks"))


@web_bp.route("/bookmarks/stream")
@session_required
def bookmarks_stream():
    backend = get_backend()
    user = g.session_user
    poll_interval = current_app.config["STREAM_POLL_INTERVAL"]
    max_polls = current_app.config["STREAM_MAX_POLLS"]

    try:
        since = backend.bookmarks.latest_cursor(user.id)
        snapshot = [item.as_dict() for item in backend.bookmarks.list_for_owner(user.id)]
    except RepositoryError:
        return Response(
            _sse("error", {"error": "Failed to load bookmarks."}),
            status=502,
            mimetype="text/event-stream",
        )

    live = LiveBookmarkList(backend.feed)
    live.attach(user.id, snapshot, since=since)

    def generate():
        last_sent = None
        polls = 0
        try:
            while True:
                current = live.as_dict()
                if current != last_sent:
                    yield _sse("state", current)
                    last_sent = current
                if max_polls and polls >= max_polls:
                    break
                try:
                    live.poll()
                except RepositoryError:
                    current_app.logger.error("Live feed poll failed for %s", user.id)
                    yield _sse("error", {"error": "Live updates stopped. Reload to retry."})
                    break
                polls += 1
                db.session.close()
                if poll_interval:
                    time.sleep(poll_interval)
        finally:
            live.detach()

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
