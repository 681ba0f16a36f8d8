from flask import current_app, redirect, render_template, request, url_for

from livemarks.auth import auth_bp
from livemarks.backend import get_backend
from livemarks.services.callback import handle_auth_callback
from livemarks.services.common import safe_next_path


def _callback_uri(raw_next: str | None) -> str:
    if raw_next is None:
        return url_for("auth.callback", _external=True)
    return url_for("auth.callback", next=raw_next, _external=True)


@auth_bp.route("/login")
def login():
    default_next = current_app.config["DEFAULT_NEXT_PATH"]
    if get_backend().sessions.get_user():
        return redirect(safe_next_path(request.args.get("next"), default_next))

    return render_template(
        "login.html",
        error=request.args.get("error"),
        next_path=safe_next_path(request.args.get("next"), default_next),
    )


@auth_bp.route("/auth/signin")
def signin():
    next_path = safe_next_path(
        request.args.get("next"), current_app.config["DEFAULT_NEXT_PATH"]
    )
    redirect_uri = _callback_uri(next_path)
    current_app.logger.info("Starting OAuth sign-in, callback %s", redirect_uri)
    return redirect(get_backend().sessions.authorization_url(redirect_uri))


@auth_bp.route("/auth/callback")
def callback():
    location = handle_auth_callback(
        get_backend(),
        request.args,
        login_path=current_app.config["LOGIN_PATH"],
        default_next=current_app.config["DEFAULT_NEXT_PATH"],
        redirect_uri=_callback_uri(request.args.get("next")),
    )
    return redirect(location)


@auth_bp.route("/auth/signout", methods=["POST"])
def signout():
    get_backend().sessions.sign_out()
    return redirect(url_for("web.index"))
