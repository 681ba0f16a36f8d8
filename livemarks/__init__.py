from flask import Flask

from livemarks.api import api_bp
from livemarks.auth import auth_bp
from livemarks.backend import EXTENSION_KEY, Backend, build_backend
from livemarks.config import Config
from livemarks.extensions import db, login_manager, migrate
from livemarks.web import web_bp


REQUIRED_OAUTH_SETTINGS = (
    "OAUTH_CLIENT_ID",
    "OAUTH_AUTHORIZE_URL",
    "OAUTH_TOKEN_URL",
    "OAUTH_USERINFO_URL",
)


def create_app(config_object=Config, backend: Backend | None = None):
    app = Flask(__name__, template_folder="../templates")
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    if backend is None and not app.config.get("TESTING"):
        missing = [key for key in REQUIRED_OAUTH_SETTINGS if not app.config.get(key)]
        if missing:
            raise RuntimeError(
                "Missing OAuth configuration. Please set " + ", ".join(missing) + "."
            )

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    app.extensions[EXTENSION_KEY] = backend or build_backend(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized LiveMarks database.")

    @app.context_processor
    def inject_globals():
        return {"app_name": "LiveMarks"}

    with app.app_context():
        db.create_all()

    return app
