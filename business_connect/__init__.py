from flask import Flask
from flask_cors import CORS

from .config import Config
from .errors import register_error_handlers
from .extensions import db
from .routes import register_routes


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    if isinstance(config_object, dict):
        app.config.from_mapping(config_object)
    elif config_object:
        app.config.from_object(config_object)
    else:
        app.config.from_envvar("APP_SETTINGS", silent=True)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)

    # Cookies carry the auth token, so the frontend origin must be explicit.
    CORS(app,
         origins=[app.config["CLIENT_URL"]],
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization", "If-Match"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    register_error_handlers(app)
    register_routes(app)

    return app
