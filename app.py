import logging
import os

import click
from flask import Flask, jsonify
from flask_login import LoginManager

from config import DB_FOLDER, Config
from controllers.errors import register_error_handlers
from controllers.routes import IdConverter, bp, bearer_token, tokens
from models.models import db
from services.seeder import seed_database

logger = logging.getLogger(__name__)


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"], format="%(asctime)s %(levelname)s:%(message)s"
    )
    os.makedirs(DB_FOLDER, exist_ok=True)
    app.json.sort_keys = False

    db.init_app(app)
    # must precede the blueprint, its rules use <id:...>
    app.url_map.converters["id"] = IdConverter
    app.register_blueprint(bp)
    register_error_handlers(app)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_user_from_token(request):
        token = bearer_token(request)
        if token is None:
            return None
        return tokens.find_user(token)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"message": "Unauthenticated."}), 401

    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database initialised.")

    @app.cli.command("seed")
    def seed():
        """Load the demo users, parkings, spots, vehicles and subscriptions."""
        db.create_all()
        if seed_database():
            click.echo("Demo data loaded.")
        else:
            click.echo("Demo data already present.")

    with app.app_context():
        db.create_all()

    logger.info(f"App created with database {app.config['SQLALCHEMY_DATABASE_URI']}")
    return app


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        seed_database()
    app.run(debug=True)
