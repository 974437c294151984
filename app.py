from flask import Flask, jsonify
from models import db
import logging
import os

from blueprints import tournaments_bp, matches_bp
from engine.errors import EngineError

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _database_uri():
    """DATABASE_URL when set (remote PostgreSQL), else a local SQLite file."""
    database_url = os.environ.get('DATABASE_URL')
    if database_url:
        # Heroku PostgreSQL URL fix (postgres:// → postgresql://)
        if database_url.startswith('postgres://'):
            database_url = database_url.replace('postgres://', 'postgresql://', 1)
        return database_url

    default_sqlite_dir = os.path.join(BASE_DIR, 'instance')
    os.makedirs(default_sqlite_dir, exist_ok=True)
    sqlite_path = os.environ.get('SQLITE_PATH', os.path.join(default_sqlite_dir, 'tournament.db'))
    return f'sqlite:///{sqlite_path}'


def create_app(overrides=None):
    """Build the API application; ``overrides`` is applied on top of the environment config."""
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'leaguefixtures')
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    if overrides:
        app.config.update(overrides)

    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = _database_uri()
    if not app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
        app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {
            'pool_pre_ping': True,
            'pool_recycle': 300,
        })

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    db.init_app(app)

    with app.app_context():
        db.create_all()

    # Register blueprints
    app.register_blueprint(tournaments_bp)
    app.register_blueprint(matches_bp)

    @app.errorhandler(EngineError)
    def handle_engine_error(error):
        return jsonify(error.to_dict()), error.status_code

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5000)
