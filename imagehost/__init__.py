from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from imagehost.config import Config

# ── Extension instances (created once, initialised in create_app) ──────────
db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"],
    storage_uri="memory://",
)


def create_app(config_class=Config, object_store=None):
    """Application factory — creates and configures the Flask app.

    ``object_store`` replaces the gateway built from the storage settings;
    tests pass an in-memory fake here.
    """

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialise extensions
    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Flask-Login configuration
    login_manager.login_view = "main.login"
    login_manager.login_message = "Please log in first."
    login_manager.login_message_category = "error"

    # ── Object storage ────────────────────────────────────────────────
    if object_store is None:
        from imagehost.storage import ObjectStoreGateway

        object_store = ObjectStoreGateway.from_config(app.config)
    app.extensions["object_store"] = object_store

    # ── User loader callback ──────────────────────────────────────────
    from imagehost.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    # ── Register blueprints ─────────────────────────────────────────
    from imagehost.routes import main

    app.register_blueprint(main)

    # ── Error handlers ────────────────────────────────────────────────
    from flask import render_template, jsonify

    @app.errorhandler(404)
    def not_found(e):
        return render_template("errors/404.html"), 404

    @app.errorhandler(413)
    def too_large(e):
        limit_mb = app.config["MAX_CONTENT_LENGTH"] // (1024 * 1024)
        return (
            jsonify(
                {"success": False, "message": f"File must be smaller than {limit_mb}MB."}
            ),
            413,
        )

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        return (
            jsonify(
                {
                    "success": False,
                    "message": "Too many requests. Please wait a moment before trying again.",
                    "retry_after": str(e.description),
                }
            ),
            429,
        )

    @app.errorhandler(500)
    def internal_error(e):
        db.session.rollback()
        return render_template("errors/500.html"), 500

    # ── CLI commands ──────────────────────────────────────────────────
    import click

    @app.cli.command("login-history")
    @click.argument("username")
    @click.option("--limit", default=20, show_default=True, help="Rows to show.")
    def login_history(username, limit):
        """Show the most recent logins of a user."""
        from imagehost.identity import IdentityStore

        user = User.query.filter_by(username=username).first()
        if not user:
            click.echo(f"Error: User '{username}' not found.")
            return
        events = IdentityStore(db.session, bcrypt).login_history(user.id, limit=limit)
        for event in events:
            click.echo(f"{event.date:%Y-%m-%d %H:%M:%S}  {event.ip or '-'}")
        click.echo(f"✓ {len(events)} login(s) for '{username}'.")

    # Create tables on first run (development convenience)
    with app.app_context():
        db.create_all()

    return app
