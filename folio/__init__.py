import os
import logging

import click
from flask import Flask, jsonify, render_template, request
from werkzeug.security import generate_password_hash

from folio.config import config_by_name
from folio.extensions import db, migrate, login_manager, csrf, limiter

# Paths answered with JSON errors instead of HTML pages.
API_PREFIXES = ("/api/", "/admin/kanban/api/", "/admin/content/api/")


def _wants_json():
    return request.path.startswith(API_PREFIXES)


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from folio import models  # noqa: F401

    # --- Register blueprints ---
    from folio.blueprints import common
    from folio.blueprints.auth import auth_bp
    from folio.blueprints.content import content_bp
    from folio.blueprints.kanban import kanban_bp
    from folio.blueprints.public import public_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(kanban_bp)
    app.register_blueprint(content_bp)
    app.register_blueprint(public_bp)

    # JSON APIs: admin ones are session/Bearer-gated, the public one is
    # called by the static frontend.
    csrf.exempt(kanban_bp)
    csrf.exempt(content_bp)
    csrf.exempt(public_bp)

    # Per-request remote store + persistence queue
    app.teardown_request(common.close_queue)

    # --- Root route ---
    @app.route("/")
    def index():
        return render_template("index.html")

    # --- Local file serving (dev only) ---
    if app.debug:
        @app.route("/uploads/<path:filepath>")
        def serve_upload(filepath):
            """Serve uploaded files from instance/uploads in dev mode."""
            from flask import send_from_directory
            upload_dir = os.path.join(app.instance_path, "uploads")
            return send_from_directory(upload_dir, filepath)

    # --- Error handlers ---
    @app.errorhandler(404)
    def not_found(e):
        if _wants_json():
            return jsonify({"ok": False, "error": "Not found"}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"ok": False, "error": "Too many requests. Try again later."}), 429

    @app.errorhandler(500)
    def server_error(e):
        app.logger.error(f"Unhandled error on {request.path}: {getattr(e, 'original_exception', e)}")
        if _wants_json():
            return jsonify({"ok": False, "error": "Something went wrong. Reload and try again."}), 500
        return render_template("errors/500.html"), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Content Security Policy (embeds for YouTube/Drive blocks, Supabase media)
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data: https://*.supabase.co; "
            "frame-src https://www.youtube.com https://drive.google.com; "
            "base-uri 'self'; "
            "frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-admin")
    @click.option("--email", default="admin@folio.local", help="Admin email")
    @click.option("--password", default="admin123", help="Admin password")
    def seed_admin(email, password):
        """Create the admin user.

        Usage:
            flask seed-admin
            flask seed-admin --email admin@example.com --password s3cret
        """
        from folio.models.user import User

        existing = User.query.filter_by(email=email).first()
        if existing:
            click.echo(f"Admin user already exists: {email}")
            return

        admin = User(
            email=email,
            password_hash=generate_password_hash(password),
            full_name="Admin",
            is_admin=True,
        )
        db.session.add(admin)
        db.session.commit()
        click.echo(f"Created admin user: {email}")

    @app.cli.command("seed-stages")
    def seed_stages():
        """Create the default kanban stages (New, In Progress, Review, Completed).

        Safe to run repeatedly: does nothing when stages already exist.
        """
        from folio.services import audit_service
        from folio.services.remote_store import get_remote_store
        from folio.services.ticket_board import TicketBoard

        board = TicketBoard(get_remote_store())
        board.stages.load()
        created = board.ensure_default_stages()
        if created:
            audit_service.record("stage.seeded", stages=[s["title"] for s in created])
            click.echo(f"Created {len(created)} stages: {', '.join(s['title'] for s in created)}")
        else:
            click.echo("Stages already exist; nothing to do.")
        board.queue.close()
