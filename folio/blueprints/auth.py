"""Auth blueprint — /auth/*

Admin login and logout. There is no self-registration: admin accounts
are created with `flask seed-admin`.
"""

from flask import (
    Blueprint,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_user, logout_user
from werkzeug.security import check_password_hash

from folio.extensions import limiter
from folio.models.user import User
from folio.services import audit_service

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _safe_next(next_url):
    """Only allow relative redirects (prevent open redirect)."""
    if not next_url or not next_url.startswith("/") or next_url.startswith("//"):
        return "/"
    return next_url


# ──────────────────────────────────────────────
# GET/POST /auth/login?next=/admin/kanban/api/board
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit("15 per minute", methods=["POST"])
def login():
    """Standard email + password login.

    After login, redirects to the `next` query param.
    """
    if current_user.is_authenticated:
        return redirect(_safe_next(request.args.get("next")))

    if request.method == "POST":
        email = request.form.get("email", "").lower().strip()
        password = request.form.get("password", "")
        remember = bool(request.form.get("remember"))

        if not email or not password:
            flash("Email and password are required.", "error")
            return render_template(
                "auth/login.html",
                email=email,
                next_url=request.form.get("next", ""),
            )

        user = User.query.filter_by(email=email).first()

        if user is None or not check_password_hash(user.password_hash, password):
            flash("Invalid email or password.", "error")
            return render_template(
                "auth/login.html",
                email=email,
                next_url=request.form.get("next", ""),
            )

        if not user.is_active:
            flash("Your account has been deactivated.", "error")
            return render_template(
                "auth/login.html",
                email=email,
                next_url=request.form.get("next", ""),
            )

        login_user(user, remember=remember)
        audit_service.record("user.logged_in", email=email)

        # Redirect to `next` (from query param or hidden form field)
        next_url = request.form.get("next") or request.args.get("next")

        flash("Logged in successfully.", "success")
        return redirect(_safe_next(next_url))

    # GET — render login form
    return render_template(
        "auth/login.html",
        next_url=request.args.get("next", ""),
    )


# ──────────────────────────────────────────────
# GET /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout")
def logout():
    """Log out and redirect to login page."""
    logout_user()
    flash("You have been logged out.", "info")
    return redirect(url_for("auth.login"))
