"""
Custom route decorators for access control.

- api_auth: JSON admin API access via admin session OR a Bearer token
  matching ADMIN_API_KEY (scripts, deploy hooks).
"""

from functools import wraps

from flask import current_app, jsonify, request
from flask_login import current_user


def api_auth(f):
    """Allow access via admin session OR a Bearer token matching ADMIN_API_KEY."""

    @wraps(f)
    def decorated(*args, **kwargs):
        # Check Bearer token first (for scripted access)
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            expected = current_app.config.get("ADMIN_API_KEY") or ""
            if expected and token == expected:
                return f(*args, **kwargs)
            return jsonify({"ok": False, "error": "Invalid API key"}), 401

        # Fall back to admin session auth
        if not current_user.is_authenticated or not current_user.is_admin:
            return jsonify({"ok": False, "error": "Unauthorized"}), 401
        return f(*args, **kwargs)

    return decorated
