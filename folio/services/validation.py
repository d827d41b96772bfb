"""Field validation shared by the content, board and message services.

Validation happens before any remote call. Failures raise ValidationError
carrying a {field: message} dict so the API can show each message next
to the offending form field.

User-supplied text is stripped of HTML with bleach.clean().
"""

import re
from datetime import date

import bleach

# Sanity check only, not RFC 5322
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class ValidationError(ValueError):
    def __init__(self, errors):
        self.errors = dict(errors)
        super().__init__(" ".join(self.errors.values()))


def sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(str(text), tags=[], strip=True).strip()


def required_text(data, field, errors, label=None, max_length=None):
    value = sanitize(data.get(field) or "")
    label = label or field.replace("_", " ").capitalize()
    if not value:
        errors[field] = f"{label} is required."
    elif max_length and len(value) > max_length:
        errors[field] = f"{label} is too long."
    return value


def optional_text(data, field, errors, label=None, max_length=None):
    value = sanitize(data.get(field))
    if value and max_length and len(value) > max_length:
        label = label or field.replace("_", " ").capitalize()
        errors[field] = f"{label} is too long."
    return value or None


def parse_date(data, field, errors, required=False):
    """Accept an ISO date string (YYYY-MM-DD). Returns the ISO string or None."""
    raw = data.get(field)
    if raw in (None, ""):
        if required:
            errors[field] = f"{field.replace('_', ' ').capitalize()} is required."
        return None
    try:
        return date.fromisoformat(str(raw)[:10]).isoformat()
    except ValueError:
        errors[field] = f"{field.replace('_', ' ').capitalize()} must be a date (YYYY-MM-DD)."
        return None


def string_list(data, field, errors):
    """Accept a list of strings or a comma-separated string."""
    raw = data.get(field)
    if raw in (None, ""):
        return None
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        errors[field] = f"{field.replace('_', ' ').capitalize()} must be a list of strings."
        return None
    values = [sanitize(v) for v in raw]
    return [v for v in values if v]


def email(data, field, errors):
    value = (data.get(field) or "").strip()
    if not value or not EMAIL_RE.match(value):
        errors[field] = "A valid email is required."
    return value


def boolean(data, field, default=False):
    value = data.get(field, default)
    if isinstance(value, str):
        return value.lower() in ("1", "true", "yes", "on")
    return bool(value)


def check(errors):
    if errors:
        raise ValidationError(errors)
