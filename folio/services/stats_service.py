"""Dashboard statistics for the admin analytics view.

Everything is computed from the remote tables in one pass per table:

- message counts: total, this month, this week (from Sunday), today
- resumes, experiences (and visible ones), projects (and featured ones)
- projects by status, messages by status, messages per resume title
- contact timing: busiest hours (top 5) and messages per weekday
- technologies: projects using each one, and messages naming those projects
- the 10 most recent messages with their resume title and the first
  project whose title the message mentions

Calendar boundaries are in UTC.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone

from folio.services.content_service import (
    EXPERIENCES_TABLE,
    PROJECTS_TABLE,
    RESUMES_TABLE,
)
from folio.services.message_service import MESSAGES_TABLE
from folio.services.persistence import LoadError
from folio.services.remote_store import RemoteStoreError

logger = logging.getLogger(__name__)

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
RECENT_LIMIT = 10


def _parse_timestamp(value):
    if isinstance(value, datetime):
        parsed = value
    elif value:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    else:
        return None
    # Naive timestamps (SQLite) are stored in UTC.
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _boundaries(now):
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    days_since_sunday = (day.weekday() + 1) % 7
    return {
        "month": day.replace(day=1),
        "week": day - timedelta(days=days_since_sunday),
        "today": day,
    }


def _fetch(remote, table, **kwargs):
    try:
        return remote.select(table, **kwargs)
    except RemoteStoreError as e:
        logger.warning(f"Analytics load of {table} failed: {e}")
        raise LoadError(f"Could not load {table}.") from e


def _mentioned_project(text, projects):
    lowered = (text or "").lower()
    for project in projects:
        title = (project.get("title") or "").lower()
        if title and title in lowered:
            return project["title"]
    return None


def collect(remote, now=None):
    """Compute the analytics payload. Raises LoadError if a table is unreachable."""
    now = now or datetime.now(timezone.utc)
    messages = _fetch(remote, MESSAGES_TABLE, order=["-created_at"])
    resumes = _fetch(remote, RESUMES_TABLE)
    experiences = _fetch(remote, EXPERIENCES_TABLE)
    projects = _fetch(remote, PROJECTS_TABLE, order=["display_order"])

    resume_titles = {r["id"]: r.get("title") for r in resumes}
    bounds = _boundaries(now)

    since = Counter()
    hours = Counter()
    weekdays = Counter()
    for message in messages:
        created = _parse_timestamp(message.get("created_at"))
        if created is None:
            continue
        created = created.astimezone(timezone.utc)
        for name, start in bounds.items():
            if created >= start:
                since[name] += 1
        hours[created.hour] += 1
        weekdays[WEEKDAYS[created.weekday()]] += 1

    by_resume = Counter(
        resume_titles.get(m["resume_id"]) or "Unknown"
        for m in messages if m.get("resume_id")
    )

    mentions = Counter()
    for message in messages:
        title = _mentioned_project(message.get("message"), projects)
        if title:
            mentions[title] += 1

    technologies = {}
    for project in projects:
        for tech in project.get("technologies") or []:
            entry = technologies.setdefault(tech, {"technology": tech, "project_count": 0, "message_interest": 0})
            entry["project_count"] += 1
            entry["message_interest"] += mentions[project["title"]]

    return {
        "messages": {
            "total": len(messages),
            "this_month": since["month"],
            "this_week": since["week"],
            "today": since["today"],
            "by_status": dict(Counter(m.get("status") for m in messages)),
            "by_resume": [
                {"resume_title": title, "count": count}
                for title, count in by_resume.most_common()
            ],
        },
        "resumes": {"total": len(resumes)},
        "experiences": {
            "total": len(experiences),
            "visible": sum(1 for e in experiences if e.get("is_visible")),
        },
        "projects": {
            "total": len(projects),
            "featured": sum(1 for p in projects if p.get("is_featured")),
            "by_status": dict(Counter(p.get("status") for p in projects)),
            "by_mentions": [
                {"project_title": p["title"], "message_count": mentions[p["title"]],
                 "is_featured": bool(p.get("is_featured"))}
                for p in sorted(projects, key=lambda p: -mentions[p["title"]])
            ],
        },
        "technologies": sorted(
            technologies.values(),
            key=lambda t: (-t["message_interest"], -t["project_count"], t["technology"]),
        ),
        "timing": {
            "peak_hours": [
                {"hour": hour, "count": count}
                for hour, count in sorted(hours.items(), key=lambda h: (-h[1], h[0]))[:5]
            ],
            "weekdays": [{"day": day, "messages": weekdays[day]} for day in WEEKDAYS],
        },
        "recent_messages": [
            {
                "id": m["id"],
                "name": m.get("name"),
                "email": m.get("email"),
                "message": m.get("message"),
                "status": m.get("status"),
                "resume_title": resume_titles.get(m.get("resume_id")),
                "project_mentioned": _mentioned_project(m.get("message"), projects),
                "created_at": m.get("created_at"),
            }
            for m in messages[:RECENT_LIMIT]
        ],
    }
