"""Heritage category service — taxonomy CRUD, statistics and suggestions.

Transaction policy: functions use flush(), never commit().
Caller (route handler or CLI command) is responsible for db.session.commit().
"""
import logging
from datetime import timedelta

from sqlalchemy import func

from warisin.core.exceptions import ConflictError, NotFoundError, ValidationError
from warisin.models import db
from warisin.models.application import Application
from warisin.models.program import DEFAULT_CATEGORIES, HeritageCategory, Program
from warisin.models.user import User
from warisin.utils.helpers import utc_now

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100


# ── Validation ───────────────────────────────────────────────────────────


def validate_category_name(name):
    """Return a list of error strings (empty when valid)."""
    errors = []
    name = (name or "").strip()
    if not name:
        errors.append("Category name is required")
    elif len(name) < NAME_MIN_LENGTH:
        errors.append(f"Category name must be at least {NAME_MIN_LENGTH} characters")
    elif len(name) > NAME_MAX_LENGTH:
        errors.append(f"Category name must be at most {NAME_MAX_LENGTH} characters")
    return errors


def _find_by_name(name):
    return HeritageCategory.query.filter(
        func.lower(HeritageCategory.name) == name.strip().lower()
    ).first()


# ── CRUD ─────────────────────────────────────────────────────────────────


def list_categories():
    return HeritageCategory.query.order_by(HeritageCategory.name).all()


def get_category(category_id):
    category = db.session.get(HeritageCategory, category_id)
    if not category:
        raise NotFoundError("Category", category_id)
    return category


def create_category(name):
    errors = validate_category_name(name)
    if errors:
        raise ValidationError(errors[0], details={"name": errors[0]})
    name = name.strip()
    if _find_by_name(name):
        raise ConflictError("Category", "name", name)
    category = HeritageCategory(name=name)
    db.session.add(category)
    db.session.flush()
    return category


def update_category(category_id, name):
    category = get_category(category_id)
    errors = validate_category_name(name)
    if errors:
        raise ValidationError(errors[0], details={"name": errors[0]})
    name = name.strip()
    existing = _find_by_name(name)
    if existing and existing.id != category.id:
        raise ConflictError("Category", "name", name)
    category.name = name
    db.session.flush()
    return category


def delete_category(category_id):
    category = get_category(category_id)
    if category.programs.count() > 0:
        raise ConflictError(
            "Category", "programs", category.name,
            message="Cannot delete category that has programs associated with it",
        )
    db.session.delete(category)
    db.session.flush()


def seed_default_categories():
    """Insert the default heritage categories that are missing. Returns the count added."""
    added = 0
    for name in DEFAULT_CATEGORIES:
        if not _find_by_name(name):
            db.session.add(HeritageCategory(name=name))
            added += 1
    db.session.flush()
    return added


# ── Statistics ───────────────────────────────────────────────────────────


def popularity_score(programs, applications, artisans, recent_applications):
    """Weighted 0-100 popularity score for a category."""
    score = (
        min(programs / 10, 1) * 30
        + min(applications / 50, 1) * 40
        + min(artisans / 5, 1) * 20
        + min(recent_applications / 20, 1) * 10
    )
    return round(score)


def _application_count(category_id, since=None):
    q = (
        db.session.query(func.count(Application.id))
        .join(Program, Application.program_id == Program.id)
        .filter(Program.category_id == category_id)
    )
    if since is not None:
        q = q.filter(Application.created_at >= since)
    return q.scalar() or 0


def _artisan_count(category_id):
    return (
        db.session.query(func.count(func.distinct(Program.artisan_id)))
        .filter(Program.category_id == category_id)
        .scalar() or 0
    )


def categories_with_stats():
    since = utc_now() - timedelta(days=30)
    result = []
    for category in list_categories():
        programs = category.programs.count()
        open_programs = category.programs.filter_by(is_open=True).count()
        applications = _application_count(category.id)
        recent = _application_count(category.id, since=since)
        artisans = _artisan_count(category.id)
        d = category.to_dict()
        d.update({
            "program_count": programs,
            "open_program_count": open_programs,
            "application_count": applications,
            "popularity": popularity_score(programs, applications, artisans, recent),
        })
        result.append(d)
    return result


def get_category_stats(category_id):
    category = get_category(category_id)
    since = utc_now() - timedelta(days=30)

    most_popular = None
    top = (
        db.session.query(Program, func.count(Application.id).label("cnt"))
        .outerjoin(Application, Application.program_id == Program.id)
        .filter(Program.category_id == category.id)
        .group_by(Program.id)
        .order_by(func.count(Application.id).desc(), Program.created_at.desc())
        .first()
    )
    if top:
        program, count = top
        most_popular = {"id": program.id, "title": program.title, "applications": count}

    return {
        "category": category.to_dict(),
        "program_count": category.programs.count(),
        "application_count": _application_count(category.id),
        "unique_artisans": _artisan_count(category.id),
        "recent_applications": _application_count(category.id, since=since),
        "most_popular_program": most_popular,
    }


def trending_categories(limit=5):
    """Categories ranked by applications received in the last 30 days."""
    since = utc_now() - timedelta(days=30)
    rows = (
        db.session.query(HeritageCategory, func.count(Application.id).label("recent"))
        .join(Program, Program.category_id == HeritageCategory.id)
        .join(Application, Application.program_id == Program.id)
        .filter(Application.created_at >= since)
        .group_by(HeritageCategory.id)
        .order_by(func.count(Application.id).desc(), HeritageCategory.name)
        .limit(limit)
        .all()
    )
    return [dict(category.to_dict(), recent_applications=recent) for category, recent in rows]


def suggest_categories_for_artisan(artisan_id, limit=3):
    """Unused categories whose name appears in the artisan's expertise."""
    artisan = db.session.get(User, artisan_id)
    if not artisan:
        raise NotFoundError("User", artisan_id)
    profile = artisan.artisan_profile
    expertise = (profile.expertise or "").lower() if profile else ""
    if not expertise:
        return []

    used = {
        row[0]
        for row in db.session.query(Program.category_id).filter_by(artisan_id=artisan_id).distinct()
    }
    suggestions = []
    for category in list_categories():
        if category.id in used:
            continue
        keywords = [w for w in category.name.lower().split() if len(w) >= 3]
        if category.name.lower() in expertise or any(k in expertise for k in keywords):
            suggestions.append(category.to_dict())
    return suggestions[:limit]
