"""User service — account lookup, profile updates and profile scoring.

Transaction policy: functions use flush(), never commit().
Caller (route handler) is responsible for db.session.commit().
"""
import logging
from urllib.parse import quote_plus

from sqlalchemy import func, or_

from warisin.core.exceptions import ConflictError, NotFoundError, ValidationError
from warisin.models import db
from warisin.models.user import ROLE_APPLICANT, ROLE_ARTISAN, USER_ROLES, User
from warisin.utils.helpers import percentage, utc_now

logger = logging.getLogger(__name__)

UPDATABLE_USER_FIELDS = ("name", "bio", "location", "profile_image_url")

# Minimum profile completion an artisan needs before publishing programs.
MIN_COMPLETION_TO_PUBLISH = 70


# ── Lookup ───────────────────────────────────────────────────────────────


def get_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def get_user_by_auth_id(auth_id):
    return User.query.filter_by(auth_id=auth_id).first()


def get_user_by_email(email):
    if not email:
        return None
    return User.query.filter(func.lower(User.email) == email.strip().lower()).first()


def list_artisans():
    return User.query.filter_by(role=ROLE_ARTISAN).order_by(User.created_at.desc()).all()


def list_applicants():
    return User.query.filter_by(role=ROLE_APPLICANT).order_by(User.created_at.desc()).all()


def search_users(query, role=None):
    """Case-insensitive search over name, email and location."""
    q = User.query
    if query:
        pattern = f"%{query.strip()}%"
        q = q.filter(or_(
            User.name.ilike(pattern),
            User.email.ilike(pattern),
            User.location.ilike(pattern),
        ))
    if role:
        q = q.filter_by(role=role.upper())
    return q.order_by(User.name).all()


# ── Mutations ────────────────────────────────────────────────────────────


def create_user(auth_id, email, name, role, profile_image_url=None):
    """Create a local user for a verified identity. Role is fixed from here on."""
    role = (role or "").upper()
    if role not in USER_ROLES:
        raise ValidationError(
            "role must be ARTISAN or APPLICANT", details={"role": "invalid"},
        )
    if not email:
        raise ValidationError("Identity token carries no email", details={"email": "required"})
    if get_user_by_email(email):
        raise ConflictError("User", "email", email)

    user = User(
        auth_id=auth_id,
        email=email.strip().lower(),
        name=name or email.split("@")[0],
        role=role,
        profile_image_url=profile_image_url,
    )
    db.session.add(user)
    db.session.flush()
    logger.info("User created id=%s role=%s", user.id, role)
    return user


def update_user(user, data):
    for field in UPDATABLE_USER_FIELDS:
        if field in data:
            value = data[field]
            if isinstance(value, str):
                value = value.strip()
            setattr(user, field, value)
    if "name" in data and not user.name:
        raise ValidationError("name cannot be empty", details={"name": "required"})
    db.session.flush()
    return user


def delete_user(user):
    logger.info("Deleting user id=%s role=%s", user.id, user.role)
    db.session.delete(user)
    db.session.flush()


# ── Profile scoring ──────────────────────────────────────────────────────


def calculate_profile_completion(user):
    """Profile completion as a percentage of a 10-point score."""
    score = 0
    for value in (user.name, user.bio, user.profile_image_url, user.location):
        if value:
            score += 1

    if user.is_artisan and user.artisan_profile:
        profile = user.artisan_profile
        if profile.story:
            score += 2
        if profile.expertise:
            score += 2
        if profile.works:
            score += 1
        if profile.image_url:
            score += 1
    elif user.is_applicant and user.applicant_profile:
        profile = user.applicant_profile
        if profile.background:
            score += 2
        if profile.interests:
            score += 2
        if profile.portfolio_url:
            score += 2

    return min(score * 10, 100)


def can_create_program(user):
    if user.role != ROLE_ARTISAN:
        return {"allowed": False, "reason": "Only artisans can create programs"}
    if not user.artisan_profile:
        return {"allowed": False, "reason": "Complete your artisan profile first"}
    completion = calculate_profile_completion(user)
    if completion < MIN_COMPLETION_TO_PUBLISH:
        return {
            "allowed": False,
            "reason": f"Profile must be at least {MIN_COMPLETION_TO_PUBLISH}% complete "
                      f"(currently {completion}%)",
        }
    return {"allowed": True, "reason": None}


def can_apply_to_programs(user):
    if user.role != ROLE_APPLICANT:
        return {"allowed": False, "reason": "Only applicants can apply to programs"}
    if not user.applicant_profile:
        return {"allowed": False, "reason": "Complete onboarding first"}
    return {"allowed": True, "reason": None}


def display_name(user):
    if user.name:
        return user.name
    return user.email.split("@")[0]


def avatar_url(user):
    if user.profile_image_url:
        return user.profile_image_url
    return (
        "https://ui-avatars.com/api/?name="
        f"{quote_plus(display_name(user))}&background=8B4513&color=fff"
    )


def serialize_user(user):
    """User JSON enriched with profile, display helpers and completion."""
    d = user.to_dict(include_profile=True)
    d["display_name"] = display_name(user)
    d["avatar_url"] = avatar_url(user)
    d["profile_completion"] = calculate_profile_completion(user)
    return d


# ── Statistics ───────────────────────────────────────────────────────────


def get_user_stats():
    total = User.query.count()
    artisans = User.query.filter_by(role=ROLE_ARTISAN).count()
    applicants = User.query.filter_by(role=ROLE_APPLICANT).count()

    month_start = utc_now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    new_this_month = User.query.filter(User.created_at >= month_start).count()

    complete = User.query.filter(
        User.bio.isnot(None), User.bio != "",
        User.location.isnot(None), User.location != "",
        User.profile_image_url.isnot(None), User.profile_image_url != "",
    ).count()

    return {
        "total_users": total,
        "total_artisans": artisans,
        "total_applicants": applicants,
        "new_users_this_month": new_this_month,
        "profile_completion_rate": percentage(complete, total),
    }
