"""Applicant service — onboarding, profile, dashboard and guidance.

Transaction policy: functions use flush(), never commit().
Caller (route handler) is responsible for db.session.commit().
"""
import logging

from sqlalchemy import or_, select

from warisin.core.exceptions import PermissionDeniedError, ValidationError
from warisin.models import db
from warisin.models.application import STATUS_APPROVED, Application
from warisin.models.program import Program
from warisin.models.user import ROLE_APPLICANT, ApplicantProfile
from warisin.services import application_service, program_service
from warisin.utils.helpers import percentage, utc_today

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("background", "interests", "portfolio_url")

# Fields checked by applicant_profile_completion(), in display order.
COMPLETION_FIELDS = ("name", "email", "profile_image_url", "location", "background", "interests")


def _require_applicant(user):
    if user.role != ROLE_APPLICANT:
        raise PermissionDeniedError("Only applicants can do this")


def get_applicant_profile(user_id):
    return ApplicantProfile.query.filter_by(user_id=user_id).first()


def upsert_applicant_profile(user, data):
    _require_applicant(user)
    profile = user.applicant_profile
    if profile is None:
        profile = ApplicantProfile(user_id=user.id)
        db.session.add(profile)
        user.applicant_profile = profile
    for field in PROFILE_FIELDS:
        if field in data:
            value = data[field]
            setattr(profile, field, value.strip() if isinstance(value, str) else value)
    db.session.flush()
    return profile


def onboard_applicant(user, data):
    """First-run wizard: name, location and date of birth.

    The date of birth is kept as the profile background until the applicant
    writes a real one; interests start as a "-" placeholder.
    """
    _require_applicant(user)
    name = (data.get("name") or "").strip()
    location = (data.get("location") or "").strip()
    dob = (data.get("dob") or "").strip()
    missing = {
        field: "required"
        for field, value in (("name", name), ("location", location), ("dob", dob))
        if not value
    }
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(sorted(missing))}", details=missing,
        )

    user.name = name
    user.location = location
    profile = user.applicant_profile
    if profile is None:
        upsert_applicant_profile(user, {"background": dob, "interests": "-"})
    else:
        profile.background = dob
        if not profile.interests:
            profile.interests = "-"
    db.session.flush()
    logger.info("Applicant onboarded id=%s", user.id)
    return user


def list_applicant_applications(applicant_id):
    return application_service.list_by_applicant(applicant_id)


# ── Dashboard ────────────────────────────────────────────────────────────


def get_applicant_dashboard(applicant_id):
    today = utc_today()
    applications = application_service.list_by_applicant(applicant_id)
    distribution = application_service.status_distribution(applications)
    total = len(applications)
    accepted = distribution["approved"] + distribution["completed"]

    upcoming = [
        {
            "application_id": a.id,
            "program_id": a.program_id,
            "title": a.program.title,
            "start_date": a.program.start_date.isoformat(),
            "days_until_start": program_service.days_until_start(a.program, today),
        }
        for a in applications
        if a.status == STATUS_APPROVED and a.program.start_date and a.program.start_date > today
    ]
    upcoming.sort(key=lambda u: u["start_date"])

    return {
        "applications": dict(total=total, **distribution),
        "success_rate": percentage(accepted, total),
        "completion_rate": percentage(distribution["completed"], accepted),
        "categories_applied": len({
            a.program.category_id for a in applications if a.program
        }),
        "recent_activity": len(application_service.recent_applications(applications)),
        "upcoming_programs": upcoming,
    }


def get_recommended_programs(applicant_id, limit=5):
    """Open programs the applicant has not applied to yet, newest first."""
    applied = select(Application.program_id).where(Application.applicant_id == applicant_id)
    return (
        Program.query
        .filter(Program.is_open.is_(True))
        .filter(or_(Program.end_date.is_(None), Program.end_date >= utc_today()))
        .filter(Program.id.notin_(applied))
        .order_by(Program.created_at.desc())
        .limit(limit)
        .all()
    )


# ── Guidance ─────────────────────────────────────────────────────────────


def applicant_profile_completion(user):
    profile = user.applicant_profile
    values = {
        "name": user.name,
        "email": user.email,
        "profile_image_url": user.profile_image_url,
        "location": user.location,
        "background": profile.background if profile else None,
        # "-" is the onboarding placeholder, not a real answer
        "interests": profile.interests if profile and profile.interests != "-" else None,
    }
    missing = [field for field in COMPLETION_FIELDS if not values[field]]
    return {
        "percentage": percentage(len(COMPLETION_FIELDS) - len(missing), len(COMPLETION_FIELDS)),
        "missing_fields": missing,
    }


def get_application_insights(user):
    dashboard = get_applicant_dashboard(user.id)
    apps = dashboard["applications"]
    completion = applicant_profile_completion(user)

    insights = []
    if apps["total"] == 0:
        insights.append("You have not applied to any program yet.")
    if apps["pending"]:
        insights.append(f"{apps['pending']} application(s) are waiting for an artisan's review.")
    if apps["approved"]:
        insights.append(f"You have been accepted into {apps['approved']} program(s).")
    if apps["total"] >= 3 and dashboard["success_rate"] < 30:
        insights.append("Your acceptance rate is low; tailor your message to each program.")
    if completion["percentage"] < 100:
        insights.append(f"Your profile is {completion['percentage']}% complete.")

    return {
        "insights": insights,
        "next_steps": recommended_next_steps(user, dashboard, completion),
        "profile_completion": completion,
    }


def recommended_next_steps(user, dashboard=None, completion=None):
    dashboard = dashboard or get_applicant_dashboard(user.id)
    completion = completion or applicant_profile_completion(user)
    apps = dashboard["applications"]

    steps = []
    if completion["missing_fields"]:
        steps.append("Complete your profile: " + ", ".join(completion["missing_fields"]) + ".")
    if apps["total"] < 3:
        steps.append("Browse open programs and apply to the ones matching your interests.")
    if apps["pending"]:
        steps.append("Keep an eye on your pending applications.")
    if dashboard["upcoming_programs"]:
        steps.append("Prepare for your upcoming program start.")
    if apps["completed"]:
        steps.append("Share your experience from completed programs on your portfolio.")
    return steps

