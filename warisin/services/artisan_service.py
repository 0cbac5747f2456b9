"""Artisan service — artisan profile, dashboard, performance and advice.

Transaction policy: functions use flush(), never commit().
Caller (route handler) is responsible for db.session.commit().
"""
import logging
from collections import Counter

from warisin.core.exceptions import NotFoundError, PermissionDeniedError
from warisin.models import db
from warisin.models.application import STATUS_APPROVED, STATUS_COMPLETED
from warisin.models.user import ROLE_ARTISAN, ArtisanProfile, User
from warisin.services import application_service, program_service
from warisin.utils.helpers import percentage, utc_today

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("story", "expertise", "location", "image_url")

# Programs with more applications than this are flagged as popular.
POPULAR_PROGRAM_THRESHOLD = 5


def get_artisan(artisan_id):
    user = db.session.get(User, artisan_id)
    if not user or user.role != ROLE_ARTISAN:
        raise NotFoundError("Artisan", artisan_id)
    return user


def get_artisan_profile(user_id):
    return ArtisanProfile.query.filter_by(user_id=user_id).first()


def upsert_artisan_profile(user, data):
    """Create or update the artisan profile of ``user``."""
    if user.role != ROLE_ARTISAN:
        raise PermissionDeniedError("Only artisans have an artisan profile")

    profile = user.artisan_profile
    if profile is None:
        profile = ArtisanProfile(user_id=user.id, works=[])
        db.session.add(profile)
        user.artisan_profile = profile

    for field in PROFILE_FIELDS:
        if field in data:
            value = data[field]
            setattr(profile, field, value.strip() if isinstance(value, str) else value)
    if "works" in data:
        profile.works = [str(w) for w in (data["works"] or []) if w]
    db.session.flush()
    return profile


def add_work(user, url):
    """Append an uploaded work image to the artisan's portfolio."""
    profile = upsert_artisan_profile(user, {})
    profile.works = list(profile.works or []) + [url]
    db.session.flush()
    return profile


def public_profile(artisan_id):
    """Artisan profile as shown to visitors, with the artisan's open programs."""
    artisan = get_artisan(artisan_id)
    d = artisan.to_dict(include_profile=True)
    d["programs"] = [
        p.to_dict() for p in program_service.list_artisan_programs(artisan.id) if p.is_open
    ]
    return d


def list_programs_with_stats(artisan_id):
    result = []
    for program in program_service.list_artisan_programs(artisan_id):
        applications = program.applications.all()
        d = program.to_dict()
        d["application_count"] = len(applications)
        d["status_distribution"] = application_service.status_distribution(applications)
        result.append(d)
    return result


# ── Dashboard ────────────────────────────────────────────────────────────


def get_artisan_dashboard(artisan_id):
    """Program and application counts plus headline rates for one artisan."""
    get_artisan(artisan_id)
    today = utc_today()
    programs = program_service.list_artisan_programs(artisan_id)
    applications = application_service.list_by_artisan(artisan_id)

    phases = Counter(program_service.program_phase(p, today) for p in programs)
    distribution = application_service.status_distribution(applications)
    total_apps = len(applications)

    per_program = Counter(a.program_id for a in applications)
    most_popular = None
    if per_program:
        program_id, count = per_program.most_common(1)[0]
        program = next(p for p in programs if p.id == program_id)
        most_popular = {"id": program.id, "title": program.title, "applications": count}

    return {
        "programs": {
            "total": len(programs),
            "active": sum(1 for p in programs if p.is_open),
            "upcoming": phases.get("upcoming", 0),
            "ongoing": phases.get("ongoing", 0),
            "completed": phases.get("completed", 0),
        },
        "applications": dict(total=total_apps, **distribution),
        "recent_activity": len(application_service.recent_applications(applications)),
        "approval_rate": percentage(distribution["approved"] + distribution["completed"], total_apps),
        "average_applications_per_program": (
            round(total_apps / len(programs), 1) if programs else 0
        ),
        "most_popular_program": most_popular,
        "needs_attention": distribution["pending"],
    }


def get_artisan_performance(artisan_id):
    """Per-program review metrics and an overall 0-100 performance score."""
    dashboard = get_artisan_dashboard(artisan_id)
    per_program = []
    for program in program_service.list_artisan_programs(artisan_id):
        applications = program.applications.all()
        approved = sum(1 for a in applications if a.status in (STATUS_APPROVED, STATUS_COMPLETED))
        per_program.append({
            "program_id": program.id,
            "title": program.title,
            "applications": len(applications),
            "approval_rate": percentage(approved, len(applications)),
            "avg_response_time": application_service.average_response_days(applications),
            "is_popular": len(applications) > POPULAR_PROGRAM_THRESHOLD,
            "status": "open" if program.is_open else "closed",
        })

    return {
        "programs": per_program,
        "performance_score": performance_score(
            active_programs=dashboard["programs"]["active"],
            approval_rate=dashboard["approval_rate"],
            pending=dashboard["applications"]["pending"],
            recent=dashboard["recent_activity"],
        ),
        "response_time": application_service.get_artisan_response_time(artisan_id),
    }


def performance_score(active_programs, approval_rate, pending, recent):
    score = 0
    if active_programs > 0:
        score += 30
    score += approval_rate * 0.4
    if pending < 5:
        score += 20
    elif pending < 10:
        score += 10
    if recent > 5:
        score += 10
    elif recent > 0:
        score += 5
    return min(round(score), 100)


def get_artisan_recommendations(artisan_id):
    dashboard = get_artisan_dashboard(artisan_id)
    programs = dashboard["programs"]
    apps = dashboard["applications"]
    decided = apps["approved"] + apps["rejected"] + apps["completed"]
    inactive = programs["total"] - programs["active"]

    tips = []
    if apps["pending"] > 10:
        tips.append("You have many pending applications. Review them to keep applicants engaged.")
    if decided and dashboard["approval_rate"] < 30:
        tips.append("Your approval rate is low. Consider making your program criteria clearer.")
    if programs["active"] == 0:
        tips.append("Create new programs to attract applicants.")
    if inactive > programs["active"]:
        tips.append("Consider reactivating some of your closed programs.")
    if dashboard["recent_activity"] == 0:
        tips.append("Promote your programs to attract more applicants.")
    return tips

