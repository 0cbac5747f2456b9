"""Application service — the apply / review workflow and its statistics.

Transaction policy: functions use flush(), never commit().
Caller (route handler) is responsible for db.session.commit().

Workflow guard:
- can_apply():          program exists, is open, no prior application
- create_application(): same checks + insert in one transaction; the
                        (program_id, applicant_id) unique constraint is the
                        final arbiter for concurrent duplicates
- set_status():         explicit state machine (APPLICATION_TRANSITIONS)
"""
import logging
from collections import Counter
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from warisin.core.exceptions import (
    DuplicateApplicationError,
    InvalidTransitionError,
    NotAcceptingApplicationsError,
    NotFoundError,
    ValidationError,
)
from warisin.models import db
from warisin.models.application import (
    APPLICATION_STATUSES,
    APPLICATION_TRANSITIONS,
    STATUS_APPROVED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Application,
    validate_application_transition,
)
from warisin.models.program import HeritageCategory, Program
from warisin.utils.helpers import as_utc, percentage, utc_now

logger = logging.getLogger(__name__)

MESSAGE_MIN_LENGTH = 20
MESSAGE_MAX_LENGTH = 500
MOTIVATION_MAX_LENGTH = 500

FUNNEL_PERIODS = {"week": 7, "month": 30, "year": 365}


# ── Validation ───────────────────────────────────────────────────────────


def validate_message(message, motivation=None):
    """Return a list of error strings for an application's free-text fields."""
    errors = []
    text = (message or "").strip()
    if not text:
        errors.append("Message is required")
    elif len(text) < MESSAGE_MIN_LENGTH:
        errors.append(f"Message must be at least {MESSAGE_MIN_LENGTH} characters long")
    elif len(text) > MESSAGE_MAX_LENGTH:
        errors.append(f"Message must be at most {MESSAGE_MAX_LENGTH} characters long")
    if motivation and len(motivation.strip()) > MOTIVATION_MAX_LENGTH:
        errors.append(f"Motivation must be at most {MOTIVATION_MAX_LENGTH} characters long")
    return errors


# ── Workflow guard ───────────────────────────────────────────────────────


def _existing_application(applicant_id, program_id):
    return Application.query.filter_by(
        program_id=program_id, applicant_id=applicant_id,
    ).first()


def can_apply(applicant_id, program_id, lock=False):
    """Raise if ``applicant_id`` may not apply to ``program_id``; return the Program otherwise.

    Raises:
        NotFoundError: program does not exist.
        NotAcceptingApplicationsError: program is closed.
        DuplicateApplicationError: the applicant already applied.
    """
    q = Program.query.filter_by(id=program_id)
    if lock:
        # Serialises against a concurrent close of the same program (no-op on SQLite)
        q = q.with_for_update()
    program = q.first()
    if not program:
        raise NotFoundError("Program", program_id)
    if not program.is_open:
        raise NotAcceptingApplicationsError(program_id)
    if _existing_application(applicant_id, program_id):
        raise DuplicateApplicationError(program_id, applicant_id)
    return program


def check_eligibility(applicant_id, program_id):
    """Non-raising variant of can_apply() for UI hints."""
    try:
        can_apply(applicant_id, program_id)
    except (NotFoundError, NotAcceptingApplicationsError, DuplicateApplicationError) as exc:
        return {"can_apply": False, "reason": str(exc)}
    return {"can_apply": True, "reason": None}


def create_application(applicant_id, program_id, message, motivation=None,
                       cv_url=None, cv_path=None):
    """Create a PENDING application after running the workflow guard.

    Returns:
        Application instance (already flushed).
    """
    errors = validate_message(message, motivation)
    if errors:
        raise ValidationError(errors[0], details={"message": errors})

    can_apply(applicant_id, program_id, lock=True)

    application = Application(
        program_id=program_id,
        applicant_id=applicant_id,
        message=message.strip(),
        motivation=motivation.strip() if motivation else None,
        cv_url=cv_url,
        cv_path=cv_path,
        status=STATUS_PENDING,
    )
    try:
        # Savepoint: a constraint failure undoes only this insert
        with db.session.begin_nested():
            db.session.add(application)
    except IntegrityError:
        # The unique (program_id, applicant_id) constraint caught a concurrent submission
        logger.info("Duplicate application rejected by constraint program=%s applicant=%s",
                    program_id, applicant_id)
        raise DuplicateApplicationError(program_id, applicant_id)

    logger.info("Application created id=%s program=%s applicant=%s",
                application.id, program_id, applicant_id)
    return application


def get_application(application_id):
    application = db.session.get(Application, application_id)
    if not application:
        raise NotFoundError("Application", application_id)
    return application


def set_status(application_id, new_status, actor_id=None, reason=None):
    """Move an application through the state machine.

    Args:
        application_id: Application PK.
        new_status: Target status (case-insensitive).
        actor_id: When given, must be the artisan who owns the program.
        reason: Optional note stored with a rejection.

    Raises:
        NotFoundError: missing application, or not owned by ``actor_id``.
        InvalidTransitionError: transition not in APPLICATION_TRANSITIONS
            (unknown statuses and same-status no-ops included).
    """
    new_status = (new_status or "").strip().upper()

    application = get_application(application_id)
    if actor_id is not None and application.program.artisan_id != actor_id:
        raise NotFoundError("Application", application_id)

    old_status = application.status
    if not validate_application_transition(old_status, new_status):
        raise InvalidTransitionError(
            old_status, new_status, APPLICATION_TRANSITIONS.get(old_status, []),
        )

    application.status = new_status
    application.updated_at = utc_now()
    if new_status == STATUS_REJECTED and reason:
        application.review_note = reason.strip()
    db.session.flush()

    logger.info("Application id=%s status %s → %s (actor=%s)",
                application.id, old_status, new_status, actor_id)
    return application


def approve_application(application_id, actor_id=None):
    return set_status(application_id, STATUS_APPROVED, actor_id=actor_id)


def reject_application(application_id, actor_id=None, reason=None):
    return set_status(application_id, STATUS_REJECTED, actor_id=actor_id, reason=reason)


def complete_application(application_id, actor_id=None):
    return set_status(application_id, STATUS_COMPLETED, actor_id=actor_id)


def review_application(artisan_id, application_id, status):
    """The artisan's review step: only APPROVED or REJECTED are accepted here."""
    status = (status or "").strip().upper()
    if status not in (STATUS_APPROVED, STATUS_REJECTED):
        raise ValidationError(
            "Review status must be APPROVED or REJECTED", details={"status": status},
        )
    return set_status(application_id, status, actor_id=artisan_id)


def update_application(application, data):
    """Edit message / motivation / CV of an application still under review."""
    if application.status != STATUS_PENDING:
        raise ValidationError(
            "Only pending applications can be edited",
            details={"status": application.status},
        )
    message = data.get("message", application.message)
    motivation = data.get("motivation", application.motivation)
    errors = validate_message(message, motivation)
    if errors:
        raise ValidationError(errors[0], details={"message": errors})
    application.message = message.strip()
    application.motivation = motivation.strip() if motivation else None
    if "cv_url" in data:
        application.cv_url = data["cv_url"]
    db.session.flush()
    return application


def withdraw_application(applicant_id, application_id):
    """Delete a PENDING application owned by ``applicant_id``.

    Returns:
        The blob-storage path of the attached CV (or None) so the caller can
        remove the file once the transaction is committed.
    """
    application = db.session.get(Application, application_id)
    if not application or application.applicant_id != applicant_id:
        raise NotFoundError("Application", application_id)
    if application.status != STATUS_PENDING:
        raise ValidationError(
            "Only pending applications can be withdrawn",
            details={"status": application.status},
        )
    cv_path = application.cv_path
    db.session.delete(application)
    db.session.flush()
    logger.info("Application id=%s withdrawn by applicant=%s", application_id, applicant_id)
    return cv_path


def cleanup_rejected(days_old=90):
    """Delete REJECTED applications not touched for ``days_old`` days. Returns the count."""
    cutoff = utc_now() - timedelta(days=days_old)
    deleted = (
        Application.query
        .filter(Application.status == STATUS_REJECTED, Application.updated_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.session.flush()
    return deleted


# ── Queries ──────────────────────────────────────────────────────────────


def list_applications(status=None):
    q = Application.query
    if status:
        q = q.filter_by(status=status.upper())
    return q.order_by(Application.created_at.desc()).all()


def list_by_program(program_id):
    return (
        Application.query.filter_by(program_id=program_id)
        .order_by(Application.created_at.desc())
        .all()
    )


def list_by_applicant(applicant_id):
    return (
        Application.query.filter_by(applicant_id=applicant_id)
        .order_by(Application.created_at.desc())
        .all()
    )


def list_by_artisan(artisan_id, status=None):
    q = (
        Application.query
        .join(Program, Application.program_id == Program.id)
        .filter(Program.artisan_id == artisan_id)
    )
    if status:
        q = q.filter(Application.status == status.upper())
    return q.order_by(Application.created_at.desc()).all()


def list_by_status(status):
    return list_applications(status=status)


# ── Statistics ───────────────────────────────────────────────────────────


def status_distribution(applications):
    """Counts per status; always carries every status so the values sum to the total."""
    counts = Counter(a.status for a in applications)
    return {status.lower(): counts.get(status, 0) for status in APPLICATION_STATUSES}


def recent_applications(applications, days=30):
    since = utc_now() - timedelta(days=days)
    return [a for a in applications if as_utc(a.created_at) >= since]


def get_application_stats():
    """Platform-wide application statistics."""
    applications = Application.query.all()
    total = len(applications)
    program_count = Program.query.count()

    top = (
        db.session.query(Program, func.count(Application.id).label("cnt"))
        .join(Application, Application.program_id == Program.id)
        .group_by(Program.id)
        .order_by(func.count(Application.id).desc(), Program.title)
        .limit(5)
        .all()
    )

    return {
        "total": total,
        "recent": len(recent_applications(applications)),
        "status_distribution": status_distribution(applications),
        "top_programs": [
            {"id": p.id, "title": p.title, "applications": cnt} for p, cnt in top
        ],
        "average_applications_per_program": round(total / program_count) if program_count else 0,
    }


def get_program_application_stats(program_id):
    program = db.session.get(Program, program_id)
    if not program:
        raise NotFoundError("Program", program_id)
    applications = program.applications.all()

    today = utc_now().date()
    per_day = Counter(as_utc(a.created_at).date() for a in applications)
    trend = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        trend.append({"date": day.isoformat(), "count": per_day.get(day, 0)})

    return {
        "program_id": program.id,
        "total": len(applications),
        "status_distribution": status_distribution(applications),
        "application_trend": trend,
    }


def get_applicant_application_stats(applicant_id):
    applications = list_by_applicant(applicant_id)
    categories = Counter(
        a.program.category.name for a in applications if a.program and a.program.category
    )
    return {
        "total": len(applications),
        "status_distribution": status_distribution(applications),
        "category_distribution": dict(categories),
    }


def get_artisan_application_stats(artisan_id):
    applications = list_by_artisan(artisan_id)
    by_program = {}
    for a in applications:
        entry = by_program.setdefault(a.program_id, {
            "program_id": a.program_id,
            "title": a.program.title,
            "total": 0,
            "approved": 0,
        })
        entry["total"] += 1
        if a.status in (STATUS_APPROVED, STATUS_COMPLETED):
            entry["approved"] += 1
    for entry in by_program.values():
        entry["approval_rate"] = percentage(entry["approved"], entry["total"])

    return {
        "total": len(applications),
        "status_distribution": status_distribution(applications),
        "program_performance": sorted(
            by_program.values(), key=lambda e: e["total"], reverse=True,
        ),
    }


def average_response_days(applications):
    """Mean days between submission and the artisan's decision, rounded to 0.1."""
    decided = [
        a for a in applications
        if a.status in (STATUS_APPROVED, STATUS_REJECTED, STATUS_COMPLETED)
        and a.created_at and a.updated_at
    ]
    if not decided:
        return 0
    total_seconds = sum(
        (as_utc(a.updated_at) - as_utc(a.created_at)).total_seconds() for a in decided
    )
    return round(total_seconds / len(decided) / 86400, 1)


def get_artisan_response_time(artisan_id):
    return average_response_days(list_by_artisan(artisan_id))


def get_application_funnel(period="month"):
    if period not in FUNNEL_PERIODS:
        raise ValidationError(
            "period must be one of week, month, year", details={"period": period},
        )
    since = utc_now() - timedelta(days=FUNNEL_PERIODS[period])
    applications = Application.query.filter(Application.created_at >= since).all()

    applied = len(applications)
    approved = sum(1 for a in applications if a.status in (STATUS_APPROVED, STATUS_COMPLETED))
    completed = sum(1 for a in applications if a.status == STATUS_COMPLETED)
    pending = sum(1 for a in applications if a.status == STATUS_PENDING)

    return {
        "period": period,
        "applied": applied,
        "pending": pending,
        "approved": approved,
        "completed": completed,
        "approved_percentage": percentage(approved, applied),
        "completed_percentage": percentage(completed, applied),
        "conversion_rate": percentage(completed, applied, ndigits=1),
    }


def get_success_rate_by_category():
    rows = (
        db.session.query(HeritageCategory.name, Application.status)
        .join(Program, Program.category_id == HeritageCategory.id)
        .join(Application, Application.program_id == Program.id)
        .all()
    )
    per_category = {}
    for name, status in rows:
        per_category.setdefault(name, Counter())[status] += 1

    result = []
    for name, counts in sorted(per_category.items()):
        total = sum(counts.values())
        approved = counts[STATUS_APPROVED] + counts[STATUS_COMPLETED]
        result.append({
            "category": name,
            "total": total,
            "approval_rate": percentage(approved, total),
            "completion_rate": percentage(counts[STATUS_COMPLETED], approved),
        })
    return result
