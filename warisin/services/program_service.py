"""Program service — listing, visibility filtering and artisan-owned mutations.

Transaction policy: functions use flush(), never commit().
Caller (route handler) is responsible for db.session.commit().

Ownership: every mutation takes the acting artisan and treats a program owned
by somebody else exactly like a missing one (NotFoundError).
"""
import logging

from sqlalchemy import or_

from warisin.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from warisin.models import db
from warisin.models.program import HeritageCategory, Program
from warisin.models.user import ROLE_ARTISAN, User
from warisin.utils.helpers import parse_date, utc_today

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "duration", "category_id")
# Free text the client must send as JSON strings
TEXT_FIELDS = ("title", "description", "duration")
UPDATABLE_FIELDS = (
    "title", "description", "duration", "location", "criteria", "category_id",
    "start_date", "end_date", "is_open",
    "program_image_url", "video_url", "video_thumbnail_url",
    "gallery_urls", "gallery_thumbnails",
)

MIN_PROGRAM_DAYS = 7
MAX_PROGRAM_DAYS = 365


# ── Validation ───────────────────────────────────────────────────────────


def validate_program_dates(start_date, end_date, today=None):
    """Return a list of error strings for a program's start/end dates."""
    today = today or utc_today()
    errors = []
    if start_date is None:
        errors.append("Start date is required")
    if end_date is None:
        errors.append("End date is required")
    if errors:
        return errors

    if start_date <= today:
        errors.append("Start date must be in the future")
    if end_date <= start_date:
        errors.append("End date must be after start date")
    else:
        days = (end_date - start_date).days
        if days < MIN_PROGRAM_DAYS:
            errors.append(f"Program must run for at least {MIN_PROGRAM_DAYS} days")
        elif days > MAX_PROGRAM_DAYS:
            errors.append(f"Program cannot run for more than {MAX_PROGRAM_DAYS} days")
    return errors


def _require_artisan(user):
    if user is None or user.role != ROLE_ARTISAN:
        raise PermissionDeniedError("Only artisans can manage programs")


def _require_category(category_id):
    if not category_id or not db.session.get(HeritageCategory, category_id):
        raise ValidationError("Category not found", details={"category_id": "unknown category"})


def _clean_urls(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [str(v) for v in value if v]


# ── Read side ────────────────────────────────────────────────────────────


def get_program(program_id):
    program = db.session.get(Program, program_id)
    if not program:
        raise NotFoundError("Program", program_id)
    return program


def get_owned_program(artisan_id, program_id):
    program = db.session.get(Program, program_id)
    if not program or program.artisan_id != artisan_id:
        raise NotFoundError("Program", program_id)
    return program


def list_open_programs(search=None, category_id=None, location=None, artisan_id=None, limit=None):
    """Programs an applicant can still apply to, newest first.

    Only open programs whose end date has not passed are returned; search
    matches title, description, category name and artisan name.
    """
    q = (
        Program.query
        .join(HeritageCategory, Program.category_id == HeritageCategory.id)
        .join(User, Program.artisan_id == User.id)
        .filter(Program.is_open.is_(True))
        .filter(or_(Program.end_date.is_(None), Program.end_date >= utc_today()))
    )
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Program.title.ilike(pattern),
            Program.description.ilike(pattern),
            HeritageCategory.name.ilike(pattern),
            User.name.ilike(pattern),
        ))
    if category_id:
        q = q.filter(Program.category_id == category_id)
    if location:
        q = q.filter(Program.location.ilike(f"%{location.strip()}%"))
    if artisan_id:
        q = q.filter(Program.artisan_id == artisan_id)

    q = q.order_by(Program.created_at.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def list_artisan_programs(artisan_id):
    return (
        Program.query.filter_by(artisan_id=artisan_id)
        .order_by(Program.created_at.desc())
        .all()
    )


# ── Mutations ────────────────────────────────────────────────────────────


def _field_problems(data, fields):
    """``{field: problem}`` for absent, blank or non-string values."""
    problems = {}
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            problems[field] = "required"
        elif not isinstance(value, str):
            problems[field] = "must be a string"
    return problems


def create_program(artisan, data):
    """Create a program owned by ``artisan``.

    Returns:
        Program instance (already flushed).
    """
    _require_artisan(artisan)

    problems = _field_problems(data, REQUIRED_FIELDS)
    if problems:
        raise ValidationError(
            f"Invalid or missing fields: {', '.join(sorted(problems))}", details=problems,
        )
    _require_category(data["category_id"])

    start_date = parse_date(data.get("start_date"))
    end_date = parse_date(data.get("end_date"))
    date_errors = validate_program_dates(start_date, end_date)
    if date_errors:
        raise ValidationError(date_errors[0], details={"dates": date_errors})

    program = Program(
        title=data["title"].strip(),
        description=data["description"].strip(),
        duration=data["duration"].strip(),
        location=data.get("location") or artisan.location,
        criteria=data.get("criteria"),
        category_id=data["category_id"],
        artisan_id=artisan.id,
        start_date=start_date,
        end_date=end_date,
        is_open=bool(data.get("is_open", True)),
        program_image_url=data.get("program_image_url"),
        video_url=data.get("video_url"),
        video_thumbnail_url=data.get("video_thumbnail_url"),
        gallery_urls=_clean_urls(data.get("gallery_urls")),
        gallery_thumbnails=_clean_urls(data.get("gallery_thumbnails")),
    )
    db.session.add(program)
    db.session.flush()
    logger.info("Program created id=%s artisan=%s", program.id, artisan.id)
    return program


def update_program(artisan, program_id, data):
    _require_artisan(artisan)
    program = get_owned_program(artisan.id, program_id)

    if "category_id" in data:
        _require_category(data["category_id"])

    start_date = parse_date(data["start_date"]) if "start_date" in data else program.start_date
    end_date = parse_date(data["end_date"]) if "end_date" in data else program.end_date
    if "start_date" in data or "end_date" in data:
        errors = []
        if start_date is None or end_date is None:
            errors.append("Start and end dates are required")
        elif end_date <= start_date:
            errors.append("End date must be after start date")
        if errors:
            raise ValidationError(errors[0], details={"dates": errors})

    for field in UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in TEXT_FIELDS:
            problem = _field_problems(data, (field,))
            if problem:
                raise ValidationError(f"{field} {problem[field]}", details=problem)
            value = value.strip()
        elif field == "start_date":
            value = start_date
        elif field == "end_date":
            value = end_date
        elif field == "is_open":
            value = bool(value)
        elif field in ("gallery_urls", "gallery_thumbnails"):
            value = _clean_urls(value)
        setattr(program, field, value)

    db.session.flush()
    return program


def delete_program(artisan, program_id):
    _require_artisan(artisan)
    program = get_owned_program(artisan.id, program_id)
    logger.info("Deleting program id=%s (%d applications)", program.id, program.applications.count())
    db.session.delete(program)
    db.session.flush()


def set_program_open(artisan, program_id, is_open):
    _require_artisan(artisan)
    program = get_owned_program(artisan.id, program_id)
    program.is_open = bool(is_open)
    db.session.flush()
    logger.info("Program id=%s is_open=%s", program.id, program.is_open)
    return program


def toggle_program(artisan, program_id):
    _require_artisan(artisan)
    program = get_owned_program(artisan.id, program_id)
    return set_program_open(artisan, program_id, not program.is_open)


def add_gallery_item(artisan, program_id, url, thumbnail_url=None):
    _require_artisan(artisan)
    program = get_owned_program(artisan.id, program_id)
    # JSON columns need a new list object to register as changed
    program.gallery_urls = list(program.gallery_urls or []) + [url]
    program.gallery_thumbnails = list(program.gallery_thumbnails or []) + [thumbnail_url or url]
    db.session.flush()
    return program


def program_phase(program, today=None):
    """upcoming / ongoing / completed, derived from the program dates."""
    today = today or utc_today()
    if program.start_date and program.start_date > today:
        return "upcoming"
    if program.end_date and program.end_date < today:
        return "completed"
    return "ongoing"


def days_until_start(program, today=None):
    today = today or utc_today()
    if not program.start_date:
        return None
    return (program.start_date - today).days
