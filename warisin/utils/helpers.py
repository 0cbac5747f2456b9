"""Small helpers shared by services and blueprints."""
import logging
from datetime import date, datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from warisin.models import db
from warisin.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Tried in order after ISO parsing fails
_DAY_FIRST_FORMATS = ("%d.%m.%Y", "%d/%m/%Y")


def parse_date(value):
    """``date`` from a date, datetime or string (ISO date/datetime, 31.12.2025,
    31/12/2025). Anything else gives None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    raw = str(value).strip()
    for parse in (date.fromisoformat, lambda s: datetime.fromisoformat(s.replace("Z", "+00:00")).date()):
        try:
            return parse(raw)
        except ValueError:
            continue
    for fmt in _DAY_FIRST_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def utc_now():
    return datetime.now(timezone.utc)


def utc_today():
    return utc_now().date()


def as_utc(value):
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def percentage(part, whole, ndigits=0):
    """Return part/whole as a rounded percentage, 0 when whole is 0."""
    if not whole:
        return 0
    value = round(part / whole * 100, ndigits)
    return int(value) if ndigits == 0 else value


def db_commit_or_error():
    """Commit for a route handler.

    None when the commit went through, otherwise the rolled-back session and
    an ``api_error`` tuple the view can return as is::

        err = db_commit_or_error()
        if err:
            return err
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Commit rejected by a constraint: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Commit failed")
        return api_error(E.DATABASE, "Database error")
    return None
