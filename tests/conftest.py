"""
Shared pytest fixtures for the Warisin test suite.

Provides:
    - app: testing app, built once
    - _setup_db: schema for the run
    - session: autouse; rollback and fresh tables after each test
    - client: test client
    - make_user / make_category / make_program: ORM factories
    - artisan, applicant, category, program: ready-made rows
    - login_as: open a real server-side session for the test client
"""

from datetime import timedelta

import pytest

from warisin import create_app
from warisin.models import db as _db
from warisin.models.program import HeritageCategory, Program
from warisin.models.user import (
    ROLE_APPLICANT,
    ROLE_ARTISAN,
    ApplicantProfile,
    ArtisanProfile,
    User,
)
from warisin.services import session_service
from warisin.utils.helpers import utc_today


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """One testing app (in-memory SQLite) for the whole run."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Schema lives for the whole run."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Every test runs inside an app context and starts from empty tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Test client sharing the pushed app context."""
    return app.test_client()


# ── ORM factories ────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: create and flush a User (with its role profile)."""
    counter = {"n": 0}

    def _make(role=ROLE_APPLICANT, name=None, with_profile=True, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            auth_id=kwargs.pop("auth_id", f"uid-{role.lower()}-{n}"),
            email=kwargs.pop("email", f"{role.lower()}{n}@example.com"),
            name=name or f"{role.title()} {n}",
            role=role,
            **kwargs,
        )
        _db.session.add(user)
        _db.session.flush()
        if not with_profile:
            return user
        if role == ROLE_ARTISAN:
            _db.session.add(ArtisanProfile(user_id=user.id, works=[]))
        else:
            _db.session.add(ApplicantProfile(user_id=user.id))
        _db.session.flush()
        return user

    return _make


@pytest.fixture()
def make_category():
    def _make(name="Batik"):
        category = HeritageCategory(name=name)
        _db.session.add(category)
        _db.session.flush()
        return category

    return _make


@pytest.fixture()
def make_program():
    """Factory: a program starting next week and running for a month."""

    def _make(artisan, category, title="Batik Tulis Dasar", **kwargs):
        start = utc_today() + timedelta(days=7)
        program = Program(
            title=title,
            description=kwargs.pop("description", "Belajar membatik dengan canting."),
            duration=kwargs.pop("duration", "1 bulan"),
            location=kwargs.pop("location", "Yogyakarta"),
            category_id=category.id,
            artisan_id=artisan.id,
            start_date=kwargs.pop("start_date", start),
            end_date=kwargs.pop("end_date", start + timedelta(days=30)),
            is_open=kwargs.pop("is_open", True),
            **kwargs,
        )
        _db.session.add(program)
        _db.session.flush()
        return program

    return _make


@pytest.fixture()
def artisan(make_user):
    return make_user(ROLE_ARTISAN, name="Pak Harjo", location="Yogyakarta")


@pytest.fixture()
def applicant(make_user):
    return make_user(ROLE_APPLICANT, name="Sari", location="Solo")


@pytest.fixture()
def category(make_category):
    return make_category("Batik")


@pytest.fixture()
def program(make_program, artisan, category):
    return make_program(artisan, category)


# ── Auth helper ──────────────────────────────────────────────────────────


@pytest.fixture()
def login_as(client):
    """Return a callable that logs the test client in as ``user``."""

    def _login(user):
        raw_token, _ = session_service.create_session(user.id, user_agent="pytest")
        client.set_cookie("warisin_session", raw_token)
        return raw_token

    return _login
