"""
Heritage category tests: taxonomy CRUD, statistics, trending, seeding,
and the operator API-key guard.
"""

from unittest.mock import patch

import pytest

from warisin.core.exceptions import ConflictError, ValidationError
from warisin.models import db
from warisin.models.application import Application
from warisin.models.program import DEFAULT_CATEGORIES, HeritageCategory
from warisin.models.user import ROLE_APPLICANT
from warisin.services import category_service

BASE = "/api/category"


def _application(applicant, program, status="PENDING"):
    application = Application(
        program_id=program.id,
        applicant_id=applicant.id,
        message="Saya ingin belajar membatik sejak lama.",
        status=status,
    )
    db.session.add(application)
    db.session.flush()
    return application


class TestCategoryService:
    def test_create(self):
        category = category_service.create_category("  Tenun  ")
        assert category.name == "Tenun"

    def test_name_is_unique_case_insensitive(self, category):
        with pytest.raises(ConflictError):
            category_service.create_category("batik")

    def test_name_too_short(self):
        with pytest.raises(ValidationError):
            category_service.create_category("A")

    def test_rename(self, category):
        category_service.update_category(category.id, "Batik Tulis")
        assert db.session.get(HeritageCategory, category.id).name == "Batik Tulis"

    def test_delete_blocked_by_programs(self, program, category):
        with pytest.raises(ConflictError):
            category_service.delete_category(category.id)

    def test_delete_unused(self, make_category):
        unused = make_category("Wayang")
        category_service.delete_category(unused.id)
        assert db.session.get(HeritageCategory, unused.id) is None

    def test_seed_is_idempotent(self, category):
        added = category_service.seed_default_categories()
        assert added == len(DEFAULT_CATEGORIES) - 1
        assert category_service.seed_default_categories() == 0
        assert HeritageCategory.query.count() == len(DEFAULT_CATEGORIES)

    def test_popularity_score_caps(self):
        assert category_service.popularity_score(0, 0, 0, 0) == 0
        assert category_service.popularity_score(100, 500, 50, 200) == 100
        assert category_service.popularity_score(5, 25, 0, 0) == 35


class TestCategoryStats:
    def test_category_stats(self, make_user, make_program, artisan, category):
        popular = make_program(artisan, category, title="Populer")
        make_program(artisan, category, title="Sepi")
        _application(make_user(ROLE_APPLICANT), popular)
        _application(make_user(ROLE_APPLICANT), popular)
        stats = category_service.get_category_stats(category.id)
        assert stats["program_count"] == 2
        assert stats["application_count"] == 2
        assert stats["unique_artisans"] == 1
        assert stats["recent_applications"] == 2
        assert stats["most_popular_program"]["title"] == "Populer"

    def test_trending(self, client, make_user, make_program, make_category, artisan, category):
        tenun = make_category("Tenun")
        batik_program = make_program(artisan, category)
        tenun_program = make_program(artisan, tenun, title="Tenun Ikat")
        _application(make_user(ROLE_APPLICANT), tenun_program)
        _application(make_user(ROLE_APPLICANT), tenun_program)
        _application(make_user(ROLE_APPLICANT), batik_program)
        res = client.get(f"{BASE}/trending?limit=1")
        items = res.get_json()["items"]
        assert [(c["name"], c["recent_applications"]) for c in items] == [("Tenun", 2)]

    def test_list_with_stats(self, client, program, category):
        body = client.get(f"{BASE}?withStats=true").get_json()
        assert body["items"][0]["program_count"] == 1
        assert body["items"][0]["open_program_count"] == 1

    def test_missing_category_stats(self, client):
        assert client.get(f"{BASE}/nope/stats").status_code == 404


class TestCategoryApi:
    def test_list(self, client, make_category):
        make_category("Tenun")
        make_category("Batik")
        body = client.get(BASE).get_json()
        assert [c["name"] for c in body["items"]] == ["Batik", "Tenun"]

    def test_create_update_delete(self, client):
        res = client.post(BASE, json={"name": "Songket"})
        assert res.status_code == 201
        category_id = res.get_json()["id"]
        res = client.put(f"{BASE}/{category_id}", json={"name": "Songket Palembang"})
        assert res.get_json()["name"] == "Songket Palembang"
        assert client.delete(f"{BASE}/{category_id}").status_code == 200

    def test_duplicate(self, client, category):
        res = client.post(BASE, json={"name": "BATIK"})
        assert res.status_code == 409

    def test_api_key_required_when_enabled(self, client, monkeypatch):
        monkeypatch.setenv("API_AUTH_ENABLED", "true")
        monkeypatch.setenv("API_KEYS", "admin-key:admin,viewer-key:viewer")

        assert client.post(BASE, json={"name": "Perak"}).status_code == 401
        res = client.post(BASE, json={"name": "Perak"}, headers={"X-API-Key": "viewer-key"})
        assert res.status_code == 403
        res = client.post(BASE, json={"name": "Perak"}, headers={"X-API-Key": "admin-key"})
        assert res.status_code == 201

        # Admin stats only need viewer
        res = client.get("/api/admin/stats", headers={"X-API-Key": "viewer-key"})
        assert res.status_code == 200

    def test_session_does_not_replace_api_key(self, client, artisan, login_as, monkeypatch):
        monkeypatch.setenv("API_AUTH_ENABLED", "true")
        monkeypatch.setenv("API_KEYS", "admin-key:admin")
        login_as(artisan)
        assert client.post(BASE, json={"name": "Perak"}).status_code == 401

    def test_seed_cli(self, app):
        runner = app.test_cli_runner()
        with patch("warisin.services.category_service.seed_default_categories", return_value=3):
            result = runner.invoke(args=["seed-categories"])
        assert "Seeded 3 new heritage categories." in result.output
