"""
Program API tests.

    - public listing only shows open, unexpired programs, with filters
    - artisans create / update / toggle / delete their own programs
    - another artisan's program behaves like a missing one (404)
    - media uploads land in the program gallery
"""

import io
from datetime import timedelta

from warisin.models import db
from warisin.models.program import Program
from warisin.models.user import ROLE_ARTISAN
from warisin.services import program_service
from warisin.utils.helpers import utc_today


def _program_payload(category, **overrides):
    start = utc_today() + timedelta(days=10)
    data = {
        "title": "Kelas Keramik Pemula",
        "description": "Belajar membentuk tanah liat di meja putar.",
        "duration": "2 bulan",
        "category_id": category.id,
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=60)).isoformat(),
        "criteria": "Usia 17+",
    }
    data.update(overrides)
    return data


class TestBrowsePrograms:
    def test_lists_open_programs_only(self, client, make_program, artisan, category):
        make_program(artisan, category, title="Terbuka")
        make_program(artisan, category, title="Tertutup", is_open=False)
        res = client.get("/api/programs")
        assert res.status_code == 200
        titles = [p["title"] for p in res.get_json()["items"]]
        assert titles == ["Terbuka"]

    def test_hides_programs_past_end_date(self, client, make_program, artisan, category):
        make_program(
            artisan, category, title="Sudah lewat",
            start_date=utc_today() - timedelta(days=60),
            end_date=utc_today() - timedelta(days=1),
        )
        assert client.get("/api/programs").get_json()["total"] == 0

    def test_search_matches_category_and_artisan(
        self, client, make_program, make_category, artisan, category,
    ):
        keramik = make_category("Keramik")
        make_program(artisan, category, title="Canting")
        make_program(artisan, keramik, title="Gerabah")
        res = client.get("/api/programs?search=keramik")
        assert [p["title"] for p in res.get_json()["items"]] == ["Gerabah"]
        res = client.get("/api/programs?search=harjo")
        assert res.get_json()["total"] == 2

    def test_filter_by_category_and_location(
        self, client, make_program, make_category, artisan, category,
    ):
        tenun = make_category("Tenun")
        make_program(artisan, category, title="A", location="Yogyakarta")
        make_program(artisan, tenun, title="B", location="Lombok")
        res = client.get(f"/api/programs?categoryId={tenun.id}")
        assert [p["title"] for p in res.get_json()["items"]] == ["B"]
        res = client.get("/api/programs?location=yogya")
        assert [p["title"] for p in res.get_json()["items"]] == ["A"]

    def test_limit(self, client, make_program, artisan, category):
        for i in range(3):
            make_program(artisan, category, title=f"P{i}")
        assert client.get("/api/programs?limit=2").get_json()["total"] == 2

    def test_detail(self, client, program):
        res = client.get(f"/api/programs/{program.id}")
        assert res.status_code == 200
        body = res.get_json()
        assert body["title"] == program.title
        assert body["phase"] == "upcoming"
        assert body["application_count"] == 0
        assert body["artisan"]["name"] == "Pak Harjo"

    def test_detail_missing(self, client):
        res = client.get("/api/programs/nope")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


class TestCreateProgram:
    def test_create(self, client, artisan, category, login_as):
        login_as(artisan)
        res = client.post("/api/program/gallery", json=_program_payload(category))
        assert res.status_code == 201
        body = res.get_json()
        assert body["artisan_id"] == artisan.id
        assert body["is_open"] is True
        assert body["location"] == "Yogyakarta"
        assert Program.query.count() == 1

    def test_missing_fields(self, client, artisan, login_as):
        login_as(artisan)
        res = client.post("/api/program/gallery", json={"title": "Tanpa isi"})
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert "description" in details
        assert "category_id" in details

    def test_non_string_text_fields(self, client, artisan, category, login_as):
        login_as(artisan)
        res = client.post(
            "/api/program/gallery", json=_program_payload(category, title=123, duration=30),
        )
        assert res.status_code == 400
        assert res.get_json()["details"] == {
            "title": "must be a string", "duration": "must be a string",
        }
        assert Program.query.count() == 0

    def test_update_rejects_non_string_description(self, client, artisan, program, login_as):
        login_as(artisan)
        res = client.put(f"/api/programs/{program.id}", json={"description": ["a", "b"]})
        assert res.status_code == 400
        assert res.get_json()["details"] == {"description": "must be a string"}

    def test_unknown_category(self, client, artisan, category, login_as):
        login_as(artisan)
        res = client.post(
            "/api/program/gallery", json=_program_payload(category, category_id="nope"),
        )
        assert res.status_code == 400

    def test_start_date_in_past(self, client, artisan, category, login_as):
        login_as(artisan)
        payload = _program_payload(
            category, start_date=(utc_today() - timedelta(days=1)).isoformat(),
        )
        res = client.post("/api/program/gallery", json=payload)
        assert res.status_code == 400
        assert "future" in res.get_json()["error"]

    def test_too_short(self, client, artisan, category, login_as):
        login_as(artisan)
        start = utc_today() + timedelta(days=3)
        payload = _program_payload(
            category,
            start_date=start.isoformat(),
            end_date=(start + timedelta(days=3)).isoformat(),
        )
        res = client.post("/api/program/gallery", json=payload)
        assert res.status_code == 400

    def test_requires_login(self, client, category):
        res = client.post("/api/program/gallery", json=_program_payload(category))
        assert res.status_code == 401


class TestOwnership:
    def test_update_own(self, client, artisan, program, login_as):
        login_as(artisan)
        res = client.put(f"/api/programs/{program.id}", json={"title": "Batik Cap"})
        assert res.status_code == 200
        assert res.get_json()["title"] == "Batik Cap"

    def test_update_empty_title(self, client, artisan, program, login_as):
        login_as(artisan)
        res = client.put(f"/api/programs/{program.id}", json={"title": "  "})
        assert res.status_code == 400

    def test_other_artisan_gets_404(self, client, make_user, program, login_as):
        stranger = make_user(ROLE_ARTISAN)
        login_as(stranger)
        assert client.put(f"/api/programs/{program.id}", json={"title": "X"}).status_code == 404
        assert client.delete(f"/api/programs/{program.id}").status_code == 404
        assert client.post(f"/api/programs/{program.id}/toggle").status_code == 404
        assert client.get(f"/api/programs/{program.id}/applications").status_code == 404
        assert db.session.get(Program, program.id).title == "Batik Tulis Dasar"

    def test_toggle(self, client, artisan, program, login_as):
        login_as(artisan)
        res = client.post(f"/api/programs/{program.id}/toggle")
        assert res.get_json() == {"id": program.id, "is_open": False}
        res = client.post(f"/api/programs/{program.id}/toggle", json={"is_open": True})
        assert res.get_json()["is_open"] is True

    def test_delete(self, client, artisan, program, login_as):
        program_id = program.id
        login_as(artisan)
        res = client.delete(f"/api/programs/{program_id}")
        assert res.status_code == 200
        assert db.session.get(Program, program_id) is None


class TestProgramMedia:
    def test_upload_gallery_media(self, client, artisan, program, login_as):
        login_as(artisan)
        res = client.post(
            f"/api/programs/{program.id}/media",
            data={"file": (io.BytesIO(b"\x89PNG fake"), "karya.png", "image/png")},
            content_type="multipart/form-data",
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["url"].startswith(f"/uploads/programs/{program.id}/gallery/karya-")
        assert body["gallery_urls"] == [body["url"]]

    def test_rejects_wrong_type(self, client, artisan, program, login_as):
        login_as(artisan)
        res = client.post(
            f"/api/programs/{program.id}/media",
            data={"file": (io.BytesIO(b"#!/bin/sh"), "x.sh", "application/x-sh")},
            content_type="multipart/form-data",
        )
        assert res.status_code == 400
        assert program.gallery_urls == []

    def test_upload_cover_image(self, client, artisan, program, login_as):
        login_as(artisan)
        res = client.post(
            "/api/program/image",
            data={
                "programId": program.id,
                "file": (io.BytesIO(b"jpegdata"), "cover.jpg", "image/jpeg"),
            },
            content_type="multipart/form-data",
        )
        assert res.status_code == 201
        assert db.session.get(Program, program.id).program_image_url == res.get_json()["url"]


class TestProgramHelpers:
    def test_phase(self, program):
        today = utc_today()
        assert program_service.program_phase(program, today) == "upcoming"
        assert program_service.program_phase(program, program.start_date) == "ongoing"
        assert program_service.program_phase(
            program, program.end_date + timedelta(days=1),
        ) == "completed"

    def test_validate_dates(self):
        today = utc_today()
        start = today + timedelta(days=1)
        assert program_service.validate_program_dates(start, start + timedelta(days=30)) == []
        assert program_service.validate_program_dates(None, None) == [
            "Start date is required", "End date is required",
        ]
        assert "cannot run for more than" in program_service.validate_program_dates(
            start, start + timedelta(days=400),
        )[0]
