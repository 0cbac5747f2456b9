"""
Dashboard and statistics tests for artisans, applicants and operators.
"""

from warisin.models import db
from warisin.models.application import Application
from warisin.models.user import ROLE_APPLICANT
from warisin.services import (
    applicant_service,
    artisan_service,
    user_service,
)
from warisin.utils.helpers import utc_today

MESSAGE = "Saya ingin belajar membatik sejak lama."


def _application(applicant, program, status="PENDING"):
    application = Application(
        program_id=program.id, applicant_id=applicant.id, message=MESSAGE, status=status,
    )
    db.session.add(application)
    db.session.flush()
    return application


class TestArtisanDashboard:
    def test_counts(self, make_user, make_program, artisan, category):
        first = make_program(artisan, category, title="Batik Tulis")
        make_program(artisan, category, title="Batik Cap", is_open=False)
        for status in ("PENDING", "PENDING", "APPROVED", "REJECTED"):
            _application(make_user(ROLE_APPLICANT), first, status)

        dashboard = artisan_service.get_artisan_dashboard(artisan.id)
        assert dashboard["programs"]["total"] == 2
        assert dashboard["programs"]["active"] == 1
        assert dashboard["programs"]["upcoming"] == 2
        apps = dashboard["applications"]
        assert apps["total"] == 4
        assert apps["pending"] + apps["approved"] + apps["rejected"] + apps["completed"] == 4
        assert dashboard["approval_rate"] == 25
        assert dashboard["needs_attention"] == 2
        assert dashboard["most_popular_program"]["title"] == "Batik Tulis"
        assert dashboard["average_applications_per_program"] == 2.0

    def test_empty_dashboard(self, artisan):
        dashboard = artisan_service.get_artisan_dashboard(artisan.id)
        assert dashboard["approval_rate"] == 0
        assert dashboard["most_popular_program"] is None
        assert dashboard["average_applications_per_program"] == 0

    def test_recommendations_for_new_artisan(self, artisan):
        tips = artisan_service.get_artisan_recommendations(artisan.id)
        assert "Create new programs to attract applicants." in tips

    def test_performance_score(self):
        assert artisan_service.performance_score(1, 100, 0, 6) == 100
        assert artisan_service.performance_score(0, 0, 12, 0) == 0
        assert artisan_service.performance_score(1, 50, 7, 1) == 65

    def test_dashboard_endpoint(self, client, artisan, program, login_as):
        login_as(artisan)
        res = client.get("/api/artisan/dashboard")
        assert res.status_code == 200
        assert res.get_json()["programs"]["total"] == 1

    def test_applicant_cannot_open_artisan_views(self, client, applicant, login_as):
        login_as(applicant)
        assert client.get("/api/artisan/dashboard").status_code == 403

    def test_can_create_program(self, client, artisan, login_as):
        login_as(artisan)
        body = client.get("/api/artisan/can-create-program").get_json()
        assert body["allowed"] is False
        assert body["profile_completion"] < 70

        client.put("/api/artisan/profile", json={
            "bio": "Pembatik generasi ketiga",
            "story": "Belajar dari nenek",
            "expertise": "Batik tulis, pewarna alam",
            "image_url": "/uploads/a.jpg",
        })
        body = client.get("/api/artisan/can-create-program").get_json()
        assert body["allowed"] is True

    def test_category_suggestions(self, client, artisan, make_category, login_as):
        make_category("Batik")
        make_category("Keramik")
        artisan_service.upsert_artisan_profile(artisan, {"expertise": "batik tulis"})
        login_as(artisan)
        body = client.get("/api/artisan/category-suggestions").get_json()
        assert [c["name"] for c in body["suggestions"]] == ["Batik"]


class TestApplicantDashboard:
    def test_counts_and_upcoming(self, make_program, applicant, artisan, category):
        approved = make_program(artisan, category, title="Diterima")
        pending = make_program(artisan, category, title="Menunggu")
        _application(applicant, approved, "APPROVED")
        _application(applicant, pending, "PENDING")

        dashboard = applicant_service.get_applicant_dashboard(applicant.id)
        assert dashboard["applications"]["total"] == 2
        assert dashboard["success_rate"] == 50
        assert dashboard["categories_applied"] == 1
        upcoming = dashboard["upcoming_programs"]
        assert [u["title"] for u in upcoming] == ["Diterima"]
        assert upcoming[0]["days_until_start"] == 7

    def test_recommendations_exclude_applied(self, make_program, applicant, artisan, category):
        applied = make_program(artisan, category, title="Sudah")
        make_program(artisan, category, title="Belum")
        make_program(artisan, category, title="Tutup", is_open=False)
        _application(applicant, applied)
        programs = applicant_service.get_recommended_programs(applicant.id)
        assert [p.title for p in programs] == ["Belum"]

    def test_onboarding(self, client, make_user, login_as):
        newcomer = make_user(ROLE_APPLICANT, name="Baru", with_profile=False)
        login_as(newcomer)
        assert client.get("/api/applicant/profile").get_json()["can_apply"]["allowed"] is False

        res = client.post("/api/applicant/onboard", json={
            "name": "Dewi", "location": "Bandung", "dob": "2001-04-02",
        })
        assert res.status_code == 200
        body = client.get("/api/applicant/profile").get_json()
        assert body["can_apply"]["allowed"] is True
        assert body["profile"]["interests"] == "-"
        assert "interests" in body["completion"]["missing_fields"]

    def test_onboarding_requires_fields(self, client, applicant, login_as):
        login_as(applicant)
        res = client.post("/api/applicant/onboard", json={"name": "Dewi"})
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"location", "dob"}

    def test_insights(self, client, applicant, login_as):
        login_as(applicant)
        body = client.get("/api/applicant/insights").get_json()
        assert "You have not applied to any program yet." in body["insights"]
        assert body["next_steps"]

    def test_applications_with_stats(self, client, applicant, program, login_as):
        _application(applicant, program)
        login_as(applicant)
        body = client.get("/api/applicant/applications").get_json()
        assert body["total"] == 1
        assert body["stats"]["category_distribution"] == {"Batik": 1}


class TestProfileCompletion:
    def test_artisan_completion(self, artisan):
        assert user_service.calculate_profile_completion(artisan) == 20
        artisan.bio = "Bio"
        artisan.profile_image_url = "/uploads/p.jpg"
        artisan_service.upsert_artisan_profile(artisan, {"story": "s", "expertise": "e"})
        assert user_service.calculate_profile_completion(artisan) == 80

    def test_avatar_fallback(self, applicant):
        assert user_service.avatar_url(applicant).startswith("https://ui-avatars.com/api/?name=Sari")


class TestAdminStats:
    def test_stats(self, client, make_user, program):
        _application(make_user(ROLE_APPLICANT), program, "COMPLETED")
        _application(make_user(ROLE_APPLICANT), program, "PENDING")
        res = client.get("/api/admin/stats?period=week")
        assert res.status_code == 200
        body = res.get_json()
        assert body["users"]["total_artisans"] == 1
        assert body["users"]["total_applicants"] == 2
        assert body["applications"]["total"] == 2
        assert body["applications"]["top_programs"][0]["applications"] == 2
        assert body["funnel"]["period"] == "week"
        assert body["funnel"]["completed"] == 1

    def test_bad_period(self, client):
        assert client.get("/api/admin/stats?period=decade").status_code == 400

    def test_users_and_applications(self, client, applicant, program):
        _application(applicant, program, "REJECTED")
        body = client.get("/api/admin/users?role=applicant").get_json()
        assert [u["id"] for u in body["items"]] == [applicant.id]
        body = client.get("/api/admin/applications?status=rejected").get_json()
        assert body["total"] == 1
        assert client.get("/api/admin/applications?status=pending").get_json()["total"] == 0

    def test_program_stats_trend(self, client, artisan, applicant, program, login_as):
        _application(applicant, program)
        login_as(artisan)
        body = client.get(f"/api/programs/{program.id}/stats").get_json()
        assert body["total"] == 1
        assert len(body["application_trend"]) == 7
        assert body["application_trend"][-1] == {"date": utc_today().isoformat(), "count": 1}

