"""
Health probes, security headers, request guards and the error body shape.
"""


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/health/live")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["redis"]["status"] == "skipped"
        assert body["checks"]["storage"]["backend"] == "local"


class TestMiddleware:
    def test_security_headers(self, client):
        res = client.get("/api/programs")
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert "Content-Security-Policy" in res.headers

    def test_request_id_echoed(self, client):
        res = client.get("/api/programs", headers={"X-Request-ID": "req-123"})
        assert res.headers["X-Request-ID"] == "req-123"
        assert "X-Request-Duration-Ms" in res.headers

    def test_rejects_non_json_body(self, client, applicant, login_as):
        login_as(applicant)
        res = client.post("/api/apply", data="program_id=1", content_type="text/plain")
        assert res.status_code == 415

    def test_unknown_route(self, client):
        res = client.get("/api/nothing-here")
        assert res.status_code == 404
        body = res.get_json()
        assert body["code"] == "ERR_NOT_FOUND"
        assert body["details"] == {"path": "/api/nothing-here"}

    def test_method_not_allowed(self, client):
        assert client.delete("/api/programs").status_code == 405


class TestCleanupCli:
    def test_cleanup_rejected(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["cleanup-rejected", "--days", "30"])
        assert result.exit_code == 0
        assert "Deleted 0 rejected applications." in result.output
