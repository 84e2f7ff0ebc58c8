"""
Tests for the HTTP API: jobs, feeds, users, maintenance and auth.
"""

import pytest

from newsengine.config import config
from newsengine.database import Database
from newsengine.jobs.handlers import CLEANUP_JOB, FEED_REFRESH_JOB


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["embeddings_enabled"] is False
        assert data["summarization_enabled"] is False


class TestJobRoutes:
    """Tests for /jobs endpoints."""

    def test_status(self, client):
        response = client.get("/jobs/status")
        assert response.status_code == 200
        data = response.json()
        names = [job["name"] for job in data["jobs"]]
        assert names == ["feed-refresh", "cleanup", "embedding-generation"]
        cleanup = data["jobs"][1]
        assert cleanup["schedule_description"] == "Daily at 3:00 AM"
        assert cleanup["last_run"] is None

    def test_trigger_unknown_job(self, client):
        response = client.post("/jobs/not-a-job/trigger")
        assert response.status_code == 404

    def test_trigger_cleanup(self, client):
        response = client.post(f"/jobs/{CLEANUP_JOB}/trigger")
        assert response.status_code == 200
        data = response.json()
        assert data["skipped"] is False
        assert data["success"] is True
        assert data["stats"]["deleted"] == 0
        assert data["run_id"] is not None

    def test_history_and_stats(self, client):
        client.post(f"/jobs/{CLEANUP_JOB}/trigger")
        client.post(f"/jobs/{FEED_REFRESH_JOB}/trigger")

        history = client.get("/jobs/history").json()
        assert len(history) == 2
        assert {run["triggered_by"] for run in history} == {"MANUAL"}
        assert all(run["logs"] == [] for run in history)

        filtered = client.get(f"/jobs/history?job_name={CLEANUP_JOB}&include_logs=true").json()
        assert len(filtered) == 1
        assert filtered[0]["logs"]

        stats = client.get(f"/jobs/{CLEANUP_JOB}/stats").json()
        assert stats["total_runs"] == 1
        assert stats["successful"] == 1
        assert stats["last_status"] == "SUCCESS"

    def test_last_run_in_status(self, client):
        client.post(f"/jobs/{CLEANUP_JOB}/trigger")
        jobs = client.get("/jobs/status").json()["jobs"]
        cleanup = next(job for job in jobs if job["name"] == CLEANUP_JOB)
        assert cleanup["last_run"]["status"] == "SUCCESS"

    def test_update_schedule(self, client, test_db):
        response = client.put(f"/jobs/{FEED_REFRESH_JOB}/schedule", json={"schedule": "*/15 * * * *"})
        assert response.status_code == 200
        assert response.json()["schedule"] == "*/15 * * * *"
        assert test_db.get_setting(Database.FEED_REFRESH_SCHEDULE_KEY) == "*/15 * * * *"

    def test_update_schedule_invalid(self, client):
        response = client.put(f"/jobs/{FEED_REFRESH_JOB}/schedule", json={"schedule": "99 99 * * *"})
        assert response.status_code == 400

    def test_reconcile(self, client):
        response = client.post("/jobs/reconcile")
        assert response.status_code == 200
        assert response.json() == {"reconciled": 0}


class TestFeedRoutes:
    """Tests for /feeds endpoints."""

    def test_refresh_feed(self, client, feed_id):
        response = client.post(f"/feeds/{feed_id}/refresh")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["new_count"] == 2
        assert data["cleanup"]["deleted"] == 0

    def test_refresh_missing_feed(self, client):
        response = client.post("/feeds/999/refresh")
        assert response.status_code == 404

    def test_refresh_failure_reported(self, client, feed_id, feed_parser, test_db):
        feed_parser.parse_feed_url.side_effect = RuntimeError("DNS failure")
        response = client.post(f"/feeds/{feed_id}/refresh")
        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error"] == "DNS failure"
        assert test_db.get_feed(feed_id).error_count == 1

    def test_reset_errors(self, client, feed_id, test_db):
        for _ in range(10):
            test_db.record_feed_error(feed_id, "HTTP 500")

        response = client.post(f"/feeds/{feed_id}/reset-errors")
        assert response.status_code == 200
        assert response.json()["error_count"] == 0

    def test_effective_settings_masks_secrets(self, client, test_db):
        feed_id = test_db.add_feed(
            "https://paywall.example.com/rss",
            "Paywall",
            settings={"headers": {"Authorization": "Bearer secret"}, "refresh_interval": 120},
        )
        response = client.get(f"/feeds/{feed_id}/settings")
        assert response.status_code == 200
        data = response.json()
        assert data["headers"] == {"Authorization": "***"}
        assert data["refresh_interval"] == 120
        assert data["sources"]["refresh_interval"] == "source"

    def test_effective_settings_unknown_user(self, client, feed_id):
        response = client.get(f"/feeds/{feed_id}/settings?user_id=42")
        assert response.status_code == 404


class TestUserRoutes:
    """Tests for /users endpoints."""

    @pytest.fixture
    def user_id(self, test_db):
        return test_db.subscriptions.get_or_create_user("reader@example.com")

    def test_update_preferences(self, client, test_db, user_id):
        response = client.put(f"/users/{user_id}/preferences", json={"refresh_interval": 30})
        assert response.status_code == 200
        assert test_db.subscriptions.get_preferences(user_id) == {"refresh_interval": 30}

    def test_invalid_preferences(self, client, user_id):
        response = client.put(f"/users/{user_id}/preferences", json={"refresh_interval": 5})
        assert response.status_code == 400

    def test_subscription_settings(self, client, test_db, user_id, feed_id):
        test_db.subscriptions.subscribe(user_id, feed_id)
        response = client.put(
            f"/users/{user_id}/feeds/{feed_id}/settings", json={"max_article_age": 14}
        )
        assert response.status_code == 200

        settings = client.get(f"/feeds/{feed_id}/settings?user_id={user_id}").json()
        assert settings["max_article_age"] == 14
        assert settings["sources"]["max_article_age"] == "feed"

    def test_subscription_settings_not_subscribed(self, client, user_id, feed_id):
        response = client.put(f"/users/{user_id}/feeds/{feed_id}/settings", json={"max_article_age": 14})
        assert response.status_code == 404

    def test_category_settings_wrong_owner(self, client, test_db, user_id):
        other = test_db.subscriptions.get_or_create_user("other@example.com")
        category_id = test_db.subscriptions.add_category(other, "Theirs")
        response = client.put(
            f"/users/{user_id}/categories/{category_id}/settings", json={"max_article_age": 14}
        )
        assert response.status_code == 404

    def test_refresh_user_feeds(self, client, test_db, user_id, feed_id):
        test_db.subscriptions.subscribe(user_id, feed_id)
        response = client.post(f"/users/{user_id}/refresh")
        assert response.status_code == 200
        data = response.json()
        assert data["total_feeds"] == 1
        assert data["successful"] == 1
        assert data["total_new_articles"] == 2

    def test_refresh_unknown_user(self, client):
        assert client.post("/users/42/refresh").status_code == 404


class TestMaintenanceRoutes:
    """Tests for cleanup, costs and enrichment toggles."""

    def test_cleanup(self, client):
        response = client.post("/cleanup", json={"max_age_days": 30})
        assert response.status_code == 200
        assert response.json() == {"deleted": 0, "preserved": 0, "by_age": 0, "by_count": 0}

    def test_cleanup_validation(self, client):
        response = client.post("/cleanup", json={"max_articles_per_feed": 10})
        assert response.status_code == 422

    def test_cost_stats(self, client, test_db):
        from newsengine.services import CostTracker
        CostTracker(test_db).track_embedding("openai", "text-embedding-3-small", 1000)

        data = client.get("/costs/embeddings").json()
        assert data["entries_count"] == 1
        assert data["total_tokens"] == 1000
        assert len(data["recent_entries"]) == 1

        assert client.get("/costs/summarization").json()["entries_count"] == 0

    def test_cost_report(self, client):
        data = client.get("/costs/report?days=7").json()
        assert len(data["embedding"]["daily"]) == 7
        assert data["summarization"]["entries_count"] == 0

    def test_embedding_stats(self, client):
        data = client.get("/embeddings/stats").json()
        assert data == {"total": 0, "with_embedding": 0, "without_embedding": 0, "percentage": 0.0}

    def test_enrichment_toggles(self, client, test_db):
        response = client.put("/settings/enrichment", json={"embedding_auto_generate": True})
        assert response.status_code == 200
        assert response.json()["embedding_auto_generate"] is True
        assert test_db.get_bool_setting(Database.EMBEDDING_AUTO_GENERATE_KEY, False) is True
        assert client.get("/settings/enrichment").json()["embedding_auto_generate"] is True


class TestAuthentication:
    """Tests for API key enforcement."""

    def test_disabled_by_default(self, client, monkeypatch):
        monkeypatch.setattr(config, "AUTH_API_KEY", "")
        assert client.get("/jobs/status").status_code == 200

    def test_missing_key(self, client, monkeypatch):
        monkeypatch.setattr(config, "AUTH_API_KEY", "s3cret")
        assert client.get("/jobs/status").status_code == 401

    def test_wrong_key(self, client, monkeypatch):
        monkeypatch.setattr(config, "AUTH_API_KEY", "s3cret")
        response = client.get("/jobs/status", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_valid_key(self, client, monkeypatch):
        monkeypatch.setattr(config, "AUTH_API_KEY", "s3cret")
        response = client.get("/jobs/status", headers={"X-API-Key": "s3cret"})
        assert response.status_code == 200

    def test_health_is_public(self, client, monkeypatch):
        monkeypatch.setattr(config, "AUTH_API_KEY", "s3cret")
        assert client.get("/health").status_code == 200
