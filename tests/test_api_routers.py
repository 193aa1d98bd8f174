"""
API Router Tests

Endpoint auth, payload validation and response shapes for the cron,
ingest, webhook and lead action endpoints.
Run with: pytest tests/test_api_routers.py -v
"""

import pytest

# Mark entire module as medium - uses TestClient with mocked dependencies
pytestmark = pytest.mark.medium

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch
from uuid import uuid4

import psycopg2
from fastapi.testclient import TestClient

from lead_scout import __version__
from lead_scout.api.deps import get_ai_client, get_config, get_db
from lead_scout.api.main import app
from lead_scout.api.routers.ingest import get_ingest_service, get_scout
from lead_scout.api.routers.leads import get_dispatcher
from lead_scout.api.routers.webhooks import get_lead_processor, get_notification_service
from lead_scout.config import ScoutConfig
from lead_scout.ingest import IngestReport
from lead_scout.lead_processor import ProcessResult
from lead_scout.notification_service import NotifyOutcome
from lead_scout.notifications import ChannelResult
from lead_scout.run_controller import RunStats
from lead_scout.scout import ScoutReport
from tests.factories import make_lead


AUTH = {"Authorization": "Bearer test-secret"}


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def api_config():
    return ScoutConfig(ingest_secret="test-secret", openai_api_key="sk-test-fake-key-for-testing")


@pytest.fixture
def mock_scout():
    return Mock()


@pytest.fixture
def mock_processor():
    return Mock()


@pytest.fixture
def mock_notification_service():
    return Mock()


@pytest.fixture
def mock_ingest_service():
    return Mock()


@pytest.fixture
def mock_dispatcher():
    return Mock()


@pytest.fixture
def client(api_config, mock_scout, mock_processor, mock_notification_service, mock_ingest_service, mock_dispatcher):
    """Create a test client with overridden dependencies."""
    app.dependency_overrides[get_config] = lambda: api_config
    app.dependency_overrides[get_db] = lambda: Mock()
    app.dependency_overrides[get_ai_client] = lambda: Mock()
    app.dependency_overrides[get_scout] = lambda: mock_scout
    app.dependency_overrides[get_lead_processor] = lambda: mock_processor
    app.dependency_overrides[get_notification_service] = lambda: mock_notification_service
    app.dependency_overrides[get_ingest_service] = lambda: mock_ingest_service
    app.dependency_overrides[get_dispatcher] = lambda: mock_dispatcher

    yield TestClient(app)

    # Clean up overrides after test
    app.dependency_overrides.clear()


def scout_report(**overrides):
    now = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
    fields = dict(
        success=True,
        alerts_processed=3,
        total_new_leads=2,
        started_at=now,
        finished_at=now,
        stats=RunStats(topics_attempted=2, posts_found=40, posts_matched=2),
    )
    fields.update(overrides)
    return ScoutReport(**fields)


# -----------------------------------------------------------------------------
# Auth
# -----------------------------------------------------------------------------


class TestAuth:
    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Bearer wrong"},
            {"Authorization": "Basic test-secret"},
            {"Authorization": "test-secret"},
        ],
    )
    def test_rejects_missing_or_wrong_token(self, client, mock_scout, headers):
        response = client.post("/api/cron", headers=headers)

        assert response.status_code == 401
        mock_scout.run.assert_not_called()

    def test_unset_secret_rejects_everything(self, client, api_config, mock_scout):
        api_config.ingest_secret = None

        response = client.post("/api/cron", headers=AUTH)

        assert response.status_code == 401
        mock_scout.run.assert_not_called()

    def test_webhooks_require_auth(self, client, mock_processor):
        response = client.post("/webhooks/lead-inserted", json={"record": {"id": str(uuid4())}})

        assert response.status_code == 401
        mock_processor.process.assert_not_called()

    def test_health_is_public(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------


def db_with_leads_table(value):
    db = MagicMock()
    cursor = db.cursor.return_value.__enter__.return_value
    cursor.fetchone.return_value = {"leads_table": value}
    return db


class TestHealth:
    def test_reports_service_and_version(self, client):
        data = client.get("/health").json()

        assert data["service"] == "lead-scout"
        assert data["version"] == __version__

    def test_db_ready_when_leads_table_exists(self, client):
        app.dependency_overrides[get_db] = lambda: db_with_leads_table("leads")

        data = client.get("/health/db").json()

        assert data["connected"] is True
        assert data["schema_ready"] is True
        assert data["latency_ms"] is not None

    def test_db_without_schema(self, client):
        app.dependency_overrides[get_db] = lambda: db_with_leads_table(None)

        data = client.get("/health/db").json()

        assert data["connected"] is True
        assert data["schema_ready"] is False

    def test_db_query_error(self, client):
        db = MagicMock()
        db.cursor.return_value.__enter__.return_value.execute.side_effect = psycopg2.OperationalError(
            "server closed the connection unexpectedly\n"
        )
        app.dependency_overrides[get_db] = lambda: db

        response = client.get("/health/db")

        assert response.status_code == 200
        assert response.json()["connected"] is False
        assert response.json()["error"] == "server closed the connection unexpectedly"


# -----------------------------------------------------------------------------
# Cron
# -----------------------------------------------------------------------------


class TestCron:
    def test_returns_run_summary(self, client, mock_scout):
        mock_scout.run.return_value = scout_report()

        response = client.post("/api/cron", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["alertsProcessed"] == 3
        assert data["totalNewLeads"] == 2
        assert data["startedAt"].startswith("2026-01-15T12:00:00")
        assert data["postsFound"] == 40

    def test_breaker_abort_reports_failure(self, client, mock_scout):
        mock_scout.run.return_value = scout_report(
            success=False,
            total_new_leads=0,
            stats=RunStats(topics_attempted=3, topics_failed=3, abort_reason="circuit_breaker"),
        )

        data = client.post("/api/cron", headers=AUTH).json()

        assert data["success"] is False
        assert data["aborted"] is True
        assert data["abortReason"] == "circuit_breaker"

    def test_unexpected_error_still_answers(self, client, mock_scout):
        mock_scout.run.side_effect = RuntimeError("database unavailable")

        response = client.post("/api/cron", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "database unavailable"


# -----------------------------------------------------------------------------
# Pull ingest
# -----------------------------------------------------------------------------


class TestIngest:
    def test_accepts_batch(self, client, mock_ingest_service):
        mock_ingest_service.ingest.return_value = IngestReport(status="ok", processed=1, new=1)
        alert_id = uuid4()
        body = {
            "alert_id": str(alert_id),
            "topic": "saas",
            "posts": [{
                "external_id": "p1",
                "title": "Need a CRM",
                "created_at": "2026-01-15T12:00:00Z",
            }],
        }

        response = client.post("/api/ingest", json=body, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["new"] == 1
        called_alert, called_topic, posts = mock_ingest_service.ingest.call_args[0]
        assert called_alert == alert_id
        assert posts[0].external_id == "p1"

    def test_post_without_title_is_400(self, client, mock_ingest_service):
        body = {
            "alert_id": str(uuid4()),
            "topic": "saas",
            "posts": [{"external_id": "p1", "title": "", "created_at": "2026-01-15T12:00:00Z"}],
        }

        response = client.post("/api/ingest", json=body, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid request payload"
        mock_ingest_service.ingest.assert_not_called()


# -----------------------------------------------------------------------------
# Webhooks
# -----------------------------------------------------------------------------


class TestLeadInserted:
    def test_envelope_payload(self, client, mock_processor):
        lead_id = uuid4()
        mock_processor.process.return_value = ProcessResult(
            True, "stage1", {"status": "discarded", "relevant": False}
        )
        payload = {
            "type": "INSERT",
            "table": "leads",
            "record": {"id": str(lead_id), "processing_status": "new", "title": "extra column"},
            "old_record": None,
        }

        response = client.post("/webhooks/lead-inserted", json=payload, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["stage"] == "stage1"
        assert data["result"]["status"] == "discarded"
        assert isinstance(data["debug_logs"], list)
        mock_processor.process.assert_called_once_with(lead_id)

    def test_bare_record_payload(self, client, mock_processor):
        lead_id = uuid4()
        mock_processor.process.return_value = ProcessResult(True, "complete", {"status": "ready"})

        response = client.post("/webhooks/lead-inserted", json={"id": str(lead_id)}, headers=AUTH)

        assert response.status_code == 200
        mock_processor.process.assert_called_once_with(lead_id)

    def test_payload_without_id_is_400(self, client, mock_processor):
        response = client.post("/webhooks/lead-inserted", json={"type": "INSERT"}, headers=AUTH)

        assert response.status_code == 400
        mock_processor.process.assert_not_called()

    def test_malformed_json_is_400(self, client):
        response = client.post(
            "/webhooks/lead-inserted",
            content=b"{not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )

        assert response.status_code == 400

    def test_processing_exception_is_reported(self, client, mock_processor):
        mock_processor.process.side_effect = RuntimeError("boom")

        response = client.post("/webhooks/lead-inserted", json={"id": str(uuid4())}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["stage"] == "error"


class TestLeadUpdated:
    def test_notification_counts(self, client, mock_notification_service):
        lead_id = uuid4()
        mock_notification_service.handle_update.return_value = NotifyOutcome(success=True, sent=2, failed=1)
        payload = {
            "type": "UPDATE",
            "record": {"id": str(lead_id), "processing_status": "ready", "notification_sent": False},
        }

        response = client.post("/webhooks/lead-updated", json=payload, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["notificationsSent"] == 2
        assert data["notificationsFailed"] == 1
        record = mock_notification_service.handle_update.call_args[0][0]
        assert record == {"id": str(lead_id), "processing_status": "ready", "notification_sent": False}

    def test_skip_response(self, client, mock_notification_service):
        mock_notification_service.handle_update.return_value = NotifyOutcome(
            success=True, skipped=True, reason="already_notified"
        )
        payload = {"record": {"id": str(uuid4()), "processing_status": "ready", "notification_sent": True}}

        data = client.post("/webhooks/lead-updated", json=payload, headers=AUTH).json()

        assert data["skipped"] is True
        assert data["reason"] == "already_notified"
        assert data["notificationsSent"] == 0


# -----------------------------------------------------------------------------
# Lead actions
# -----------------------------------------------------------------------------


class TestReplyDraft:
    @patch("lead_scout.api.routers.leads.draft_reply_for_lead")
    @patch("lead_scout.api.routers.leads.SettingsStore")
    @patch("lead_scout.api.routers.leads.LeadStore")
    def test_returns_draft(self, lead_store_cls, settings_store_cls, draft_fn, client):
        lead = make_lead()
        lead_store_cls.return_value.get_lead.return_value = lead
        settings_store_cls.return_value.get_settings_for_subscription.return_value = None
        draft_fn.return_value = "Try a shared pipeline view."

        response = client.post(f"/api/leads/{lead.id}/reply-draft", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"success": True, "draft": "Try a shared pipeline view.", "error": None}

    @patch("lead_scout.api.routers.leads.LeadStore")
    def test_unknown_lead_is_404(self, lead_store_cls, client):
        lead_store_cls.return_value.get_lead.return_value = None

        response = client.post(f"/api/leads/{uuid4()}/reply-draft", headers=AUTH)

        assert response.status_code == 404

    @patch("lead_scout.api.routers.leads.draft_reply_for_lead")
    @patch("lead_scout.api.routers.leads.SettingsStore")
    @patch("lead_scout.api.routers.leads.LeadStore")
    def test_generation_failure(self, lead_store_cls, settings_store_cls, draft_fn, client):
        lead = make_lead()
        lead_store_cls.return_value.get_lead.return_value = lead
        draft_fn.return_value = None

        data = client.post(f"/api/leads/{lead.id}/reply-draft", headers=AUTH).json()

        assert data["success"] is False
        assert data["draft"] is None


class TestNotificationTest:
    def test_sends_test_message(self, client, mock_dispatcher):
        mock_dispatcher.send_test.return_value = ChannelResult("slack", success=True)

        response = client.post(
            "/api/notifications/test",
            json={"channel": "slack", "target": "https://hooks.slack.com/services/T/B/X"},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_dispatcher.send_test.assert_called_once_with("slack", "https://hooks.slack.com/services/T/B/X")

    def test_reports_failure(self, client, mock_dispatcher):
        mock_dispatcher.send_test.return_value = ChannelResult("email", success=False, error="rejected")

        data = client.post(
            "/api/notifications/test",
            json={"channel": "email", "target": "owner@example.com"},
            headers=AUTH,
        ).json()

        assert data["success"] is False
        assert "rejected" in data["message"]

    def test_unknown_channel_is_400(self, client, mock_dispatcher):
        response = client.post(
            "/api/notifications/test",
            json={"channel": "sms", "target": "+15550100"},
            headers=AUTH,
        )

        assert response.status_code == 400
        mock_dispatcher.send_test.assert_not_called()
