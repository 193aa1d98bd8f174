"""Tests for alert and owner settings lookups."""

from uuid import uuid4

from lead_scout.db.settings_store import SettingsStore


def settings_row(owner_id, **overrides):
    row = {
        "owner_id": owner_id,
        "keywords": ["CRM", "crm", "x", "invoicing"],
        "product_description": "A CRM",
        "product_context": None,
        "slack_webhook_url": "https://hooks.slack.com/services/T/B/X",
        "slack_notifications_enabled": True,
        "discord_webhook_url": None,
        "discord_notifications_enabled": None,
        "notification_email": None,
        "email_notifications_enabled": False,
    }
    row.update(overrides)
    return row


def test_list_active_subscriptions_normalizes(mock_db):
    alert_id, owner_id = uuid4(), uuid4()
    mock_db.cursor_mock.fetchall.return_value = [
        {"id": alert_id, "owner_id": owner_id, "topic": "r/SaaS", "active": True, "keywords": ["demo", "Demo"]},
    ]

    subs = SettingsStore(mock_db).list_active_subscriptions()

    assert len(subs) == 1
    assert subs[0].topic == "saas"
    assert subs[0].keywords == ["demo"]


def test_get_owner_settings_maps_channels(mock_db):
    owner_id = uuid4()
    mock_db.cursor_mock.fetchone.return_value = settings_row(owner_id)

    settings = SettingsStore(mock_db).get_owner_settings(owner_id)

    assert settings.keywords == ["CRM", "invoicing"]
    assert settings.business_context == "A CRM"
    assert settings.notifications.slack_notifications_enabled is True
    assert settings.notifications.discord_notifications_enabled is False


def test_get_owner_settings_missing(mock_db):
    mock_db.cursor_mock.fetchone.return_value = None
    assert SettingsStore(mock_db).get_owner_settings(uuid4()) is None


def test_settings_for_unknown_subscription(mock_db):
    mock_db.cursor_mock.fetchone.return_value = None
    assert SettingsStore(mock_db).get_settings_for_subscription(uuid4()) is None

