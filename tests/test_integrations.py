import pytest

from conftest import run
from eduknit.integrations import discord, service
from eduknit.integrations.discord import DiscordDeliveryError, is_valid_webhook_url, mask_webhook_url

WEBHOOK = "https://discord.com/api/webhooks/123456789/abcdefTOKEN"


class FakeWebhook:
    """Records posted embeds instead of calling Discord"""

    def __init__(self):
        self.calls = []
        self.fail = False

    async def __call__(self, webhook_url, embeds, username="EduKnit Learn"):
        if self.fail:
            raise DiscordDeliveryError("Webhook returned 404")
        self.calls.append((webhook_url, embeds))


@pytest.fixture()
def webhook(monkeypatch):
    fake = FakeWebhook()
    monkeypatch.setattr(discord, "post_webhook", fake)
    monkeypatch.setattr(service, "post_webhook", fake)
    return fake


def connect(client, student, **extra):
    return client.post("/api/integrations", headers=student["headers"], json={
        "platform": "discord", "webhook_url": WEBHOOK, **extra,
    })


def test_webhook_url_helpers():
    assert is_valid_webhook_url(WEBHOOK)
    assert not is_valid_webhook_url("https://example.com/api/webhooks/1/abc")
    assert not is_valid_webhook_url("http://discord.com/api/webhooks/1/abc")
    assert mask_webhook_url(WEBHOOK) == "https://discord.com/api/webhooks/123456789/abcd..."
    assert mask_webhook_url(None) is None


def test_connect_verifies_and_masks(client, student, webhook):
    response = connect(client, student)
    assert response.status_code == 200
    integration = response.json()["data"]
    assert integration["webhook_url"].endswith("/abcd...")
    assert integration["is_active"] is True
    assert integration["preferences"] == {
        "notifications": True, "announcements": True, "progress_updates": False, "achievement_sharing": False,
    }
    assert integration["metadata"]["sync_count"] == 1
    assert len(webhook.calls) == 1

    listed = client.get("/api/integrations", headers=student["headers"]).json()["data"]
    assert len(listed) == 1
    assert WEBHOOK not in str(listed)


def test_reconnect_same_webhook_skips_verification(client, student, webhook):
    connect(client, student)
    response = connect(client, student, enabled=False)
    assert response.json()["data"]["is_active"] is False
    assert len(webhook.calls) == 1


def test_invalid_webhook_url_rejected(client, student, webhook):
    response = client.post("/api/integrations", headers=student["headers"], json={
        "platform": "discord", "webhook_url": "https://example.com/hook",
    })
    assert response.status_code == 400
    assert webhook.calls == []


def test_unreachable_webhook_rejected(client, db, student, webhook):
    webhook.fail = True
    response = connect(client, student)
    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "webhook_url"
    assert run(db.integrations.count_documents({})) == 0


def test_failed_test_records_error(client, db, student, webhook):
    connect(client, student)
    webhook.fail = True

    response = client.post("/api/integrations/discord/test", headers=student["headers"])
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Integration test failed"

    stored = run(db.integrations.find_one({"user_id": student["user_id"]}))
    assert stored["metadata"]["error_count"] == 1
    assert stored["metadata"]["last_error"] == "Webhook returned 404"

    webhook.fail = False
    ok = client.post("/api/integrations/discord/test", headers=student["headers"])
    assert ok.json()["data"]["delivered"] is True
    stored = run(db.integrations.find_one({"user_id": student["user_id"]}))
    assert stored["metadata"]["last_error"] is None


def test_send_custom_notification(client, student, webhook):
    connect(client, student)
    response = client.post("/api/integrations/notify", headers=student["headers"], json={
        "platform": "discord", "title": "Study time", "message": "Lesson 2 tonight",
    })
    assert response.status_code == 200
    assert webhook.calls[-1][1][0]["title"] == "Study time"

    connect(client, student, enabled=False)
    disabled = client.post("/api/integrations/notify", headers=student["headers"], json={
        "platform": "discord", "title": "Study time", "message": "Lesson 2 tonight",
    })
    assert disabled.status_code == 400


def test_domain_events_respect_preferences(client, student, webhook, make_course):
    connect(client, student, preferences={
        "notifications": True, "announcements": True, "progress_updates": True, "achievement_sharing": False,
    })
    ids = make_course()
    client.post("/api/enrollments", headers=student["headers"], json={"course_id": ids["course_id"]})
    assert len(webhook.calls) == 2

    # first_lesson badge is not shared because achievement_sharing is off
    client.post(f"/api/progress/lessons/{ids['lesson_ids'][0]}/complete", headers=student["headers"])
    assert len(webhook.calls) == 2


def test_delete_integration(client, student, webhook):
    assert client.delete("/api/integrations/discord", headers=student["headers"]).status_code == 404
    connect(client, student)
    assert client.delete("/api/integrations/discord", headers=student["headers"]).status_code == 200
    assert client.get("/api/integrations", headers=student["headers"]).json()["data"] == []


def test_unknown_platform(client, student, webhook):
    assert client.post("/api/integrations/slack/test", headers=student["headers"]).status_code == 400


def test_update_keeps_server_and_channel_ids(client, student, webhook):
    connect(client, student, server_id="guild-1", channel_id="chan-1")
    updated = connect(client, student, enabled=False).json()["data"]
    assert updated["server_id"] == "guild-1"
    assert updated["channel_id"] == "chan-1"

    moved = connect(client, student, channel_id="chan-2").json()["data"]
    assert moved["server_id"] == "guild-1"
    assert moved["channel_id"] == "chan-2"
