"""
Tests for the polling channel endpoint (/api/channel) and ChannelHub.
"""
from unittest.mock import patch

from telehealth_svc.services.channel_service import MAX_MESSAGES_PER_CHANNEL, ChannelHub


# =============================================================================
# CHANNEL HUB
# =============================================================================

def test_send_and_poll_in_order():
    hub = ChannelHub()
    first = hub.send("room", {"n": 1})
    second = hub.send("room", {"n": 2})
    assert [m["data"] for m in hub.poll("room")] == [{"n": 1}, {"n": 2}]
    assert hub.poll("room", after=first["id"]) == [second]
    assert first["id"] != second["id"]


def test_poll_unknown_channel_is_empty():
    hub = ChannelHub()
    assert hub.poll("nobody") == []
    assert hub.poll(None) == []


def test_history_is_bounded():
    hub = ChannelHub()
    for i in range(MAX_MESSAGES_PER_CHANNEL + 5):
        hub.send("room", i)
    messages = hub.poll("room")
    assert len(messages) == MAX_MESSAGES_PER_CHANNEL
    assert messages[0]["data"] == 5


def test_subscriptions():
    hub = ChannelHub()
    a = hub.subscribe("room")
    hub.subscribe("room")
    assert hub.status("room")["subscribers"] == 2
    assert hub.unsubscribe("room", a) == 1
    assert hub.unsubscribe("room") == 1
    assert hub.unsubscribe("missing") == 0
    assert hub.status("room")["subscribers"] == 0


def test_connect_and_unsubscribe_leaves_no_channels():
    hub = ChannelHub()
    for i in range(10_000):
        hub.connect(f"tab-{i}")
        hub.unsubscribe(f"tab-{i}")
    assert len(hub) == 0


def test_channel_with_history_survives_unsubscribe():
    hub = ChannelHub()
    sub = hub.subscribe("room")
    hub.send("room", "hello")
    hub.unsubscribe("room", sub)
    assert hub.status("room")["exists"] is True
    assert len(hub.poll("room")) == 1


def test_idle_unsubscribed_channels_are_evicted():
    now = [0.0]
    hub = ChannelHub(idle_seconds=60, clock=lambda: now[0])
    hub.send("quiet", "x")
    hub.subscribe("busy")
    now[0] = 61.0
    hub.connect("fresh")
    assert hub.status("quiet")["exists"] is False
    assert hub.status("busy")["exists"] is True
    assert len(hub) == 2


def test_oldest_unsubscribed_channel_evicted_at_capacity():
    hub = ChannelHub(max_channels=3)
    for name in ("a", "b", "c"):
        hub.send(name, name)
    hub.poll("a")
    hub.send("d", "d")
    assert len(hub) == 3
    assert hub.status("b")["exists"] is False
    assert all(hub.status(name)["exists"] for name in ("a", "c", "d"))


def test_status_does_not_create_channels():
    hub = ChannelHub()
    hub.status("ghost")
    assert len(hub) == 0


# =============================================================================
# GET /api/channel
# =============================================================================

def test_get_without_action(client):
    response = client.get("/api/channel")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["message"] == "Channel endpoint is active"
    assert "timestamp" in data


def test_connect_then_status(client):
    connected = client.get("/api/channel", params={"id": "room-1", "action": "connect"}).json()
    assert connected["status"] == "connected"
    assert connected["channelId"] == "room-1"

    status = client.get("/api/channel", params={"id": "room-1", "action": "status"}).json()
    assert status["status"] == "active"
    assert status["exists"] is True
    assert status["messages"] == 0


def test_status_of_unknown_channel(client):
    data = client.get("/api/channel", params={"id": "ghost", "action": "status"}).json()
    assert data["exists"] is False


def test_get_failure_returns_500_envelope(client):
    with patch.object(ChannelHub, "poll", side_effect=RuntimeError("hub exploded")):
        response = client.get("/api/channel", params={"id": "room", "action": "poll"})
    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "Internal server error"
    assert data["message"] == "hub exploded"
    assert "timestamp" in data


def test_channel_needs_no_api_key(unauthenticated_client):
    assert unauthenticated_client.get("/api/channel").status_code == 200


# =============================================================================
# POST /api/channel
# =============================================================================

def test_send_then_poll(client):
    sent = client.post("/api/channel", json={"action": "send", "channelId": "room", "data": {"text": "hi"}}).json()
    assert sent["status"] == "sent"
    assert sent["messageId"].startswith("msg_")

    polled = client.get("/api/channel", params={"id": "room", "action": "poll"}).json()
    assert polled["status"] == "ok"
    assert [m["data"] for m in polled["messages"]] == [{"text": "hi"}]

    later = client.get("/api/channel", params={"id": "room", "action": "poll", "after": sent["messageId"]}).json()
    assert later["messages"] == []


def test_subscribe_and_unsubscribe(client):
    subscribed = client.post("/api/channel", json={"action": "subscribe", "channelId": "room"}).json()
    assert subscribed["status"] == "subscribed"
    assert subscribed["subscriptionId"].startswith("sub_")

    unsubscribed = client.post("/api/channel", json={
        "action": "unsubscribe",
        "channelId": "room",
        "data": {"subscriptionId": subscribed["subscriptionId"]},
    }).json()
    assert unsubscribed["status"] == "unsubscribed"
    assert client.get("/api/channel", params={"id": "room", "action": "status"}).json()["subscribers"] == 0


def test_unknown_action_echoes_data(client):
    data = client.post("/api/channel", json={"action": "wave", "data": [1, 2]}).json()
    assert data["status"] == "received"
    assert data["data"] == [1, 2]


def test_send_requires_channel_id(client):
    response = client.post("/api/channel", json={"action": "send", "data": "x"})
    assert response.status_code == 400
    assert response.json()["message"] == "channelId is required"


def test_invalid_json_body(client):
    response = client.post("/api/channel", content="{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Bad request"
    assert data["message"] == "Invalid request body"


def test_non_object_body(client):
    response = client.post("/api/channel", json=["send"])
    assert response.status_code == 400
    assert response.json()["message"] == "Request body must be a JSON object"
