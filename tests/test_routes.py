import asyncio

import httpx
from fastapi.testclient import TestClient

from conftest import build_app, build_registry, mock_http
from rested_messaging.repositories.counter_repository import CounterContentionError, CounterRepository


def _client(db, settings, http=None, **kwargs):
    app = build_app(build_registry(db, http=http), settings)
    return TestClient(app, **kwargs)


def test_missing_parameters_are_named(db, settings):
    client = _client(db, settings)

    response = client.get("/getUnreadCounters", params={"userId": "u1"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required parameters: childId"}

    response = client.post("/markLogAsRead", json={"userId": "u1", "childId": "  "})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required parameters: childId, logId"}


def test_get_unread_counters_accepts_query_or_body(db, settings):
    client = _client(db, settings)
    asyncio.run(CounterRepository(db).increment_for_message("u1", "c1", "L1"))

    by_query = client.get("/getUnreadCounters", params={"userId": "u1", "childId": "c1"}).json()
    by_body = client.post("/getUnreadCounters", json={"userId": "u1", "childId": "c1"}).json()

    for body in (by_query, by_body):
        assert body["chatUnreadCount"] == 0
        assert body["logUnreadCount"] == 1
        assert body["logUnreadByLogId"] == {"L1": 1}
        assert body["totalUnreadCount"] == 1
        assert isinstance(body["timestamp"], int)


def test_mark_chat_read_round_trip(db, settings):
    client = _client(db, settings)

    async def seed():
        await db["messages"].insert_one({"_id": "m1", "conversationId": "conv", "childId": "c1", "readBy": {"u1": False}})
        await CounterRepository(db).increment_for_recipients(["u1"], "c1")

    asyncio.run(seed())
    payload = {"userId": "u1", "childId": "c1", "conversationId": "conv"}

    first = client.post("/markChatAsRead", json=payload)
    second = client.post("/markChatAsRead", json=payload)

    assert first.status_code == 200
    assert first.json() == {"success": True, "messagesMarkedRead": 1, "message": "Chat messages marked as read"}
    assert second.json() == {"success": True, "messagesMarkedRead": 0, "message": "No unread chat messages"}


def test_family_counters_accept_comma_separated_siblings(db, settings):
    client = _client(db, settings)

    async def seed():
        counters = CounterRepository(db)
        await counters.increment_for_message("u1", "c1", "L1")
        await counters.increment_for_message("u1", "c2", "L2")

    asyncio.run(seed())
    response = client.get("/getFamilyUnreadCounters", params={"userId": "u1", "originalChildId": "c1", "siblings": "c1,c2"})

    body = response.json()
    assert response.status_code == 200
    assert body["familyLogUnreadCount"] == 2
    assert body["familyTotalUnreadCount"] == 2


def test_options_is_answered_without_a_body(db, settings):
    response = _client(db, settings).options("/markChatAsRead")
    assert response.status_code == 204
    assert response.content == b""


def test_unhandled_errors_use_the_error_shape(db, settings):
    app = build_app(build_registry(db), settings)

    @app.get("/explode")
    async def explode():
        raise RuntimeError("boom")

    response = TestClient(app, raise_server_exceptions=False).get("/explode")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_user_mapping_endpoints(db, settings):
    client = _client(db, settings)

    created = client.post("/createUserMapping", json={"oldUserId": "old-1", "newUserId": "new-1", "email": "a@x.com"})
    found = client.get("/getUserMapping", params={"email": "a@x.com"})
    missing = client.post("/getUserMapping", json={"newUserId": "nope"})
    invalid = client.get("/getUserMapping")

    assert created.status_code == 200
    assert created.json()["mapping"] == {"oldUserId": "old-1", "newUserId": "new-1", "email": "a@x.com"}
    assert found.json()["found"] is True
    assert found.json()["mapping"]["newUserId"] == "new-1"
    assert missing.json() == {"found": False, "message": "No mapping found"}
    assert invalid.status_code == 400
    assert invalid.json() == {"error": "Must provide oldUserId, newUserId, or email"}


def test_sync_tokens_validates_app_tag(db, settings):
    client = _client(db, settings)

    ok = client.post("/syncFCMTokens", json={"userId": "u1", "fcmToken": "tok", "app": "doulaconnect"})
    bad = client.post("/syncFCMTokens", json={"userId": "u1", "fcmToken": "tok", "app": "android"})

    assert ok.json() == {"success": True, "message": "FCM token synced successfully", "userId": "u1"}
    assert bad.status_code == 400
    assert bad.json() == {"error": "Invalid parameters: app"}


def test_push_test_endpoint(db, settings):
    client = _client(db, settings)

    no_target = client.post("/testPushNotification", json={})
    no_token = client.post("/testPushNotification", json={"userId": "nobody"})
    no_project = client.post("/testPushNotification", json={"fcmToken": "tok"})

    assert no_target.status_code == 400
    assert no_target.json() == {"error": "Must provide either fcmToken or userId"}
    assert no_token.json() == {"success": False, "message": "No FCM token found for user", "fcmToken": None}
    assert no_project.json() == {"success": False, "message": "Failed to send push notification", "fcmToken": "tok"}


def test_explore_requires_configured_project(db, settings):
    client = _client(db, settings)

    unconfigured = client.get("/exploreFCMTokenStorage", params={"project": "rested"})
    unknown = client.get("/exploreFCMTokenStorage", params={"project": "other"})

    assert unconfigured.status_code == 400
    assert unconfigured.json() == {"error": "rested legacy project not configured"}
    assert unknown.status_code == 400


def test_message_created_trigger(db, settings):
    onesignal = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/wf/firebase_message_recipients"):
            return httpx.Response(200, json={"response": {"userIds": ["r1", "s1"], "senderName": "Ann"}})
        if "/user/" in request.url.path:
            return httpx.Response(200, json={"response": {"Player ID(s)": ["p1"]}})
        onesignal.append(request)
        return httpx.Response(200, json={"id": "n-1", "recipients": 1})

    client = _client(db, settings, http=mock_http(handler))

    response = client.post(
        "/onMessageCreated/m1",
        json={"senderId": "s1", "conversationId": "conv", "childId": "c1", "text": "hello"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "accepted": True,
        "messageId": "m1",
        "recipients": 1,
        "countersUpdated": 1,
        "familiesUpdated": 1,
        "notified": 1,
    }
    # one request per app tenant
    assert len(onesignal) == 2
    counters = client.get("/getUnreadCounters", params={"userId": "r1", "childId": "c1"}).json()
    assert counters["chatUnreadCount"] == 1

    stored = asyncio.run(db["messages"].find_one({"_id": "m1"}))
    assert stored["readBy"] == {"r1": False}
    assert stored["senderId"] == "s1"
    assert stored["text"] == "hello"

    read = client.post("/markChatAsRead", json={"userId": "r1", "childId": "c1", "conversationId": "conv"})
    assert read.json() == {"success": True, "messagesMarkedRead": 1, "message": "Chat messages marked as read"}
    assert asyncio.run(db["messages"].find_one({"_id": "m1"}))["readBy"] == {"r1": True}


def test_message_created_trigger_validates_document(db, settings):
    response = _client(db, settings).post("/onMessageCreated/m1", json={"conversationId": "conv", "childId": "c1"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required parameters: senderId"}


def test_server_errors_keep_cors_headers(db, settings):
    app = build_app(build_registry(db), settings)

    @app.get("/explode")
    async def explode():
        raise RuntimeError("boom")

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/explode", headers={"Origin": "https://app.rested.family"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert response.headers["access-control-allow-origin"] == "*"


def test_mark_read_reports_conflict_when_counter_keeps_moving(db, settings, monkeypatch):
    async def contended(self, *args):
        raise CounterContentionError("user_u1_child_c1 kept changing")

    monkeypatch.setattr(CounterRepository, "reset_chat", contended)
    monkeypatch.setattr(CounterRepository, "reset_all_logs", contended)
    client = _client(db, settings)

    chat = client.post("/markChatAsRead", json={"userId": "u1", "childId": "c1", "conversationId": "conv"})
    logs = client.post("/markAllLogsAsRead", json={"userId": "u1", "childId": "c1"})

    for response in (chat, logs):
        assert response.status_code == 409
        assert response.json() == {"error": "Unread counters changed while marking as read, please retry"}
