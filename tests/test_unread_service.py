import asyncio

from conftest import RecordingBus
from rested_messaging.repositories.counter_repository import CounterRepository
from rested_messaging.repositories.message_repository import MessageRepository
from rested_messaging.services.unread_service import UnreadService


async def _seed(db, messages):
    await db["messages"].insert_many(messages)


def _service(db, bus=None):
    return UnreadService(CounterRepository(db), MessageRepository(db), bus or RecordingBus())


def test_mark_log_read_clears_exactly_that_log(db):
    counters = CounterRepository(db)
    service = _service(db)

    async def run():
        await _seed(db, [
            {"_id": "m1", "conversationId": "conv", "childId": "c1", "logId": "L1", "readBy": {"r1": False}},
            {"_id": "m2", "conversationId": "conv", "childId": "c1", "logId": "L1", "readBy": {"r1": False}},
            {"_id": "m3", "conversationId": "conv", "childId": "c1", "logId": "L2", "readBy": {"r1": False}},
        ])
        for log_id in ("L1", "L1", "L2"):
            await counters.increment_for_message("r1", "c1", log_id)
        result = await service.mark_log_read("r1", "c1", "L1")
        docs = {d["_id"]: d async for d in db["messages"].find({})}
        return result, await counters.get_counter("r1", "c1"), docs

    result, counter, docs = asyncio.run(run())
    assert result == {"success": True, "messagesMarkedRead": 2, "message": "Log comments marked as read"}
    assert counter["logUnreadByLogId"]["L1"] == 0
    assert counter["logUnreadByLogId"]["L2"] == 1
    assert counter["logUnreadCount"] == 1
    assert docs["m1"]["readBy"]["r1"] is True
    assert docs["m2"]["readBy"]["r1"] is True
    assert docs["m3"]["readBy"]["r1"] is False


def test_mark_chat_read_is_idempotent(db):
    counters = CounterRepository(db)
    service = _service(db)

    async def run():
        await _seed(db, [
            {"_id": "m1", "conversationId": "conv", "childId": "c1", "readBy": {"r1": False}},
            {"_id": "m2", "conversationId": "conv", "childId": "c1", "logId": "L1", "readBy": {"r1": False}},
        ])
        await counters.increment_for_recipients(["r1"], "c1")
        await counters.increment_for_message("r1", "c1", "L1")
        first = await service.mark_chat_read("r1", "c1", "conv")
        after_first = await counters.get_counter("r1", "c1")
        second = await service.mark_chat_read("r1", "c1", "conv")
        after_second = await counters.get_counter("r1", "c1")
        log_comment = await db["messages"].find_one({"_id": "m2"})
        return first, second, after_first, after_second, log_comment

    first, second, after_first, after_second, log_comment = asyncio.run(run())
    assert first["messagesMarkedRead"] == 1
    assert second == {"success": True, "messagesMarkedRead": 0, "message": "No unread chat messages"}
    assert after_first["chatUnreadCount"] == after_second["chatUnreadCount"] == 0
    assert after_first["totalUnreadCount"] == after_second["totalUnreadCount"] == 1
    assert log_comment["readBy"]["r1"] is False


def test_mark_all_logs_read_short_circuits_when_nothing_unread(db):
    service = _service(db)

    async def run():
        await _seed(db, [{"_id": "m1", "conversationId": "conv", "childId": "c1", "logId": "L1", "readBy": {"r1": False}}])
        result = await service.mark_all_logs_read("r1", "c1")
        return result, await db["messages"].find_one({"_id": "m1"})

    result, message = asyncio.run(run())
    assert result == {"success": True, "messagesMarkedRead": 0, "message": "No unread log comments"}
    assert message["readBy"]["r1"] is False


def test_mark_all_logs_read_refreshes_family_and_publishes(db):
    counters = CounterRepository(db)
    bus = RecordingBus()
    service = _service(db, bus)

    async def run():
        await _seed(db, [
            {"_id": "m1", "conversationId": "conv", "childId": "c2", "logId": "L1", "readBy": {"r1": False}},
            {"_id": "m2", "conversationId": "conv", "childId": "c2", "logId": "L2", "readBy": {"r1": False}},
        ])
        await counters.increment_for_recipients(["r1"], "c1")
        await counters.increment_for_message("r1", "c2", "L1")
        await counters.increment_for_message("r1", "c2", "L2")
        result = await service.mark_all_logs_read("r1", "c2", "c1", ["c1", "c2"])
        family = await counters.get_family_counters("r1", "c1")
        return result, family

    result, family = asyncio.run(run())
    assert result["messagesMarkedRead"] == 2
    assert result["message"] == "All log comments marked as read"
    assert family["familyChatUnreadCount"] == 1
    assert family["familyLogUnreadCount"] == 0
    assert family["familyTotalUnreadCount"] == 1
    assert bus.published[0][0] == "r1"
    assert bus.published[0][1]["logUnreadCount"] == 0


def test_family_refresh_failure_does_not_fail_the_read(db, monkeypatch):
    counters = CounterRepository(db)
    service = UnreadService(counters, MessageRepository(db), RecordingBus())

    async def broken(*args, **kwargs):
        raise RuntimeError("family store down")

    monkeypatch.setattr(counters, "build_family", broken)

    async def run():
        await counters.increment_for_recipients(["r1"], "c1")
        return await service.mark_chat_read("r1", "c1", "conv"), await counters.get_counter("r1", "c1")

    result, counter = asyncio.run(run())
    assert result["success"] is True
    assert counter["chatUnreadCount"] == 0


def test_get_counters_carries_a_timestamp(db):
    counters = asyncio.run(_service(db).get_counters("r1", "c1"))
    assert counters["totalUnreadCount"] == 0
    assert isinstance(counters["timestamp"], int)


def test_get_family_counters_recomputes_when_siblings_given(db):
    counters = CounterRepository(db)
    service = _service(db)

    async def run():
        await counters.increment_for_message("r1", "c1", "L1")
        await counters.increment_for_message("r1", "c2", "L2")
        without = await service.get_family_counters("r1", "c1")
        with_siblings = await service.get_family_counters("r1", "c1", ["c1", "c2"])
        return without, with_siblings

    without, with_siblings = asyncio.run(run())
    assert without["familyTotalUnreadCount"] == 0
    assert with_siblings["familyLogUnreadCount"] == 2
    assert with_siblings["familyTotalUnreadCount"] == 2
