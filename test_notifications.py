"""
Notification Tests

Recipient planning, delivery accounting, dispatchers, the Temporal
delivery activity and the Telegram client.
"""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from temporalio.testing import ActivityEnvironment

from activities.notify import deliver_notification, set_notification_service
from conftest import FakeSender
from core.errors import NotificationError, PersistenceError
from core.notifications import messages
from core.notifications.dispatcher import InProcessNotificationDispatcher, TemporalNotificationDispatcher
from core.notifications.events import NotificationEvent, NotificationKind
from core.notifications.service import NotificationService
from core.notifications.telegram import TelegramClient
from core.storage.reference import UserDirectory

APP = "https://orders.example.com"
COORDINATION = "Sales Coordination"


@pytest.fixture
def users(db_path):
    directory = UserDirectory(db_path)
    directory.upsert_user("1001", "Anong", "K", COORDINATION)
    directory.upsert_user("1002", "Bee", "S", COORDINATION)
    directory.upsert_user("2001", "Chai", "W", "Warehouse")
    directory.upsert_user("2002", "Dao", "P", "Warehouse", registration_complete=False)
    directory.upsert_user("3001", "Ek", "T", "Billing & Credit")
    return directory


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def service(users, sender):
    return NotificationService(users, sender, APP + "/", COORDINATION)


class TestMessages:

    def test_review_buttons_link_to_response_page(self):
        markup = messages.review_buttons(f"{APP}/response/555", "Billing & Credit")
        urls = [row[0]["url"] for row in markup["inline_keyboard"]]
        assert urls == [
            f"{APP}/response/555?dept=Billing%20%26%20Credit&action=approve",
            f"{APP}/response/555?dept=Billing%20%26%20Credit&action=revise",
        ]

    def test_user_text_is_escaped(self):
        message = messages.revision_requested("555", "Warehouse", "<b>qty</b> & rate", f"{APP}/order/555")
        assert "&lt;b&gt;qty&lt;/b&gt; &amp; rate" in message.text

    def test_response_status_wording(self):
        assert "approved" in messages.response_status("1", "Warehouse", "approve", "u").text
        assert "sent back for revision" in messages.response_status("1", "Warehouse", "revise", "u").text


class TestPlanning:

    def test_order_updated_goes_to_coordination(self, service):
        planned = service.plan(NotificationEvent.order_updated("555", actor="9"))
        assert sorted(chat for chat, _ in planned) == ["1001", "1002"]
        assert f"{APP}/order/555" in planned[0][1].text
        assert planned[0][1].reply_markup is None

    def test_review_request_carries_buttons(self, service):
        planned = service.plan(NotificationEvent.review_requested("555", "Warehouse"))
        # unregistered users are skipped
        assert [chat for chat, _ in planned] == ["2001"]
        buttons = planned[0][1].reply_markup["inline_keyboard"]
        assert buttons[0][0]["url"].startswith(f"{APP}/response/555?dept=Warehouse")

    def test_split_links_to_new_order(self, service):
        planned = service.plan(NotificationEvent.split_created("100", "9001", "SOV2405001"))
        assert len(planned) == 2
        text = planned[0][1].text
        assert "SOV2405001" in text
        assert f"{APP}/order/9001" in text

    def test_revise_response_notifies_editor_and_departments(self, service):
        event = NotificationEvent.response_recorded(
            "555", "Warehouse", "revise", remark="wrong qty",
            updated_by="7777", departments=["Warehouse", "Billing & Credit"],
        )
        planned = service.plan(event)
        chats = [chat for chat, _ in planned]
        assert chats == ["7777", "2001", "3001"]
        assert "wrong qty" in planned[0][1].text

    def test_approve_response_skips_editor(self, service):
        event = NotificationEvent.response_recorded(
            "555", "Warehouse", "approve", updated_by="7777", departments=["Warehouse"],
        )
        assert [chat for chat, _ in service.plan(event)] == ["2001"]

    def test_department_without_members(self, service):
        assert service.plan(NotificationEvent.review_requested("555", "Legal")) == []


class TestDelivery:

    def test_counts_sent_and_failed(self, users):
        sender = FakeSender(failing={"1002"})
        service = NotificationService(users, sender, APP, COORDINATION)

        report = asyncio.run(service.deliver(NotificationEvent.order_updated("555")))

        assert (report.sent, report.failed) == (1, 1)
        assert report.recipients == ["1001"]
        assert sender.sent[0]["chat_id"] == "1001"

    def test_no_recipients(self, service, sender):
        report = asyncio.run(service.deliver(NotificationEvent.review_requested("555", "Legal")))
        assert report.sent == 0
        assert sender.sent == []

    def test_directory_failure_raises(self, tmp_path, sender):
        broken = UserDirectory(tmp_path / "missing" / "orders.db")
        service = NotificationService(broken, sender, APP, COORDINATION)
        with pytest.raises(PersistenceError):
            asyncio.run(service.deliver(NotificationEvent.order_updated("555")))


class TestEvents:

    def test_dict_round_trip(self):
        event = NotificationEvent.response_recorded(
            "555", "Warehouse", "revise", remark="r", actor="1", updated_by="2", departments=["Warehouse"],
        )
        data = event.to_dict()
        assert data["kind"] == "RESPONSE_RECORDED"
        restored = NotificationEvent.from_dict({**data, "unknown": "ignored"})
        assert restored == event
        assert restored.kind is NotificationKind.RESPONSE_RECORDED

    def test_event_ids_unique(self):
        assert NotificationEvent.order_updated("1").event_id != NotificationEvent.order_updated("1").event_id


class TestInProcessDispatcher:

    def test_delivers_queued_events(self):
        async def scenario():
            handled = []

            async def handler(event):
                handled.append(event.order_id)

            dispatcher = InProcessNotificationDispatcher(handler)
            await dispatcher.start()
            for order_id in ("1", "2", "3"):
                await dispatcher.dispatch(NotificationEvent.order_updated(order_id))
            await dispatcher.drain()
            await dispatcher.stop()
            return handled, dispatcher.delivered

        handled, delivered = asyncio.run(scenario())
        assert handled == ["1", "2", "3"]
        assert delivered == 3

    def test_handler_failure_does_not_stop_consumer(self):
        async def scenario():
            async def handler(event):
                if event.order_id == "bad":
                    raise NotificationError("telegram down")

            dispatcher = InProcessNotificationDispatcher(handler)
            await dispatcher.start()
            await dispatcher.dispatch(NotificationEvent.order_updated("bad"))
            await dispatcher.dispatch(NotificationEvent.order_updated("good"))
            await dispatcher.drain()
            await dispatcher.stop()
            return dispatcher.delivered, dispatcher.failed

        assert asyncio.run(scenario()) == (1, 1)

    def test_rejects_after_stop(self):
        async def scenario():
            async def handler(event):
                return None

            dispatcher = InProcessNotificationDispatcher(handler)
            await dispatcher.start()
            await dispatcher.stop()
            await dispatcher.dispatch(NotificationEvent.order_updated("1"))

        with pytest.raises(NotificationError, match="stopped"):
            asyncio.run(scenario())

    def test_full_queue(self):
        async def scenario():
            async def handler(event):
                return None

            dispatcher = InProcessNotificationDispatcher(handler, maxsize=1)
            await dispatcher.dispatch(NotificationEvent.order_updated("1"))
            await dispatcher.dispatch(NotificationEvent.order_updated("2"))

        with pytest.raises(NotificationError, match="full"):
            asyncio.run(scenario())


class FakeTemporalClient:

    def __init__(self, fail=False):
        self.started = []
        self.fail = fail

    async def start_workflow(self, run, arg, id, task_queue):
        if self.fail:
            raise RuntimeError("connection refused")
        self.started.append({"run": run, "arg": arg, "id": id, "task_queue": task_queue})


class TestTemporalDispatcher:

    def test_starts_one_workflow_per_event(self):
        from workflows.notification_workflow import NotificationWorkflow

        client = FakeTemporalClient()
        dispatcher = TemporalNotificationDispatcher(client, "order-notify")
        event = NotificationEvent.split_created("100", "9001", "SOV2405001")

        asyncio.run(dispatcher.dispatch(event))

        started = client.started[0]
        assert started["run"] == NotificationWorkflow.run
        assert started["id"] == f"notify-{event.event_id}"
        assert started["task_queue"] == "order-notify"
        assert started["arg"]["kind"] == "SPLIT_CREATED"

    def test_client_failure_becomes_notification_error(self):
        dispatcher = TemporalNotificationDispatcher(FakeTemporalClient(fail=True), "order-notify")
        with pytest.raises(NotificationError, match="connection refused"):
            asyncio.run(dispatcher.dispatch(NotificationEvent.order_updated("1")))


class TestDeliveryActivity:

    def test_activity_delivers_event(self, service, sender):
        set_notification_service(service)
        try:
            event = NotificationEvent.review_requested("555", "Warehouse")
            report = asyncio.run(ActivityEnvironment().run(deliver_notification, event.to_dict()))
        finally:
            set_notification_service(None)

        assert report["sent"] == 1
        assert report["recipients"] == ["2001"]
        assert report["event_id"] == event.event_id
        assert sender.sent[0]["reply_markup"] is not None


class FakeTelegram:

    def __init__(self, status=200):
        self.status = status
        self.received = []

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/bot{token}/sendMessage", self.send_message)
        return app

    async def send_message(self, request):
        self.received.append({"token": request.match_info["token"], "body": await request.json()})
        if self.status != 200:
            return web.json_response({"ok": False, "description": "Forbidden: bot was blocked"}, status=self.status)
        return web.json_response({"ok": True, "result": {"message_id": 1}})


def run_telegram(fake: FakeTelegram, scenario, token="123:abc"):
    async def _run():
        server = TestServer(fake.app())
        await server.start_server()
        client = TelegramClient(token, str(server.make_url("")).rstrip("/"))
        try:
            return await scenario(client)
        finally:
            await client.close()
            await server.close()

    return asyncio.run(_run())


class TestTelegramClient:

    def test_send_message(self):
        fake = FakeTelegram()
        markup = messages.review_buttons(f"{APP}/response/1", "Warehouse")
        run_telegram(fake, lambda client: client.send_message("1001", "<b>hi</b>", markup))

        sent = fake.received[0]
        assert sent["token"] == "123:abc"
        assert sent["body"] == {"chat_id": "1001", "text": "<b>hi</b>", "parse_mode": "HTML", "reply_markup": markup}

    def test_error_status(self):
        fake = FakeTelegram(status=403)
        with pytest.raises(NotificationError) as exc_info:
            run_telegram(fake, lambda client: client.send_message("1001", "hi"))
        assert exc_info.value.status_code == 403
        assert "bot was blocked" in str(exc_info.value)

    def test_missing_token(self):
        with pytest.raises(NotificationError, match="TELEGRAM_BOT_TOKEN"):
            asyncio.run(TelegramClient("").send_message("1", "hi"))

    def test_unreachable_server(self):
        async def scenario():
            client = TelegramClient("t", "http://127.0.0.1:9", timeout_seconds=2)
            try:
                await client.send_message("1", "hi")
            finally:
                await client.close()

        with pytest.raises(NotificationError):
            asyncio.run(scenario())
