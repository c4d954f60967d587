"""Shared fixtures: in-memory ERP gateway, recording dispatcher, temp database."""

import copy
from typing import Any, Dict, List, Optional

import pytest

from connectors.erp_base import (
    ERPNotFoundError,
    ERPRemoteError,
    MutationResult,
    OrderLine,
    OrderLookup,
    SalesOrder,
    SalesOrderGateway,
)
from core.config import Settings
from core.errors import NotificationError
from core.notifications.dispatcher import NotificationDispatcher
from core.notifications.events import NotificationEvent
from core.storage.db import init_db

BASE = "https://ns.test/services/rest/record/v1"


def _apply(record: Dict[str, Any], changes: Dict[str, Any]) -> None:
    for key, value in changes.items():
        if isinstance(value, dict) and "id" in value:
            record[key] = {"id": str(value["id"])}
        else:
            record[key] = value


class FakeGateway(SalesOrderGateway):
    """In-memory ERP. Records every call in `calls`.

    `fail` maps an operation name ("patch_order_header", "patch_order_line",
    "create_order_line", ...) to an exception raised on the next such call,
    or to a set of hrefs when only specific lines should fail.
    """

    def __init__(self):
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.lines: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.fail: Dict[str, Any] = {}
        self.next_id = 9000
        self.closed = False

    # -- seeding -------------------------------------------------------------

    def add_order(self, order_id: str, header: Optional[Dict[str, Any]] = None, lines: Optional[List[Dict[str, Any]]] = None):
        order_id = str(order_id)
        self.orders[order_id] = {"id": order_id, **copy.deepcopy(header or {})}
        self.lines[order_id] = []
        for line in lines or []:
            self._append_line(order_id, line)
        return self.orders[order_id]

    def _append_line(self, order_id: str, line: Dict[str, Any]) -> str:
        number = len(self.lines[order_id]) + 1
        while any(l["href"].endswith(f"/item/{number}") for l in self.lines[order_id]):
            number += 1
        href = f"{BASE}/salesOrder/{order_id}/item/{number}"
        stored = {"line": number, **copy.deepcopy(line), "href": href}
        if stored.get("item") is not None and not isinstance(stored["item"], dict):
            stored["item"] = {"id": str(stored["item"])}
        self.lines[order_id].append(stored)
        return href

    def line_by_href(self, href: str) -> Optional[Dict[str, Any]]:
        for lines in self.lines.values():
            for line in lines:
                if line["href"] == href:
                    return line
        return None

    def mutations(self) -> List[tuple]:
        return [c for c in self.calls if not c[0].startswith("fetch")]

    def _maybe_fail(self, op: str, href: Optional[str] = None) -> None:
        failure = self.fail.get(op)
        if failure is None:
            return
        if isinstance(failure, set):
            if href in failure:
                raise ERPRemoteError(f"NetSuite {op} failed with HTTP 400: Invalid field value", 400)
            return
        raise failure

    # -- gateway -------------------------------------------------------------

    async def fetch_order(self, order_id: str) -> OrderLookup:
        self.calls.append(("fetch_order", order_id))
        self._maybe_fail("fetch_order")
        record = self.orders.get(str(order_id))
        if record is None:
            return OrderLookup.not_found()
        return OrderLookup.found(SalesOrder.model_validate(copy.deepcopy(record)))

    async def fetch_order_lines(self, order_id: str) -> List[OrderLine]:
        self.calls.append(("fetch_order_lines", order_id))
        return [OrderLine.model_validate(copy.deepcopy(l)) for l in self.lines.get(str(order_id), [])]

    async def fetch_order_line(self, href: str) -> OrderLine:
        self.calls.append(("fetch_order_line", href))
        self._maybe_fail("fetch_order_line", href)
        line = self.line_by_href(href)
        if line is None:
            raise ERPNotFoundError(f"Resource not found: {href}")
        return OrderLine.model_validate(copy.deepcopy(line))

    def line_belongs_to(self, order_id: str, href: str) -> bool:
        prefix = f"{BASE}/salesOrder/{order_id}/item/"
        return bool(href) and href.startswith(prefix) and href[len(prefix):].isdigit()

    async def patch_order_header(
self, order_id: str, changes: Dict[str, Any]) -> MutationResult:
        self.calls.append(("patch_order_header", order_id, copy.deepcopy(changes)))
        self._maybe_fail("patch_order_header")
        _apply(self.orders[str(order_id)], changes)
        return MutationResult(success=True, status=204)

    async def patch_order_line(self, href: str, changes: Dict[str, Any]) -> MutationResult:
        self.calls.append(("patch_order_line", href, copy.deepcopy(changes)))
        self._maybe_fail("patch_order_line", href)
        _apply(self.line_by_href(href), changes)
        return MutationResult(success=True, status=204)

    async def create_order(self, header: Dict[str, Any]) -> str:
        self.calls.append(("create_order", copy.deepcopy(header)))
        self._maybe_fail("create_order")
        self.next_id += 1
        new_id = str(self.next_id)
        self.add_order(new_id, header)
        return new_id

    async def create_order_line(self, order_id: str, line: Dict[str, Any]) -> None:
        self.calls.append(("create_order_line", order_id, copy.deepcopy(line)))
        self._maybe_fail("create_order_line")
        self._append_line(str(order_id), line)

    async def delete_order_line(self, href: str) -> None:
        self.calls.append(("delete_order_line", href))
        self._maybe_fail("delete_order_line", href)
        for order_id, lines in self.lines.items():
            self.lines[order_id] = [l for l in lines if l["href"] != href]

    async def close(self) -> None:
        self.closed = True


class RecordingDispatcher(NotificationDispatcher):
    """Keeps dispatched events in memory; set `fail` to refuse them."""

    def __init__(self):
        self.events: List[NotificationEvent] = []
        self.fail = False
        self.started = False
        self.stopped = False

    async def dispatch(self, event: NotificationEvent) -> None:
        if self.fail:
            raise NotificationError("queue unavailable")
        self.events.append(event)

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    def kinds(self) -> List[str]:
        return [e.kind.value for e in self.events]


class FakeSender:
    """Stands in for TelegramClient; chat ids in `failing` raise."""

    def __init__(self, failing=()):
        self.sent: List[Dict[str, Any]] = []
        self.failing = set(failing)
        self.closed = False

    async def send_message(self, chat_id: str, text: str, reply_markup: Optional[dict] = None) -> None:
        if chat_id in self.failing:
            raise NotificationError(f"chat {chat_id} unreachable", 403)
        self.sent.append({"chat_id": chat_id, "text": text, "reply_markup": reply_markup})

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "orders.db"
    init_db(path)
    return path


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def settings(db_path):
    return Settings(
        netsuite_consumer_key="ck",
        netsuite_consumer_secret="cs",
        netsuite_token="tk",
        netsuite_token_secret="ts",
        netsuite_realm="1234567_SB1",
        netsuite_base_url=BASE,
        db_path=db_path,
        app_base_url="https://orders.example.com",
        coordination_department="Sales Coordination",
    )
