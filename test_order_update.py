"""
Order Update Orchestrator Tests

Header/line patching against the in-memory gateway, per-attempt logs,
partial failure, idempotent re-submission and queued notifications.
"""

import asyncio

import pytest

from conftest import BASE
from connectors.erp_base import ERPNotFoundError, ERPRemoteError
from core.errors import OrderValidationError
from core.notifications.events import NotificationKind
from core.orders.update import OrderUpdateOrchestrator
from core.storage.workflow import OrderWorkflowStore


def seed(gateway):
    gateway.add_order("555", {
        "memo": "Order A",
        "otherRefNum": "PO-1",
        "tranDate": "2024-05-01T00:00:00Z",
        "location": {"id": "3"},
    }, lines=[
        {"item": {"id": "42"}, "quantity": 10, "rate": 5, "description": "Widget"},
        {"item": {"id": "43"}, "quantity": 2, "rate": 7, "description": "Gadget"},
    ])
    return gateway.lines["555"]


def header(**overrides):
    data = {"memo": "Order A", "otherrefnum": "PO-1", "tranDate": "2024-05-01", "location_id": 3}
    data.update(overrides)
    return data


@pytest.fixture
def orchestrator(gateway, dispatcher, db_path):
    return OrderUpdateOrchestrator(gateway, OrderWorkflowStore(db_path), dispatcher, "Sales Coordination")


class TestHeaderUpdate:

    def test_no_changes_detected(self, orchestrator, gateway, dispatcher):
        seed(gateway)
        result = asyncio.run(orchestrator.apply_order_update("555", header(memo="Order A  ")))

        assert result.header_updated is False
        assert result.logs == ["✅ No header changes detected"]
        assert gateway.mutations() == []
        assert dispatcher.events == []

    def test_changed_fields_only(self, orchestrator, gateway):
        seed(gateway)
        result = asyncio.run(orchestrator.apply_order_update("555", header(memo="Order B", location_id="9")))

        assert result.header_updated is True
        assert result.logs[0] == "✅ Updated header: HTTP 204"
        assert gateway.mutations() == [("patch_order_header", "555", {"memo": "Order B", "location": {"id": 9}})]

    def test_header_failure_is_logged_not_raised(self, orchestrator, gateway):
        seed(gateway)
        gateway.fail["patch_order_header"] = ERPRemoteError("NetSuite PATCH failed with HTTP 400: bad memo", 400)

        result = asyncio.run(orchestrator.apply_order_update("555", header(memo="Order B")))

        assert result.header_updated is False
        assert result.logs[0] == "❌ Failed to update header: NetSuite PATCH failed with HTTP 400: bad memo"

    def test_unknown_order(self, orchestrator):
        with pytest.raises(ERPNotFoundError):
            asyncio.run(orchestrator.apply_order_update("404", header()))

    def test_bad_number_rejected_before_remote_calls(self, orchestrator, gateway):
        seed(gateway)
        with pytest.raises(OrderValidationError):
            asyncio.run(orchestrator.apply_order_update(
                "555", header(), [{"href": "x", "quantity": "ten"}]
            ))
        assert gateway.calls == []


class TestLineUpdate:

    def test_lines_patched_and_logged_by_position(self, orchestrator, gateway):
        lines = seed(gateway)
        local_lines = [
            {"href": lines[0]["href"], "item_id": "42", "quantity": 8, "rate": 5, "description": "Widget"},
            {"href": lines[1]["href"], "item_id": "43", "quantity": 2, "rate": 7, "description": "Gadget"},
        ]
        result = asyncio.run(orchestrator.apply_order_update("555", header(), local_lines))

        assert result.logs == [
            "✅ No header changes detected",
            "✅ [Line 1] Updated: HTTP 204",
            "✅ [Line 2] No changes detected",
            "✅ Notification queued for Sales Coordination",
        ]
        assert [r.to_dict() for r in result.line_results] == [{"lineNum": 1, "success": True}]
        assert gateway.lines["555"][0]["quantity"] == 8

    def test_lines_without_href_are_skipped(self, orchestrator, gateway):
        seed(gateway)
        result = asyncio.run(orchestrator.apply_order_update(
            "555", header(), [{"item_id": "99", "quantity": 1}]
        ))
        assert result.logs == ["✅ No header changes detected"]
        assert not any(c[0] == "create_order_line" for c in gateway.calls)

    def test_failed_line_does_not_stop_others(self, orchestrator, gateway):
        lines = seed(gateway)
        gateway.fail["patch_order_line"] = {lines[0]["href"]}
        local_lines = [
            {"href": lines[0]["href"], "item_id": "42", "quantity": 1, "rate": 5, "description": "Widget"},
            {"href": lines[1]["href"], "item_id": "43", "quantity": 1, "rate": 7, "description": "Gadget"},
        ]
        result = asyncio.run(orchestrator.apply_order_update("555", header(), local_lines))

        assert result.logs[1].startswith("❌ [Line 1] Failed: ")
        assert result.logs[2] == "✅ [Line 2] Updated: HTTP 204"
        assert [r.to_dict() for r in result.line_results] == [
            {"lineNum": 1, "success": False},
            {"lineNum": 2, "success": True},
        ]

    def test_missing_line_is_reported(self, orchestrator, gateway):
        seed(gateway)
        result = asyncio.run(orchestrator.apply_order_update(
            "555", header(), [{"href": f"{BASE}/salesOrder/555/item/99", "quantity": 1}]
        ))
        assert result.logs[1].startswith("❌ [Line 1] Failed: Resource not found")

    def test_line_of_another_order_is_rejected(self, orchestrator, gateway):
        seed(gateway)
        gateway.add_order("777", {"memo": "Order C"}, lines=[{"item": {"id": "99"}, "quantity": 5}])
        foreign_href = gateway.lines["777"][0]["href"]

        result = asyncio.run(orchestrator.apply_order_update(
            "555", header(memo="Order A"), [{"href": foreign_href, "item_id": 99, "quantity": 1}]
        ))

        assert result.logs[1] == "❌ [Line 1] Failed: not a line of sales order 555"
        assert [r.to_dict() for r in result.line_results] == [{"lineNum": 1, "success": False}]
        assert gateway.lines["777"][0]["quantity"] == 5
        assert not any(c[0] in ("fetch_order_line", "patch_order_line") for c in gateway.calls)

    def test_second_identical_submission_is_a_no_op(self, orchestrator, gateway):
        lines = seed(gateway)
        local_lines = [{"href": lines[0]["href"], "item_id": "42", "quantity": 4, "rate": 5, "description": "Widget"}]
        local_header = header(memo="Order B")

        first = asyncio.run(orchestrator.apply_order_update("555", local_header, local_lines))
        patches_after_first = len(gateway.mutations())
        second = asyncio.run(orchestrator.apply_order_update("555", local_header, local_lines))

        assert first.header_updated is True
        assert second.header_updated is False
        assert "✅ No header changes detected" in second.logs
        assert "✅ [Line 1] No changes detected" in second.logs
        assert len(gateway.mutations()) == patches_after_first


class TestNotifications:

    def test_coordination_and_department_events(self, orchestrator, gateway, dispatcher, db_path):
        seed(gateway)
        result = asyncio.run(orchestrator.apply_order_update(
            "555", header(memo="Order B"), selected_departments=["Warehouse", "Accounting"], actor="5550001"
        ))

        assert dispatcher.kinds() == ["ORDER_UPDATED", "REVIEW_REQUESTED", "REVIEW_REQUESTED"]
        assert [e.department for e in dispatcher.events[1:]] == ["Warehouse", "Accounting"]
        assert all(e.actor == "5550001" for e in dispatcher.events)
        assert "✅ Review request queued for Warehouse" in result.logs

        assignment = OrderWorkflowStore(db_path).get_assignment("555")
        assert assignment.updated_by == "5550001"
        assert assignment.selected_departments == ["Warehouse", "Accounting"]

    def test_no_events_without_changes(self, orchestrator, gateway, dispatcher):
        seed(gateway)
        asyncio.run(orchestrator.apply_order_update("555", header(), selected_departments=["Warehouse"]))
        assert dispatcher.events == []

    def test_no_events_when_every_patch_fails(self, orchestrator, gateway, dispatcher, db_path):
        lines = seed(gateway)
        gateway.fail["patch_order_header"] = ERPRemoteError("NetSuite PATCH failed with HTTP 400: bad memo", 400)
        gateway.fail["patch_order_line"] = {lines[0]["href"]}

        result = asyncio.run(orchestrator.apply_order_update(
            "555",
            header(memo="Order B"),
            [{"href": lines[0]["href"], "item_id": "42", "quantity": 3, "rate": 5, "description": "Widget"}],
            selected_departments=["Warehouse"],
            actor="5550001",
        ))

        assert result.header_updated is False
        assert [r.to_dict() for r in result.line_results] == [{"lineNum": 1, "success": False}]
        assert dispatcher.events == []
        assert not any("queued" in entry for entry in result.logs)
        assert OrderWorkflowStore(db_path).get_assignment("555") is None

    def test_dispatch_failure_becomes_log_entry(self, orchestrator, gateway, dispatcher):
        seed(gateway)
        dispatcher.fail = True
        result = asyncio.run(orchestrator.apply_order_update("555", header(memo="Order B")))

        assert result.header_updated is True
        assert result.logs[-1] == "❌ Error notifying Sales Coordination: queue unavailable"

    def test_response_shape(self, orchestrator, gateway, dispatcher):
        seed(gateway)
        result = asyncio.run(orchestrator.apply_order_update("555", header(memo="Order B")))
        response = result.to_response()
        assert set(response) == {"success", "logs", "headerUpdated", "itemsUpdated"}
        assert response["success"] is True
        assert response["headerUpdated"] is True
        assert dispatcher.events[0].kind == NotificationKind.ORDER_UPDATED
