"""Message rendering for staff notifications.

Messages are sent with Telegram's HTML parse mode, so free text coming from
users is escaped.
"""

from dataclasses import dataclass
from html import escape
from typing import Any, Dict, Optional
from urllib.parse import quote


@dataclass
class RenderedMessage:
    text: str
    reply_markup: Optional[Dict[str, Any]] = None


def order_updated(order_id: str, order_url: str) -> RenderedMessage:
    return RenderedMessage(
        f"✅ Sales order {escape(str(order_id))} has been updated and can proceed\n🔗 Link: {order_url}"
    )


def review_buttons(response_url: str, department: str) -> Dict[str, Any]:
    """Approve/revise inline keyboard pointing at the response page."""
    dept = quote(department, safe="")
    return {
        "inline_keyboard": [
            [{"text": "✅ Approve", "url": f"{response_url}?dept={dept}&action=approve"}],
            [{"text": "✏️ Request revision", "url": f"{response_url}?dept={dept}&action=revise"}],
        ]
    }


def review_requested(order_id: str, order_url: str, response_url: str, department: str) -> RenderedMessage:
    return RenderedMessage(
        f"🔔 Sales order {escape(str(order_id))} was updated and needs your review\n🔗 {order_url}",
        reply_markup=review_buttons(response_url, department),
    )


def split_created(order_id: str, new_order_id: str, new_order_number: str, order_url: str) -> RenderedMessage:
    return RenderedMessage(
        f"✂️ Sales order {escape(str(order_id))} was split into {escape(str(new_order_number))} "
        f"(id {escape(str(new_order_id))})\n🔗 {order_url}"
    )


def revision_requested(order_id: str, department: str, remark: str, order_url: str) -> RenderedMessage:
    return RenderedMessage(
        f"🔄 {escape(department)} requested a revision of sales order {escape(str(order_id))}\n"
        f"Remark: {escape(remark or '')}\n🔗 {order_url}"
    )


def response_status(order_id: str, department: str, action: str, order_url: str) -> RenderedMessage:
    verdict = "approved" if action == "approve" else "sent back for revision"
    return RenderedMessage(
        f"ℹ️ Latest status of sales order {escape(str(order_id))}: {escape(department)} {verdict}\n🔗 {order_url}"
    )
