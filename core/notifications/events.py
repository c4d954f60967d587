"""Notification events emitted by the order engines.

Events are plain data so they can be queued in-process or handed to a
Temporal workflow as a dict.
"""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class NotificationKind(str, Enum):
    ORDER_UPDATED = "ORDER_UPDATED"
    REVIEW_REQUESTED = "REVIEW_REQUESTED"
    SPLIT_CREATED = "SPLIT_CREATED"
    RESPONSE_RECORDED = "RESPONSE_RECORDED"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class NotificationEvent:
    """Something happened to an order that staff should hear about.

    Attributes:
        kind: What happened
        order_id: The order the message links to
        actor: Telegram id of the user who caused the event
        department: Reviewing or responding department
        departments: All departments selected for review (responses)
        action: "approve" or "revise" (responses)
        remark: Free-text remark (responses)
        updated_by: Last editor of the order (revise responses go to them)
        new_order_id: Child order id (splits)
        new_order_number: Child order number (splits)
    """
    kind: NotificationKind
    order_id: str
    actor: Optional[str] = None
    department: Optional[str] = None
    departments: List[str] = field(default_factory=list)
    action: Optional[str] = None
    remark: str = ""
    updated_by: Optional[str] = None
    new_order_id: Optional[str] = None
    new_order_number: Optional[str] = None
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=_now_iso)

    @classmethod
    def order_updated(cls, order_id: str, actor: Optional[str] = None) -> "NotificationEvent":
        return cls(NotificationKind.ORDER_UPDATED, str(order_id), actor=actor)

    @classmethod
    def review_requested(cls, order_id: str, department: str, actor: Optional[str] = None) -> "NotificationEvent":
        return cls(NotificationKind.REVIEW_REQUESTED, str(order_id), actor=actor, department=department)

    @classmethod
    def split_created(
        cls,
        parent_order_id: str,
        new_order_id: str,
        new_order_number: str,
        actor: Optional[str] = None,
    ) -> "NotificationEvent":
        return cls(
            NotificationKind.SPLIT_CREATED,
            str(parent_order_id),
            actor=actor,
            new_order_id=str(new_order_id),
            new_order_number=new_order_number,
        )

    @classmethod
    def response_recorded(
        cls,
        order_id: str,
        department: str,
        action: str,
        remark: str = "",
        actor: Optional[str] = None,
        updated_by: Optional[str] = None,
        departments: Optional[List[str]] = None,
    ) -> "NotificationEvent":
        return cls(
            NotificationKind.RESPONSE_RECORDED,
            str(order_id),
            actor=actor,
            department=department,
            departments=list(departments or []),
            action=action,
            remark=remark or "",
            updated_by=updated_by,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationEvent":
        payload = dict(data)
        payload["kind"] = NotificationKind(payload["kind"])
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in payload.items() if k in known})
