"""
services.tools_service - Tool records, search and custody changes.

All session management is the caller's responsibility (open before,
close/commit after).  This keeps the service testable and allows
the caller to batch multiple operations in one transaction.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session

from db.models import Tool, ToolHistory
from schema.numbering import KIND_TOOL, parse_qr_payload
from services.errors import NotFound, ValidationError
from services.identity_service import IdentityIssuer
from services.staff_service import StaffService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "brand", "model")
IMMUTABLE_FIELDS = frozenset({"id", "unique_id", "qr_payload", "created_at"})
META_KEYS = ("category", "condition", "notes")

STATUS_AVAILABLE = "available"
STATUS_CHECKED_OUT = "checked_out"
STATUSES = (STATUS_AVAILABLE, STATUS_CHECKED_OUT)


def _clean(data: dict, key: str) -> str:
    return str(data.get(key, "") or "").strip()


def _collect_meta(data: dict, base: dict | None = None) -> dict:
    """Merge an explicit 'meta' mapping and the top-level meta keys."""
    meta = dict(base or {})
    extra = data.get("meta")
    if extra is not None and not isinstance(extra, dict):
        raise ValidationError("meta must be an object")
    meta.update(extra or {})
    for k in META_KEYS:
        if k in data:
            meta[k] = _clean(data, k)
    return meta


class ToolsService:

    # ── Create ─────────────────────────────────────────────────────────

    @staticmethod
    def create(session: Session, data: dict, issuer: IdentityIssuer,
               created_by: str | None = None) -> Tool:
        """
        Create a new Tool from a dict of field values.
        Required keys: name, brand, model.  unique_id and qr_payload are
        issued here; any client-supplied values for them are ignored.
        """
        values = {k: _clean(data, k) for k in REQUIRED_FIELDS}
        missing = [k for k, v in values.items() if not v]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

        meta = _collect_meta(data)
        if created_by:
            meta["created_by"] = created_by
            meta["last_modified_by"] = created_by

        unique_id, qr_payload = issuer.issue(KIND_TOOL)

        tool = Tool(
            unique_id=unique_id,
            qr_payload=qr_payload,
            num=_clean(data, "num"),
            status=STATUS_AVAILABLE,
            current_holder_id=None,
            **values,
        )
        tool.meta = meta

        session.add(tool)
        session.flush()
        logger.info("Tool created: %s %s (%s)", tool.unique_id, tool.display_name, tool.id)
        return tool

    # ── Read ───────────────────────────────────────────────────────────

    @staticmethod
    def get(session: Session, tool_id: str) -> Tool | None:
        return session.get(Tool, tool_id)

    @staticmethod
    def get_by_unique_id(session: Session, unique_id: str) -> Tool | None:
        uid = (unique_id or "").strip().upper()
        return session.query(Tool).filter(Tool.unique_id == uid).one_or_none()

    @staticmethod
    def find_by_qr(session: Session, payload: str) -> Tool | None:
        """Resolve a scanned payload (or a bare unique ID) to a Tool."""
        tool = session.query(Tool).filter(Tool.qr_payload == payload).one_or_none()
        if tool:
            return tool
        parsed = parse_qr_payload(payload)
        if parsed is None or parsed[0] != KIND_TOOL:
            return None
        return ToolsService.get_by_unique_id(session, parsed[1])

    @staticmethod
    def search(session: Session, q: str = "", status: str = "",
               holder: str = "", limit: int = 100,
               offset: int = 0) -> tuple[list[Tool], int]:
        """Filter by status / holder, ILIKE on name, brand, model, num, unique_id."""
        query = session.query(Tool)
        if status:
            query = query.filter(Tool.status == status)
        if holder:
            query = query.filter(Tool.current_holder_id == holder)
        if q:
            like = f"%{q}%"
            query = query.filter(or_(
                Tool.name.ilike(like),
                Tool.brand.ilike(like),
                Tool.model.ilike(like),
                Tool.num.ilike(like),
                Tool.unique_id.ilike(like),
            ))
        total = query.count()
        tools = (query.order_by(Tool.updated_at.desc())
                 .offset(offset).limit(limit).all())
        return tools, total

    # ── Update ─────────────────────────────────────────────────────────

    @staticmethod
    def update(session: Session, tool: Tool, data: dict,
               modified_by: str | None = None) -> Tool:
        """
        Update descriptive fields and meta.

        unique_id, qr_payload and id cannot change; created_at is never
        written, so an echoed value is ignored.  status and holder change
        only through check_out / check_in.
        """
        for key in IMMUTABLE_FIELDS & set(data):
            if key != "created_at" and data[key] != getattr(tool, key):
                raise ValidationError(f"{key} cannot be changed once issued")

        if "status" in data and data["status"] != tool.status:
            raise ValidationError("status changes go through check-out / check-in")
        if "current_holder" in data and data["current_holder"] != tool.current_holder_id:
            raise ValidationError("current_holder changes go through check-out / check-in")

        for key in REQUIRED_FIELDS:
            if key in data:
                val = _clean(data, key)
                if not val:
                    raise ValidationError(f"{key} cannot be empty")
                setattr(tool, key, val)

        if "num" in data:
            tool.num = _clean(data, "num")

        meta = _collect_meta(data, tool.meta)
        if modified_by:
            meta["last_modified_by"] = modified_by
        tool.meta = meta

        tool.updated_at = datetime.now(timezone.utc)
        session.flush()
        return tool

    # ── Custody ────────────────────────────────────────────────────────

    @staticmethod
    def check_out(session: Session, tool: Tool, staff_uid: str, by_uid: str,
                  notes: str = "", batch_id: str | None = None) -> ToolHistory:
        if not tool.is_available:
            raise ValidationError(f"Tool is already checked out: {tool.unique_id}")
        holder = StaffService.get_active(session, staff_uid)
        if holder is None:
            raise NotFound(f"Staff member not found: {staff_uid}")
        actor = StaffService.get_active(session, by_uid)
        if actor is None:
            raise NotFound(f"Staff member not found: {by_uid}")

        tool.status = STATUS_CHECKED_OUT
        tool.current_holder = holder
        tool.updated_at = datetime.now(timezone.utc)

        entry = ToolHistory(tool_id=tool.id, action="checkout", by_id=actor.uid,
                            assigned_to_id=holder.uid, notes=notes or "",
                            batch_id=batch_id)
        session.add(entry)
        session.flush()
        logger.info("Tool %s checked out to %s by %s",
                    tool.unique_id, holder.job_code, actor.job_code)
        return entry

    @staticmethod
    def check_in(session: Session, tool: Tool, by_uid: str,
                 notes: str = "", batch_id: str | None = None) -> ToolHistory:
        if tool.is_available:
            raise ValidationError(f"Tool is not checked out: {tool.unique_id}")
        actor = StaffService.get_active(session, by_uid)
        if actor is None:
            raise NotFound(f"Staff member not found: {by_uid}")

        previous_holder = tool.current_holder_id
        tool.status = STATUS_AVAILABLE
        tool.current_holder = None
        tool.updated_at = datetime.now(timezone.utc)

        entry = ToolHistory(tool_id=tool.id, action="checkin", by_id=actor.uid,
                            assigned_to_id=previous_holder, notes=notes or "",
                            batch_id=batch_id)
        session.add(entry)
        session.flush()
        logger.info("Tool %s checked in by %s", tool.unique_id, actor.job_code)
        return entry

    # ── Batch custody ──────────────────────────────────────────────────

    @staticmethod
    def _load_batch(session: Session, tool_ids) -> list[Tool]:
        if not isinstance(tool_ids, (list, tuple)) or not tool_ids:
            raise ValidationError("tool_ids must be a non-empty list")
        ids = list(dict.fromkeys(str(t) for t in tool_ids))
        tools = []
        for tool_id in ids:
            tool = ToolsService.get(session, tool_id)
            if tool is None:
                raise NotFound(f"Tool not found: {tool_id}")
            tools.append(tool)
        return tools

    @staticmethod
    def batch_check_out(session: Session, tool_ids, staff_uid: str, by_uid: str,
                        notes: str = "") -> tuple[str, list[ToolHistory]]:
        """
        Check several tools out to one person under a shared batch_id.
        All or nothing: the first failure is raised and the caller rolls
        back, so no tool in the batch changes hands.
        """
        tools = ToolsService._load_batch(session, tool_ids)
        batch_id = uuid.uuid4().hex
        entries = [ToolsService.check_out(session, tool, staff_uid, by_uid,
                                          notes=notes, batch_id=batch_id)
                   for tool in tools]
        logger.info("Batch %s: %d tools checked out to %s",
                    batch_id, len(entries), staff_uid)
        return batch_id, entries

    @staticmethod
    def batch_check_in(session: Session, tool_ids, by_uid: str,
                       notes: str = "") -> tuple[str, list[ToolHistory]]:
        """Check several tools back in under a shared batch_id; all or nothing."""
        tools = ToolsService._load_batch(session, tool_ids)
        batch_id = uuid.uuid4().hex
        entries = [ToolsService.check_in(session, tool, by_uid,
                                         notes=notes, batch_id=batch_id)
                   for tool in tools]
        logger.info("Batch %s: %d tools checked in", batch_id, len(entries))
        return batch_id, entries

    @staticmethod
    def history(session: Session, tool: Tool, limit: int = 100) -> list[ToolHistory]:
        return (session.query(ToolHistory)
                .filter(ToolHistory.tool_id == tool.id)
                .order_by(ToolHistory.timestamp.desc(), ToolHistory.id.desc())
                .limit(limit).all())

    @staticmethod
    def counts(session: Session) -> dict:
        total = session.query(Tool).count()
        checked_out = session.query(Tool).filter(Tool.status == STATUS_CHECKED_OUT).count()
        return {
            "total": total,
            "available": total - checked_out,
            "checked_out": checked_out,
        }
