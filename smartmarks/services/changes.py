from __future__ import annotations

from datetime import timedelta

from smartmarks.extensions import db
from smartmarks.models import BOOKMARKS_TABLE, ChangeEvent, utcnow


KIND_INSERT = "INSERT"
KIND_UPDATE = "UPDATE"
KIND_DELETE = "DELETE"

CHANGE_KINDS = (KIND_INSERT, KIND_UPDATE, KIND_DELETE)
ALL_KINDS = "*"

SUBSCRIBABLE_TABLES = {BOOKMARKS_TABLE}
FILTERABLE_COLUMNS = {"user_id"}


class ChangeFilterError(ValueError):
    pass


def log_change_event(
    user_id: int,
    kind: str,
    new_record: dict | None = None,
    old_record: dict | None = None,
    table_name: str = BOOKMARKS_TABLE,
) -> ChangeEvent:
    """Queue a change row in the current session; the caller commits."""
    if kind not in CHANGE_KINDS:
        raise ValueError(f"unknown change kind: {kind}")
    event = ChangeEvent(
        user_id=user_id,
        table_name=table_name,
        kind=kind,
        new_record=new_record,
        old_record=old_record,
    )
    db.session.add(event)
    return event


def parse_row_filter(raw: str | None) -> tuple[str, int]:
    """Parse ``column=eq.value`` into ``(column, value)``.

    Only equality on an owner column is supported.
    """
    if not isinstance(raw or "", str):
        raise ChangeFilterError("filter must be a string")
    text = (raw or "").strip()
    column, sep, rest = text.partition("=")
    if not sep:
        raise ChangeFilterError("filter must look like user_id=eq.<id>")
    column = column.strip()
    if column not in FILTERABLE_COLUMNS:
        raise ChangeFilterError(f"filtering on {column or 'nothing'} is not supported")
    operator, dot, value = rest.partition(".")
    if operator != "eq" or not dot:
        raise ChangeFilterError("only eq filters are supported")
    try:
        return column, int(value)
    except ValueError:
        raise ChangeFilterError("filter value must be an integer") from None


def parse_event_kinds(raw: str | None) -> set[str]:
    if not isinstance(raw or "", str):
        raise ChangeFilterError("event must be a string")
    text = (raw or ALL_KINDS).strip().upper()
    if text == ALL_KINDS:
        return set(CHANGE_KINDS)
    kinds = {part.strip() for part in text.split(",") if part.strip()}
    unknown = kinds - set(CHANGE_KINDS)
    if not kinds or unknown:
        raise ChangeFilterError(f"unsupported event kind: {', '.join(sorted(unknown))}")
    return kinds


def head_cursor(user_id: int) -> int:
    return (
        db.session.query(db.func.max(ChangeEvent.id)).filter_by(user_id=user_id).scalar()
        or 0
    )


def fetch_changes(
    user_id: int,
    since: int,
    limit: int,
    table_name: str = BOOKMARKS_TABLE,
    kinds: set[str] | None = None,
) -> tuple[list[ChangeEvent], int, bool]:
    """Return events after ``since``, the cursor to resume from, and whether a
    full page was read.

    The cursor advances past events filtered out by ``kinds`` so a narrow
    subscription does not re-read them on the next poll.
    """
    rows = (
        ChangeEvent.query.filter_by(user_id=user_id, table_name=table_name)
        .filter(ChangeEvent.id > since)
        .order_by(ChangeEvent.id.asc())
        .limit(limit)
        .all()
    )
    cursor = rows[-1].id if rows else since
    has_more = len(rows) == limit
    if kinds is not None:
        rows = [row for row in rows if row.kind in kinds]
    return rows, cursor, has_more


def prune_change_events(retention_hours: int) -> int:
    cutoff = utcnow() - timedelta(hours=retention_hours)
    deleted = ChangeEvent.query.filter(ChangeEvent.created_at < cutoff).delete(
        synchronize_session=False
    )
    db.session.commit()
    return deleted
