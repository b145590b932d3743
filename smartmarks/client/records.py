from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from dateutil import parser as dt_parser


def _parse_timestamp(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = dt_parser.isoparse(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Bookmark:
    id: int
    user_id: int
    title: str
    url: str
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, payload: dict) -> "Bookmark":
        return cls(
            id=payload["id"],
            user_id=payload["user_id"],
            title=payload.get("title") or "",
            url=payload.get("url") or "",
            created_at=_parse_timestamp(payload.get("created_at")),
        )


@dataclass(frozen=True)
class Identity:
    id: int
    username: str
    display_name: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.username

    @classmethod
    def from_dict(cls, payload: dict) -> "Identity":
        return cls(
            id=payload["id"],
            username=payload.get("username") or "",
            display_name=payload.get("display_name"),
        )


@dataclass(frozen=True)
class ChangeNotification:
    kind: str
    table: str
    new: Bookmark | None = None
    old: Bookmark | None = None
    cursor: int | None = None

    @property
    def record_id(self) -> int | None:
        record = self.new or self.old
        return record.id if record else None

    @property
    def user_id(self) -> int | None:
        record = self.new or self.old
        return record.user_id if record else None

    @classmethod
    def from_dict(cls, payload: dict) -> "ChangeNotification":
        new = payload.get("new")
        old = payload.get("old")
        return cls(
            kind=(payload.get("kind") or "").upper(),
            table=payload.get("table") or "",
            new=Bookmark.from_dict(new) if new else None,
            old=Bookmark.from_dict(old) if old else None,
            cursor=payload.get("cursor"),
        )
