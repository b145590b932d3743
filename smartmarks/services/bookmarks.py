from __future__ import annotations

from smartmarks.extensions import db
from smartmarks.models import Bookmark
from smartmarks.services.changes import (
    KIND_DELETE,
    KIND_INSERT,
    KIND_UPDATE,
    log_change_event,
)
from smartmarks.services.common import validate_bookmark_fields


class BookmarkValidationError(ValueError):
    pass


def list_user_bookmarks(user_id: int) -> list[Bookmark]:
    return (
        Bookmark.query.filter_by(user_id=user_id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .all()
    )


def get_user_bookmark(user_id: int, bookmark_id: int) -> Bookmark | None:
    return Bookmark.query.filter_by(id=bookmark_id, user_id=user_id).first()


def create_bookmark(user_id: int, title: str | None, url: str | None) -> Bookmark:
    error = validate_bookmark_fields(title, url)
    if error:
        raise BookmarkValidationError(error)

    bookmark = Bookmark(user_id=user_id, title=title.strip(), url=url.strip())
    db.session.add(bookmark)
    db.session.flush()
    log_change_event(user_id, KIND_INSERT, new_record=bookmark.as_dict())
    db.session.commit()
    return bookmark


def update_bookmark(
    bookmark: Bookmark, title: str | None = None, url: str | None = None
) -> Bookmark:
    new_title = bookmark.title if title is None else title
    new_url = bookmark.url if url is None else url
    error = validate_bookmark_fields(new_title, new_url)
    if error:
        raise BookmarkValidationError(error)

    old_record = bookmark.as_dict()
    bookmark.title = new_title.strip()
    bookmark.url = new_url.strip()
    log_change_event(
        bookmark.user_id,
        KIND_UPDATE,
        new_record=bookmark.as_dict(),
        old_record=old_record,
    )
    db.session.commit()
    return bookmark


def delete_bookmark(bookmark: Bookmark) -> dict:
    old_record = bookmark.as_dict()
    log_change_event(bookmark.user_id, KIND_DELETE, old_record=old_record)
    db.session.delete(bookmark)
    db.session.commit()
    return old_record
