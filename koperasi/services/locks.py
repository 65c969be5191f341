"""Per-member serialization of state-changing savings operations.

Payment submission and upgrade execution for the same member must not
interleave, otherwise a payment may be priced against a stale upgrade. Within
one process a lock per member is held for the whole operation; across
processes the member row is locked with ``SELECT ... FOR UPDATE`` where the
database supports it and the optimistic ``Member.version`` column catches the
rest.
"""
import threading
import weakref
from contextlib import contextmanager
from typing import MutableMapping
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from koperasi.models.member import Member
from koperasi.services.exceptions import ConflictError, NotFoundError

_registry_lock = threading.Lock()
# entries vanish once no caller holds or waits on the lock
_member_locks: MutableMapping[UUID, threading.Lock] = weakref.WeakValueDictionary()


def _lock_for(member_id: UUID) -> threading.Lock:
    with _registry_lock:
        lock = _member_locks.get(member_id)
        if lock is None:
            lock = threading.Lock()
            _member_locks[member_id] = lock
        return lock


@contextmanager
def member_lock(member_id: UUID):
    """Hold the in-process lock of one member."""
    lock = _lock_for(member_id)
    with lock:
        yield


def lock_member_row(db: Session, member_id: UUID) -> Member:
    """Re-read the member row for update, refreshing any cached state."""
    member = db.query(Member).filter(Member.id == member_id).execution_options(populate_existing=True).with_for_update().first()
    if not member:
        raise NotFoundError("Member not found")
    return member


def commit_member_change(db: Session) -> None:
    """Commit, turning an optimistic version clash into a ConflictError."""
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError("Member was modified by another request, please retry") from exc
