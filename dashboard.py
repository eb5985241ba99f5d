"""Per-session dashboard state and the pull-based snapshot refresh.

A dashboard session owns the last loaded snapshot, the notifications derived
from it and the set of notification ids the user dismissed. Loads are
explicit: the caller decides when to refresh (sign-in, period change, after a
write). Several loads can be in flight at once when filters change quickly;
a load is discarded when a newer load for its scope started, and it only
replaces the session state when no newer load of any scope has done so first.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections import OrderedDict
from datetime import date, datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.orm import sessionmaker

from alerts import Notification, derive_notifications, visible_notifications
from auth import SIGNED_OUT, AuthContext
from database import SessionLocal, session_scope
from records import Snapshot
from services import load_snapshot

logger = logging.getLogger(__name__)

SnapshotFetcher = Callable[[str], Awaitable[Snapshot]]


def make_snapshot_fetcher(factory: sessionmaker = SessionLocal) -> SnapshotFetcher:
    def _load(user_id: str) -> Snapshot:
        with session_scope(factory) as session:
            return load_snapshot(session, user_id)

    async def fetch(user_id: str) -> Snapshot:
        return await asyncio.to_thread(_load, user_id)

    return fetch


class SnapshotLoader:
    """Runs snapshot fetches and drops results that a newer load superseded."""

    def __init__(self, fetch: SnapshotFetcher) -> None:
        self._fetch = fetch
        self._tickets = itertools.count(1)
        self._latest: dict[str, int] = {}

    async def load(self, scope: str, user_id: str) -> Optional[Snapshot]:
        ticket = next(self._tickets)
        self._latest[scope] = ticket
        snapshot = await self._fetch(user_id)
        if self._latest.get(scope) != ticket:
            logger.info(
                f"snapshot_discarded: scope={scope} user={user_id} ticket={ticket}"
            )
            return None
        return snapshot

    def invalidate(self) -> None:
        """Make every in-flight load stale."""
        for scope in list(self._latest):
            self._latest[scope] = next(self._tickets)


class DashboardSession:
    def __init__(self, loader: SnapshotLoader, *, currency_symbol: str = "₹") -> None:
        self.loader = loader
        self.currency_symbol = currency_symbol
        self.auth: AuthContext = SIGNED_OUT
        self.snapshot: Optional[Snapshot] = None
        self.notifications: list[Notification] = []
        self.dismissed: set[str] = set()
        # Session-wide load order; only a load newer than the last committed
        # one may replace snapshot and notifications.
        self._generations = itertools.count(1)
        self._committed_generation = 0

    @property
    def signed_in(self) -> bool:
        return self.auth.signed_in

    def sign_in(self, auth: AuthContext) -> None:
        if not auth.signed_in:
            self.sign_out()
            return
        if auth.user_id != self.auth.user_id:
            self._clear()
            self.loader.invalidate()
        self.auth = auth

    def sign_out(self) -> None:
        if self.auth.signed_in:
            logger.info(f"dashboard_sign_out: user={self.auth.user_id}")
        self.auth = SIGNED_OUT
        self._clear()
        self.loader.invalidate()

    def _clear(self) -> None:
        self.snapshot = None
        self.notifications = []
        self.dismissed = set()

    async def refresh(
        self,
        *,
        today: date,
        now: Optional[datetime] = None,
        scope: str = "dashboard",
    ) -> Optional[Snapshot]:
        """Load a fresh snapshot and re-derive notifications.

        Returns ``None`` when nobody is signed in or when the result was
        discarded because a newer load for the same scope started, or the
        user changed, while this one was awaiting the store. A result that is
        still current for its scope but older than a load another scope has
        already committed is returned without touching session state.
        """
        if not self.signed_in:
            return None
        user_id = self.auth.user_id
        generation = next(self._generations)
        snapshot = await self.loader.load(scope, user_id)
        if snapshot is None:
            return None
        if self.auth.user_id != user_id:
            logger.info(f"snapshot_discarded: scope={scope} user={user_id} reason=user_changed")
            return None
        if generation < self._committed_generation:
            logger.info(
                f"snapshot_not_committed: scope={scope} user={user_id} "
                f"generation={generation} committed={self._committed_generation}"
            )
            return snapshot

        self._committed_generation = generation
        self.snapshot = snapshot
        self.notifications = derive_notifications(
            snapshot.cards,
            snapshot.offers,
            today=today,
            now=now,
            currency_symbol=self.currency_symbol,
        )
        return snapshot

    @property
    def visible_notifications(self) -> list[Notification]:
        return visible_notifications(self.notifications, self.dismissed)

    def dismiss(self, notification_id: str) -> None:
        self.dismissed.add(notification_id)

    def restore_dismissed(self) -> int:
        count = len(self.dismissed)
        self.dismissed = set()
        return count


class SessionRegistry:
    """In-memory dashboard sessions keyed by session id.

    Nothing here survives a restart, which is the intended lifetime of the
    dismissed set. Revoked session ids are kept only as long as their tokens
    could still verify (``revocation_ttl_seconds``, the token max age).
    """

    def __init__(
        self,
        fetch: SnapshotFetcher,
        *,
        currency_symbol: str = "₹",
        max_sessions: int = 1000,
        revocation_ttl_seconds: float = 24 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._currency_symbol = currency_symbol
        self._max_sessions = max_sessions
        self._revocation_ttl = revocation_ttl_seconds
        self._clock = clock
        self._sessions: OrderedDict[str, DashboardSession] = OrderedDict()
        # session id -> revocation time, oldest first
        self._revoked: OrderedDict[str, float] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def revoked_count(self) -> int:
        return len(self._revoked)

    def _prune_revoked(self) -> None:
        cutoff = self._clock() - self._revocation_ttl
        while self._revoked:
            _, revoked_at = next(iter(self._revoked.items()))
            if revoked_at > cutoff:
                break
            self._revoked.popitem(last=False)

    def is_revoked(self, auth: AuthContext) -> bool:
        self._prune_revoked()
        return auth.session_id in self._revoked

    def get(self, auth: AuthContext) -> DashboardSession:
        if not auth.signed_in or self.is_revoked(auth):
            raise ValueError("A signed-in user is required")
        session = self._sessions.get(auth.session_id)
        if session is None:
            session = DashboardSession(
                SnapshotLoader(self._fetch), currency_symbol=self._currency_symbol
            )
            self._sessions[auth.session_id] = session
            while len(self._sessions) > self._max_sessions:
                _, evicted = self._sessions.popitem(last=False)
                evicted.sign_out()
        else:
            self._sessions.move_to_end(auth.session_id)
        session.sign_in(auth)
        return session

    def drop(self, auth: AuthContext) -> bool:
        self._prune_revoked()
        if auth.session_id:
            self._revoked[auth.session_id] = self._clock()
            self._revoked.move_to_end(auth.session_id)
        session = self._sessions.pop(auth.session_id, None) if auth.session_id else None
        if session is None:
            return False
        session.sign_out()
        return True
