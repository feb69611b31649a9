"""Per-viewer session state: account, latest snapshot, standing subscription."""
import logging
import threading
import time

from impact import compute_impact
from lifecycle import list_visible_requests, requests_from_snapshot

logger = logging.getLogger(__name__)


class SessionContext:
    def __init__(self, store, path, account, clock=time.monotonic):
        self.store = store
        self.path = path
        self.account = account
        self.requests = []
        self._clock = clock
        self.last_seen = clock()
        self._subscription = None

    @property
    def active(self):
        return self._subscription is not None and not self._subscription.cancelled

    @property
    def subscription(self):
        return self._subscription

    def touch(self):
        self.last_seen = self._clock()

    def start(self):
        self.touch()
        if self.active:
            return self
        self._subscription = self.store.subscribe(self.path)
        self.refresh()
        return self

    def refresh(self):
        """Replace the cached set with the newest snapshot received, if any."""
        if not self.active:
            return self.requests
        snapshot = self._subscription.latest()
        if snapshot is not None:
            self.requests = requests_from_snapshot(snapshot)
        return self.requests

    def visible_requests(self):
        return list_visible_requests(self.account, self.refresh())

    def impact(self):
        return compute_impact(self.visible_requests())

    def close(self):
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.requests = []


class SessionRegistry:
    """One SessionContext per signed-in email.

    Viewers that never sign out are dropped once they have been idle for
    ``idle_timeout`` seconds; the next ``open`` for them starts afresh.
    """

    def __init__(self, store, path, idle_timeout=None, clock=time.monotonic):
        self.store = store
        self.path = path
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions = {}
        self._lock = threading.Lock()

    def open(self, account):
        self.prune()
        with self._lock:
            ctx = self._sessions.get(account.email)
            if ctx is None:
                ctx = SessionContext(self.store, self.path, account, clock=self._clock)
                self._sessions[account.email] = ctx
                logger.debug("Session opened for %s", account.email)
            else:
                ctx.account = account
        return ctx.start()

    def get(self, email):
        return self._sessions.get(email)

    def prune(self):
        """Close every session idle for longer than ``idle_timeout``."""
        if self.idle_timeout is None:
            return []
        cutoff = self._clock() - self.idle_timeout
        stale = [email for email, ctx in list(self._sessions.items()) if ctx.last_seen < cutoff]
        for email in stale:
            logger.info("Session for %s idle, closing", email)
            self.close(email)
        return stale

    def close(self, email):
        with self._lock:
            ctx = self._sessions.pop(email, None)
        if ctx is not None:
            ctx.close()
            logger.debug("Session closed for %s", email)

    def close_all(self):
        for email in list(self._sessions):
            self.close(email)

    def __len__(self):
        return len(self._sessions)
