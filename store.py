"""Document store collaborator.

Persistence and identity sit behind ``DocumentStore``: documents are JSON
objects addressed by a collection path and a key, and every write pushes a
full snapshot of the collection to its subscribers.  Two backends exist,
``MemoryDocumentStore`` for a single process and ``SqlDocumentStore`` which
keeps the documents in one Flask-SQLAlchemy table.
"""
import copy
import logging
import threading
import uuid
from collections import namedtuple

from sqlalchemy.exc import SQLAlchemyError

from errors import NotFound, Unavailable
from models import db, DocumentRecord

logger = logging.getLogger(__name__)

Document = namedtuple('Document', ['key', 'data'])
AccountHandle = namedtuple('AccountHandle', ['uid', 'email'])

REQUESTS = 'pickup_requests'
USERS = 'users'

_EMPTY = object()


def collection_path(app_id, name):
    return f"artifacts/{app_id}/public/data/{name}"


class Subscription:
    """Stream of full-collection snapshots, ended by ``cancel``.

    Snapshots replace each other entirely, so only the newest undelivered
    one is held; a subscriber that stops reading keeps at most one.
    """

    def __init__(self, path, on_cancel=None):
        self.path = path
        self.cancelled = False
        self._cond = threading.Condition()
        self._pending = _EMPTY
        self._on_cancel = on_cancel

    @property
    def backlog(self):
        return 0 if self._pending is _EMPTY else 1

    def push(self, snapshot):
        with self._cond:
            if self.cancelled:
                return
            self._pending = snapshot
            self._cond.notify_all()

    def _take(self):
        snapshot, self._pending = self._pending, _EMPTY
        return snapshot

    def get(self, timeout=None):
        """Block for the newest snapshot; ``None`` on timeout or once cancelled."""
        with self._cond:
            self._cond.wait_for(lambda: self._pending is not _EMPTY or self.cancelled, timeout)
            if self._pending is _EMPTY:
                return None
            return self._take()

    def latest(self):
        """Return the newest undelivered snapshot without blocking, if any."""
        with self._cond:
            if self._pending is _EMPTY:
                return None
            return self._take()

    def cancel(self):
        with self._cond:
            if self.cancelled:
                return
            self.cancelled = True
            self._cond.notify_all()
        if self._on_cancel is not None:
            self._on_cancel(self)

    def __iter__(self):
        while True:
            item = self.get()
            if item is None:
                return
            yield item


class DocumentStore:
    """Locking, key assignment and snapshot fan-out shared by every backend.

    Subclasses implement ``_get``, ``_put``, ``_update``, ``_delete`` and
    ``_list``.  Writes and the snapshot they publish happen under one lock,
    so a subscriber never receives an older snapshot after a newer one.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._subscribers = {}

    def new_key(self):
        return uuid.uuid4().hex

    def create_account(self, email):
        return AccountHandle(uid=uuid.uuid4().hex, email=email)

    def get_document(self, path, key):
        with self._lock:
            return self._get(path, key)

    def list_documents(self, path):
        with self._lock:
            return self._list(path)

    def put_document(self, path, key, value):
        with self._lock:
            self._put(path, key, value)
            self._publish(path)

    def update_fields(self, path, key, partial):
        with self._lock:
            self._update(path, key, partial)
            self._publish(path)

    def delete_document(self, path, key):
        with self._lock:
            self._delete(path, key)
            self._publish(path)

    def subscribe(self, path):
        sub = Subscription(path, on_cancel=self._unsubscribe)
        with self._lock:
            sub.push(self._list(path))
            self._subscribers.setdefault(path, []).append(sub)
        logger.debug("Subscribed to %s", path)
        return sub

    def _unsubscribe(self, sub):
        with self._lock:
            subs = self._subscribers.get(sub.path, [])
            if sub in subs:
                subs.remove(sub)
        logger.debug("Unsubscribed from %s", sub.path)

    def _publish(self, path):
        subs = list(self._subscribers.get(path, ()))
        if not subs:
            return
        snapshot = self._list(path)
        for sub in subs:
            sub.push(snapshot)

    def _get(self, path, key):
        raise NotImplementedError

    def _list(self, path):
        raise NotImplementedError

    def _put(self, path, key, value):
        raise NotImplementedError

    def _update(self, path, key, partial):
        raise NotImplementedError

    def _delete(self, path, key):
        raise NotImplementedError


class MemoryDocumentStore(DocumentStore):
    def __init__(self):
        super().__init__()
        self._collections = {}

    def _get(self, path, key):
        data = self._collections.get(path, {}).get(key)
        if data is None:
            return None
        return Document(key, copy.deepcopy(data))

    def _list(self, path):
        return [Document(k, copy.deepcopy(v)) for k, v in self._collections.get(path, {}).items()]

    def _put(self, path, key, value):
        self._collections.setdefault(path, {})[key] = copy.deepcopy(dict(value))

    def _update(self, path, key, partial):
        docs = self._collections.get(path, {})
        if key not in docs:
            raise NotFound(f"No document {key} in {path}")
        docs[key].update(copy.deepcopy(dict(partial)))

    def _delete(self, path, key):
        self._collections.get(path, {}).pop(key, None)


class SqlDocumentStore(DocumentStore):
    """Documents kept as JSON rows of the ``documents`` table.

    Every call pushes its own application context so the store can be used
    from worker threads as well as from request handlers.
    """

    def __init__(self, app):
        super().__init__()
        self._app = app

    def _run(self, fn):
        with self._app.app_context():
            try:
                return fn()
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.exception("Document store call failed")
                raise Unavailable("The document store is unavailable, please try again.") from exc

    def _get(self, path, key):
        def fn():
            record = db.session.get(DocumentRecord, (path, key))
            return None if record is None else Document(key, dict(record.body))
        return self._run(fn)

    def _list(self, path):
        def fn():
            records = DocumentRecord.query.filter_by(collection=path).order_by(DocumentRecord.created_at).all()
            return [Document(r.key, dict(r.body)) for r in records]
        return self._run(fn)

    def _put(self, path, key, value):
        def fn():
            record = db.session.get(DocumentRecord, (path, key))
            if record is None:
                record = DocumentRecord(collection=path, key=key)
                db.session.add(record)
            record.body = dict(value)
            db.session.commit()
        self._run(fn)

    def _update(self, path, key, partial):
        def fn():
            record = db.session.get(DocumentRecord, (path, key))
            if record is None:
                raise NotFound(f"No document {key} in {path}")
            record.body = {**record.body, **dict(partial)}
            db.session.commit()
        self._run(fn)

    def _delete(self, path, key):
        def fn():
            record = db.session.get(DocumentRecord, (path, key))
            if record is not None:
                db.session.delete(record)
                db.session.commit()
        self._run(fn)
