"""Pickup request lifecycle: Pending -> Scheduled -> Collected.

Every operation checks role, ownership and state locally and raises a
:class:`errors.ConstraintViolation` before the store is written.  Store
failures surface as :class:`errors.StoreError`.
"""
import logging
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from errors import InvalidState, NotFound, PermissionDenied, ValidationError
from models import (PickupRequest, PENDING, SCHEDULED, COLLECTED, STATUSES,
                    CATEGORIES, OTHER)

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    PENDING: SCHEDULED,
    SCHEDULED: COLLECTED,
    COLLECTED: None,
}

DEFAULT_CREATE_TIMEOUT = 1.5

# writes that outlive their request's timeout keep running here
_writer = ThreadPoolExecutor(max_workers=4, thread_name_prefix='pickup-write')

Submission = namedtuple('Submission', ['request', 'confirmed'])


def next_status(status):
    if status not in _TRANSITIONS:
        raise InvalidState(f"Unknown status {status!r}")
    return _TRANSITIONS[status]


def _sort_key(request):
    return request.created_at or ''


def list_visible_requests(account, requests):
    """Requests ``account`` may see, most recent first.

    Requesters see only their own requests, operators see everything.
    """
    if account.is_operator():
        visible = list(requests)
    else:
        visible = [r for r in requests if r.owner == account.email]
    return sorted(visible, key=_sort_key, reverse=True)


def requests_from_snapshot(snapshot):
    return [PickupRequest.from_document(doc.key, doc.data) for doc in snapshot]


def _require(value, label):
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} is required.")
    return str(value).strip()


def _whole_number(value):
    # bool is an int subclass; floats and other numbers are never coerced
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    raise ValidationError("Quantity must be a whole number.")


def build_request(store, account, category, quantity, date, time, phone, address, other_label=None):
    """Validate the submission and return the new, not yet stored, request."""
    if not account.is_requester():
        raise PermissionDenied("Only requesters can schedule pickups.")
    if category not in CATEGORIES:
        raise ValidationError(f"Unknown item category {category!r}.")
    if category == OTHER:
        category = _require(other_label, "Item description")
    quantity = _whole_number(quantity)
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1.")
    return PickupRequest(
        id=store.new_key(),
        category=category,
        quantity=quantity,
        date=_require(date, "Date"),
        time=_require(time, "Time"),
        phone=_require(phone, "Phone number"),
        address=_require(address, "Address"),
        owner=account.email,
        owner_name=account.name,
        status=PENDING,
    )


def _log_late_write(request):
    def done(future):
        exc = future.exception()
        if exc is not None:
            logger.error("Late write of pickup request %s failed: %s", request.id, exc)
        else:
            logger.info("Late write of pickup request %s confirmed", request.id)
    return done


def create_request(store, path, account, category, quantity, date, time, phone, address,
                   other_label=None, timeout=DEFAULT_CREATE_TIMEOUT):
    """Submit a new Pending request and wait at most ``timeout`` seconds.

    The write is raced against a timer.  When the store confirms first the
    result has ``confirmed=True``.  When the timer wins the request is
    accepted locally with ``confirmed=False`` and the write carries on in
    the background; it shows up in a later snapshot if it succeeds and is
    only logged if it fails.  This keeps the form responsive under store
    latency at the cost of consistency: a caller may report success for a
    request that is never stored.  A write that fails before the timer
    expires raises its :class:`errors.StoreError`.
    """
    request = build_request(store, account, category, quantity, date, time, phone, address,
                            other_label=other_label)
    future = _writer.submit(store.put_document, path, request.id, request.to_document())
    try:
        future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning("Store did not confirm pickup request %s within %.1fs, accepting locally",
                       request.id, timeout)
        future.add_done_callback(_log_late_write(request))
        return Submission(request, confirmed=False)
    logger.info("Pickup request %s created by %s", request.id, account.email)
    return Submission(request, confirmed=True)


def get_request(store, path, request_id):
    doc = store.get_document(path, request_id)
    if doc is None:
        raise NotFound("Pickup request not found.")
    return PickupRequest.from_document(doc.key, doc.data)


def withdraw_request(store, path, request_id, account):
    """Delete a Pending request on behalf of its owner."""
    request = get_request(store, path, request_id)
    if request.owner != account.email:
        raise PermissionDenied("You can only withdraw your own requests.")
    if request.status != PENDING:
        raise InvalidState(f"Only pending requests can be withdrawn, this one is {request.status}.")
    store.delete_document(path, request_id)
    logger.info("Pickup request %s withdrawn by %s", request_id, account.email)
    return request


def advance_status(store, path, request_id, account, target=None):
    """Move a request to its successor status. Operators only.

    ``target`` defaults to the successor of the current status; any other
    target, and any request already Collected, raises InvalidState.
    """
    if not account.is_operator():
        raise PermissionDenied("Only operators can change a request's status.")
    if target is not None and target not in STATUSES:
        raise InvalidState(f"Unknown status {target!r}")
    request = get_request(store, path, request_id)
    successor = next_status(request.status)
    if successor is None:
        raise InvalidState(f"Request is already {request.status}.")
    if target is not None and target != successor:
        raise InvalidState(f"Cannot move a {request.status} request to {target}.")
    store.update_fields(path, request_id, {'status': successor})
    logger.info("Pickup request %s moved %s -> %s by %s",
                request_id, request.status, successor, account.email)
    request.status = successor
    return request


def approve(store, path, request_id, account):
    return advance_status(store, path, request_id, account, target=SCHEDULED)


def finalize(store, path, request_id, account):
    return advance_status(store, path, request_id, account, target=COLLECTED)

