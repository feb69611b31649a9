import pytest

from models import Account, PickupRequest, REQUESTER, OPERATOR
from store import MemoryDocumentStore, collection_path, REQUESTS, USERS


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def path():
    return collection_path('test-app', REQUESTS)


@pytest.fixture
def users_path():
    return collection_path('test-app', USERS)


@pytest.fixture
def requester():
    return Account(email='ada@example.com', name='Ada', role=REQUESTER)


@pytest.fixture
def other_requester():
    return Account(email='grace@example.com', name='Grace', role=REQUESTER)


@pytest.fixture
def operator():
    return Account(email='admin@example.com', name='Ops', role=OPERATOR)


def make_request(id, owner='ada@example.com', category='Laptop', quantity=1, status='Pending',
                 created_at='2024-01-01T00:00:00+00:00'):
    return PickupRequest(
        id=id, category=category, quantity=quantity, date='2024-02-01', time='10:00',
        phone='555-0100', address='1 Main St', owner=owner, owner_name=owner.split('@')[0],
        status=status, created_at=created_at,
    )


@pytest.fixture
def stored(store, path):
    """Put a request into the store and return it."""
    def put(id, **kwargs):
        request = make_request(id, **kwargs)
        store.put_document(path, id, request.to_document())
        return request
    return put

