"""Smoke tests for the pickup dashboard."""
from unittest import TestCase

from app import create_app
from config import TestConfig
from conftest import make_request
from accounts import issue_reset_token
from errors import Unavailable
from store import MemoryDocumentStore, collection_path, REQUESTS, USERS


def pickup_form(**overrides):
    data = {'category': 'Laptop', 'other_label': '', 'quantity': '2', 'date': '2024-03-01',
            'time': '10:00', 'phone': '555-0100', 'address': '1 Main St'}
    data.update(overrides)
    return data


class DashboardTestCase(TestCase):
    def setUp(self) -> None:
        self.app = create_app(TestConfig)
        self.client = self.app.test_client()
        self.store = self.app.extensions['pickup_store']
        self.sessions = self.app.extensions['pickup_sessions']
        self.requests_path = collection_path(self.app.config['APP_ID'], REQUESTS)
        self.users_path = collection_path(self.app.config['APP_ID'], USERS)

    def signup(self, email, password='secret123', name=''):
        return self.client.post('/signup', data={
            'name': name, 'email': email, 'password': password, 'password2': password,
        }, follow_redirects=True)

    def login(self, email, password):
        return self.client.post('/login', data={'email': email, 'password': password},
                                follow_redirects=True)

    def put_request(self, key, **kwargs):
        self.store.put_document(self.requests_path, key, make_request(key, **kwargs).to_document())

    def status_of(self, key):
        return self.store.get_document(self.requests_path, key).data['status']


class AuthTests(DashboardTestCase):
    def test_home_page(self) -> None:
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'Schedule Collection', response.data)

    def test_dashboard_requires_login(self) -> None:
        response = self.client.get('/dashboard')
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login', response.headers['Location'])

    def test_signup_lands_on_dashboard(self) -> None:
        response = self.signup('ada@example.com', name='Ada')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'Welcome Ada!', response.data)
        self.assertIn(b'Your account ada@example.com is ready.', response.data)
        self.assertNotIn(b'onfirmation', response.data)
        self.assertIn(b'New Collection', response.data)

    def test_duplicate_signup_is_reported(self) -> None:
        self.signup('ada@example.com')
        self.client.get('/logout')
        response = self.signup('ada@example.com')
        self.assertIn(b'Account already exists', response.data)

    def test_login_and_logout(self) -> None:
        self.signup('ada@example.com')
        self.client.get('/logout')
        self.assertEqual(len(self.sessions), 0)
        self.assertIn(b'Incorrect password', self.login('ada@example.com', 'wrong').data)
        self.assertIn(b'Login successful', self.login('ada@example.com', 'secret123').data)
        self.assertEqual(len(self.sessions), 1)

    def test_unknown_account_login(self) -> None:
        self.assertIn(b'Account not found', self.login('nobody@example.com', 'x').data)

    def reset_token(self, email):
        return issue_reset_token(self.store, self.users_path, self.app.config['SECRET_KEY'], email)

    def test_password_reset_flow(self) -> None:
        self.signup('ada@example.com')
        self.client.get('/logout')
        with self.assertLogs('app', level='INFO') as logs:
            response = self.client.post('/forgot', data={'email': 'ada@example.com'}, follow_redirects=True)
        self.assertIn(b'A password reset link for ada@example.com has been issued.', response.data)
        self.assertTrue(any('/reset/' in line for line in logs.output))

        token = self.reset_token('ada@example.com')
        response = self.client.get(f'/reset/{token}')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'ada@example.com', response.data)
        response = self.client.post(f'/reset/{token}', data={
            'new_password': 'brandnew1', 'new_password2': 'brandnew1',
        }, follow_redirects=True)
        self.assertIn(b'Password successfully updated', response.data)
        self.assertIn(b'Login successful', self.login('ada@example.com', 'brandnew1').data)

    def test_reset_without_token_is_refused(self) -> None:
        self.signup('ada@example.com')
        self.client.get('/logout')
        response = self.client.post('/reset', data={
            'email': 'ada@example.com', 'new_password': 'hijacked1', 'new_password2': 'hijacked1',
        })
        self.assertEqual(response.status_code, 404)
        self.assertIn(b'Login successful', self.login('ada@example.com', 'secret123').data)

    def test_reset_with_bogus_token_is_refused(self) -> None:
        self.signup('ada@example.com')
        self.client.get('/logout')
        response = self.client.post('/reset/ada@example.com', data={
            'new_password': 'hijacked1', 'new_password2': 'hijacked1',
        }, follow_redirects=True)
        self.assertIn(b'This reset link is invalid.', response.data)
        self.assertIn(b'Incorrect password', self.login('ada@example.com', 'hijacked1').data)
        self.assertIn(b'Login successful', self.login('ada@example.com', 'secret123').data)

    def test_reset_link_works_once(self) -> None:
        self.signup('ada@example.com')
        self.client.get('/logout')
        token = self.reset_token('ada@example.com')
        form = {'new_password': 'brandnew1', 'new_password2': 'brandnew1'}
        self.client.post(f'/reset/{token}', data=form)
        response = self.client.get(f'/reset/{token}', follow_redirects=True)
        self.assertIn(b'already been used', response.data)

    def test_forgot_unknown_email(self) -> None:
        response = self.client.post('/forgot', data={'email': 'nobody@example.com'}, follow_redirects=True)
        self.assertIn(b'No account found', response.data)


class RequesterTests(DashboardTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.signup('ada@example.com')

    def test_create_and_withdraw(self) -> None:
        response = self.client.post('/pickup/request', data=pickup_form(), follow_redirects=True)
        self.assertIn(b'Request for Laptop received.', response.data)
        self.assertNotIn(b'onfirmation', response.data)
        docs = self.store.list_documents(self.requests_path)
        self.assertEqual(len(docs), 1)
        self.assertEqual(docs[0].data['userId'], 'ada@example.com')
        self.assertEqual(docs[0].data['status'], 'Pending')

        key = docs[0].key
        response = self.client.post(f'/pickup/{key}/withdraw', data={}, follow_redirects=True)
        self.assertIn(b'Please confirm the withdrawal', response.data)
        self.assertIsNotNone(self.store.get_document(self.requests_path, key))

        response = self.client.post(f'/pickup/{key}/withdraw', data={'confirm': 'y'}, follow_redirects=True)
        self.assertIn(b'Request withdrawn', response.data)
        self.assertIsNone(self.store.get_document(self.requests_path, key))

    def test_other_category_needs_label(self) -> None:
        response = self.client.post('/pickup/request', data=pickup_form(category='Other'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.store.list_documents(self.requests_path), [])
        self.client.post('/pickup/request', data=pickup_form(category='Other', other_label='Router'))
        self.assertEqual(self.store.list_documents(self.requests_path)[0].data['itemType'], 'Router')

    def test_zero_quantity_is_rejected(self) -> None:
        response = self.client.post('/pickup/request', data=pickup_form(quantity='0'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.store.list_documents(self.requests_path), [])

    def test_cannot_advance(self) -> None:
        self.put_request('r1')
        response = self.client.post('/pickup/r1/approve', follow_redirects=True)
        self.assertIn(b'Only operators', response.data)
        self.assertEqual(self.status_of('r1'), 'Pending')

    def test_cannot_withdraw_others(self) -> None:
        self.put_request('r1', owner='grace@example.com')
        response = self.client.post('/pickup/r1/withdraw', data={'confirm': 'y'}, follow_redirects=True)
        self.assertIn(b'only withdraw your own', response.data)
        self.assertIsNotNone(self.store.get_document(self.requests_path, 'r1'))

    def test_dashboard_is_scoped(self) -> None:
        self.put_request('r1', owner='grace@example.com', category='Tablet')
        self.put_request('r2', owner='ada@example.com', category='Mobile')
        response = self.client.get('/dashboard')
        self.assertIn(b'Mobile', response.data)
        self.assertNotIn(b'Tablet', response.data)
        self.assertNotIn(b'Approve', response.data)


class OperatorTests(DashboardTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.put_request('r1', quantity=3)
        self.signup('admin@example.com')

    def test_request_form_is_refused(self) -> None:
        response = self.client.get('/pickup/request', follow_redirects=True)
        self.assertIn(b'Only requesters can request pickups', response.data)

    def test_advance_through_lifecycle(self) -> None:
        response = self.client.get('/dashboard')
        self.assertIn(b'Approve', response.data)
        self.assertNotIn(b'Finalize', response.data)

        response = self.client.post('/pickup/r1/approve', follow_redirects=True)
        self.assertIn(b'Pickup marked Scheduled', response.data)
        self.assertIn(b'Finalize', response.data)

        response = self.client.post('/pickup/r1/finalize', follow_redirects=True)
        self.assertIn(b'Pickup marked Collected', response.data)
        self.assertIn(b'6.6 kg', response.data)
        self.assertEqual(self.status_of('r1'), 'Collected')

        response = self.client.post('/pickup/r1/finalize', follow_redirects=True)
        self.assertIn(b'already Collected', response.data)

    def test_cannot_skip_to_collected(self) -> None:
        self.client.post('/pickup/r1/finalize', follow_redirects=True)
        self.assertEqual(self.status_of('r1'), 'Pending')

    def test_unknown_action_is_404(self) -> None:
        self.assertEqual(self.client.post('/pickup/r1/delete').status_code, 404)


class FlakyStore(MemoryDocumentStore):
    """Memory store whose collections can be taken offline one at a time."""

    def __init__(self):
        super().__init__()
        self.down_paths = set()

    def _check(self, path):
        if path in self.down_paths:
            raise Unavailable("The document store is unavailable, please try again.")

    def _get(self, path, key):
        self._check(path)
        return super()._get(path, key)

    def _list(self, path):
        self._check(path)
        return super()._list(path)

    def _put(self, path, key, value):
        self._check(path)
        super()._put(path, key, value)

    def _update(self, path, key, partial):
        self._check(path)
        super()._update(path, key, partial)

    def _delete(self, path, key):
        self._check(path)
        super()._delete(path, key)


class StoreFailureTests(DashboardTestCase):
    def setUp(self) -> None:
        self.store = FlakyStore()
        self.app = create_app(TestConfig, store=self.store)
        self.client = self.app.test_client()
        self.sessions = self.app.extensions['pickup_sessions']
        self.requests_path = collection_path(self.app.config['APP_ID'], REQUESTS)
        self.users_path = collection_path(self.app.config['APP_ID'], USERS)

    def test_dashboard_reports_unavailable_store(self) -> None:
        self.signup('ada@example.com')
        self.client.get('/logout')
        self.store.down_paths.add(self.requests_path)
        response = self.login('ada@example.com', 'secret123')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'toast-danger', response.data)
        self.assertIn(b'The document store is unavailable', response.data)
        self.assertIn(b'New Collection', response.data)

    def test_approve_reports_unavailable_store(self) -> None:
        self.put_request('r1')
        self.signup('admin@example.com')
        self.store.down_paths.add(self.requests_path)
        response = self.client.post('/pickup/r1/approve', follow_redirects=True)
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'toast-danger', response.data)
        self.assertIn(b'The document store is unavailable', response.data)
        self.store.down_paths.clear()
        self.assertEqual(self.status_of('r1'), 'Pending')

    def test_login_reports_unavailable_store(self) -> None:
        self.signup('ada@example.com')
        self.client.get('/logout')
        self.store.down_paths.add(self.users_path)
        response = self.login('ada@example.com', 'secret123')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'toast-danger', response.data)
        self.assertIn(b'The document store is unavailable', response.data)
        self.assertEqual(len(self.sessions), 0)

    def test_request_submission_reports_unavailable_store(self) -> None:
        self.signup('ada@example.com')
        self.store.down_paths.add(self.requests_path)
        response = self.client.post('/pickup/request', data=pickup_form(), follow_redirects=True)
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'toast-danger', response.data)
        self.store.down_paths.clear()
        self.assertEqual(self.store.list_documents(self.requests_path), [])
