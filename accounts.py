"""Sign-up, sign-in and password reset against the ``users`` collection."""
import hashlib
import logging

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from errors import NotFound, PermissionDenied, ValidationError
from models import Account, OPERATOR, REQUESTER
from utils import hash_password, verify_password, normalize_email

logger = logging.getLogger(__name__)

RESET_SALT = 'password-reset'


def marker_role_assigner(marker):
    """Role policy that makes any email containing ``marker`` an operator."""
    marker = marker.lower()
    def assign(email):
        return OPERATOR if marker and marker in email else REQUESTER
    return assign


def load_account(store, path, email):
    doc = store.get_document(path, normalize_email(email))
    if doc is None:
        return None
    return Account.from_document(doc.data)


def sign_up(store, path, email, password, assign_role, name=None):
    """Create an account; ``assign_role(email)`` decides its role."""
    email = normalize_email(email)
    if not email or not password:
        raise ValidationError("Email and password are required.")
    if store.get_document(path, email) is not None:
        raise ValidationError("Account already exists. Please sign in.")
    role = assign_role(email)
    handle = store.create_account(email)
    account = Account(
        email=email,
        name=(name or '').strip() or email.split('@')[0],
        role=role,
        uid=handle.uid,
        password_hash=hash_password(password),
    )
    store.put_document(path, email, account.to_document())
    logger.info("Account %s created as %s", email, role)
    return account


def sign_in(store, path, email, password):
    account = load_account(store, path, email)
    if account is None:
        raise NotFound("Account not found. Please sign up.")
    if not account.password_hash or not verify_password(account.password_hash, password):
        raise PermissionDenied("Incorrect password.")
    account.uid = store.create_account(account.email).uid
    return account


def _serializer(secret):
    return URLSafeTimedSerializer(secret, salt=RESET_SALT)


def _password_stamp(account):
    # changes with the password, so a used link stops working
    return hashlib.sha256((account.password_hash or '').encode('utf-8')).hexdigest()[:16]


def issue_reset_token(store, path, secret, email):
    account = load_account(store, path, email)
    if account is None:
        raise NotFound("No account found with this email.")
    return _serializer(secret).dumps({'email': account.email, 'stamp': _password_stamp(account)})


def verify_reset_token(store, path, secret, token, max_age):
    """Return the account a reset token was issued for."""
    try:
        data = _serializer(secret).loads(token, max_age=max_age)
    except SignatureExpired:
        raise PermissionDenied("This reset link has expired. Please request a new one.")
    except BadSignature:
        raise PermissionDenied("This reset link is invalid.")
    account = load_account(store, path, data.get('email', ''))
    if account is None:
        raise NotFound("No account found with this email.")
    if data.get('stamp') != _password_stamp(account):
        raise PermissionDenied("This reset link has already been used.")
    return account


def reset_password(store, path, secret, token, new_password, max_age):
    if not new_password:
        raise ValidationError("A new password is required.")
    account = verify_reset_token(store, path, secret, token, max_age)
    store.update_fields(path, account.email, {'passwordHash': hash_password(new_password)})
    logger.info("Password reset for %s", account.email)
    return account
