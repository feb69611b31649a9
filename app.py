import logging
from flask import Flask, render_template, redirect, url_for, flash, abort
from flask_login import LoginManager, login_user, login_required, logout_user, current_user
from config import Config
from models import db, OTHER
from forms import (LoginForm, SignupForm, ForgotPasswordForm, ResetPasswordForm,
                   PickupRequestForm, WithdrawForm, ActionForm)
from accounts import (marker_role_assigner, load_account, sign_up, sign_in, issue_reset_token,
                      verify_reset_token, reset_password)
from errors import PickupError, StoreError
from impact import compute_impact
from lifecycle import next_status, create_request, withdraw_request, approve, finalize
from session import SessionRegistry
from store import MemoryDocumentStore, SqlDocumentStore, collection_path, REQUESTS, USERS
from utils import configure_logging

logger = logging.getLogger(__name__)


def create_app(config_class=Config, store=None, assign_role=None):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app.config['LOG_LEVEL'])
    db.init_app(app)
    with app.app_context():
        db.create_all()

    if store is None:
        if app.config['STORE_BACKEND'] == 'memory':
            store = MemoryDocumentStore()
        else:
            store = SqlDocumentStore(app)
    requests_path = collection_path(app.config['APP_ID'], REQUESTS)
    users_path = collection_path(app.config['APP_ID'], USERS)
    if assign_role is None:
        assign_role = marker_role_assigner(app.config['OPERATOR_EMAIL_MARKER'])
    sessions = SessionRegistry(store, requests_path, idle_timeout=app.config["SESSION_IDLE_SECONDS"])
    app.extensions['pickup_store'] = store
    app.extensions['pickup_sessions'] = sessions

    login_manager = LoginManager()
    login_manager.login_view = 'login'
    login_manager.login_message_category = 'info'
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(email):
        try:
            return load_account(store, users_path, email)
        except StoreError:
            logger.warning("Could not load account %s", email)
            return None

    def notify_failure(exc):
        # store failures and rejected actions are shown, never raised to the user
        logger.info("%s: %s", type(exc).__name__, exc)
        flash(str(exc), "danger")

    def start_session(account):
        login_user(account)
        try:
            sessions.open(account)
        except StoreError as exc:
            notify_failure(exc)

    @app.route('/')
    def home():
        return render_template('home.html')

    @app.route('/signup', methods=['GET','POST'])
    def signup():
        if current_user.is_authenticated:
            return redirect(url_for('dashboard'))
        form = SignupForm()
        if form.validate_on_submit():
            try:
                account = sign_up(store, users_path, form.email.data, form.password.data,
                                  assign_role, name=form.name.data)
            except PickupError as exc:
                notify_failure(exc)
            else:
                start_session(account)
                flash(f"Welcome {account.name}! Your account {account.email} is ready.", "success")
                return redirect(url_for('dashboard'))
        return render_template('signup.html', form=form)

    @app.route('/login', methods=['GET','POST'])
    def login():
        if current_user.is_authenticated:
            return redirect(url_for('dashboard'))
        form = LoginForm()
        if form.validate_on_submit():
            try:
                account = sign_in(store, users_path, form.email.data, form.password.data)
            except PickupError as exc:
                notify_failure(exc)
            else:
                start_session(account)
                flash("Login successful", "success")
                return redirect(url_for('dashboard'))
        return render_template('login.html', form=form)

    @app.route('/forgot', methods=['GET','POST'])
    def forgot_password():
        form = ForgotPasswordForm()
        if form.validate_on_submit():
            try:
                token = issue_reset_token(store, users_path, app.config['SECRET_KEY'], form.email.data)
            except PickupError as exc:
                notify_failure(exc)
            else:
                # no mail transport; the link goes to the log for the site operator to pass on
                logger.info("Password reset link for %s: %s", form.email.data.strip().lower(),
                            url_for('reset_password_view', token=token, _external=True))
                flash(f"A password reset link for {form.email.data.strip().lower()} has been issued.", "success")
                return redirect(url_for('login'))
        return render_template('forgot.html', form=form)

    @app.route('/reset/<token>', methods=['GET','POST'])
    def reset_password_view(token):
        secret = app.config['SECRET_KEY']
        max_age = app.config['RESET_TOKEN_MAX_AGE']
        form = ResetPasswordForm()
        try:
            if form.validate_on_submit():
                reset_password(store, users_path, secret, token, form.new_password.data, max_age)
                flash("Password successfully updated. Please login.", "success")
                return redirect(url_for('login'))
            account = verify_reset_token(store, users_path, secret, token, max_age)
        except PickupError as exc:
            notify_failure(exc)
            return redirect(url_for('forgot_password'))
        return render_template('reset.html', form=form, email=account.email, token=token)

    @app.route('/logout')
    @login_required
    def logout():
        sessions.close(current_user.email)
        logout_user()
        flash("Logged out", "info")
        return redirect(url_for('home'))

    @app.route('/dashboard')
    @login_required
    def dashboard():
        requests = []
        try:
            ctx = sessions.open(current_user._get_current_object())
            requests = ctx.visible_requests()
        except StoreError as exc:
            notify_failure(exc)
        return render_template(
            'dashboard.html',
            requests=requests,
            impact=compute_impact(requests),
            next_status=next_status,
            withdraw_form=WithdrawForm(),
            action_form=ActionForm(),
        )

    @app.route('/pickup/request', methods=['GET','POST'])
    @login_required
    def request_pickup():
        if not current_user.is_requester():
            flash("Only requesters can request pickups", "danger")
            return redirect(url_for('dashboard'))
        form = PickupRequestForm()
        if form.validate_on_submit():
            try:
                submission = create_request(
                    store, requests_path, current_user,
                    category=form.category.data,
                    other_label=form.other_label.data if form.category.data == OTHER else None,
                    quantity=form.quantity.data,
                    date=form.date.data,
                    time=form.time.data,
                    phone=form.phone.data,
                    address=form.address.data,
                    timeout=app.config['CREATE_TIMEOUT_SECONDS'],
                )
            except PickupError as exc:
                notify_failure(exc)
            else:
                category = submission.request.category
                if submission.confirmed:
                    flash(f"Request for {category} received.", "success")
                else:
                    flash(f"Request for {category} submitted. It will appear on your dashboard once it is saved.", "info")
                return redirect(url_for('dashboard'))
        return render_template('request_pickup.html', form=form)

    @app.route('/pickup/<request_id>/withdraw', methods=['POST'])
    @login_required
    def withdraw_pickup(request_id):
        form = WithdrawForm()
        if not form.validate_on_submit():
            flash("Please confirm the withdrawal.", "warning")
            return redirect(url_for('dashboard'))
        try:
            withdraw_request(store, requests_path, request_id, current_user)
        except PickupError as exc:
            notify_failure(exc)
        else:
            flash("Request withdrawn", "success")
        return redirect(url_for('dashboard'))

    @app.route('/pickup/<request_id>/<action>', methods=['POST'])
    @login_required
    def advance_pickup(request_id, action):
        transitions = {'approve': approve, 'finalize': finalize}
        if action not in transitions:
            abort(404)
        if not ActionForm().validate_on_submit():
            flash("Your form has expired, please try again.", "warning")
            return redirect(url_for('dashboard'))
        try:
            pickup = transitions[action](store, requests_path, request_id, current_user)
        except PickupError as exc:
            notify_failure(exc)
        else:
            flash(f"Pickup marked {pickup.status}", "success")
        return redirect(url_for('dashboard'))

    return app

if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
