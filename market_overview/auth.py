"""Registration, login, logout and lockout bookkeeping.

Every operation takes the request context first. Failures are raised as
``MarketOverviewError`` subclasses; the app turns them into JSON responses.
"""
from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from market_overview import db, utils
from market_overview.errors import (AccountLockedError, DuplicateUserError, InactiveAccountError,
                                    InvalidCredentialsError, ValidationError)
from market_overview.models import User, UserActivity, UserSession
from market_overview.security import (generate_token, hash_password, password_too_long,
                                      validate_email, validate_password, validate_username,
                                      verify_password)


def _duplicate_user():
    return DuplicateUserError('User with this email or username already exists')


def register(ctx, email, username, password, first_name=None, last_name=None):
    """Create a new, unverified account"""
    email = (email or '').strip().lower()
    username = (username or '').strip()

    if not validate_email(email):
        raise ValidationError('Invalid email format')
    if not validate_username(username):
        raise ValidationError('Username must be 3-20 characters long and contain only letters, '
                              'numbers, and underscores')
    if password and password_too_long(password):
        raise ValidationError(f"Password must be at most {current_app.config['PASSWORD_MAX_BYTES']} "
                              'bytes long')
    if not validate_password(password):
        raise ValidationError(f"Password must be at least {current_app.config['PASSWORD_MIN_LENGTH']} "
                              'characters long and contain uppercase, lowercase, and number')

    if user_exists(email, username):
        current_app.logger.warning(f'Registration rejected, email or username taken: {email} / {username}')
        raise _duplicate_user()

    user = User(
        email=email,
        username=username,
        password_hash=hash_password(password),
        first_name=first_name or None,
        last_name=last_name or None,
        verification_token=generate_token()
    )
    db.session.add(user)
    utils.commit('User registration', on_conflict=_duplicate_user())

    current_app.logger.info(f'New user registered: {email} (ID: {user.id})')
    log_activity(ctx, user.id, user.email, 'registration', 'User registered successfully')

    return {
        'success': True,
        'message': 'Registration successful',
        'user_id': user.id
    }


def login(ctx, email, password):
    """Check credentials and start a fresh session for the user"""
    email = (email or '').strip().lower()
    if not validate_email(email):
        raise ValidationError('Invalid email format')
    if not password:
        raise ValidationError('Password is required')

    now = utils.utcnow()
    user = User.query.filter_by(email=email).first()

    if user is not None and is_account_locked(user, now):
        current_app.logger.warning(f'Login blocked, account locked until {user.locked_until}: {email}')
        raise AccountLockedError('Account is temporarily locked due to multiple failed login attempts')

    if user is None:
        current_app.logger.warning(f'Login failed, unknown email: {email} from {ctx.ip_address}')
        raise InvalidCredentialsError('Invalid email or password')

    if not verify_password(password, user.password_hash):
        record_failed_attempt(user, now)
        current_app.logger.warning(f'Login failed, wrong password for {email} '
                                   f'(attempt {user.failed_login_attempts}) from {ctx.ip_address}')
        raise InvalidCredentialsError('Invalid email or password')

    if not user.is_active:
        raise InactiveAccountError('Account is inactive. Please contact support.')

    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login = now
    utils.commit('Login bookkeeping')

    session_token = issue_session_token(ctx, user, now)
    ctx.store.purge_expired(now)
    ctx.start_session({
        'user_id': user.id,
        'user_email': user.email,
        'user_username': user.username,
        'user_first_name': user.first_name,
        'user_last_name': user.last_name,
        'is_verified': bool(user.is_verified),
        'logged_in': True,
        'login_time': now,
        'session_timeout': now + current_app.config['SESSION_LIFETIME'],
        'session_token': session_token
    })

    current_app.logger.info(f'User logged in: {email} (ID: {user.id})')
    log_activity(ctx, user.id, user.email, 'login', 'User logged in successfully')

    return {
        'success': True,
        'message': 'Login successful',
        'user': user.to_public_dict(),
        'session_token': session_token
    }


def logout(ctx):
    if ctx.is_logged_in():
        user_id = ctx.user_id
        log_activity(ctx, user_id, ctx.data.get('user_email'), 'logout', 'User logged out successfully')
        deactivate_session_token(ctx.data.get('session_token'))
        current_app.logger.info(f'User logged out: ID {user_id}')

    ctx.destroy()
    return {
        'success': True,
        'message': 'Logout successful'
    }


def is_logged_in(ctx):
    return ctx.is_logged_in(utils.utcnow())


def get_current_user(ctx):
    return ctx.user


def user_exists(email, username):
    return User.query.filter(or_(
        User.email == email,
        func.lower(User.username) == username.lower()
    )).first() is not None


def is_account_locked(user, now):
    return user.locked_until is not None and user.locked_until > now


def record_failed_attempt(user, now):
    """Count a failed login, locking the account once the limit is reached"""
    if user.locked_until is not None and user.locked_until <= now:
        # Previous lock has run out; start counting again
        user.failed_login_attempts = 0

    user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
    if user.failed_login_attempts >= current_app.config['MAX_LOGIN_ATTEMPTS']:
        user.locked_until = now + current_app.config['ACCOUNT_LOCKOUT_DURATION']
        current_app.logger.warning(f'Account locked after {user.failed_login_attempts} failed attempts: '
                                   f'{user.email}')
    else:
        user.locked_until = None
    utils.commit('Failed login bookkeeping')


def issue_session_token(ctx, user, now):
    """Record a tracking token for this login"""
    token = generate_token()
    db.session.add(UserSession(
        user_id=user.id,
        session_token=token,
        ip_address=ctx.ip_address[:45],
        user_agent=ctx.user_agent,
        expires_at=now + current_app.config['SESSION_TOKEN_LIFETIME']
    ))
    utils.commit('Session token creation')
    return token


def deactivate_session_token(token):
    if not token:
        return
    try:
        UserSession.query.filter_by(session_token=token).update({'is_active': False})
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to deactivate session token: {str(e)}')


def log_activity(ctx, user_id, email, action, details):
    """Write an activity record. Failures are logged and never raised."""
    try:
        db.session.add(UserActivity(
            user_id=user_id,
            email=email or '',
            action=action,
            details=details,
            ip_address=ctx.ip_address[:45],
            user_agent=ctx.user_agent
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f'Failed to log activity: {str(e)}')
