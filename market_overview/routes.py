from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from market_overview import auth, dashboard, db
from market_overview.errors import AuthenticationError, ValidationError
from market_overview.sessions import login_required, with_context

credentials_bp = Blueprint('credentials', __name__)
dashboard_bp = Blueprint('dashboard', __name__)
status_bp = Blueprint('status', __name__)


def request_data():
    """Form fields, or a JSON object body for clients that send one"""
    if request.form:
        return request.form
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _text(data, name):
    value = data.get(name)
    return value if isinstance(value, str) else ''


# Credentials actions

def _login(ctx, data):
    email = _text(data, 'email')
    password = _text(data, 'password')
    if not email or not password:
        raise ValidationError('Email and password are required')
    return auth.login(ctx, email, password)


def _register(ctx, data):
    email = _text(data, 'email')
    username = _text(data, 'username')
    password = _text(data, 'password')
    if not email or not username or not password:
        raise ValidationError('All fields are required')
    return auth.register(ctx, email, username, password,
                         first_name=_text(data, 'first_name'),
                         last_name=_text(data, 'last_name'))


def _logout(ctx, data):
    return auth.logout(ctx)


def _check_auth(ctx, data):
    user = auth.get_current_user(ctx)
    return {
        'success': True,
        'logged_in': user is not None,
        'user': user
    }


def _get_user(ctx, data):
    if not auth.is_logged_in(ctx):
        raise AuthenticationError('User not logged in')
    return {
        'success': True,
        'user': auth.get_current_user(ctx)
    }


CREDENTIAL_ACTIONS = {
    'login': _login,
    'register': _register,
    'logout': _logout,
    'check_auth': _check_auth,
    'get_user': _get_user
}


@credentials_bp.route('/credentials', methods=['POST'])
@with_context
def credentials(ctx):
    """Login, registration and session queries, selected by ``action``"""
    data = request_data()
    action = _text(data, 'action')
    current_app.logger.info(f'Credentials request: action={action!r} from {ctx.ip_address}')

    handler = CREDENTIAL_ACTIONS.get(action)
    if handler is None:
        raise ValidationError('Invalid action')
    result = handler(ctx, data)
    status = 201 if action == 'register' else 200
    return jsonify(result), status


# Dashboard actions

DASHBOARD_ACTIONS = {
    'get_dashboard_data': lambda user_id, data: dashboard.get_dashboard_data(user_id),
    'get_portfolio': lambda user_id, data: dashboard.get_portfolio(user_id),
    'get_watchlist': lambda user_id, data: dashboard.get_watchlist(user_id),
    'get_news': lambda user_id, data: dashboard.get_news(),
    'get_alerts': lambda user_id, data: dashboard.get_alerts(),
    'add_to_watchlist': lambda user_id, data: dashboard.add_to_watchlist(
        user_id, _text(data, 'symbol')),
    'remove_from_watchlist': lambda user_id, data: dashboard.remove_from_watchlist(
        user_id, _text(data, 'symbol')),
    'add_to_portfolio': lambda user_id, data: dashboard.add_to_portfolio(
        user_id, _text(data, 'symbol'), data.get('shares'), data.get('avg_price'),
        company_name=_text(data, 'company_name'), notes=_text(data, 'notes')),
    'remove_from_portfolio': lambda user_id, data: dashboard.remove_from_portfolio(
        user_id, data.get('id'))
}


@dashboard_bp.route('/dashboard_data', methods=['POST'])
@login_required
def dashboard_data(ctx):
    data = request_data()
    action = _text(data, 'action')
    current_app.logger.info(f'Dashboard request: action={action!r} user={ctx.user_id}')

    handler = DASHBOARD_ACTIONS.get(action)
    if handler is None:
        raise ValidationError('Invalid action')
    return jsonify(handler(ctx.user_id, data))


@status_bp.route('/health', methods=['GET'])
def health():
    """Database connectivity check"""
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f'Database connection check failed: {str(e)}')
        return jsonify({
            'success': False,
            'message': 'Database connection failed'
        }), 500

    return jsonify({
        'success': True,
        'message': 'Database connection successful',
        'database': db.engine.dialect.name
    })
