"""Server-side sessions and the per-request auth context.

Session data lives in a pluggable ``SessionStore``; the browser only holds an
opaque random session id in a cookie. Every request gets a ``RequestContext``
built from that cookie, and protected views receive it as their first
argument instead of reading ambient session state.
"""
import secrets
import threading
from functools import wraps

from flask import current_app, g, request

from market_overview import utils
from market_overview.errors import AuthenticationError


class SessionStore:
    """Interface for session storage backends."""

    def get(self, session_id):
        raise NotImplementedError

    def save(self, session_id, data):
        raise NotImplementedError

    def delete(self, session_id):
        raise NotImplementedError

    def purge_expired(self, now):
        """Drop sessions whose timeout has passed, returning how many went."""
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    """In-process store. Sessions do not survive a restart or span workers."""

    def __init__(self):
        self._sessions = {}
        self._lock = threading.Lock()

    def get(self, session_id):
        with self._lock:
            data = self._sessions.get(session_id)
            return dict(data) if data is not None else None

    def save(self, session_id, data):
        with self._lock:
            self._sessions[session_id] = dict(data)

    def delete(self, session_id):
        with self._lock:
            self._sessions.pop(session_id, None)

    def purge_expired(self, now):
        with self._lock:
            expired = [sid for sid, data in self._sessions.items()
                       if data.get('session_timeout') is None or data['session_timeout'] <= now]
            for sid in expired:
                del self._sessions[sid]
            return len(expired)

    def __len__(self):
        with self._lock:
            return len(self._sessions)


def new_session_id():
    return secrets.token_urlsafe(32)


def client_ip(req):
    """Best guess at the caller's address, proxies first."""
    if req.headers.get('Client-IP'):
        return req.headers['Client-IP'].strip()
    forwarded = req.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return req.remote_addr or 'unknown'


class RequestContext:
    def __init__(self, store, session_id=None, data=None, ip_address='unknown', user_agent=''):
        self.store = store
        self.session_id = session_id
        self.data = dict(data or {})
        self.ip_address = ip_address
        self.user_agent = user_agent
        # True when the cookie has to be rewritten or cleared
        self.modified = False

    @classmethod
    def from_request(cls, store, req, cookie_name):
        session_id = req.cookies.get(cookie_name)
        data = store.get(session_id) if session_id else None
        ctx = cls(store,
                  session_id=session_id if data is not None else None,
                  data=data,
                  ip_address=client_ip(req),
                  user_agent=req.headers.get('User-Agent', ''))
        if session_id and data is None:
            # Stale or forged id: never adopt it, and clear the cookie
            ctx.modified = True
        elif data is not None and not ctx.is_logged_in():
            # Expired but not yet purged
            ctx.destroy()
        return ctx

    def is_logged_in(self, now=None):
        if now is None:
            now = utils.utcnow()
        timeout = self.data.get('session_timeout')
        return self.data.get('logged_in') is True and timeout is not None and now < timeout

    @property
    def user_id(self):
        return self.data.get('user_id') if self.is_logged_in() else None

    @property
    def user(self):
        if not self.is_logged_in():
            return None
        return {
            'id': self.data['user_id'],
            'email': self.data.get('user_email'),
            'username': self.data.get('user_username'),
            'first_name': self.data.get('user_first_name'),
            'last_name': self.data.get('user_last_name'),
            'is_verified': self.data.get('is_verified', False)
        }

    def start_session(self, data):
        """Store ``data`` under a brand new session id."""
        if self.session_id:
            self.store.delete(self.session_id)
        self.session_id = new_session_id()
        self.data = dict(data)
        self.store.save(self.session_id, self.data)
        self.modified = True

    def destroy(self):
        if self.session_id:
            self.store.delete(self.session_id)
        self.session_id = None
        self.data = {}
        self.modified = True


def init_session_gate(app):
    app.extensions['session_store'] = app.config['SESSION_STORE_FACTORY']()

    @app.before_request
    def load_request_context():
        g.auth_context = RequestContext.from_request(
            current_app.extensions['session_store'],
            request,
            current_app.config['AUTH_COOKIE_NAME']
        )

    @app.after_request
    def persist_session_cookie(response):
        ctx = g.get('auth_context')
        if ctx is None or not ctx.modified:
            return response

        config = current_app.config
        if ctx.session_id:
            response.set_cookie(
                config['AUTH_COOKIE_NAME'],
                ctx.session_id,
                max_age=int(config['SESSION_LIFETIME'].total_seconds()),
                httponly=True,
                secure=config['AUTH_COOKIE_SECURE'],
                samesite=config['AUTH_COOKIE_SAMESITE']
            )
        else:
            response.delete_cookie(
                config['AUTH_COOKIE_NAME'],
                httponly=True,
                secure=config['AUTH_COOKIE_SECURE'],
                samesite=config['AUTH_COOKIE_SAMESITE']
            )
        return response


def with_context(f):
    """Pass the request context to the view as its first argument"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return f(g.auth_context, *args, **kwargs)
    return decorated_function


def login_required(f):
    """Like with_context, but only for a valid, unexpired session"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        ctx = g.auth_context
        if not ctx.is_logged_in():
            current_app.logger.warning(f'Unauthenticated request to {request.path} from {ctx.ip_address}')
            raise AuthenticationError('Not authenticated')
        return f(ctx, *args, **kwargs)
    return decorated_function
