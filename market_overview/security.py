import re
import secrets

import bcrypt
from flask import current_app


def hash_password(password):
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def password_too_long(password):
    """bcrypt only takes the first PASSWORD_MAX_BYTES bytes of UTF-8."""
    return len(password.encode('utf-8')) > current_app.config['PASSWORD_MAX_BYTES']


def verify_password(password, password_hash):
    if password_too_long(password):
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        current_app.logger.error('Stored password hash is not a valid bcrypt hash')
        return False


def generate_token():
    """32 random bytes as 64 hex characters."""
    return secrets.token_hex(32)


def validate_email(email):
    """Check the email format"""
    pattern = re.compile(current_app.config['EMAIL_PATTERN'])
    return bool(email) and bool(pattern.fullmatch(email))


def validate_username(username):
    """3-20 letters, digits or underscores"""
    pattern = re.compile(current_app.config['USERNAME_PATTERN'])
    return bool(username) and bool(pattern.fullmatch(username))


def validate_password(password):
    """Between the minimum length and the bcrypt byte limit, with upper case, lower case and a digit"""
    if not password or len(password) < current_app.config['PASSWORD_MIN_LENGTH']:
        return False
    if password_too_long(password):
        return False
    return (re.search(r'[A-Z]', password) is not None and
            re.search(r'[a-z]', password) is not None and
            re.search(r'[0-9]', password) is not None)
