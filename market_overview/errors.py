"""Error kinds raised by the services and turned into JSON at the app boundary."""


class MarketOverviewError(Exception):
    status_code = 400
    code = 'ERROR'

    def __init__(self, message, status_code=None, code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_dict(self):
        return {
            'success': False,
            'message': self.message,
            'code': self.code
        }


class ValidationError(MarketOverviewError):
    status_code = 400
    code = 'VALIDATION_ERROR'


class DuplicateUserError(MarketOverviewError):
    status_code = 400
    code = 'USER_EXISTS'


class InvalidCredentialsError(MarketOverviewError):
    status_code = 401
    code = 'INVALID_CREDENTIALS'


class AuthenticationError(MarketOverviewError):
    status_code = 401
    code = 'NOT_AUTHENTICATED'


class AccountLockedError(MarketOverviewError):
    status_code = 403
    code = 'ACCOUNT_LOCKED'


class InactiveAccountError(MarketOverviewError):
    status_code = 403
    code = 'ACCOUNT_INACTIVE'


class StorageError(MarketOverviewError):
    status_code = 500
    code = 'STORAGE_ERROR'
