from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from market_overview import db
from market_overview.errors import StorageError


def utcnow():
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def commit(description, on_conflict=None):
    """Commit the current unit of work or raise StorageError.

    ``on_conflict`` is raised instead when the commit trips a unique
    constraint, so callers can report duplicates as their own error kind.
    """
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning(f'{description} hit a constraint: {e.orig}')
        if on_conflict is not None:
            raise on_conflict from e
        raise StorageError(f'{description} failed') from e
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f'{description} failed: {str(e)}')
        raise StorageError(f'{description} failed') from e
