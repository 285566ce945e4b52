"""Per-user dashboard data: portfolio and watchlist CRUD plus summary figures.

Movers, news and market status are fixed illustrative payloads, not derived
from any market feed.
"""
import copy
import math
import re
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from market_overview import db, utils
from market_overview.errors import ValidationError
from market_overview.models import PortfolioPosition, WatchlistItem

MOVERS = {
    'gainers': [
        {'symbol': 'AAPL', 'change': 5.2},
        {'symbol': 'GOOGL', 'change': 3.8},
        {'symbol': 'MSFT', 'change': 2.1}
    ],
    'losers': [
        {'symbol': 'TSLA', 'change': -2.5},
        {'symbol': 'NFLX', 'change': -1.8},
        {'symbol': 'AMZN', 'change': -1.2}
    ],
    'active': [
        {'symbol': 'SPY', 'change': 0.8},
        {'symbol': 'QQQ', 'change': 1.2},
        {'symbol': 'IWM', 'change': -0.5}
    ]
}

MARKET_STATUS = {
    'status': 'open',
    'next_close': '16:00 EST'
}


def _timestamp(value):
    return value.strftime('%Y-%m-%d %H:%M:%S')


def normalize_symbol(symbol):
    symbol = (symbol or '').strip().upper()
    if not symbol:
        raise ValidationError('Symbol is required')
    if not re.fullmatch(current_app.config['SYMBOL_PATTERN'], symbol):
        raise ValidationError('Invalid symbol')
    return symbol


def _positive_number(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def get_dashboard_data(user_id):
    positions, total_value = db.session.query(
        func.count(PortfolioPosition.id),
        func.coalesce(func.sum(PortfolioPosition.shares * PortfolioPosition.avg_price), 0)
    ).filter(PortfolioPosition.user_id == user_id).one()
    watchlist_count = WatchlistItem.query.filter_by(user_id=user_id).count()

    return {
        'success': True,
        'stats': {
            'portfolio_value': round(float(total_value), 2),
            'portfolio_change': 0,
            'day_pl': 0,
            'day_pl_percent': 0,
            'active_positions': positions,
            'watchlist_count': watchlist_count
        },
        'movers': copy.deepcopy(MOVERS),
        'activity': [
            {
                'description': 'Dashboard loaded successfully',
                'timestamp': _timestamp(utils.utcnow()),
                'icon': 'fa-chart-line',
                'color': 'text-info'
            }
        ],
        'market_status': dict(MARKET_STATUS)
    }


def get_portfolio(user_id):
    positions = PortfolioPosition.query.filter_by(user_id=user_id).order_by(
        PortfolioPosition.purchase_date.desc(), PortfolioPosition.id.desc()).all()
    return {
        'success': True,
        'portfolio': [position.to_dict() for position in positions]
    }


def get_watchlist(user_id):
    items = WatchlistItem.query.filter_by(user_id=user_id).order_by(
        WatchlistItem.added_at.desc(), WatchlistItem.id.desc()).all()
    return {
        'success': True,
        'watchlist': [item.to_dict() for item in items]
    }


def get_news():
    return {
        'success': True,
        'news': [
            {
                'title': 'Market Update: Strong Trading Session',
                'summary': 'Markets showed positive momentum with technology stocks leading gains...',
                'source': 'Market News',
                'published_at': _timestamp(utils.utcnow() - timedelta(hours=1)),
                'url': '#',
                'image': None
            }
        ]
    }


def get_alerts():
    return {
        'success': True,
        'alerts': []
    }


def add_to_watchlist(user_id, symbol):
    symbol = normalize_symbol(symbol)

    if WatchlistItem.query.filter_by(user_id=user_id, symbol=symbol).first():
        raise ValidationError('Symbol already in watchlist')

    db.session.add(WatchlistItem(user_id=user_id, symbol=symbol, added_at=utils.utcnow()))
    utils.commit('Watchlist insert', on_conflict=ValidationError('Symbol already in watchlist'))
    current_app.logger.info(f'User {user_id} added {symbol} to watchlist')

    return {
        'success': True,
        'message': 'Added to watchlist successfully'
    }


def remove_from_watchlist(user_id, symbol):
    symbol = normalize_symbol(symbol)

    deleted = WatchlistItem.query.filter_by(user_id=user_id, symbol=symbol).delete()
    if not deleted:
        db.session.rollback()
        raise ValidationError('Symbol not in watchlist')
    utils.commit('Watchlist delete')
    current_app.logger.info(f'User {user_id} removed {symbol} from watchlist')

    return {
        'success': True,
        'message': 'Removed from watchlist successfully'
    }


def add_to_portfolio(user_id, symbol, shares, avg_price, company_name='', notes=''):
    shares = _positive_number(shares)
    avg_price = _positive_number(avg_price)
    if not (symbol or '').strip() or shares is None or avg_price is None:
        raise ValidationError('Symbol, shares, and average price are required')
    symbol = normalize_symbol(symbol)

    position = PortfolioPosition(
        user_id=user_id,
        symbol=symbol,
        company_name=(company_name or '').strip()[:255],
        shares=shares,
        avg_price=avg_price,
        notes=notes or '',
        purchase_date=utils.utcnow()
    )
    db.session.add(position)
    utils.commit('Portfolio insert')
    current_app.logger.info(f'User {user_id} added {shares} x {symbol} @ {avg_price} to portfolio')

    return {
        'success': True,
        'message': 'Added to portfolio successfully',
        'position': position.to_dict()
    }


def _position_id(value):
    """Whole numbers only: a JSON int or a string of digits. Floats and booleans are refused."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError('Portfolio ID is required')
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and re.fullmatch(r'[0-9]+', value.strip()):
        return int(value)
    raise ValidationError('Portfolio ID must be an integer')


def remove_from_portfolio(user_id, position_id):
    position_id = _position_id(position_id)

    # user_id in the filter keeps one user from deleting another's rows
    deleted = PortfolioPosition.query.filter_by(id=position_id, user_id=user_id).delete()
    if not deleted:
        db.session.rollback()
        raise ValidationError('Portfolio entry not found')
    utils.commit('Portfolio delete')
    current_app.logger.info(f'User {user_id} removed portfolio entry {position_id}')

    return {
        'success': True,
        'message': 'Removed from portfolio successfully'
    }
