import click
from flask import current_app
from flask.cli import with_appcontext

from market_overview import db

DEMO_EMAIL = 'demo@example.com'
DEMO_USERNAME = 'demo_user'
DEMO_PASSWORD = 'Demo123!'


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all database tables."""
    db.create_all()
    click.echo('Database tables created')


@click.command('seed-demo')
@with_appcontext
def seed_demo_command():
    """Insert the verified demo account if it is missing."""
    from market_overview import models
    from market_overview.security import hash_password

    db.create_all()
    if models.User.query.filter_by(email=DEMO_EMAIL).first():
        click.echo(f'Demo user already exists: {DEMO_EMAIL}')
        return

    db.session.add(models.User(
        email=DEMO_EMAIL,
        username=DEMO_USERNAME,
        password_hash=hash_password(DEMO_PASSWORD),
        first_name='Demo',
        last_name='User',
        is_verified=True
    ))
    db.session.commit()
    current_app.logger.info(f'Demo user created: {DEMO_EMAIL}')
    click.echo(f'Demo user created: {DEMO_EMAIL} / {DEMO_PASSWORD}')


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_demo_command)
