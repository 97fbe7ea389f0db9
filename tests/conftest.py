"""
Pytest configuration and fixtures for back office tests.
"""
import os
import random
import sys
from datetime import date, timedelta

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from backoffice.app import create_app
from backoffice.models import db, Player
from backoffice.notifier import NotificationDispatcher, Notifier
from backoffice.tournament_registry import TournamentRegistry

TODAY = date(2026, 5, 15)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create database session for testing."""
    with app.app_context():
        # Clear all tables before each test
        db.session.remove()

        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def add_players(count: int, prefix: str = 'player'):
    player_ids = []
    for i in range(count):
        player_id = f'{prefix}-{i + 1}'
        db.session.add(Player(
            player_id=player_id,
            name=f'Player {i + 1}',
            contact_email=f'{player_id}@example.org'
        ))
        player_ids.append(player_id)
    db.session.commit()
    return player_ids


@pytest.fixture
def players(app, db_session):
    """Eight players in the directory; returns their ids."""
    return add_players(8)


@pytest.fixture
def notifier(mocker):
    """Notifier double recording every notify/announce call."""
    return mocker.create_autospec(Notifier, instance=True)


@pytest.fixture
def registry(app, db_session, notifier):
    """Registry with a mock notifier, a fixed clock and a seeded shuffle."""
    return TournamentRegistry(
        dispatcher=NotificationDispatcher(notifier),
        clock=lambda: TODAY,
        rng=random.Random(7),
    )


@pytest.fixture
def open_tournament(registry, notifier):
    """Tournament with four slots, open for registration around TODAY."""
    tournament = registry.create_tournament(
        'Spring Open',
        venue='Central Hall',
        max_participants=4,
        entry_fee='20.00',
        start_date=TODAY + timedelta(days=10),
        end_date=TODAY + timedelta(days=12),
        registration_start_date=TODAY - timedelta(days=5),
        registration_end_date=TODAY + timedelta(days=5),
    )
    registry.transition_status(tournament.tournament_id, 'REGISTRATION_OPEN')
    notifier.reset_mock()
    return tournament.tournament_id


@pytest.fixture
def today():
    """The date the registry fixture's clock reports."""
    return TODAY


@pytest.fixture
def make_players():
    """Factory adding players to the directory of the active app."""
    return add_players
