import pytest
from app import create_app
from models import db, Tournament, Team, Match
from datetime import date, time

TEAM_NAMES = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ'


@pytest.fixture
def flask_app():
    """Create test application with in-memory SQLite database"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret-key',
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(flask_app):
    """Test client"""
    return flask_app.test_client()


@pytest.fixture
def db_session(flask_app):
    """Database session for test fixtures"""
    return db.session


@pytest.fixture
def make_tournament(flask_app):
    """Factory for tournaments; keyword arguments override the defaults."""

    def _make(**fields):
        values = {
            'name': 'Test Cup',
            'type': 'round_robin',
            'start_date': date(2025, 3, 1),
            'end_date': date(2025, 3, 31),
        }
        values.update(fields)
        tournament = Tournament(**values)
        db.session.add(tournament)
        db.session.commit()
        return tournament

    return _make


@pytest.fixture
def make_teams(flask_app):
    """Factory registering ``count`` teams named A, B, C... in a tournament.

    ``groups`` optionally lists a group number per team.
    """

    def _make(tournament, count, groups=None):
        teams = []
        for index in range(count):
            team = Team(
                name=TEAM_NAMES[index],
                tournament_id=tournament.id,
                group_number=groups[index] if groups else None,
            )
            db.session.add(team)
            teams.append(team)
        db.session.commit()
        return teams

    return _make


@pytest.fixture
def make_match(flask_app):
    """Factory for a single stored match."""

    def _make(tournament, home=None, away=None, **fields):
        values = {
            'tournament_id': tournament.id,
            'home_team_id': home.id if home else None,
            'away_team_id': away.id if away else None,
            'round': 1,
            'stage': 'league',
            'date': date(2025, 3, 1),
            'time': time(16, 0),
            'venue': 'Main Ground',
            'status': 'scheduled',
        }
        values.update(fields)
        match = Match(**values)
        db.session.add(match)
        db.session.commit()
        return match

    return _make


@pytest.fixture
def league(make_tournament, make_teams):
    """A four-team league tournament."""
    tournament = make_tournament(name='Office League')
    teams = make_teams(tournament, 4)
    return tournament, teams


@pytest.fixture
def cup(make_tournament, make_teams):
    """A four-team straight knockout tournament."""
    tournament = make_tournament(name='Office Cup', type='knockout')
    teams = make_teams(tournament, 4)
    return tournament, teams
