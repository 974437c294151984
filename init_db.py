"""
Database initialization script
Run with: python init_db.py [--demo]
"""

import sys
from datetime import date, timedelta

from app import create_app
from models import db, Tournament, Team

DEMO_TEAMS = [
    'Finance Falcons',
    'HR Hawks',
    'IT Invaders',
    'Legal Lions',
    'Marketing Mavericks',
    'Ops Otters',
    'Sales Sharks',
    'Support Stallions',
]


def seed_demo_tournament():
    """Create a groups + knockout tournament with eight teams, unless one exists."""
    existing = Tournament.query.filter_by(name='Company Cup').first()
    if existing:
        return existing

    start = date.today() + timedelta(days=7)
    tournament = Tournament(
        name='Company Cup',
        type='groups_knockout',
        start_date=start,
        end_date=start + timedelta(days=21),
        venues=['Main Ground', 'Training Pitch'],
        schedule_config={'matchesPerDay': 2, 'dailyStartTime': '17:00'},
        number_of_groups=2,
        teams_advancing_per_group=2,
        has_third_place_match=True,
    )
    db.session.add(tournament)
    db.session.flush()
    for name in DEMO_TEAMS:
        db.session.add(Team(name=name, tournament_id=tournament.id))
    db.session.commit()
    return tournament


def initialize_database(with_demo=False):
    """Initialize database tables and, optionally, demo data"""
    app = create_app()
    with app.app_context():
        print("Creating database tables...")
        db.create_all()

        if with_demo:
            print("Seeding demo tournament...")
            tournament = seed_demo_tournament()
            print(f"  Tournament #{tournament.id}: {tournament.name}")

        print("✅ Database initialized successfully!")


if __name__ == "__main__":
    initialize_database(with_demo='--demo' in sys.argv[1:])
