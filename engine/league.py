"""Fixtures for plain league (``round_robin``) tournaments."""

import logging
from typing import Optional

from models import Match
from engine import repository
from engine.config import ScheduleConfig, LEAGUE_MATCHES_PER_DAY
from engine.errors import ValidationError
from engine.round_robin import generate_round_robin
from engine.scheduler import schedule_pairings

logger = logging.getLogger(__name__)


def generate_league_matches(
    tournament_id: int,
    matches_per_day: Optional[int] = None,
    daily_start_time: Optional[str] = None,
) -> list[Match]:
    """Every team plays every other team (twice with a second leg)."""
    tournament = repository.get_tournament(tournament_id)
    if tournament.type != 'round_robin':
        raise ValidationError(f'Tournament {tournament_id} is not a league ({tournament.type})')

    config = ScheduleConfig.from_tournament(
        tournament,
        matches_per_day=matches_per_day,
        daily_start_time=daily_start_time,
        default_matches_per_day=LEAGUE_MATCHES_PER_DAY,
    )
    teams = sorted(repository.list_teams(tournament_id), key=lambda team: team.id)
    pairings = generate_round_robin(teams, bool(tournament.has_second_leg))
    start = tournament.start_date or tournament.today()
    slots, _ = schedule_pairings(pairings, config, start, tournament.end_date)

    with repository.unit_of_work():
        repository.delete_matches(tournament_id, stages=['league'])
        created = repository.create_matches([
            {
                'tournament_id': tournament_id,
                'home_team_id': slot.pairing.home.id,
                'away_team_id': slot.pairing.away.id,
                'round': slot.pairing.round,
                'leg': slot.pairing.leg,
                'stage': 'league',
                'date': slot.date,
                'time': slot.time,
                'venue': slot.venue,
                'status': 'scheduled',
            }
            for slot in slots
        ])

    logger.info(
        'Generated %d league match(es) over %d round(s) for tournament %s',
        len(created),
        max(slot.pairing.round for slot in slots),
        tournament_id,
    )
    return created
