"""Group stage management: draw, fixtures, tables and qualification."""

import logging
import random
from datetime import timedelta
from typing import Iterable, Optional

from models import Match
from engine import repository
from engine.config import ScheduleConfig, GROUP_MATCHES_PER_DAY
from engine.errors import NotFoundError, ValidationError
from engine.knockout import (
    MAX_BRACKET_SIZE,
    MIN_BRACKET_SIZE,
    Qualifier,
    create_bracket_skeleton,
    expected_qualifier_count,
    qualifiers_from_tables,
)
from engine.round_robin import generate_round_robin, merge_round_major
from engine.scheduler import schedule_pairings
from engine.standings import GroupStanding, group_tables

logger = logging.getLogger(__name__)

__all__ = [
    'GroupStanding',
    'Qualifier',
    'assign_teams_to_groups',
    'generate_group_stage_matches',
    'get_group_standings',
    'complete_group_stage',
]


def _require_group_stage(tournament) -> None:
    if not tournament.has_group_stage:
        raise ValidationError(f'Tournament {tournament.id} does not have a group stage ({tournament.type})')


def _group_count(tournament) -> int:
    count = tournament.number_of_groups or 0
    if count < 1:
        raise ValidationError('Number of groups must be at least 1')
    return count


def assign_teams_to_groups(
    tournament_id: int,
    assignments: Optional[Iterable[dict]] = None,
    rng: Optional[random.Random] = None,
):
    """Place every team of the tournament in a group.

    ``assignments`` is a list of ``{'team_id': ..., 'group_number': ...}``
    entries applied as given. Without any, teams are shuffled and dealt into
    groups ``1..number_of_groups`` in turn.
    """
    tournament = repository.get_tournament(tournament_id)
    groups = _group_count(tournament)
    teams = repository.list_teams(tournament_id)
    if not teams:
        raise ValidationError(f'No teams in tournament {tournament_id}')

    with repository.unit_of_work():
        if assignments:
            by_id = {team.id: team for team in teams}
            for entry in assignments:
                team_id = entry.get('team_id')
                group_number = entry.get('group_number')
                team = by_id.get(team_id)
                if team is None:
                    raise NotFoundError(f'Team {team_id} is not registered in tournament {tournament_id}')
                if not isinstance(group_number, int) or not 1 <= group_number <= groups:
                    raise ValidationError(f'Group number must be between 1 and {groups}, got {group_number!r}')
                team.group_number = group_number
        else:
            shuffled = list(teams)
            (rng or random).shuffle(shuffled)
            for index, team in enumerate(shuffled):
                team.group_number = index % groups + 1
        tournament.current_stage = 'group_stage'

    logger.info('Assigned %d team(s) of tournament %s to %d group(s)', len(teams), tournament_id, groups)
    return get_group_standings(tournament_id)


def generate_group_stage_matches(
    tournament_id: int,
    matches_per_day: Optional[int] = None,
    daily_start_time: Optional[str] = None,
) -> list[Match]:
    """Replace the group fixtures with a fresh round robin inside each group."""
    tournament = repository.get_tournament(tournament_id)
    _require_group_stage(tournament)
    config = ScheduleConfig.from_tournament(
        tournament,
        matches_per_day=matches_per_day,
        daily_start_time=daily_start_time,
        default_matches_per_day=GROUP_MATCHES_PER_DAY,
    )

    schedules = []
    for table in group_tables(repository.list_teams(tournament_id)):
        members = sorted(table.teams, key=lambda team: team.id)
        if len(members) < 2:
            logger.warning('Group %s has fewer than 2 teams; no fixtures', table.group_number)
            continue
        schedules.append(
            generate_round_robin(members, bool(tournament.has_second_leg), table.group_number)
        )
    if not schedules:
        raise ValidationError('No group has at least 2 teams; assign teams to groups first')

    pairings = merge_round_major(*schedules)
    start = tournament.start_date or tournament.today()
    slots, _ = schedule_pairings(pairings, config, start, tournament.end_date)

    with repository.unit_of_work():
        repository.delete_matches(tournament_id, stages=['group'])
        created = repository.create_matches([
            {
                'tournament_id': tournament_id,
                'home_team_id': slot.pairing.home.id,
                'away_team_id': slot.pairing.away.id,
                'round': slot.pairing.round,
                'leg': slot.pairing.leg,
                'stage': 'group',
                'group_number': slot.pairing.group_number,
                'date': slot.date,
                'time': slot.time,
                'venue': slot.venue,
                'status': 'scheduled',
            }
            for slot in slots
        ])
        if tournament.type == 'groups_knockout':
            repository.delete_matches(tournament_id, exclude_stages=['group', 'league'])
            expected = expected_qualifier_count(tournament)
            if MIN_BRACKET_SIZE <= expected <= MAX_BRACKET_SIZE:
                last_day = max(slot.date for slot in slots)
                create_bracket_skeleton(tournament, last_day + timedelta(days=1), config)
            else:
                logger.warning(
                    'No knockout bracket for tournament %s: %d qualifier(s) is outside %d..%d',
                    tournament_id,
                    expected,
                    MIN_BRACKET_SIZE,
                    MAX_BRACKET_SIZE,
                )
        tournament.current_stage = 'group_stage'

    logger.info(
        'Generated %d group match(es) across %d group(s) for tournament %s',
        len(created),
        len(schedules),
        tournament_id,
    )
    return created


def get_group_standings(tournament_id: int) -> list[GroupStanding]:
    repository.get_tournament(tournament_id)
    return group_tables(repository.list_teams(tournament_id))


def complete_group_stage(tournament_id: int) -> list[Qualifier]:
    """Close the group stage and return the teams that go through."""
    tournament = repository.get_tournament(tournament_id)
    _require_group_stage(tournament)
    per_group = tournament.teams_advancing_per_group or 2
    qualifiers = qualifiers_from_tables(get_group_standings(tournament_id), per_group)

    with repository.unit_of_work():
        tournament.group_stage_complete = True
        tournament.current_stage = 'knockout_stage'

    logger.info('Group stage of tournament %s complete: %d qualifier(s)', tournament_id, len(qualifiers))
    return qualifiers
