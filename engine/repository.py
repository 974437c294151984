"""Store operations the engine needs, over the Flask-SQLAlchemy session."""

import logging
from contextlib import contextmanager
from typing import Iterable, Optional, Sequence

from sqlalchemy import or_

from models import db, Match, Team, Tournament
from engine.errors import NotFoundError, ValidationError
from engine.sources import LoserOf, WinnerOf

logger = logging.getLogger(__name__)

TEAM_FIELDS = {'name', 'tournament_id', 'group_number'}
TOURNAMENT_FIELDS = {
    'name',
    'type',
    'start_date',
    'end_date',
    'timezone',
    'schedule_config',
    'venues',
    'half_duration',
    'break_between_halves',
    'points_win',
    'points_draw',
    'points_loss',
    'number_of_groups',
    'teams_advancing_per_group',
    'has_second_leg',
    'has_third_place_match',
    'group_stage_complete',
    'current_stage',
}


@contextmanager
def unit_of_work():
    """Commit everything done inside the block, or nothing at all."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def _apply(instance, changes: dict, allowed: set, label: str) -> None:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValidationError(f'Cannot update {label} field(s): {", ".join(unknown)}')
    for key, value in changes.items():
        try:
            setattr(instance, key, value)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc


def get_tournament(tournament_id: int) -> Tournament:
    tournament = db.session.get(Tournament, tournament_id)
    if tournament is None:
        raise NotFoundError(f'Tournament {tournament_id} not found')
    return tournament


def update_tournament(tournament_id: int, changes: dict) -> Tournament:
    tournament = get_tournament(tournament_id)
    _apply(tournament, changes, TOURNAMENT_FIELDS, 'tournament')
    db.session.commit()
    return tournament


def list_teams(tournament_id: int) -> list[Team]:
    return (
        Team.query.filter_by(tournament_id=tournament_id)
        .order_by(
            Team.points.desc(),
            Team.goal_difference.desc(),
            Team.goals_for.desc(),
            Team.id.asc(),
        )
        .all()
    )


def get_team(team_id: int) -> Team:
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFoundError(f'Team {team_id} not found')
    return team


def update_team(team_id: int, changes: dict) -> Team:
    team = get_team(team_id)
    _apply(team, changes, TEAM_FIELDS, 'team')
    db.session.commit()
    return team


def list_matches(tournament_id: int, stages: Optional[Iterable[str]] = None) -> list[Match]:
    query = Match.query.filter(Match.tournament_id == tournament_id)
    if stages is not None:
        query = query.filter(Match.stage.in_(list(stages)))
    return query.order_by(
        Match.round.asc(),
        Match.date.asc(),
        Match.time.asc(),
        Match.id.asc(),
    ).all()


def get_match(match_id: int) -> Match:
    match = db.session.get(Match, match_id)
    if match is None:
        raise NotFoundError(f'Match {match_id} not found')
    return match


def create_matches(rows: Sequence[dict]) -> list[Match]:
    """Insert match rows and flush so their ids can be referenced."""
    created = [Match(**row) for row in rows]
    db.session.add_all(created)
    db.session.flush()
    return created


def delete_matches(
    tournament_id: int,
    stages: Optional[Iterable[str]] = None,
    exclude_stages: Optional[Iterable[str]] = None,
) -> int:
    query = Match.query.filter(Match.tournament_id == tournament_id)
    if stages is not None:
        query = query.filter(Match.stage.in_(list(stages)))
    if exclude_stages is not None:
        query = query.filter(Match.stage.notin_(list(exclude_stages)))
    removed = query.delete(synchronize_session='fetch')
    logger.info('Deleted %d match(es) from tournament %s', removed, tournament_id)
    return removed


def dependents_of(match: Match) -> list[Match]:
    """Matches of the same tournament whose slots are fed by ``match``."""
    refs = [str(WinnerOf(match.id)), str(LoserOf(match.id))]
    return (
        Match.query.filter(
            Match.tournament_id == match.tournament_id,
            or_(Match.home_team_source.in_(refs), Match.away_team_source.in_(refs)),
        )
        .order_by(Match.id)
        .all()
    )


def update_match(match_id: int, changes: dict):
    from engine.results import update_match as _update_match

    return _update_match(match_id, changes)
