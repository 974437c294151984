"""Match result state machine and knockout propagation."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

from models import db, Match, Team, MATCH_STATUSES, TABLE_STAGES
from engine import repository
from engine.config import ScheduleConfig, parse_clock
from engine.errors import (
    ConflictError,
    EngineError,
    IncompleteResultError,
    NotFoundError,
    ValidationError,
)
from engine.sources import LoserOf, WinnerOf, references
from engine.standings import recalculate_standings

logger = logging.getLogger(__name__)

SCORE_FIELDS = ('home_score', 'away_score', 'home_penalty_score', 'away_penalty_score')
SCHEDULE_FIELDS = ('date', 'time', 'venue')
TEAM_SLOT_FIELDS = ('home_team_id', 'away_team_id')
EDITABLE_FIELDS = set(SCORE_FIELDS + SCHEDULE_FIELDS + TEAM_SLOT_FIELDS + ('status',))
DERIVED_FIELDS = {'winner_team_id', 'loser_team_id', 'went_to_penalties'}

TRANSITIONS = {
    'scheduled': {'live', 'completed', 'postponed'},
    'live': {'completed', 'postponed', 'scheduled'},
    'postponed': {'scheduled', 'live'},
    'completed': set(),
}


@dataclass
class MatchUpdateResult:
    match: Match
    propagated: list = field(default_factory=list)
    propagation_errors: list = field(default_factory=list)
    standings_updated: bool = False

    def to_dict(self) -> dict:
        return {
            'match': self.match.to_dict(),
            'propagated': [match.id for match in self.propagated],
            'propagation_errors': list(self.propagation_errors),
            'standings_updated': self.standings_updated,
        }


@dataclass(frozen=True)
class Outcome:
    winner_team_id: Optional[int] = None
    loser_team_id: Optional[int] = None
    went_to_penalties: bool = False


def decide_outcome(match) -> Outcome:
    """Winner and loser implied by a knockout match's scores.

    Level scores are only decided by a strict penalty shootout winner; any
    incomplete combination leaves the result open.
    """
    home, away = match.home_team_id, match.away_team_id
    if home is None or away is None:
        return Outcome()
    if match.home_score is None or match.away_score is None:
        return Outcome()
    if match.home_score > match.away_score:
        return Outcome(home, away)
    if match.away_score > match.home_score:
        return Outcome(away, home)

    home_pens, away_pens = match.home_penalty_score, match.away_penalty_score
    if home_pens is None or away_pens is None or home_pens == away_pens:
        return Outcome()
    if home_pens > away_pens:
        return Outcome(home, away, True)
    return Outcome(away, home, True)


def _score(value, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{name} must be a whole number, got {value!r}')
    if value < 0:
        raise ValidationError(f'{name} cannot be negative')
    return value


def _date(value):
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise ValidationError(f'Match date must use YYYY-MM-DD, got {value!r}')


def _clock(value):
    if value is None or isinstance(value, time):
        return value
    if isinstance(value, str):
        return parse_clock(value)
    raise ValidationError(f'Match time must use HH:MM, got {value!r}')


def _coerce(match: Match, changes: dict) -> dict:
    derived = sorted(DERIVED_FIELDS & set(changes))
    if derived:
        raise ValidationError(f'{", ".join(derived)} cannot be set directly; it follows from the scores')
    unknown = sorted(set(changes) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f'Unknown match field(s): {", ".join(unknown)}')

    values = {}
    for key, value in changes.items():
        if key in SCORE_FIELDS:
            values[key] = _score(value, key)
        elif key == 'status':
            if value not in MATCH_STATUSES:
                raise ValidationError(f'Invalid match status: {value!r}')
            values[key] = value
        elif key == 'date':
            values[key] = _date(value)
        elif key == 'time':
            values[key] = _clock(value)
        elif key in TEAM_SLOT_FIELDS:
            if value is not None:
                team = db.session.get(Team, value)
                if team is None or team.tournament_id != match.tournament_id:
                    raise NotFoundError(f'Team {value} is not registered in tournament {match.tournament_id}')
            values[key] = value
        else:
            values[key] = value
    return values


def _check_transition(current: str, target: str) -> None:
    if current == target:
        return
    if target not in TRANSITIONS.get(current, set()):
        raise ValidationError(f'Cannot change match status from {current} to {target}')


def _check_conflict(match: Match) -> None:
    """Reject a kickoff that overlaps another match at the same venue."""
    start = match.start_datetime
    if start is None or not match.venue:
        return
    config = ScheduleConfig.from_tournament(match.tournament)
    minutes = config.match_minutes + config.buffer_minutes
    end = start + timedelta(minutes=minutes)

    candidates = Match.query.filter(
        Match.tournament_id == match.tournament_id,
        Match.venue == match.venue,
        Match.id != match.id,
        Match.date.in_([start.date() - timedelta(days=1), start.date(), end.date()]),
    ).all()
    for other in candidates:
        if other.overlaps_range(start, end, minutes):
            raise ConflictError(
                f'{match.venue} is already booked at {other.start_datetime:%Y-%m-%d %H:%M} '
                f'({other.versus_display})'
            )


def _settle(match: Match) -> None:
    if not match.is_knockout:
        return
    outcome = decide_outcome(match)
    match.winner_team_id = outcome.winner_team_id
    match.loser_team_id = outcome.loser_team_id
    match.went_to_penalties = outcome.went_to_penalties

    if match.status == 'completed' and match.winner_team_id is None:
        level = (
            match.home_score is not None
            and match.away_score is not None
            and match.home_score == match.away_score
        )
        if level:
            raise IncompleteResultError('Cannot complete match without a penalty-decided winner')
        raise IncompleteResultError('Cannot complete match without a winner')


def _fill_slot(dependent: Match, slot: str, team_id: int) -> bool:
    column = f'{slot}_team_id'
    current = getattr(dependent, column)
    if current == team_id:
        return False
    if dependent.status == 'completed':
        raise ConflictError(
            f'Match {dependent.id} is already completed with team {current} in the {slot} slot'
        )
    setattr(dependent, column, team_id)
    return True


def propagate_result(match: Match) -> tuple[list[Match], list[str]]:
    """Push the winner and loser of ``match`` into the matches they feed.

    Each dependent is written inside its own savepoint; failures are logged
    and returned instead of undoing the result itself.
    """
    updated: list[Match] = []
    errors: list[str] = []
    if match.winner_team_id is None:
        return updated, errors

    pushes = {WinnerOf: match.winner_team_id, LoserOf: match.loser_team_id}
    for dependent in repository.dependents_of(match):
        try:
            with db.session.begin_nested():
                changed = False
                for slot in ('home', 'away'):
                    source = getattr(dependent, f'{slot}_source')
                    if not references(source, match.id):
                        continue
                    team_id = pushes[type(source)]
                    if team_id is not None:
                        changed = _fill_slot(dependent, slot, team_id) or changed
        except EngineError as exc:
            logger.warning('Could not propagate match %s into match %s: %s', match.id, dependent.id, exc.message)
            errors.append(f'Match {dependent.id}: {exc.message}')
            continue
        if changed:
            updated.append(dependent)

    db.session.commit()
    if updated:
        logger.info(
            'Propagated match %s into match(es) %s', match.id, ', '.join(str(m.id) for m in updated)
        )
    return updated, errors


def update_match(match_id: int, changes: dict) -> MatchUpdateResult:
    """Apply a score, status or schedule change to one match.

    The change is validated and committed first. Knockout results then flow
    into dependent bracket matches, and group/league results refresh the
    tournament's standings.
    """
    match = repository.get_match(match_id)
    values = _coerce(match, changes)
    previous_status = match.status

    with repository.unit_of_work():
        target = values.get('status', previous_status)
        _check_transition(previous_status, target)
        for key, value in values.items():
            setattr(match, key, value)
        if any(key in values for key in SCHEDULE_FIELDS):
            _check_conflict(match)
        _settle(match)

    logger.info('Updated match %s (%s): %s', match.id, match.status, ', '.join(sorted(values)) or 'no changes')
    result = MatchUpdateResult(match)

    if match.is_knockout and match.status == 'completed':
        result.propagated, result.propagation_errors = propagate_result(match)

    touches_table = any(key in values for key in SCORE_FIELDS + ('status',))
    if match.stage in TABLE_STAGES and touches_table:
        recalculate_standings(match.tournament_id)
        result.standings_updated = True
    return result
