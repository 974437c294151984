"""Knockout seeding and single-elimination bracket construction."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional, Sequence

from models import Match, TABLE_STAGES
from engine import repository
from engine.config import ScheduleConfig, GROUP_MATCHES_PER_DAY
from engine.errors import ValidationError
from engine.sources import LoserOf, Seed, WinnerOf
from engine.standings import group_tables

logger = logging.getLogger(__name__)

MIN_BRACKET_SIZE = 2
MAX_BRACKET_SIZE = 16
ROUND_GAP_DAYS = 2
DEFAULT_LEAD_DAYS = 7

_STAGE_SEQUENCE = {
    2: ('final',),
    4: ('semi_final', 'final'),
    8: ('quarter_final', 'semi_final', 'final'),
    16: ('round_of_16', 'quarter_final', 'semi_final', 'final'),
}


@dataclass(frozen=True)
class Qualifier:
    """A team going through to the knockout stage."""

    team: Any
    group_number: Optional[int]
    position: int


@dataclass(frozen=True)
class SeededQualifier:
    qualifier: Qualifier
    seed: int

    @property
    def team(self):
        return self.qualifier.team

    @property
    def group_number(self) -> Optional[int]:
        return self.qualifier.group_number


@dataclass(frozen=True)
class FirstRoundSlot:
    position: int
    home_seed: int
    away_seed: int
    home: Optional[SeededQualifier] = None
    away: Optional[SeededQualifier] = None
    is_bye: bool = False


@dataclass(frozen=True)
class BracketPlan:
    qualifier_count: int
    size: int
    byes: int
    stages: tuple[str, ...]
    first_round: tuple[FirstRoundSlot, ...]
    third_place: bool = False


def next_power_of_two(count: int) -> int:
    if count <= MIN_BRACKET_SIZE:
        return MIN_BRACKET_SIZE
    return 1 << (count - 1).bit_length()


def bracket_order(size: int) -> list[int]:
    """Seed order of first-round slots, e.g. 8 -> [1, 8, 4, 5, 2, 7, 3, 6].

    Adjacent pairs form first-round matches; if every favourite wins, seeds
    1 and 2 can only meet in the final.
    """
    if size == 2:
        return [1, 2]
    upper = bracket_order(size // 2)
    order: list[int] = []
    for seed in upper:
        order.extend([seed, size + 1 - seed])
    return order


def stages_for(size: int) -> tuple[str, ...]:
    try:
        return _STAGE_SEQUENCE[size]
    except KeyError:
        raise ValidationError(f'Unsupported bracket size: {size}') from None


def _ranking(qualifier: Qualifier) -> tuple[int, int, int]:
    return qualifier.team.ranking_key


def seed_qualifiers(qualifiers: Sequence[Qualifier]) -> list[SeededQualifier]:
    """Group winners take the top seeds, runners-up follow.

    Within each tier qualifiers are ordered by points, goal difference and
    goals scored.
    """
    winners = sorted((q for q in qualifiers if q.position == 1), key=_ranking, reverse=True)
    others = sorted((q for q in qualifiers if q.position != 1), key=_ranking, reverse=True)
    return [SeededQualifier(q, seed) for seed, q in enumerate(winners + others, start=1)]


def _same_group(first: Optional[SeededQualifier], second: Optional[SeededQualifier]) -> bool:
    if first is None or second is None:
        return False
    return first.group_number is not None and first.group_number == second.group_number


def _avoid_same_group(pairs: list[list[int]], by_seed: dict[int, SeededQualifier]) -> None:
    for index, (home, away) in enumerate(pairs):
        if not _same_group(by_seed.get(home), by_seed.get(away)):
            continue
        for candidate in pairs[index + 1:]:
            other_home, other_away = candidate
            if _same_group(by_seed.get(home), by_seed.get(other_away)):
                continue
            if _same_group(by_seed.get(other_home), by_seed.get(away)):
                continue
            pairs[index][1], candidate[1] = other_away, away
            break
        else:
            logger.warning(
                'No swap available: seeds %s and %s from group %s meet in round one',
                home,
                away,
                by_seed[home].group_number,
            )


def plan_bracket(
    qualifier_count: int,
    seeded: Optional[Sequence[SeededQualifier]] = None,
    third_place: bool = False,
) -> BracketPlan:
    """Lay out the first round for ``qualifier_count`` teams.

    The top ``size - qualifier_count`` seeds get byes. The remaining seeds
    meet strongest against weakest (seed ``byes + i + 1`` against seed
    ``qualifier_count - i``), with one greedy swap per pairing to keep teams
    from the same group apart where possible.
    """
    if qualifier_count < 2:
        raise ValidationError(
            f'Not enough qualified teams for a knockout stage (need 2, got {qualifier_count})'
        )
    size = next_power_of_two(qualifier_count)
    if size > MAX_BRACKET_SIZE:
        raise ValidationError(
            f'Knockout brackets support at most {MAX_BRACKET_SIZE} teams, got {qualifier_count}'
        )

    byes = size - qualifier_count
    by_seed = {entry.seed: entry for entry in (seeded or [])}

    pairs = [[byes + i + 1, qualifier_count - i] for i in range((qualifier_count - byes) // 2)]
    if by_seed:
        _avoid_same_group(pairs, by_seed)
    opponent = {home: away for home, away in pairs}

    order = bracket_order(size)
    slots = []
    for position in range(1, size // 2 + 1):
        top = min(order[2 * position - 2], order[2 * position - 1])
        if top <= byes:
            slots.append(
                FirstRoundSlot(position, top, size + 1 - top, home=by_seed.get(top), is_bye=True)
            )
        else:
            away = opponent[top]
            slots.append(
                FirstRoundSlot(position, top, away, home=by_seed.get(top), away=by_seed.get(away))
            )

    stages = stages_for(size)
    # a bye semi-final never produces a loser for the third-place match
    with_third_place = third_place and size >= 4 and (size > 4 or byes == 0)
    return BracketPlan(qualifier_count, size, byes, stages, tuple(slots), with_third_place)


def qualifiers_from_tables(tables, per_group: int) -> list[Qualifier]:
    qualifiers = []
    for table in tables:
        for position, team in enumerate(table.teams[:per_group], start=1):
            qualifiers.append(Qualifier(team, table.group_number, position))
    return qualifiers


def collect_qualifiers(tournament) -> list[Qualifier]:
    if tournament.has_group_stage:
        teams = repository.list_teams(tournament.id)
        per_group = tournament.teams_advancing_per_group or 2
        return qualifiers_from_tables(group_tables(teams), per_group)
    if tournament.type == 'knockout':
        return [Qualifier(team, None, 1) for team in repository.list_teams(tournament.id)]
    raise ValidationError(f'Tournament {tournament.id} has no knockout stage ({tournament.type})')


def knockout_start_date(tournament) -> date:
    """First knockout day: after the last table match, else end date, else a week out."""
    last = (
        Match.query.filter(
            Match.tournament_id == tournament.id,
            Match.stage.in_(TABLE_STAGES),
            Match.date.isnot(None),
        )
        .order_by(Match.date.desc())
        .first()
    )
    if last is not None:
        return last.date + timedelta(days=1)
    if tournament.end_date:
        return tournament.end_date
    return tournament.today() + timedelta(days=DEFAULT_LEAD_DAYS)


class _Clock:
    """Hands out kickoffs for one knockout day, spaced by duration + buffer."""

    def __init__(self, config: ScheduleConfig, day: date):
        self.config = config
        self.day = day
        self.index = 0

    def next(self) -> dict:
        spacing = self.config.match_minutes + self.config.buffer_minutes
        start = datetime.combine(self.day, self.config.daily_start)
        kickoff = start + timedelta(minutes=self.index * spacing)
        venue = self.config.venues[self.index % len(self.config.venues)]
        self.index += 1
        return {'date': kickoff.date(), 'time': kickoff.time(), 'venue': venue}


def _first_round_row(tournament_id: int, stage: str, slot: FirstRoundSlot, clock: _Clock) -> dict:
    row = {
        'tournament_id': tournament_id,
        'home_team_id': slot.home.team.id if slot.home else None,
        'away_team_id': slot.away.team.id if slot.away else None,
        'home_team_source': str(Seed(slot.home_seed)),
        'away_team_source': str(Seed(slot.away_seed)),
        'round': 1,
        'leg': 1,
        'stage': stage,
        'bracket_position': slot.position,
        'status': 'scheduled',
    }
    if slot.is_bye:
        row.update(date=clock.day, time=clock.config.daily_start, venue=None)
        if slot.home is not None:
            row.update(status='completed', winner_team_id=slot.home.team.id)
    else:
        row.update(clock.next())
    return row


def create_bracket(tournament, plan: BracketPlan, config: ScheduleConfig, start: date) -> list[Match]:
    """Persist every bracket match, wiring later rounds to their feeders.

    Must run inside a unit of work; rows are flushed round by round so that
    ``WINNER_OF``/``LOSER_OF`` references can use real match ids.
    """
    created: list[Match] = []
    first_clock = _Clock(config, start)
    previous = repository.create_matches(
        [_first_round_row(tournament.id, plan.stages[0], slot, first_clock) for slot in plan.first_round]
    )
    created.extend(previous)

    for round_number, stage in enumerate(plan.stages[1:], start=2):
        clock = _Clock(config, start + timedelta(days=(round_number - 1) * ROUND_GAP_DAYS))
        rows = []
        if stage == 'final' and plan.third_place:
            first_semi, second_semi = previous
            rows.append({
                'tournament_id': tournament.id,
                'home_team_source': str(LoserOf(first_semi.id)),
                'away_team_source': str(LoserOf(second_semi.id)),
                'round': round_number,
                'leg': 1,
                'stage': 'third_place',
                'bracket_position': 1,
                'status': 'scheduled',
                **clock.next(),
            })
        for position in range(1, len(previous) // 2 + 1):
            home_feeder = previous[2 * position - 2]
            away_feeder = previous[2 * position - 1]
            rows.append({
                'tournament_id': tournament.id,
                'home_team_id': home_feeder.winner_team_id,
                'away_team_id': away_feeder.winner_team_id,
                'home_team_source': str(WinnerOf(home_feeder.id)),
                'away_team_source': str(WinnerOf(away_feeder.id)),
                'round': round_number,
                'leg': 1,
                'stage': stage,
                'bracket_position': position,
                'status': 'scheduled',
                **clock.next(),
            })
        matches = repository.create_matches(rows)
        created.extend(matches)
        previous = [match for match in matches if match.stage == stage]

    return created


def expected_qualifier_count(tournament) -> int:
    return (tournament.number_of_groups or 2) * (tournament.teams_advancing_per_group or 2)


def create_bracket_skeleton(tournament, start: date, config: Optional[ScheduleConfig] = None) -> list[Match]:
    """Empty bracket for the expected number of group qualifiers."""
    plan = plan_bracket(expected_qualifier_count(tournament), third_place=bool(tournament.has_third_place_match))
    config = config or ScheduleConfig.from_tournament(
        tournament, default_matches_per_day=GROUP_MATCHES_PER_DAY
    )
    return create_bracket(tournament, plan, config, start)


def generate_knockout_matches(tournament_id: int) -> list[Match]:
    """Seed the qualifiers and rebuild the tournament's knockout bracket."""
    tournament = repository.get_tournament(tournament_id)
    qualifiers = collect_qualifiers(tournament)
    seeded = seed_qualifiers(qualifiers)
    plan = plan_bracket(len(seeded), seeded, third_place=bool(tournament.has_third_place_match))
    config = ScheduleConfig.from_tournament(tournament, default_matches_per_day=GROUP_MATCHES_PER_DAY)

    with repository.unit_of_work():
        repository.delete_matches(tournament_id, exclude_stages=TABLE_STAGES)
        start = knockout_start_date(tournament)
        created = create_bracket(tournament, plan, config, start)

    logger.info(
        'Generated knockout bracket for tournament %s: %d qualifiers, size %d, %d bye(s), %d matches',
        tournament_id,
        plan.qualifier_count,
        plan.size,
        plan.byes,
        len(created),
    )
    return created
