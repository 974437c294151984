"""League table computation from completed group/league matches."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from models import db, Match, Team, TABLE_STAGES
from engine import repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointValues:
    win: int = 3
    draw: int = 1
    loss: int = 0

    @classmethod
    def for_tournament(cls, tournament) -> 'PointValues':
        return cls(
            win=tournament.points_win if tournament.points_win is not None else 3,
            draw=tournament.points_draw if tournament.points_draw is not None else 1,
            loss=tournament.points_loss if tournament.points_loss is not None else 0,
        )


@dataclass
class TeamRecord:
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0

    def add(self, scored: int, conceded: int) -> None:
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.won += 1
        elif scored == conceded:
            self.drawn += 1
        else:
            self.lost += 1

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def points(self, values: PointValues) -> int:
        return self.won * values.win + self.drawn * values.draw + self.lost * values.loss


def counts_for_table(match) -> bool:
    return (
        match.status == 'completed'
        and match.stage in TABLE_STAGES
        and match.home_score is not None
        and match.away_score is not None
    )


def compute_records(team_ids: Iterable[int], matches: Sequence) -> dict[int, TeamRecord]:
    """Accumulate a fresh record per team from the given matches."""
    records = {team_id: TeamRecord() for team_id in team_ids}
    for match in matches:
        if not counts_for_table(match):
            continue
        home = records.get(match.home_team_id)
        away = records.get(match.away_team_id)
        if home is not None:
            home.add(match.home_score, match.away_score)
        if away is not None:
            away.add(match.away_score, match.home_score)
    return records


def apply_record(team: Team, record: TeamRecord, values: PointValues) -> None:
    team.played = record.played
    team.won = record.won
    team.drawn = record.drawn
    team.lost = record.lost
    team.goals_for = record.goals_for
    team.goals_against = record.goals_against
    team.goal_difference = record.goal_difference
    team.points = record.points(values)


def rank_teams(teams: Iterable[Team]) -> list[Team]:
    """Sort by points, goal difference, goals for (all descending)."""
    return sorted(teams, key=lambda team: team.ranking_key, reverse=True)


@dataclass
class GroupStanding:
    group_number: int
    teams: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'group_number': self.group_number,
            'teams': [team.to_dict() for team in self.teams],
        }


def group_tables(teams: Iterable[Team]) -> list[GroupStanding]:
    """Ranked table per group, in ascending group order. Ungrouped teams are left out."""
    grouped: dict[int, list[Team]] = {}
    for team in teams:
        if not team.group_number:
            continue
        grouped.setdefault(team.group_number, []).append(team)
    return [
        GroupStanding(number, rank_teams(members))
        for number, members in sorted(grouped.items())
    ]


def recalculate_standings(tournament_id: int, commit: bool = True) -> list[Team]:
    """Rebuild every team's record of the tournament from scratch."""
    tournament = repository.get_tournament(tournament_id)
    values = PointValues.for_tournament(tournament)
    teams = Team.query.filter_by(tournament_id=tournament_id).order_by(Team.id).all()
    matches = Match.query.filter(
        Match.tournament_id == tournament_id,
        Match.status == 'completed',
        Match.stage.in_(TABLE_STAGES),
    ).all()

    records = compute_records((team.id for team in teams), matches)
    for team in teams:
        apply_record(team, records[team.id], values)

    if commit:
        db.session.commit()
    logger.info('Recalculated standings for tournament %s (%d teams)', tournament_id, len(teams))
    return rank_teams(teams)
