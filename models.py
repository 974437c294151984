from datetime import datetime, date, time, timedelta
import pytz

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

db = SQLAlchemy()

DEFAULT_TIMEZONE = 'Asia/Muscat'
DEFAULT_HALF_DURATION = 45
DEFAULT_BREAK_BETWEEN_HALVES = 15

TOURNAMENT_TYPES = ('round_robin', 'knockout', 'groups', 'groups_knockout')
GROUP_TOURNAMENT_TYPES = ('groups', 'groups_knockout')

MATCH_STATUSES = ('scheduled', 'live', 'completed', 'postponed')
TABLE_STAGES = ('group', 'league')
KNOCKOUT_STAGES = ('round_of_16', 'quarter_final', 'semi_final', 'final', 'third_place')


def current_time():
    return datetime.now(pytz.utc)


class Tournament(db.Model):
    """Competition settings: format, calendar, scoring and stage progress."""

    __tablename__ = 'tournament'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(20), nullable=False, default='round_robin')
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    timezone = db.Column(db.String(64), nullable=False, default=DEFAULT_TIMEZONE)

    schedule_config = db.Column(db.JSON, default=dict)
    venues = db.Column(db.JSON, default=list)
    half_duration = db.Column(db.Integer, default=DEFAULT_HALF_DURATION)
    break_between_halves = db.Column(db.Integer, default=DEFAULT_BREAK_BETWEEN_HALVES)

    points_win = db.Column(db.Integer, default=3)
    points_draw = db.Column(db.Integer, default=1)
    points_loss = db.Column(db.Integer, default=0)

    number_of_groups = db.Column(db.Integer, default=2)
    teams_advancing_per_group = db.Column(db.Integer, default=2)
    has_second_leg = db.Column(db.Boolean, default=False)
    has_third_place_match = db.Column(db.Boolean, default=False)
    group_stage_complete = db.Column(db.Boolean, default=False)
    current_stage = db.Column(db.String(20), default='registration')

    created_at = db.Column(db.DateTime, default=current_time)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    teams = db.relationship('Team', backref='tournament', lazy=True, order_by='Team.id')
    matches = db.relationship(
        'Match', backref='tournament', lazy=True, cascade='all, delete-orphan', order_by='Match.id'
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Tournament {self.id} {self.name} type={self.type}>"

    @validates('type')
    def validate_type(self, key, value):
        if value not in TOURNAMENT_TYPES:
            raise ValueError(f'Unsupported tournament type: {value}')
        return value

    @validates('end_date')
    def validate_end_date(self, key, value):
        if value and self.start_date and value < self.start_date:
            raise ValueError('End date must be on or after the start date')
        return value

    @property
    def has_group_stage(self) -> bool:
        return self.type in GROUP_TOURNAMENT_TYPES

    @property
    def tz(self):
        return pytz.timezone(self.timezone or DEFAULT_TIMEZONE)

    @property
    def match_duration_minutes(self) -> int:
        """Playing time of one match: two halves plus the break."""
        half = self.half_duration or DEFAULT_HALF_DURATION
        pause = self.break_between_halves or DEFAULT_BREAK_BETWEEN_HALVES
        return half * 2 + pause

    def today(self) -> date:
        return datetime.now(self.tz).date()

    def localize(self, day: date, kickoff: time) -> datetime:
        """Attach the tournament's civil timezone to a wall-clock date/time."""
        return self.tz.localize(datetime.combine(day, kickoff))

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'timezone': self.timezone,
            'venues': list(self.venues or []),
            'points_win': self.points_win,
            'points_draw': self.points_draw,
            'points_loss': self.points_loss,
            'number_of_groups': self.number_of_groups,
            'teams_advancing_per_group': self.teams_advancing_per_group,
            'has_second_leg': bool(self.has_second_leg),
            'has_third_place_match': bool(self.has_third_place_match),
            'group_stage_complete': bool(self.group_stage_complete),
            'current_stage': self.current_stage,
        }


class Team(db.Model):
    __tablename__ = 'team'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), index=True)
    group_number = db.Column(db.Integer)

    played = db.Column(db.Integer, default=0, nullable=False)
    won = db.Column(db.Integer, default=0, nullable=False)
    drawn = db.Column(db.Integer, default=0, nullable=False)
    lost = db.Column(db.Integer, default=0, nullable=False)
    goals_for = db.Column(db.Integer, default=0, nullable=False)
    goals_against = db.Column(db.Integer, default=0, nullable=False)
    goal_difference = db.Column(db.Integer, default=0, nullable=False)
    points = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=current_time)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Team {self.id} {self.name} group={self.group_number}>"

    @property
    def ranking_key(self) -> tuple[int, int, int]:
        """Table order: points, then goal difference, then goals scored."""
        return (self.points or 0, self.goal_difference or 0, self.goals_for or 0)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'tournament_id': self.tournament_id,
            'group_number': self.group_number,
            'played': self.played,
            'won': self.won,
            'drawn': self.drawn,
            'lost': self.lost,
            'goals_for': self.goals_for,
            'goals_against': self.goals_against,
            'goal_difference': self.goal_difference,
            'points': self.points,
        }


class Match(db.Model):
    __tablename__ = 'match'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False, index=True)
    home_team_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    away_team_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    home_team_source = db.Column(db.String(40), index=True)
    away_team_source = db.Column(db.String(40), index=True)

    round = db.Column(db.Integer)
    leg = db.Column(db.Integer, default=1)
    stage = db.Column(db.String(20), nullable=False)
    group_number = db.Column(db.Integer)
    bracket_position = db.Column(db.Integer)

    # Wall-clock kickoff in the tournament's civil timezone.
    date = db.Column(db.Date)
    time = db.Column(db.Time)
    venue = db.Column(db.String(100))

    status = db.Column(db.String(20), default='scheduled', nullable=False)
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    home_penalty_score = db.Column(db.Integer)
    away_penalty_score = db.Column(db.Integer)
    winner_team_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    loser_team_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    went_to_penalties = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=current_time)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    home_team = db.relationship('Team', foreign_keys=[home_team_id], lazy='joined')
    away_team = db.relationship('Team', foreign_keys=[away_team_id], lazy='joined')

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Match {self.id} {self.stage} r{self.round} {self.versus_display}>"

    @property
    def is_knockout(self) -> bool:
        return self.stage in KNOCKOUT_STAGES

    @property
    def home_source(self):
        from engine.sources import parse_source

        return parse_source(self.home_team_source)

    @property
    def away_source(self):
        from engine.sources import parse_source

        return parse_source(self.away_team_source)

    @property
    def versus_display(self):
        return f"{self._display_name(1)} vs {self._display_name(2)}"

    @property
    def start_datetime(self) -> datetime | None:
        """Naive wall-clock kickoff, comparable within one tournament."""
        if not self.date or not self.time:
            return None
        return datetime.combine(self.date, self.time)

    @property
    def kickoff(self) -> datetime | None:
        """Timezone-aware kickoff in the tournament's civil timezone."""
        if not self.date or not self.time or not self.tournament:
            return None
        return self.tournament.localize(self.date, self.time)

    def occupied_until(self, minutes: int) -> datetime | None:
        start = self.start_datetime
        if start is None:
            return None
        return start + timedelta(minutes=minutes)

    def overlaps_range(self, start_dt: datetime, end_dt: datetime, minutes: int) -> bool:
        start = self.start_datetime
        if start is None:
            return False
        return start < end_dt and start_dt < self.occupied_until(minutes)

    def _display_name(self, slot: int) -> str:
        team = self.home_team if slot == 1 else self.away_team
        source = self.home_team_source if slot == 1 else self.away_team_source
        if team:
            return team.name
        if source:
            return source
        return 'TBD'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'home_team_id': self.home_team_id,
            'away_team_id': self.away_team_id,
            'home_team': self.home_team.name if self.home_team else None,
            'away_team': self.away_team.name if self.away_team else None,
            'home_team_source': self.home_team_source,
            'away_team_source': self.away_team_source,
            'round': self.round,
            'leg': self.leg,
            'stage': self.stage,
            'group_number': self.group_number,
            'bracket_position': self.bracket_position,
            'date': self.date.isoformat() if self.date else None,
            'time': self.time.strftime('%H:%M') if self.time else None,
            'kickoff': self.kickoff.isoformat() if self.kickoff else None,
            'venue': self.venue,
            'status': self.status,
            'home_score': self.home_score,
            'away_score': self.away_score,
            'home_penalty_score': self.home_penalty_score,
            'away_penalty_score': self.away_penalty_score,
            'winner_team_id': self.winner_team_id,
            'loser_team_id': self.loser_team_id,
            'went_to_penalties': bool(self.went_to_penalties),
        }
