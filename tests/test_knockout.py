"""Knockout seeding, bracket planning and bracket persistence."""

import logging
from datetime import date, time
from types import SimpleNamespace

import pytest

from engine import repository
from engine.errors import ValidationError
from engine.groups import complete_group_stage, generate_group_stage_matches
from engine.knockout import (
    Qualifier,
    bracket_order,
    generate_knockout_matches,
    next_power_of_two,
    plan_bracket,
    seed_qualifiers,
    stages_for,
)
from engine.results import update_match
from engine.sources import LoserOf, Seed, WinnerOf


def _qualifier(name, group, position, points=0, goal_difference=0, goals_for=0):
    team = SimpleNamespace(name=name, id=name, ranking_key=(points, goal_difference, goals_for))
    return Qualifier(team, group, position)


def _seeded(*groups):
    """One group-winner qualifier per entry, seeded in order."""
    return seed_qualifiers([
        _qualifier(f'T{index}', group, 1, points=100 - index)
        for index, group in enumerate(groups, start=1)
    ])


class TestBracketShape:
    @pytest.mark.parametrize('count, size', [(2, 2), (3, 4), (4, 4), (5, 8), (6, 8), (8, 8), (9, 16), (16, 16)])
    def test_next_power_of_two(self, count, size):
        assert next_power_of_two(count) == size

    def test_standard_bracket_order(self):
        assert bracket_order(2) == [1, 2]
        assert bracket_order(4) == [1, 4, 2, 3]
        assert bracket_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]
        assert bracket_order(16)[:4] == [1, 16, 8, 9]

    def test_stage_labels(self):
        assert stages_for(2) == ('final',)
        assert stages_for(4) == ('semi_final', 'final')
        assert stages_for(8) == ('quarter_final', 'semi_final', 'final')
        assert stages_for(16) == ('round_of_16', 'quarter_final', 'semi_final', 'final')

    def test_six_qualifiers_two_byes(self):
        plan = plan_bracket(6)

        assert (plan.size, plan.byes) == (8, 2)
        assert len(plan.first_round) == 4
        assert [(s.home_seed, s.away_seed, s.is_bye) for s in plan.first_round] == [
            (1, 8, True),
            (4, 5, False),
            (2, 7, True),
            (3, 6, False),
        ]

    @pytest.mark.parametrize('count', [2, 3, 5, 6, 7, 8, 11, 16])
    def test_every_seed_appears_once(self, count):
        plan = plan_bracket(count)

        seeds = []
        for slot in plan.first_round:
            seeds.append(slot.home_seed)
            if not slot.is_bye:
                seeds.append(slot.away_seed)
        assert sorted(seeds) == list(range(1, count + 1))
        assert sum(slot.is_bye for slot in plan.first_round) == plan.byes

    def test_top_seeds_get_the_byes(self):
        plan = plan_bracket(5)
        assert sorted(s.home_seed for s in plan.first_round if s.is_bye) == [1, 2, 3]

    @pytest.mark.parametrize('count', [0, 1, 17])
    def test_rejects_unsupported_counts(self, count):
        with pytest.raises(ValidationError):
            plan_bracket(count)

    def test_third_place_needs_real_semi_finals(self):
        assert plan_bracket(4, third_place=True).third_place is True
        assert plan_bracket(3, third_place=True).third_place is False
        assert plan_bracket(2, third_place=True).third_place is False
        assert plan_bracket(6, third_place=True).third_place is True


class TestSeeding:
    def test_group_winners_seeded_first(self):
        qualifiers = [
            _qualifier('A2', 1, 2, points=9),
            _qualifier('A1', 1, 1, points=7),
            _qualifier('B1', 2, 1, points=9),
            _qualifier('B2', 2, 2, points=4),
        ]

        seeded = seed_qualifiers(qualifiers)

        assert [(s.seed, s.team.name) for s in seeded] == [(1, 'B1'), (2, 'A1'), (3, 'A2'), (4, 'B2')]

    def test_ties_broken_by_goal_difference_then_goals(self):
        qualifiers = [
            _qualifier('X', 1, 1, points=6, goal_difference=2, goals_for=3),
            _qualifier('Y', 2, 1, points=6, goal_difference=2, goals_for=5),
            _qualifier('Z', 3, 1, points=6, goal_difference=4, goals_for=1),
        ]

        assert [s.team.name for s in seed_qualifiers(qualifiers)] == ['Z', 'Y', 'X']


class TestSameGroupAvoidance:
    def test_swaps_opponents_from_the_same_group(self):
        seeded = seed_qualifiers([
            _qualifier('A1', 1, 1, points=9),
            _qualifier('B1', 2, 1, points=7),
            _qualifier('B2', 2, 2, points=6),
            _qualifier('A2', 1, 2, points=4),
        ])

        plan = plan_bracket(4, seeded)

        pairs = [(s.home.team.name, s.away.team.name) for s in plan.first_round]
        assert pairs == [('A1', 'B2'), ('B1', 'A2')]

    def test_keeps_pairing_when_no_swap_exists(self, caplog):
        seeded = _seeded(1, 1)

        with caplog.at_level(logging.WARNING, logger='engine.knockout'):
            plan = plan_bracket(2, seeded)

        assert (plan.first_round[0].home_seed, plan.first_round[0].away_seed) == (1, 2)
        assert 'No swap available' in caplog.text

    def test_unrelated_pairings_untouched(self):
        plan = plan_bracket(4, _seeded(1, 2, 3, 4))
        assert [(s.home_seed, s.away_seed) for s in plan.first_round] == [(1, 4), (2, 3)]


class TestGenerateKnockoutMatches:
    def _by_stage(self, tournament):
        matches = repository.list_matches(tournament.id)
        stages = {}
        for match in matches:
            stages.setdefault(match.stage, []).append(match)
        for stage_matches in stages.values():
            stage_matches.sort(key=lambda m: m.bracket_position)
        return stages

    def test_four_team_bracket(self, cup):
        tournament, (a, b, c, d) = cup

        created = generate_knockout_matches(tournament.id)

        assert len(created) == 3
        stages = self._by_stage(tournament)
        semi_one, semi_two = stages['semi_final']
        (final,) = stages['final']
        assert (semi_one.home_team_id, semi_one.away_team_id) == (a.id, d.id)
        assert (semi_two.home_team_id, semi_two.away_team_id) == (b.id, c.id)
        assert (semi_one.home_source, semi_one.away_source) == (Seed(1), Seed(4))
        assert final.home_source == WinnerOf(semi_one.id)
        assert final.away_source == WinnerOf(semi_two.id)
        assert final.home_team_id is None and final.away_team_id is None

    def test_dates_and_kickoffs(self, cup):
        tournament, _ = cup

        generate_knockout_matches(tournament.id)

        stages = self._by_stage(tournament)
        semi_one, semi_two = stages['semi_final']
        (final,) = stages['final']
        assert semi_one.date == semi_two.date == date(2025, 3, 31)
        assert (semi_one.time, semi_two.time) == (time(16, 0), time(18, 15))
        assert final.date == date(2025, 4, 2)
        assert final.time == time(16, 0)

    def test_third_place_precedes_final(self, make_tournament, make_teams):
        tournament = make_tournament(type='knockout', has_third_place_match=True)
        make_teams(tournament, 4)

        generate_knockout_matches(tournament.id)

        stages = self._by_stage(tournament)
        (third,) = stages['third_place']
        (final,) = stages['final']
        semi_one, semi_two = stages['semi_final']
        assert third.home_source == LoserOf(semi_one.id)
        assert third.away_source == LoserOf(semi_two.id)
        assert third.date == final.date
        assert third.time < final.time

    def test_byes_are_completed_and_advanced(self, make_tournament, make_teams):
        tournament = make_tournament(type='knockout')
        teams = make_teams(tournament, 6)

        created = generate_knockout_matches(tournament.id)

        assert len(created) == 7
        stages = self._by_stage(tournament)
        first_round = stages['quarter_final']
        assert len(first_round) == 4

        byes = [m for m in first_round if m.away_team_id is None]
        assert [(m.home_team_id, m.status, m.winner_team_id) for m in byes] == [
            (teams[0].id, 'completed', teams[0].id),
            (teams[1].id, 'completed', teams[1].id),
        ]
        assert all(m.venue is None for m in byes)

        semi_one, semi_two = stages['semi_final']
        assert semi_one.home_team_id == teams[0].id
        assert semi_two.home_team_id == teams[1].id
        assert semi_one.away_team_id is None

    def test_regeneration_replaces_bracket(self, cup):
        tournament, _ = cup

        generate_knockout_matches(tournament.id)
        generate_knockout_matches(tournament.id)

        assert len(repository.list_matches(tournament.id)) == 3

    def test_league_has_no_knockout(self, league):
        tournament, _ = league
        with pytest.raises(ValidationError):
            generate_knockout_matches(tournament.id)

    def test_failed_rebuild_keeps_existing_bracket(self, make_tournament, make_teams):
        tournament = make_tournament(type='knockout')
        make_teams(tournament, 4)
        generate_knockout_matches(tournament.id)

        repository.update_tournament(tournament.id, {'schedule_config': {'dailyStartTime': 'noon'}})

        with pytest.raises(ValidationError):
            generate_knockout_matches(tournament.id)
        assert len(repository.list_matches(tournament.id)) == 3


class TestGroupsToKnockout:
    def test_group_winners_meet_runners_up(self, make_tournament, make_teams):
        tournament = make_tournament(type='groups_knockout', number_of_groups=2)
        teams = make_teams(tournament, 8, groups=[1, 1, 1, 1, 2, 2, 2, 2])
        for match in generate_group_stage_matches(tournament.id):
            home_wins = match.home_team_id < match.away_team_id
            update_match(match.id, {
                'home_score': 2 if home_wins else 0,
                'away_score': 0 if home_wins else 2,
                'status': 'completed',
            })
        complete_group_stage(tournament.id)

        generate_knockout_matches(tournament.id)

        a, b, e, f = teams[0], teams[1], teams[4], teams[5]
        semis = sorted(
            repository.list_matches(tournament.id, stages=['semi_final']),
            key=lambda m: m.bracket_position,
        )
        assert len(semis) == 2
        pairs = {frozenset((m.home_team_id, m.away_team_id)) for m in semis}
        assert pairs == {frozenset((a.id, f.id)), frozenset((e.id, b.id))}
        assert semis[0].date == date(2025, 3, 4)
