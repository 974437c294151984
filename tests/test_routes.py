"""
Integration tests for the JSON API blueprints
Tests /api/tournaments/* and /api/matches/* routes end to end
"""

from datetime import date

from models import Match


class TestTournamentRoutes:
    def test_tournament_detail(self, client, league):
        tournament, _ = league
        response = client.get(f'/api/tournaments/{tournament.id}')

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['tournament']['name'] == 'Office League'

    def test_missing_tournament_returns_error_shape(self, client, flask_app):
        response = client.get('/api/tournaments/999')

        assert response.status_code == 404
        assert response.get_json() == {
            'success': False,
            'error': 'NotFoundError',
            'message': 'Tournament 999 not found',
        }

    def test_list_teams(self, client, league):
        tournament, _ = league
        response = client.get(f'/api/tournaments/{tournament.id}/teams')

        assert response.status_code == 200
        assert [team['name'] for team in response.get_json()['teams']] == ['A', 'B', 'C', 'D']

    def test_generate_league_matches(self, client, league):
        tournament, _ = league
        response = client.post(
            f'/api/tournaments/{tournament.id}/league-matches',
            json={'matches_per_day': 3, 'daily_start_time': '18:00'},
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body['count'] == 6
        assert {match['stage'] for match in body['matches']} == {'league'}
        assert body['matches'][0]['time'] == '18:00'
        assert Match.query.filter_by(tournament_id=tournament.id).count() == 6

    def test_list_matches_by_stage(self, client, league):
        tournament, _ = league
        client.post(f'/api/tournaments/{tournament.id}/league-matches')

        response = client.get(f'/api/tournaments/{tournament.id}/matches?stage=league')

        assert response.status_code == 200
        assert response.get_json()['count'] == 6

    def test_wrong_generator_is_rejected(self, client, league):
        tournament, _ = league
        response = client.post(f'/api/tournaments/{tournament.id}/group-matches')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'

    def test_group_flow(self, client, make_tournament, make_teams):
        tournament = make_tournament(type='groups_knockout', number_of_groups=2)
        make_teams(tournament, 8)

        response = client.post(f'/api/tournaments/{tournament.id}/groups')
        assert response.status_code == 200
        assert len(response.get_json()['groups']) == 2

        response = client.post(f'/api/tournaments/{tournament.id}/group-matches')
        assert response.status_code == 201
        assert response.get_json()['count'] == 12

        response = client.get(f'/api/tournaments/{tournament.id}/group-standings')
        groups = response.get_json()['groups']
        assert [group['group_number'] for group in groups] == [1, 2]
        assert all(len(group['teams']) == 4 for group in groups)

        response = client.post(f'/api/tournaments/{tournament.id}/complete-group-stage')
        qualifiers = response.get_json()['qualifiers']
        assert len(qualifiers) == 4
        assert {q['position'] for q in qualifiers} == {1, 2}

        response = client.post(f'/api/tournaments/{tournament.id}/knockout')
        assert response.status_code == 201
        stages = [match['stage'] for match in response.get_json()['matches']]
        assert stages == ['semi_final', 'semi_final', 'final']

    def test_recalculate_standings(self, client, league, make_match):
        tournament, (a, b, *_rest) = league
        make_match(tournament, a, b, home_score=1, away_score=0, status='completed')

        response = client.post(f'/api/tournaments/{tournament.id}/standings')

        assert response.status_code == 200
        teams = response.get_json()['teams']
        assert teams[0]['name'] == 'A'
        assert teams[0]['points'] == 3

    def test_body_must_be_an_object(self, client, make_tournament, make_teams):
        tournament = make_tournament(type='groups')
        make_teams(tournament, 2)
        response = client.post(f'/api/tournaments/{tournament.id}/groups', json=[1, 2])

        assert response.status_code == 400


class TestMatchRoutes:
    def test_match_detail(self, client, league, make_match):
        tournament, (a, b, *_rest) = league
        match = make_match(tournament, a, b)

        response = client.get(f'/api/matches/{match.id}')

        assert response.status_code == 200
        body = response.get_json()['match']
        assert body['home_team'] == 'A'
        assert body['date'] == '2025-03-01'
        assert body['kickoff'] == '2025-03-01T16:00:00+04:00'

    def test_record_result(self, client, cup):
        tournament, _ = cup
        client.post(f'/api/tournaments/{tournament.id}/knockout')
        semi = Match.query.filter_by(tournament_id=tournament.id, stage='semi_final').order_by(Match.id).first()
        final = Match.query.filter_by(tournament_id=tournament.id, stage='final').first()

        response = client.patch(
            f'/api/matches/{semi.id}',
            json={'home_score': 2, 'away_score': 0, 'status': 'completed'},
        )

        assert response.status_code == 200
        body = response.get_json()
        assert body['match']['winner_team_id'] == semi.home_team_id
        assert body['propagated'] == [final.id]
        assert body['propagation_errors'] == []

    def test_incomplete_result(self, client, cup):
        tournament, _ = cup
        client.post(f'/api/tournaments/{tournament.id}/knockout')
        semi = Match.query.filter_by(tournament_id=tournament.id, stage='semi_final').first()

        response = client.patch(
            f'/api/matches/{semi.id}',
            json={'home_score': 1, 'away_score': 1, 'status': 'completed'},
        )

        assert response.status_code == 422
        assert response.get_json()['error'] == 'IncompleteResultError'

    def test_conflict(self, client, league, make_match):
        tournament, (a, b, c, d) = league
        make_match(tournament, a, b)
        other = make_match(tournament, c, d, date=date(2025, 3, 2))

        response = client.patch(f'/api/matches/{other.id}', json={'date': '2025-03-01'})

        assert response.status_code == 409

    def test_non_string_date_is_rejected(self, client, league, make_match):
        tournament, (a, b, *_rest) = league
        match = make_match(tournament, a, b)

        response = client.patch(f'/api/matches/{match.id}', json={'date': 5})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'

    def test_empty_patch(self, client, league, make_match):
        tournament, (a, b, *_rest) = league
        match = make_match(tournament, a, b)

        response = client.patch(f'/api/matches/{match.id}', json={})

        assert response.status_code == 400
