import pytest
from sqlalchemy import text

from api import create_app


@pytest.fixture
def client(engine):
    app = create_app(engine)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def league_with_match(seed):
    league = seed.league()
    alice, bob = seed.user("alice"), seed.user("bob")
    seed.standing(league, alice)
    seed.standing(league, bob)
    match = seed.match()
    seed.prediction(alice, match, league, 2, 1)
    seed.prediction(bob, match, league, 0, 0)
    return {"league": league, "match": match, "alice": alice, "bob": bob}


def test_result_then_leaderboard(client, league_with_match):
    match = league_with_match["match"]
    league = league_with_match["league"]

    resp = client.post(
        f"/api/match/{match}/result",
        json={"homeScore": 2, "awayScore": 1, "status": "FullTime"},
    )
    assert resp.status_code == 200
    assert resp.get_json()["predictionsScored"] == 2
    assert resp.get_json()["resultVersion"] == 1

    resp = client.get(f"/api/league/{league}/standings")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["leagueId"] == league
    assert [(r["username"], r["rank"], r["totalPoints"]) for r in body["standings"]] == [
        ("alice", 1, 7),
        ("bob", 2, 0),
    ]
    assert isinstance(body["standings"][0]["updatedAt"], str)


def test_result_validation_errors(client, league_with_match):
    match = league_with_match["match"]

    assert client.post(f"/api/match/{match}/result", json={"homeScore": 1}).status_code == 400
    resp = client.post(
        f"/api/match/{match}/result",
        json={"homeScore": -1, "awayScore": 0, "status": "FullTime"},
    )
    assert resp.status_code == 400
    assert "homeScore" in resp.get_json()["message"]


def test_unknown_resources_are_404(client):
    assert client.get("/api/league/missing/standings").status_code == 404
    assert client.post(
        "/api/match/missing/result", json={"homeScore": 1, "awayScore": 0, "status": "FullTime"}
    ).status_code == 404
    assert client.post("/api/admin/match/missing/rescore").status_code == 404
    assert client.post("/api/bonusQuestion/missing/resolve", json={"answerTeamId": "arg"}).status_code == 404
    assert client.post("/api/admin/bonusQuestion/missing/rescore").status_code == 404
    assert client.post("/api/admin/league/missing/recalculateStandings").status_code == 404
    assert client.post("/api/admin/tournament/missing/recalculateStandings").status_code == 404


def test_rescore_unfinished_match_is_400(client, league_with_match):
    resp = client.post(f"/api/admin/match/{league_with_match['match']}/rescore")
    assert resp.status_code == 400


def test_admin_rebuilds(client, seed, league_with_match):
    league = league_with_match["league"]
    seed.standing(seed.league(), league_with_match["alice"], match_points=40)

    resp = client.post(f"/api/admin/league/{league}/recalculateStandings")
    assert resp.status_code == 200
    assert resp.get_json() == {"leagueId": league, "standingsUpdated": 2}

    resp = client.post("/api/admin/tournament/wc/recalculateStandings")
    assert resp.status_code == 200
    assert resp.get_json() == {"tournamentId": "wc", "leaguesUpdated": 2, "standingsUpdated": 3}


def test_rescore_predictions_after_settings_change(client, seed, engine, league_with_match):
    league = league_with_match["league"]
    match = league_with_match["match"]
    client.post(f"/api/match/{match}/result", json={"homeScore": 2, "awayScore": 1, "status": "FullTime"})

    with engine.begin() as conn:
        conn.execute(
            text('UPDATE "LeagueSettings" SET "pointsCorrectScore" = 10 WHERE "leagueId" = :leagueId'),
            {"leagueId": league},
        )

    resp = client.post(f"/api/admin/league/{league}/rescorePredictions")
    assert resp.status_code == 200
    assert resp.get_json() == {"leagueId": league, "predictionsUpdated": 2}

    standings = client.get(f"/api/league/{league}/standings").get_json()["standings"]
    assert [(r["username"], r["totalPoints"]) for r in standings] == [("alice", 10), ("bob", 0)]

    assert client.post("/api/admin/league/missing/rescorePredictions").status_code == 404


def test_resolve_with_blank_team_is_400(client, seed):
    question = seed.bonus_question()
    resp = client.post(f"/api/bonusQuestion/{question}/resolve", json={"answerTeamId": ""})
    assert resp.status_code == 400


def test_bonus_resolution_flow(client, seed, league_with_match):
    league = league_with_match["league"]
    question = seed.bonus_question(points=15)
    seed.bonus_prediction(league_with_match["bob"], question, league, answer="Kane")

    resp = client.post(f"/api/bonusQuestion/{question}/resolve", json={"answerText": 7})
    assert resp.status_code == 400

    resp = client.post(f"/api/bonusQuestion/{question}/resolve", json={"answerText": "kane"})
    assert resp.status_code == 200
    assert resp.get_json()["correctPredictions"] == 1

    resp = client.post(f"/api/bonusQuestion/{question}/resolve", json={"answerText": "kane"})
    assert resp.status_code == 400

    resp = client.post(f"/api/admin/bonusQuestion/{question}/rescore")
    assert resp.status_code == 200
    assert resp.get_json() == {"bonusQuestionId": question, "correctPredictions": 1}

    standings = client.get(f"/api/league/{league}/standings").get_json()["standings"]
    assert standings[0]["username"] == "bob"
    assert standings[0]["bonusPoints"] == 15
    # resolve and rescore each re-rank, so the second pass sees no movement
    assert [r["movement"] for r in standings] == ["same", "same"]
