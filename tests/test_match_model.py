import pytest
from sqlalchemy import text

from endpoints.matches.matchModel import MatchModel


@pytest.fixture
def match_model(engine, standings_model):
    return MatchModel(engine, standings_model)


@pytest.fixture
def fixture_match(seed):
    league = seed.league()
    alice = seed.user("alice")
    seed.standing(league, alice)
    match = seed.match()
    prediction = seed.prediction(alice, match, league, 2, 1)
    return {"league": league, "alice": alice, "match": match, "prediction": prediction}


def test_full_time_result_bumps_version_and_scores(seed, match_model, fixture_match):
    result = match_model.update_match_result(fixture_match["match"], 2, 1, "FullTime")

    assert result == {
        "matchId": fixture_match["match"],
        "status": "FullTime",
        "homeScore": 2,
        "awayScore": 1,
        "resultVersion": 1,
        "predictionsScored": 1,
    }
    standing = seed.standing_row(fixture_match["league"], fixture_match["alice"])
    assert standing["matchPoints"] == 7


def test_live_score_does_not_score_predictions(seed, match_model, fixture_match):
    result = match_model.update_match_result(fixture_match["match"], 1, 0, "Live")

    assert result["resultVersion"] == 0
    assert result["predictionsScored"] == 0
    assert not seed.prediction_row(fixture_match["prediction"])["isScored"]
    assert seed.match_row(fixture_match["match"])["homeScore"] == 1


def test_corrected_final_score_rescores_with_delta(seed, match_model, fixture_match):
    match_model.update_match_result(fixture_match["match"], 2, 1, "FullTime")
    result = match_model.update_match_result(fixture_match["match"], 0, 1, "FullTime")

    assert result["resultVersion"] == 2
    standing = seed.standing_row(fixture_match["league"], fixture_match["alice"])
    assert standing["matchPoints"] == 2
    assert seed.prediction_row(fixture_match["prediction"])["scoredResultVersion"] == 2


def test_unknown_match(match_model):
    with pytest.raises(LookupError):
        match_model.update_match_result("no-such-match", 1, 0, "FullTime")
    with pytest.raises(LookupError):
        match_model.rescore_match("no-such-match")


@pytest.mark.parametrize(
    "home, away, status",
    [
        (1, 0, "Finished"),
        (-1, 0, "FullTime"),
        (1, "2", "FullTime"),
        (True, 0, "FullTime"),
        (None, 0, "FullTime"),
        (1, None, "FullTime"),
    ],
)
def test_invalid_results_are_rejected(seed, match_model, fixture_match, home, away, status):
    with pytest.raises(ValueError):
        match_model.update_match_result(fixture_match["match"], home, away, status)
    assert seed.match_row(fixture_match["match"])["resultVersion"] == 0


def test_rescore_requires_finished_match(match_model, fixture_match):
    with pytest.raises(ValueError):
        match_model.rescore_match(fixture_match["match"])


def test_rescore_applies_only_the_difference(seed, engine, match_model, fixture_match):
    match_model.update_match_result(fixture_match["match"], 2, 1, "FullTime")
    with engine.begin() as conn:
        conn.execute(
            text('UPDATE "LeagueStanding" SET "matchPoints" = 0, "totalPoints" = 0'),
        )

    result = match_model.rescore_match(fixture_match["match"])

    assert result == {"matchId": fixture_match["match"], "resultVersion": 1, "predictionsScored": 1}
    # prediction already carried 7 points, so the delta is zero
    assert seed.standing_row(fixture_match["league"], fixture_match["alice"])["matchPoints"] == 0
