"""Shared fixtures: a SQLite database with the standings schema plus seeding helpers."""

import itertools
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from endpoints.standings.standingsModel import StandingsModel
from schema import create_schema


class Seeder:
    """Inserts rows the way the submission / membership flows would."""

    def __init__(self, engine):
        self.engine = engine
        self._ids = itertools.count(1)

    def _id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _execute(self, sql: str, params: Dict[str, Any]) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(sql), params)

    def _fetch(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self.engine.begin() as conn:
            return [dict(r._mapping) for r in conn.execute(text(sql), params)]

    # -- inserts -----------------------------------------------------------

    def user(self, username: str) -> str:
        user_id = self._id("user")
        self._execute(
            'INSERT INTO "User" (id, username) VALUES (:id, :username)',
            {"id": user_id, "username": username},
        )
        return user_id

    def league(self, tournament_id: str = "wc", with_settings: bool = True, **points: int) -> str:
        league_id = self._id("league")
        self._execute(
            'INSERT INTO "League" (id, "tournamentId", name) VALUES (:id, :tournamentId, :name)',
            {"id": league_id, "tournamentId": tournament_id, "name": league_id},
        )
        if with_settings:
            columns = ["id", '"leagueId"'] + [f'"{k}"' for k in points]
            values = [":id", ":leagueId"] + [f":{k}" for k in points]
            self._execute(
                f'INSERT INTO "LeagueSettings" ({", ".join(columns)}) VALUES ({", ".join(values)})',
                {"id": self._id("settings"), "leagueId": league_id, **points},
            )
        return league_id

    def match(
        self,
        tournament_id: str = "wc",
        home: Optional[int] = None,
        away: Optional[int] = None,
        status: str = "Scheduled",
        result_version: int = 0,
    ) -> str:
        match_id = self._id("match")
        self._execute(
            """
            INSERT INTO "Match" (id, "tournamentId", "homeScore", "awayScore", status, "resultVersion")
            VALUES (:id, :tournamentId, :home, :away, :status, :resultVersion)
            """,
            {
                "id": match_id,
                "tournamentId": tournament_id,
                "home": home,
                "away": away,
                "status": status,
                "resultVersion": result_version,
            },
        )
        return match_id

    def final_score(self, match_id: str, home: int, away: int) -> int:
        """Write a FullTime score and bump resultVersion; returns the new version."""
        self._execute(
            """
            UPDATE "Match"
               SET "homeScore" = :home, "awayScore" = :away, status = 'FullTime',
                   "resultVersion" = "resultVersion" + 1
             WHERE id = :id
            """,
            {"id": match_id, "home": home, "away": away},
        )
        return self.match_row(match_id)["resultVersion"]

    def prediction(
        self,
        user_id: str,
        match_id: str,
        league_id: str,
        home: int,
        away: int,
        points: Optional[int] = None,
        is_scored: bool = False,
    ) -> str:
        prediction_id = self._id("prediction")
        self._execute(
            """
            INSERT INTO "Prediction"
                (id, "userId", "matchId", "leagueId", "homeScore", "awayScore", "pointsEarned", "isScored")
            VALUES (:id, :userId, :matchId, :leagueId, :home, :away, :points, :isScored)
            """,
            {
                "id": prediction_id,
                "userId": user_id,
                "matchId": match_id,
                "leagueId": league_id,
                "home": home,
                "away": away,
                "points": points,
                "isScored": is_scored,
            },
        )
        return prediction_id

    def standing(
        self,
        league_id: str,
        user_id: str,
        match_points: int = 0,
        bonus_points: int = 0,
        total_points: Optional[int] = None,
        rank: int = 1,
    ) -> str:
        standing_id = self._id("standing")
        self._execute(
            """
            INSERT INTO "LeagueStanding"
                (id, "leagueId", "userId", "matchPoints", "bonusPoints", "totalPoints", rank)
            VALUES (:id, :leagueId, :userId, :matchPoints, :bonusPoints, :totalPoints, :rank)
            """,
            {
                "id": standing_id,
                "leagueId": league_id,
                "userId": user_id,
                "matchPoints": match_points,
                "bonusPoints": bonus_points,
                "totalPoints": match_points + bonus_points if total_points is None else total_points,
                "rank": rank,
            },
        )
        return standing_id

    def bonus_question(
        self,
        tournament_id: str = "wc",
        points: int = 10,
        answer_team_id: Optional[str] = None,
        answer_text: Optional[str] = None,
        resolved: bool = False,
    ) -> str:
        question_id = self._id("question")
        self._execute(
            """
            INSERT INTO "BonusQuestion"
                (id, "tournamentId", question, "answerTeamId", "answerText", "isResolved", points)
            VALUES (:id, :tournamentId, 'Who wins?', :answerTeamId, :answerText, :isResolved, :points)
            """,
            {
                "id": question_id,
                "tournamentId": tournament_id,
                "answerTeamId": answer_team_id,
                "answerText": answer_text,
                "isResolved": resolved,
                "points": points,
            },
        )
        return question_id

    def bonus_prediction(
        self,
        user_id: str,
        question_id: str,
        league_id: str,
        team: Optional[str] = None,
        answer: Optional[str] = None,
        points: Optional[int] = None,
    ) -> str:
        prediction_id = self._id("bonus")
        self._execute(
            """
            INSERT INTO "BonusPrediction"
                (id, "userId", "bonusQuestionId", "leagueId", "answerTeamId", "answerText", "pointsEarned")
            VALUES (:id, :userId, :questionId, :leagueId, :team, :answer, :points)
            """,
            {
                "id": prediction_id,
                "userId": user_id,
                "questionId": question_id,
                "leagueId": league_id,
                "team": team,
                "answer": answer,
                "points": points,
            },
        )
        return prediction_id

    # -- reads ---------------------------------------------------------------

    def match_row(self, match_id: str) -> Dict[str, Any]:
        return self._fetch('SELECT * FROM "Match" WHERE id = :id', {"id": match_id})[0]

    def prediction_row(self, prediction_id: str) -> Dict[str, Any]:
        return self._fetch('SELECT * FROM "Prediction" WHERE id = :id', {"id": prediction_id})[0]

    def bonus_prediction_row(self, prediction_id: str) -> Dict[str, Any]:
        return self._fetch('SELECT * FROM "BonusPrediction" WHERE id = :id', {"id": prediction_id})[0]

    def standing_row(self, league_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch(
            'SELECT * FROM "LeagueStanding" WHERE "leagueId" = :leagueId AND "userId" = :userId',
            {"leagueId": league_id, "userId": user_id},
        )
        return rows[0] if rows else None

    def standings(self, league_id: str) -> List[Dict[str, Any]]:
        return self._fetch(
            """
            SELECT s.*, u.username
            FROM "LeagueStanding" s
            LEFT JOIN "User" u ON u.id = s."userId"
            WHERE s."leagueId" = :leagueId
            ORDER BY s.rank, u.username
            """,
            {"leagueId": league_id},
        )

    def count(self, table: str) -> int:
        return self._fetch(f'SELECT COUNT(*) AS n FROM "{table}"', {})[0]["n"]


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def seed(engine) -> Seeder:
    return Seeder(engine)


@pytest.fixture
def standings_model(engine) -> StandingsModel:
    return StandingsModel(engine)
