# endpoints/standings/standingsStore.py
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

# Stands in for a NULL "pointsEarned" in compare-and-set writes.
NO_POINTS = -2147483648

FINISHED_STATUS = "FullTime"


class StaleWriteError(RuntimeError):
    """A row changed between the read and the save of a scoring pass."""


# ----------------------------------------------------------------------
# Reads
# ----------------------------------------------------------------------

GET_MATCH = text("""
    SELECT id, "tournamentId", "homeScore", "awayScore", status, "resultVersion"
    FROM "Match"
    WHERE id = :matchId
""")

GET_LEAGUE = text("""
    SELECT id, "tournamentId", name
    FROM "League"
    WHERE id = :leagueId
""")

GET_LEAGUE_IDS_FOR_TOURNAMENT = text("""
    SELECT id
    FROM "League"
    WHERE "tournamentId" = :tournamentId
    ORDER BY id
""")

GET_TOURNAMENT_IDS = text("""
    SELECT DISTINCT "tournamentId"
    FROM "League"
    ORDER BY "tournamentId"
""")

GET_SETTINGS_FOR_LEAGUES = text("""
    SELECT
        "leagueId",
        "pointsCorrectScore",
        "pointsCorrectOutcome",
        "pointsCorrectGoals",
        "pointsRoundOf16Team",
        "pointsQuarterFinalTeam",
        "pointsSemiFinalTeam",
        "pointsFinalTeam",
        "pointsTopScorer",
        "pointsWinner",
        "pointsMostGoalsGroup",
        "pointsMostConcededGroup"
    FROM "LeagueSettings"
    WHERE "leagueId" IN :leagueIds
""").bindparams(bindparam("leagueIds", expanding=True))

GET_PREDICTIONS_FOR_MATCH = text("""
    SELECT
        id, "userId", "matchId", "leagueId",
        "homeScore", "awayScore",
        "pointsEarned", "isScored", "scoredResultVersion", "scoredAt"
    FROM "Prediction"
    WHERE "matchId" = :matchId
      AND "leagueId" IN :leagueIds
    ORDER BY "leagueId", "userId"
""").bindparams(bindparam("leagueIds", expanding=True))

GET_FINISHED_PREDICTIONS_FOR_LEAGUE = text("""
    SELECT
        p.id, p."userId", p."matchId", p."leagueId",
        p."homeScore", p."awayScore",
        p."pointsEarned", p."isScored",
        m."homeScore"     AS "matchHomeScore",
        m."awayScore"     AS "matchAwayScore",
        m."resultVersion" AS "matchResultVersion"
    FROM "Prediction" p
    JOIN "Match" m ON m.id = p."matchId"
    WHERE p."leagueId" = :leagueId
      AND m.status = :finishedStatus
      AND m."homeScore" IS NOT NULL
      AND m."awayScore" IS NOT NULL
    ORDER BY p."matchId", p."userId"
""")

GET_BONUS_QUESTION = text("""
    SELECT id, "tournamentId", "questionType", question,
           "answerTeamId", "answerText", "isResolved", points
    FROM "BonusQuestion"
    WHERE id = :bonusQuestionId
""")

GET_BONUS_PREDICTIONS_FOR_QUESTION = text("""
    SELECT id, "userId", "bonusQuestionId", "leagueId",
           "answerTeamId", "answerText", "pointsEarned"
    FROM "BonusPrediction"
    WHERE "bonusQuestionId" = :bonusQuestionId
    ORDER BY "leagueId", "userId"
""")

GET_STANDINGS_FOR_USERS = text("""
    SELECT id, "leagueId", "userId", "matchPoints", "bonusPoints",
           "totalPoints", rank, "previousRank"
    FROM "LeagueStanding"
    WHERE "leagueId" IN :leagueIds
      AND "userId" IN :userIds
""").bindparams(
    bindparam("leagueIds", expanding=True),
    bindparam("userIds", expanding=True),
)

GET_STANDINGS_FOR_LEAGUE = text("""
    SELECT
        s.id, s."leagueId", s."userId",
        s."matchPoints", s."bonusPoints", s."totalPoints",
        s.rank, s."previousRank", s."updatedAt",
        u.username AS username
    FROM "LeagueStanding" s
    LEFT JOIN "User" u ON u.id = s."userId"
    WHERE s."leagueId" = :leagueId
""")

SUM_MATCH_POINTS_BY_USER = text("""
    SELECT "userId", COALESCE(SUM("pointsEarned"), 0) AS points
    FROM "Prediction"
    WHERE "leagueId" = :leagueId
      AND "isScored" = :isScored
    GROUP BY "userId"
""")

SUM_BONUS_POINTS_BY_USER = text("""
    SELECT "userId", COALESCE(SUM("pointsEarned"), 0) AS points
    FROM "BonusPrediction"
    WHERE "leagueId" = :leagueId
      AND "pointsEarned" IS NOT NULL
    GROUP BY "userId"
""")

# ----------------------------------------------------------------------
# Writes
# ----------------------------------------------------------------------

CHECK_MATCH_RESULT = text("""
    SELECT "resultVersion", "homeScore", "awayScore"
    FROM "Match"
    WHERE id = :matchId
""")

UPDATE_PREDICTION_SCORE = text("""
    UPDATE "Prediction"
       SET "pointsEarned"        = :pointsEarned,
           "isScored"            = :isScored,
           "scoredResultVersion" = :scoredResultVersion,
           "scoredAt"            = :scoredAt
     WHERE id = :id
       AND "isScored" = :loadedIsScored
       AND COALESCE("pointsEarned", :noPoints) = :loadedPointsEarned
""").bindparams(bindparam("scoredAt", type_=DateTime(timezone=True)))

UPDATE_BONUS_PREDICTION_SCORE = text("""
    UPDATE "BonusPrediction"
       SET "pointsEarned" = :pointsEarned
     WHERE id = :id
       AND COALESCE("pointsEarned", :noPoints) = :loadedPointsEarned
""")

# Right-hand sides see the pre-update row, so totalPoints ends up as
# new matchPoints + new bonusPoints.
APPLY_STANDING_DELTA = text("""
    UPDATE "LeagueStanding"
       SET "matchPoints" = "matchPoints" + :matchPointsDelta,
           "bonusPoints" = "bonusPoints" + :bonusPointsDelta,
           "totalPoints" = "matchPoints" + :matchPointsDelta
                         + "bonusPoints" + :bonusPointsDelta,
           "updatedAt"   = :updatedAt
     WHERE id = :id
""").bindparams(bindparam("updatedAt", type_=DateTime(timezone=True)))

WRITE_STANDING_POINTS = text("""
    UPDATE "LeagueStanding"
       SET "matchPoints" = :matchPoints,
           "bonusPoints" = :bonusPoints,
           "totalPoints" = :totalPoints,
           "updatedAt"   = :updatedAt
     WHERE id = :id
""").bindparams(bindparam("updatedAt", type_=DateTime(timezone=True)))

# Ranks are only valid for the totals they were computed from.
WRITE_STANDING_RANK = text("""
    UPDATE "LeagueStanding"
       SET rank           = :rank,
           "previousRank" = :previousRank,
           "updatedAt"    = :updatedAt
     WHERE id = :id
       AND "totalPoints" = :totalPoints
       AND "matchPoints" = :matchPoints
       AND "bonusPoints" = :bonusPoints
""").bindparams(bindparam("updatedAt", type_=DateTime(timezone=True)))


class StandingsStore:
    """
    Data access for the standings engine.

    Reads return plain dicts (one per row). Every mutation of a scoring pass
    goes through save_changes(), which writes all of them inside a single
    transaction and rolls the whole batch back on a compare-and-set miss.
    """

    def __init__(self, db: Engine):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_match(self, match_id: Any) -> Optional[Dict[str, Any]]:
        with self.db.begin() as conn:
            row = conn.execute(GET_MATCH, {"matchId": match_id}).fetchone()
        return dict(row._mapping) if row else None

    def get_league(self, league_id: Any) -> Optional[Dict[str, Any]]:
        with self.db.begin() as conn:
            row = conn.execute(GET_LEAGUE, {"leagueId": league_id}).fetchone()
        return dict(row._mapping) if row else None

    def get_league_ids_for_tournament(self, tournament_id: Any) -> List[Any]:
        with self.db.begin() as conn:
            rows = conn.execute(
                GET_LEAGUE_IDS_FOR_TOURNAMENT, {"tournamentId": tournament_id}
            ).fetchall()
        return [r[0] for r in rows]

    def get_tournament_ids(self) -> List[Any]:
        with self.db.begin() as conn:
            rows = conn.execute(GET_TOURNAMENT_IDS).fetchall()
        return [r[0] for r in rows]

    def get_settings_for_leagues(self, league_ids: List[Any]) -> Dict[Any, Dict[str, Any]]:
        if not league_ids:
            return {}
        with self.db.begin() as conn:
            rows = conn.execute(
                GET_SETTINGS_FOR_LEAGUES, {"leagueIds": list(league_ids)}
            ).fetchall()
        return {r._mapping["leagueId"]: dict(r._mapping) for r in rows}

    def get_predictions_for_match(self, match_id: Any, league_ids: List[Any]) -> List[Dict[str, Any]]:
        if not league_ids:
            return []
        with self.db.begin() as conn:
            rows = conn.execute(
                GET_PREDICTIONS_FOR_MATCH,
                {"matchId": match_id, "leagueIds": list(league_ids)},
            ).fetchall()
        return [dict(r._mapping) for r in rows]

    def get_finished_predictions_for_league(self, league_id: Any) -> List[Dict[str, Any]]:
        """
        Predictions of a league whose match is FullTime with both scores set,
        each carrying the match's score and resultVersion.
        """
        with self.db.begin() as conn:
            rows = conn.execute(
                GET_FINISHED_PREDICTIONS_FOR_LEAGUE,
                {"leagueId": league_id, "finishedStatus": FINISHED_STATUS},
            ).fetchall()
        return [dict(r._mapping) for r in rows]

    def get_bonus_question(self, bonus_question_id: Any) -> Optional[Dict[str, Any]]:
        with self.db.begin() as conn:
            row = conn.execute(
                GET_BONUS_QUESTION, {"bonusQuestionId": bonus_question_id}
            ).fetchone()
        return dict(row._mapping) if row else None

    def get_bonus_predictions_for_question(self, bonus_question_id: Any) -> List[Dict[str, Any]]:
        with self.db.begin() as conn:
            rows = conn.execute(
                GET_BONUS_PREDICTIONS_FOR_QUESTION,
                {"bonusQuestionId": bonus_question_id},
            ).fetchall()
        return [dict(r._mapping) for r in rows]

    def get_standings_for_users(
        self,
        league_ids: List[Any],
        user_ids: List[Any],
    ) -> Dict[Tuple[Any, Any], Dict[str, Any]]:
        """
        Standings keyed by (leagueId, userId) for the given leagues/users.
        Pairs without a row are simply absent.
        """
        if not league_ids or not user_ids:
            return {}
        with self.db.begin() as conn:
            rows = conn.execute(
                GET_STANDINGS_FOR_USERS,
                {"leagueIds": list(league_ids), "userIds": list(user_ids)},
            ).fetchall()
        return {
            (r._mapping["leagueId"], r._mapping["userId"]): dict(r._mapping)
            for r in rows
        }

    def get_standings_for_league(self, league_id: Any) -> List[Dict[str, Any]]:
        with self.db.begin() as conn:
            rows = conn.execute(GET_STANDINGS_FOR_LEAGUE, {"leagueId": league_id}).fetchall()
        return [dict(r._mapping) for r in rows]

    def get_match_points_by_user(self, league_id: Any) -> Dict[Any, int]:
        with self.db.begin() as conn:
            rows = conn.execute(
                SUM_MATCH_POINTS_BY_USER, {"leagueId": league_id, "isScored": True}
            ).fetchall()
        return {r._mapping["userId"]: int(r._mapping["points"]) for r in rows}

    def get_bonus_points_by_user(self, league_id: Any) -> Dict[Any, int]:
        with self.db.begin() as conn:
            rows = conn.execute(SUM_BONUS_POINTS_BY_USER, {"leagueId": league_id}).fetchall()
        return {r._mapping["userId"]: int(r._mapping["points"]) for r in rows}

    # ------------------------------------------------------------------
    # Atomic save
    # ------------------------------------------------------------------

    def save_changes(
        self,
        *,
        predictions: Iterable[Mapping[str, Any]] = (),
        bonus_predictions: Iterable[Mapping[str, Any]] = (),
        standing_deltas: Iterable[Mapping[str, Any]] = (),
        standing_points: Iterable[Mapping[str, Any]] = (),
        standing_ranks: Iterable[Mapping[str, Any]] = (),
        match_guard: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """
        Write one scoring pass in a single transaction. Returns rows written.

          - predictions:       score fields + loadedIsScored/loadedPointsEarned
                               (the values the pass read; compare-and-set)
          - bonus_predictions: pointsEarned + loadedPointsEarned (compare-and-set)
          - standing_deltas:   matchPointsDelta/bonusPointsDelta, applied in SQL
          - standing_points:   absolute match/bonus/total (authoritative rebuild)
          - standing_ranks:    rank/previousRank, guarded by the points they
                               were computed from
          - match_guard:       matchId/resultVersion/homeScore/awayScore the
                               pass scored against; re-checked before writing

        Raises StaleWriteError (and nothing is written) when any guarded row
        no longer matches what the pass read.
        """
        written = 0
        with self.db.begin() as conn:
            if match_guard is not None:
                self._check_match_guard(conn, match_guard)

            for p in predictions:
                result = conn.execute(
                    UPDATE_PREDICTION_SCORE,
                    {
                        "id": p["id"],
                        "pointsEarned": p["pointsEarned"],
                        "isScored": bool(p["isScored"]),
                        "scoredResultVersion": p["scoredResultVersion"],
                        "scoredAt": p["scoredAt"],
                        "loadedIsScored": bool(p["loadedIsScored"]),
                        "loadedPointsEarned": _cas_points(p["loadedPointsEarned"]),
                        "noPoints": NO_POINTS,
                    },
                )
                if result.rowcount != 1:
                    raise StaleWriteError(f"Prediction {p['id']} changed during scoring")
                written += 1

            for bp in bonus_predictions:
                result = conn.execute(
                    UPDATE_BONUS_PREDICTION_SCORE,
                    {
                        "id": bp["id"],
                        "pointsEarned": bp["pointsEarned"],
                        "loadedPointsEarned": _cas_points(bp["loadedPointsEarned"]),
                        "noPoints": NO_POINTS,
                    },
                )
                if result.rowcount != 1:
                    raise StaleWriteError(f"BonusPrediction {bp['id']} changed during scoring")
                written += 1

            for d in standing_deltas:
                result = conn.execute(
                    APPLY_STANDING_DELTA,
                    {
                        "id": d["id"],
                        "matchPointsDelta": int(d.get("matchPointsDelta", 0)),
                        "bonusPointsDelta": int(d.get("bonusPointsDelta", 0)),
                        "updatedAt": d["updatedAt"],
                    },
                )
                if result.rowcount != 1:
                    # membership removed the row after we read it
                    logger.warning("LeagueStanding %s vanished before delta was applied", d["id"])
                    continue
                written += 1

            for s in standing_points:
                result = conn.execute(
                    WRITE_STANDING_POINTS,
                    {
                        "id": s["id"],
                        "matchPoints": int(s["matchPoints"]),
                        "bonusPoints": int(s["bonusPoints"]),
                        "totalPoints": int(s["totalPoints"]),
                        "updatedAt": s["updatedAt"],
                    },
                )
                written += result.rowcount

            for s in standing_ranks:
                result = conn.execute(
                    WRITE_STANDING_RANK,
                    {
                        "id": s["id"],
                        "rank": int(s["rank"]),
                        "previousRank": s["previousRank"],
                        "totalPoints": int(s["totalPoints"]),
                        "matchPoints": int(s["matchPoints"]),
                        "bonusPoints": int(s["bonusPoints"]),
                        "updatedAt": s["updatedAt"],
                    },
                )
                if result.rowcount != 1:
                    raise StaleWriteError(f"LeagueStanding {s['id']} points changed during ranking")
                written += 1

        return written

    def _check_match_guard(self, conn: Connection, guard: Mapping[str, Any]) -> None:
        row = conn.execute(CHECK_MATCH_RESULT, {"matchId": guard["matchId"]}).fetchone()
        if not row:
            raise StaleWriteError(f"Match {guard['matchId']} disappeared during scoring")

        current = row._mapping
        if (
            int(current["resultVersion"] or 0) != int(guard["resultVersion"])
            or current["homeScore"] != guard["homeScore"]
            or current["awayScore"] != guard["awayScore"]
        ):
            raise StaleWriteError(
                f"Match {guard['matchId']} result changed during scoring "
                f"(read v{guard['resultVersion']}, now v{current['resultVersion']})"
            )


def _cas_points(value: Optional[int]) -> int:
    return NO_POINTS if value is None else int(value)
