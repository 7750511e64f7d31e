# endpoints/matches/matchModel.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.engine import Engine

from endpoints.standings.standingsModel import StandingsModel
from endpoints.standings.standingsStore import FINISHED_STATUS

logger = logging.getLogger(__name__)

MATCH_STATUSES = ("Scheduled", "Live", "HalfTime", "FullTime", "Postponed", "Cancelled")

GET_MATCH = text("""
    SELECT id, "tournamentId", "homeScore", "awayScore", status, "resultVersion"
    FROM "Match"
    WHERE id = :matchId
""")

# resultVersion only moves when the written score is a final one
UPDATE_MATCH_RESULT = text("""
    UPDATE "Match"
       SET "homeScore"     = :homeScore,
           "awayScore"     = :awayScore,
           status          = :status,
           "resultVersion" = "resultVersion" + :versionBump,
           "updatedAt"     = :updatedAt
     WHERE id = :matchId
""").bindparams(bindparam("updatedAt", type_=DateTime(timezone=True)))


class MatchModel:
    """
    Match result commands. These own the write to Match and then hand off to
    the standings engine, which never touches Match itself.
    """

    def __init__(self, db: Engine, standings_model: StandingsModel):
        self.db = db
        self.standings_model = standings_model

    def _get_match(self, match_id: Any) -> Dict[str, Any]:
        with self.db.begin() as conn:
            row = conn.execute(GET_MATCH, {"matchId": match_id}).fetchone()

        if not row:
            raise LookupError(f"Match {match_id} not found")

        return dict(row._mapping)

    def update_match_result(
        self,
        match_id: Any,
        home_score: Optional[int],
        away_score: Optional[int],
        status: str,
    ) -> Dict[str, Any]:
        """
        Persist a (live or final) score. A FullTime write bumps resultVersion
        and scores every prediction for the match with that version.
        """
        self._validate_result(home_score, away_score, status)

        # raises LookupError before anything is written
        self._get_match(match_id)

        finished = status == FINISHED_STATUS

        with self.db.begin() as conn:
            conn.execute(
                UPDATE_MATCH_RESULT,
                {
                    "matchId": match_id,
                    "homeScore": home_score,
                    "awayScore": away_score,
                    "status": status,
                    "versionBump": 1 if finished else 0,
                    "updatedAt": datetime.now(timezone.utc),
                },
            )
            version_row = conn.execute(GET_MATCH, {"matchId": match_id}).fetchone()

        result_version = int(version_row._mapping["resultVersion"])

        predictions_scored = 0
        if finished:
            predictions_scored = self.standings_model.score_predictions_for_match(
                match_id, result_version
            )

        return {
            "matchId": match_id,
            "status": status,
            "homeScore": home_score,
            "awayScore": away_score,
            "resultVersion": result_version,
            "predictionsScored": predictions_scored,
        }

    def rescore_match(self, match_id: Any) -> Dict[str, Any]:
        """
        Admin re-run of prediction scoring for a finished match at its
        current resultVersion.
        """
        match = self._get_match(match_id)

        if (
            match["status"] != FINISHED_STATUS
            or match["homeScore"] is None
            or match["awayScore"] is None
        ):
            raise ValueError("Match must be finished with scores to recalculate points")

        result_version = int(match["resultVersion"] or 0)
        predictions_scored = self.standings_model.score_predictions_for_match(
            match_id, result_version
        )

        return {
            "matchId": match_id,
            "resultVersion": result_version,
            "predictionsScored": predictions_scored,
        }

    @staticmethod
    def _validate_result(home_score: Any, away_score: Any, status: Any) -> None:
        if status not in MATCH_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(MATCH_STATUSES)}")

        for name, score in (("homeScore", home_score), ("awayScore", away_score)):
            if score is None:
                continue
            if isinstance(score, bool) or not isinstance(score, int):
                raise ValueError(f"{name} must be an integer")
            if score < 0:
                raise ValueError(f"{name} must be >= 0")

        if status == FINISHED_STATUS and (home_score is None or away_score is None):
            raise ValueError("homeScore and awayScore are required for a FullTime result")
