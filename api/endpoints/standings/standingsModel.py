# endpoints/standings/standingsModel.py
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.engine import Engine

from .pointsCalculator import PointsCalculator
from .standingsStore import StaleWriteError, StandingsStore

logger = logging.getLogger(__name__)


class StandingsModel:
    """
    Standings & scoring engine for prediction leagues.

    - Per-match scoring: every Prediction for a finished match, across all
      leagues of the match's tournament, is (re)scored and the difference to
      its previous points is applied to LeagueStanding.matchPoints.
    - Bonus scoring: same delta accounting on LeagueStanding.bonusPoints once
      a BonusQuestion is resolved.
    - Full rebuild: authoritative resum of a league (or every league of a
      tournament) from Prediction / BonusPrediction, used to repair drift.
    - Ranks: competition ranking ("1-2-2-4") per league with previousRank kept
      for movement arrows.

    Lookups are soft: a missing match/question/league/settings/standing is
    logged and skipped, never raised. Writes of one pass are atomic; a
    concurrent change detected at save time makes the pass start over.
    """

    def __init__(
        self,
        db: Engine,
        points_calculator: Optional[PointsCalculator] = None,
        rank_workers: int = 1,
        max_attempts: int = 3,
    ):
        self.store = StandingsStore(db)
        self.points_calculator = points_calculator or PointsCalculator()
        self.rank_workers = max(1, int(rank_workers))
        self.max_attempts = max(1, int(max_attempts))

    # ------------------------------------------------------------------
    # Match predictions
    # ------------------------------------------------------------------

    def score_predictions_for_match(self, match_id: Any, result_version: int) -> int:
        """
        Score all predictions for a match against its stored final score.

        Called after a result update has persisted the score and bumped
        Match.resultVersion; result_version is that bumped value and is
        recorded on each prediction as scoredResultVersion.

        Returns the number of predictions processed (0 for any no-op).
        """
        return self._with_retry(
            f"match {match_id}",
            self._score_predictions_for_match_once,
            match_id,
            int(result_version),
        )

    def _score_predictions_for_match_once(self, match_id: Any, result_version: int) -> int:
        match = self.store.get_match(match_id)
        if match is None:
            logger.warning("Match %s not found for scoring", match_id)
            return 0

        if match["homeScore"] is None or match["awayScore"] is None:
            logger.warning("Match %s does not have final scores", match_id)
            return 0

        stored_version = int(match["resultVersion"] or 0)
        if stored_version > result_version:
            logger.info(
                "Match %s resultVersion %s superseded by %s, skipping",
                match_id,
                result_version,
                stored_version,
            )
            return 0

        league_ids = self.store.get_league_ids_for_tournament(match["tournamentId"])
        if not league_ids:
            logger.info("No leagues found for tournament %s", match["tournamentId"])
            return 0

        settings_by_league = self.store.get_settings_for_leagues(league_ids)
        for league_id in league_ids:
            if league_id not in settings_by_league:
                logger.warning("Settings not found for league %s", league_id)

        predictions = self.store.get_predictions_for_match(match_id, league_ids)
        if not predictions:
            logger.info("No predictions found for match %s", match_id)
            return 0

        user_ids = sorted({p["userId"] for p in predictions})
        standings = self.store.get_standings_for_users(league_ids, user_ids)

        actual_home = int(match["homeScore"])
        actual_away = int(match["awayScore"])
        now = datetime.now(timezone.utc)

        prediction_changes: List[Dict[str, Any]] = []
        match_deltas: Dict[Any, int] = defaultdict(int)
        affected_leagues: Dict[Any, None] = {}
        scored_count = 0

        for p in predictions:
            settings = settings_by_league.get(p["leagueId"])
            if settings is None:
                continue

            was_scored = bool(p["isScored"])
            previous_points = int(p["pointsEarned"] or 0) if was_scored else 0

            new_points = self.points_calculator.calculate_match_points(
                int(p["homeScore"]),
                int(p["awayScore"]),
                actual_home,
                actual_away,
                settings,
            )
            delta = new_points - previous_points

            prediction_changes.append(
                {
                    "id": p["id"],
                    "pointsEarned": new_points,
                    "isScored": True,
                    "scoredResultVersion": result_version,
                    "scoredAt": now,
                    "loadedIsScored": was_scored,
                    "loadedPointsEarned": p["pointsEarned"],
                }
            )

            standing = standings.get((p["leagueId"], p["userId"]))
            if standing is None:
                logger.warning(
                    "Standing not found for user %s in league %s",
                    p["userId"],
                    p["leagueId"],
                )
            else:
                standing["matchPoints"] = int(standing["matchPoints"]) + delta
                standing["totalPoints"] = standing["matchPoints"] + int(standing["bonusPoints"])
                standing["updatedAt"] = now
                match_deltas[standing["id"]] += delta
                affected_leagues[p["leagueId"]] = None

            scored_count += 1

        self.store.save_changes(
            predictions=prediction_changes,
            standing_deltas=[
                {"id": standing_id, "matchPointsDelta": delta, "updatedAt": now}
                for standing_id, delta in match_deltas.items()
            ],
            match_guard={
                "matchId": match_id,
                "resultVersion": stored_version,
                "homeScore": match["homeScore"],
                "awayScore": match["awayScore"],
            },
        )

        self._recalculate_ranks_for_leagues(list(affected_leagues))

        logger.info(
            "Scored %s predictions for match %s (resultVersion %s), affected %s leagues",
            scored_count,
            match_id,
            result_version,
            len(affected_leagues),
        )
        return scored_count

    # ------------------------------------------------------------------
    # Bonus predictions
    # ------------------------------------------------------------------

    def score_bonus_predictions(self, bonus_question_id: Any) -> int:
        """
        Award a resolved BonusQuestion's points to every correct
        BonusPrediction (all leagues) and move bonusPoints by the delta.

        Returns the number of predictions judged correct.
        """
        return self._with_retry(
            f"bonus question {bonus_question_id}",
            self._score_bonus_predictions_once,
            bonus_question_id,
        )

    def _score_bonus_predictions_once(self, bonus_question_id: Any) -> int:
        question = self.store.get_bonus_question(bonus_question_id)
        if question is None:
            logger.warning("Bonus question %s not found", bonus_question_id)
            return 0

        if not question["isResolved"]:
            logger.warning("Bonus question %s is not resolved", bonus_question_id)
            return 0

        predictions = self.store.get_bonus_predictions_for_question(bonus_question_id)
        if not predictions:
            logger.info("No bonus predictions found for question %s", bonus_question_id)
            return 0

        league_ids = sorted({p["leagueId"] for p in predictions})
        user_ids = sorted({p["userId"] for p in predictions})
        standings = self.store.get_standings_for_users(league_ids, user_ids)

        question_points = int(question["points"])
        now = datetime.now(timezone.utc)

        prediction_changes: List[Dict[str, Any]] = []
        bonus_deltas: Dict[Any, int] = defaultdict(int)
        affected_leagues: Dict[Any, None] = {}
        awarded_count = 0

        for p in predictions:
            previous_points = int(p["pointsEarned"] or 0)

            is_correct = self.is_correct_bonus_prediction(
                p["answerTeamId"],
                p["answerText"],
                question["answerTeamId"],
                question["answerText"],
            )
            new_points = question_points if is_correct else 0
            delta = new_points - previous_points

            prediction_changes.append(
                {
                    "id": p["id"],
                    "pointsEarned": new_points,
                    "loadedPointsEarned": p["pointsEarned"],
                }
            )

            standing = standings.get((p["leagueId"], p["userId"]))
            if standing is None:
                logger.warning(
                    "Standing not found for user %s in league %s",
                    p["userId"],
                    p["leagueId"],
                )
            else:
                standing["bonusPoints"] = int(standing["bonusPoints"]) + delta
                standing["totalPoints"] = int(standing["matchPoints"]) + standing["bonusPoints"]
                standing["updatedAt"] = now
                bonus_deltas[standing["id"]] += delta
                affected_leagues[p["leagueId"]] = None

            if is_correct:
                awarded_count += 1

        self.store.save_changes(
            bonus_predictions=prediction_changes,
            standing_deltas=[
                {"id": standing_id, "bonusPointsDelta": delta, "updatedAt": now}
                for standing_id, delta in bonus_deltas.items()
            ],
        )

        self._recalculate_ranks_for_leagues(list(affected_leagues))

        logger.info(
            "Scored bonus predictions for question %s, %s/%s correct",
            bonus_question_id,
            awarded_count,
            len(predictions),
        )
        return awarded_count

    @staticmethod
    def is_correct_bonus_prediction(
        predicted_team_id: Any,
        predicted_text: Optional[str],
        correct_team_id: Any,
        correct_text: Optional[str],
    ) -> bool:
        # team answer wins over text answer
        if correct_team_id is not None:
            return predicted_team_id is not None and predicted_team_id == correct_team_id

        if correct_text and correct_text.strip():
            if not predicted_text or not predicted_text.strip():
                return False
            return predicted_text.strip().lower() == correct_text.strip().lower()

        return False

    # ------------------------------------------------------------------
    # Full rebuild
    # ------------------------------------------------------------------

    def recalculate_standings_for_league(self, league_id: Any) -> int:
        """
        Rebuild every standing of a league from scratch:

          matchPoints = SUM(Prediction.pointsEarned) over scored predictions
          bonusPoints = SUM(BonusPrediction.pointsEarned) where not NULL
          totalPoints = matchPoints + bonusPoints

        then re-rank. Idempotent. Returns the number of standings rebuilt.
        """
        league = self.store.get_league(league_id)
        if league is None:
            logger.warning("League %s not found for recalculation", league_id)
            return 0

        standings = self.store.get_standings_for_league(league_id)
        if not standings:
            logger.info("No standings found for league %s", league_id)
            return 0

        match_points = self.store.get_match_points_by_user(league_id)
        bonus_points = self.store.get_bonus_points_by_user(league_id)
        now = datetime.now(timezone.utc)

        for s in standings:
            s["matchPoints"] = match_points.get(s["userId"], 0)
            s["bonusPoints"] = bonus_points.get(s["userId"], 0)
            s["totalPoints"] = s["matchPoints"] + s["bonusPoints"]
            s["updatedAt"] = now

        self.store.save_changes(standing_points=standings)
        self.recalculate_ranks(league_id)

        logger.info(
            "Recalculated standings for league %s, %s members",
            league_id,
            len(standings),
        )
        return len(standings)

    def rescore_league_predictions(self, league_id: Any) -> int:
        """
        Re-run the points calculation for every prediction of a league on a
        finished match, using the league's current settings, then rebuild the
        league's standings. This is how changed point values reach predictions
        that were already scored.

        Returns the number of predictions rescored.
        """
        return self._with_retry(
            f"prediction rescore for league {league_id}",
            self._rescore_league_predictions_once,
            league_id,
        )

    def _rescore_league_predictions_once(self, league_id: Any) -> int:
        if self.store.get_league(league_id) is None:
            logger.warning("League %s not found for prediction rescore", league_id)
            return 0

        settings = self.store.get_settings_for_leagues([league_id]).get(league_id)
        if settings is None:
            logger.warning("Settings not found for league %s", league_id)
            return 0

        predictions = self.store.get_finished_predictions_for_league(league_id)
        if not predictions:
            logger.info("No predictions on finished matches for league %s", league_id)
            return 0

        now = datetime.now(timezone.utc)
        prediction_changes = [
            {
                "id": p["id"],
                "pointsEarned": self.points_calculator.calculate_match_points(
                    int(p["homeScore"]),
                    int(p["awayScore"]),
                    int(p["matchHomeScore"]),
                    int(p["matchAwayScore"]),
                    settings,
                ),
                "isScored": True,
                "scoredResultVersion": int(p["matchResultVersion"] or 0),
                "scoredAt": now,
                "loadedIsScored": bool(p["isScored"]),
                "loadedPointsEarned": p["pointsEarned"],
            }
            for p in predictions
        ]

        self.store.save_changes(predictions=prediction_changes)
        self.recalculate_standings_for_league(league_id)

        logger.info(
            "Rescored %s predictions for league %s with current settings",
            len(prediction_changes),
            league_id,
        )
        return len(prediction_changes)

    def recalculate_standings_for_tournament(self, tournament_id: Any) -> Dict[str, Any]:
        league_ids = self.store.get_league_ids_for_tournament(tournament_id)

        logger.info(
            "Recalculating standings for tournament %s, %s leagues",
            tournament_id,
            len(league_ids),
        )

        standings_updated = 0
        for league_id in league_ids:
            standings_updated += self.recalculate_standings_for_league(league_id)

        return {
            "tournamentId": tournament_id,
            "leaguesUpdated": len(league_ids),
            "standingsUpdated": standings_updated,
        }

    # ------------------------------------------------------------------
    # Ranks
    # ------------------------------------------------------------------

    def recalculate_ranks(self, league_id: Any) -> int:
        """
        Re-rank a league from its current points. Returns rows ranked.
        """
        return self._with_retry(
            f"ranks for league {league_id}",
            self._recalculate_ranks_once,
            league_id,
        )

    def _recalculate_ranks_once(self, league_id: Any) -> int:
        standings = self.store.get_standings_for_league(league_id)
        if not standings:
            return 0

        now = datetime.now(timezone.utc)
        ordered = self.rank_standings(standings)
        for s in ordered:
            s["updatedAt"] = now

        self.store.save_changes(standing_ranks=ordered)
        return len(ordered)

    @staticmethod
    def rank_standings(standings: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Sort standings and assign competition ranks in place.

        Order: totalPoints desc, matchPoints desc, bonusPoints desc,
        username asc ignoring case (rows without a username last), userId asc.

        A row whose (total, match, bonus) triple equals the previous row's
        shares its rank; otherwise its rank is its 1-based position, so
        totals [50, 50, 40, 40, 40, 10] rank as [1, 1, 3, 3, 3, 6].
        previousRank receives the rank the row had before.
        """
        ordered = sorted(
            standings,
            key=lambda s: (
                -int(s["totalPoints"]),
                -int(s["matchPoints"]),
                -int(s["bonusPoints"]),
                s.get("username") is None,
                (s.get("username") or "").casefold(),
                s.get("username") or "",
                str(s["userId"]),
            ),
        )

        current_rank = 1
        prev_key = None
        for idx, s in enumerate(ordered):
            key = (int(s["totalPoints"]), int(s["matchPoints"]), int(s["bonusPoints"]))
            if prev_key is not None and key != prev_key:
                current_rank = idx + 1

            s["previousRank"] = s.get("rank")
            s["rank"] = current_rank
            prev_key = key

        return ordered

    def _recalculate_ranks_for_leagues(self, league_ids: List[Any]) -> None:
        # league_ids are distinct, so no league is ranked twice at once
        if self.rank_workers > 1 and len(league_ids) > 1:
            workers = min(self.rank_workers, len(league_ids))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="league-ranks") as executor:
                list(executor.map(self.recalculate_ranks, league_ids))
            return

        for league_id in league_ids:
            self.recalculate_ranks(league_id)

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    def get_league_standings(self, league_id: Any) -> Optional[List[Dict[str, Any]]]:
        """
        Leaderboard rows ordered by rank, or None if the league doesn't exist.
        """
        if self.store.get_league(league_id) is None:
            return None

        standings = self.store.get_standings_for_league(league_id)
        standings.sort(
            key=lambda s: (
                int(s["rank"]),
                s.get("username") is None,
                (s.get("username") or "").casefold(),
                s.get("username") or "",
                str(s["userId"]),
            )
        )

        return [
            {
                "userId": s["userId"],
                "username": s.get("username"),
                "rank": int(s["rank"]),
                "previousRank": s["previousRank"],
                "movement": self._movement(s["rank"], s["previousRank"]),
                "totalPoints": int(s["totalPoints"]),
                "matchPoints": int(s["matchPoints"]),
                "bonusPoints": int(s["bonusPoints"]),
                "updatedAt": s.get("updatedAt"),
            }
            for s in standings
        ]

    @staticmethod
    def _movement(rank: int, previous_rank: Optional[int]) -> str:
        if previous_rank is None:
            return "new"
        if int(previous_rank) > int(rank):
            return "up"
        if int(previous_rank) < int(rank):
            return "down"
        return "same"

    # ------------------------------------------------------------------
    # Conflict handling
    # ------------------------------------------------------------------

    def _with_retry(self, label: str, fn: Callable[..., int], *args: Any) -> int:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(*args)
            except StaleWriteError as e:
                logger.warning(
                    "Conflict on %s (attempt %s/%s): %s",
                    label,
                    attempt,
                    self.max_attempts,
                    e,
                )

        logger.error("Gave up on %s after %s attempts", label, self.max_attempts)
        return 0
