# endpoints/standings/standingsEndpoints.py

from flask import jsonify
import logging

from utils.jsonSafe import jsonSafe

logger = logging.getLogger(__name__)


class StandingsEndpoints:
    """
    Flask endpoint layer for standings:

      - GET  /api/league/<league_id>/standings
          -> leaderboard ordered by rank
      - POST /api/admin/league/<league_id>/recalculateStandings
          -> authoritative rebuild of one league
      - POST /api/admin/league/<league_id>/rescorePredictions
          -> re-score finished predictions with current settings, then rebuild
      - POST /api/admin/tournament/<tournament_id>/recalculateStandings
          -> rebuild of every league in a tournament
    """

    def __init__(self, standings_model):
        """
        standings_model: StandingsModel shared with the match / bonus question routes
        """
        self.standingsModel = standings_model

    # ------------------------------------------------------------------
    # GET /api/league/<league_id>/standings
    # ------------------------------------------------------------------
    def get_league_standings(self, league_id: str):
        try:
            standings = self.standingsModel.get_league_standings(league_id)
            if standings is None:
                return jsonify({"message": "League not found"}), 404

            return jsonify({
                "leagueId": league_id,
                "standings": jsonSafe(standings),
            }), 200

        except Exception:
            logger.exception("Unexpected error getting standings for league %s", league_id)
            return jsonify({"message": "Failed to get standings"}), 500

    # ------------------------------------------------------------------
    # POST /api/admin/league/<league_id>/recalculateStandings
    # ------------------------------------------------------------------
    def recalculate_league_standings(self, league_id: str):
        try:
            if self.standingsModel.store.get_league(league_id) is None:
                return jsonify({"message": "League not found"}), 404

            updated = self.standingsModel.recalculate_standings_for_league(league_id)
            return jsonify({
                "leagueId": league_id,
                "standingsUpdated": updated,
            }), 200

        except Exception:
            logger.exception("Unexpected error recalculating standings for league %s", league_id)
            return jsonify({"message": "Failed to recalculate standings"}), 500

    # ------------------------------------------------------------------
    # POST /api/admin/league/<league_id>/rescorePredictions
    # ------------------------------------------------------------------
    def rescore_league_predictions(self, league_id: str):
        try:
            if self.standingsModel.store.get_league(league_id) is None:
                return jsonify({"message": "League not found"}), 404

            updated = self.standingsModel.rescore_league_predictions(league_id)
            return jsonify({
                "leagueId": league_id,
                "predictionsUpdated": updated,
            }), 200

        except Exception:
            logger.exception("Unexpected error rescoring predictions for league %s", league_id)
            return jsonify({"message": "Failed to rescore predictions"}), 500

    # ------------------------------------------------------------------
    # POST /api/admin/tournament/<tournament_id>/recalculateStandings
    # ------------------------------------------------------------------
    def recalculate_tournament_standings(self, tournament_id: str):
        try:
            result = self.standingsModel.recalculate_standings_for_tournament(tournament_id)
            if result["leaguesUpdated"] == 0:
                return jsonify({"message": "No leagues found for tournament"}), 404

            return jsonify(result), 200

        except Exception:
            logger.exception(
                "Unexpected error recalculating standings for tournament %s",
                tournament_id,
            )
            return jsonify({"message": "Failed to recalculate standings"}), 500
