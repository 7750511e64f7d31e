# endpoints/matches/matchEndpoints.py

from flask import jsonify, request
import logging

from .matchModel import MatchModel

logger = logging.getLogger(__name__)


class MatchEndpoints:
    def __init__(self, db_engine, standings_model):
        self.matchModel = MatchModel(db_engine, standings_model)

    # POST /api/match/<match_id>/result
    # Body: { "homeScore": 2, "awayScore": 1, "status": "FullTime" }
    def update_match_result(self, match_id: str):
        try:
            data = request.get_json(force=True) or {}

            if "status" not in data:
                return jsonify({"message": "status is required"}), 400

            result = self.matchModel.update_match_result(
                match_id=match_id,
                home_score=data.get("homeScore"),
                away_score=data.get("awayScore"),
                status=data["status"],
            )
            return jsonify(result), 200

        except LookupError as e:
            return jsonify({"message": str(e)}), 404
        except ValueError as e:
            logger.warning("ValueError in update_match_result: %s", e)
            return jsonify({"message": str(e)}), 400
        except Exception:
            logger.exception("Unexpected error updating result for match %s", match_id)
            return jsonify({"message": "Failed to update match result"}), 500

    # POST /api/admin/match/<match_id>/rescore
    def rescore_match(self, match_id: str):
        try:
            result = self.matchModel.rescore_match(match_id)
            return jsonify(result), 200

        except LookupError as e:
            return jsonify({"message": str(e)}), 404
        except ValueError as e:
            return jsonify({"message": str(e)}), 400
        except Exception:
            logger.exception("Unexpected error rescoring match %s", match_id)
            return jsonify({"message": "Failed to rescore match"}), 500
