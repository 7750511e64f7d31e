# endpoints/bonusQuestions/bonusQuestionEndpoints.py

from flask import jsonify, request
import logging

from .bonusQuestionModel import BonusQuestionModel

logger = logging.getLogger(__name__)


class BonusQuestionEndpoints:
    def __init__(self, db_engine, standings_model):
        self.bonusQuestionModel = BonusQuestionModel(db_engine, standings_model)

    # POST /api/bonusQuestion/<question_id>/resolve
    # Body: { "answerTeamId": "..." } or { "answerText": "..." }
    def resolve_bonus_question(self, question_id: str):
        try:
            data = request.get_json(force=True) or {}

            answer_text = data.get("answerText")
            if answer_text is not None and not isinstance(answer_text, str):
                return jsonify({"message": "answerText must be a string"}), 400

            result = self.bonusQuestionModel.resolve_bonus_question(
                question_id,
                answer_team_id=data.get("answerTeamId"),
                answer_text=answer_text,
            )
            return jsonify(result), 200

        except LookupError as e:
            return jsonify({"message": str(e)}), 404
        except ValueError as e:
            logger.warning("ValueError in resolve_bonus_question: %s", e)
            return jsonify({"message": str(e)}), 400
        except Exception:
            logger.exception("Unexpected error resolving bonus question %s", question_id)
            return jsonify({"message": "Failed to resolve bonus question"}), 500

    # POST /api/admin/bonusQuestion/<question_id>/rescore
    def rescore_bonus_question(self, question_id: str):
        try:
            result = self.bonusQuestionModel.rescore_bonus_question(question_id)
            return jsonify(result), 200

        except LookupError as e:
            return jsonify({"message": str(e)}), 404
        except ValueError as e:
            return jsonify({"message": str(e)}), 400
        except Exception:
            logger.exception("Unexpected error rescoring bonus question %s", question_id)
            return jsonify({"message": "Failed to rescore bonus question"}), 500
