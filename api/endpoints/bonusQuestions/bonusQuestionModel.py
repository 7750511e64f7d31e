# endpoints/bonusQuestions/bonusQuestionModel.py
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from endpoints.standings.standingsModel import StandingsModel

GET_BONUS_QUESTION = text("""
    SELECT id, "tournamentId", "questionType", question,
           "answerTeamId", "answerText", "isResolved", points
    FROM "BonusQuestion"
    WHERE id = :bonusQuestionId
""")

RESOLVE_BONUS_QUESTION = text("""
    UPDATE "BonusQuestion"
       SET "answerTeamId" = :answerTeamId,
           "answerText"   = :answerText,
           "isResolved"   = :isResolved
     WHERE id = :bonusQuestionId
""")


class BonusQuestionModel:
    def __init__(self, db: Engine, standings_model: StandingsModel):
        self.db = db
        self.standings_model = standings_model

    def _get_bonus_question(self, bonus_question_id: Any) -> Dict[str, Any]:
        with self.db.begin() as conn:
            row = conn.execute(
                GET_BONUS_QUESTION, {"bonusQuestionId": bonus_question_id}
            ).fetchone()

        if not row:
            raise LookupError(f"Bonus question {bonus_question_id} not found")

        return dict(row._mapping)

    def resolve_bonus_question(
        self,
        bonus_question_id: Any,
        answer_team_id: Optional[Any] = None,
        answer_text: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Store the correct answer (team or free text), mark the question
        resolved and award points to correct predictions in every league.
        """
        question = self._get_bonus_question(bonus_question_id)

        if question["isResolved"]:
            raise ValueError("This bonus question has already been resolved")

        self._validate_answer(answer_team_id, answer_text)

        with self.db.begin() as conn:
            conn.execute(
                RESOLVE_BONUS_QUESTION,
                {
                    "bonusQuestionId": bonus_question_id,
                    "answerTeamId": answer_team_id,
                    "answerText": answer_text,
                    "isResolved": True,
                },
            )

        correct = self.standings_model.score_bonus_predictions(bonus_question_id)

        return {
            "bonusQuestionId": bonus_question_id,
            "isResolved": True,
            "answerTeamId": answer_team_id,
            "answerText": answer_text,
            "correctPredictions": correct,
        }

    def rescore_bonus_question(self, bonus_question_id: Any) -> Dict[str, Any]:
        question = self._get_bonus_question(bonus_question_id)

        if not question["isResolved"]:
            raise ValueError("Bonus question must be resolved to recalculate")

        correct = self.standings_model.score_bonus_predictions(bonus_question_id)

        return {
            "bonusQuestionId": bonus_question_id,
            "correctPredictions": correct,
        }

    @staticmethod
    def _validate_answer(answer_team_id: Any, answer_text: Optional[str]) -> None:
        if answer_team_id is not None:
            if not isinstance(answer_team_id, str) or not answer_team_id.strip():
                raise ValueError("answerTeamId must be a non-empty team id")
            return

        if answer_text is None or not answer_text.strip():
            raise ValueError("An answer must be provided (either team or text)")
