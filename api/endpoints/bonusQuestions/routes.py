from endpoints.bonusQuestions.bonusQuestionEndpoints import BonusQuestionEndpoints
from endpoints.standings.routes import build_standings_model


def setup_routes(app, engine):

    bonusQuestionEndpoints = BonusQuestionEndpoints(engine, build_standings_model(engine))

    app.add_url_rule("/api/bonusQuestion/<question_id>/resolve", view_func=bonusQuestionEndpoints.resolve_bonus_question, methods=["POST"])
    app.add_url_rule("/api/admin/bonusQuestion/<question_id>/rescore", view_func=bonusQuestionEndpoints.rescore_bonus_question, methods=["POST"])
