from endpoints.matches.matchEndpoints import MatchEndpoints
from endpoints.standings.routes import build_standings_model


def setup_routes(app, engine):

    matchEndpoints = MatchEndpoints(engine, build_standings_model(engine))

    app.add_url_rule("/api/match/<match_id>/result", view_func=matchEndpoints.update_match_result, methods=["POST"])
    app.add_url_rule("/api/admin/match/<match_id>/rescore", view_func=matchEndpoints.rescore_match, methods=["POST"])
