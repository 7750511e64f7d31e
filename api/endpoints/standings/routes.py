from config import MAX_ATTEMPTS, RANK_WORKERS
from endpoints.standings.standingsEndpoints import StandingsEndpoints
from endpoints.standings.standingsModel import StandingsModel


def build_standings_model(engine):
    return StandingsModel(engine, rank_workers=RANK_WORKERS, max_attempts=MAX_ATTEMPTS)


def setup_routes(app, engine):

    standingsEndpoints = StandingsEndpoints(build_standings_model(engine))

    app.add_url_rule("/api/league/<league_id>/standings", view_func=standingsEndpoints.get_league_standings, methods=["GET"])
    app.add_url_rule("/api/admin/league/<league_id>/recalculateStandings", view_func=standingsEndpoints.recalculate_league_standings, methods=["POST"])
    app.add_url_rule("/api/admin/league/<league_id>/rescorePredictions", view_func=standingsEndpoints.rescore_league_predictions, methods=["POST"])
    app.add_url_rule("/api/admin/tournament/<tournament_id>/recalculateStandings", view_func=standingsEndpoints.recalculate_tournament_standings, methods=["POST"])
