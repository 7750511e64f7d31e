from flask import Flask
from flask_cors import CORS

from config import LOG_LEVEL
from endpoints.standings.routes import setup_routes as StandingsRoutes
from endpoints.matches.routes import setup_routes as MatchRoutes
from endpoints.bonusQuestions.routes import setup_routes as BonusQuestionRoutes
from utils.logSetup import configure_logging


def create_app(db_engine=None):

    configure_logging(LOG_LEVEL)

    if db_engine is None:
        from db import engine as db_engine

    app = Flask(__name__)
    CORS(app)

    StandingsRoutes(app, db_engine)
    MatchRoutes(app, db_engine)
    BonusQuestionRoutes(app, db_engine)

    return app

if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5050, debug=True)
