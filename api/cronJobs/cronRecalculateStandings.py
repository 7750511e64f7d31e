from bootstrap import *
import logging

from config import MAX_ATTEMPTS, RANK_WORKERS
from db import engine
from endpoints.standings.standingsModel import StandingsModel

logger = logging.getLogger("cronRecalculateStandings")


def build_standings(engine):
    return StandingsModel(engine, rank_workers=RANK_WORKERS, max_attempts=MAX_ATTEMPTS)


def main():
    """
    Nightly reconciliation: rebuild every league of every tournament from the
    scored predictions, undoing any drift left by the incremental path.
    """
    standings = build_standings(engine)

    tournament_ids = standings.store.get_tournament_ids()
    if not tournament_ids:
        logger.info("No tournaments with leagues to recalculate.")
        return

    failed = []
    for tournament_id in tournament_ids:
        # one broken tournament must not stop the rest of the run
        try:
            summary = standings.recalculate_standings_for_tournament(tournament_id)
        except Exception:
            logger.exception("ERROR recalculating tournament %s", tournament_id)
            failed.append(tournament_id)
            continue

        logger.info(
            "Tournament %s: %s leagues, %s standings rebuilt",
            tournament_id,
            summary["leaguesUpdated"],
            summary["standingsUpdated"],
        )

    if failed:
        logger.error("Standings reconciliation finished with failures: %s", failed)
    else:
        logger.info("Standings reconciliation complete.")


if __name__ == "__main__":
    main()
