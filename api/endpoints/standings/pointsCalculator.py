# endpoints/standings/pointsCalculator.py
from typing import Any, Mapping


class PointsCalculator:
    """
    Turns a predicted score into points against the actual result, using the
    point values from a league's LeagueSettings row:

      - exact score          -> pointsCorrectScore (nothing else is added)
      - otherwise:
          * right outcome    -> + pointsCorrectOutcome (home win / draw / away win)
          * right home goals -> + pointsCorrectGoals
          * right away goals -> + pointsCorrectGoals
    """

    def calculate_match_points(
        self,
        predicted_home: int,
        predicted_away: int,
        actual_home: int,
        actual_away: int,
        settings: Mapping[str, Any],
    ) -> int:
        if predicted_home == actual_home and predicted_away == actual_away:
            return int(settings["pointsCorrectScore"])

        points = 0

        if self._outcome(predicted_home, predicted_away) == self._outcome(actual_home, actual_away):
            points += int(settings["pointsCorrectOutcome"])

        if predicted_home == actual_home:
            points += int(settings["pointsCorrectGoals"])
        if predicted_away == actual_away:
            points += int(settings["pointsCorrectGoals"])

        return points

    @staticmethod
    def _outcome(home: int, away: int) -> int:
        # 1 = home win, 0 = draw, -1 = away win
        if home == away:
            return 0
        return 1 if home > away else -1
