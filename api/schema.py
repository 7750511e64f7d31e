# schema.py
from sqlalchemy import text
from sqlalchemy.engine import Engine

# Portable DDL (PostgreSQL in production, SQLite in tests).
# Ids are opaque text keys generated by the owning services.

CREATE_USER = text("""
    CREATE TABLE IF NOT EXISTS "User" (
        id          TEXT PRIMARY KEY,
        username    TEXT NOT NULL UNIQUE,
        "displayName" TEXT
    )
""")

CREATE_LEAGUE = text("""
    CREATE TABLE IF NOT EXISTS "League" (
        id             TEXT PRIMARY KEY,
        "tournamentId" TEXT NOT NULL,
        name           TEXT NOT NULL DEFAULT ''
    )
""")

CREATE_LEAGUE_SETTINGS = text("""
    CREATE TABLE IF NOT EXISTS "LeagueSettings" (
        id                          TEXT PRIMARY KEY,
        "leagueId"                  TEXT NOT NULL UNIQUE REFERENCES "League"(id),
        "pointsCorrectScore"        INTEGER NOT NULL DEFAULT 7,
        "pointsCorrectOutcome"      INTEGER NOT NULL DEFAULT 3,
        "pointsCorrectGoals"        INTEGER NOT NULL DEFAULT 2,
        "pointsRoundOf16Team"       INTEGER NOT NULL DEFAULT 2,
        "pointsQuarterFinalTeam"    INTEGER NOT NULL DEFAULT 4,
        "pointsSemiFinalTeam"       INTEGER NOT NULL DEFAULT 6,
        "pointsFinalTeam"           INTEGER NOT NULL DEFAULT 8,
        "pointsTopScorer"           INTEGER NOT NULL DEFAULT 20,
        "pointsWinner"              INTEGER NOT NULL DEFAULT 20,
        "pointsMostGoalsGroup"      INTEGER NOT NULL DEFAULT 10,
        "pointsMostConcededGroup"   INTEGER NOT NULL DEFAULT 10
    )
""")

CREATE_MATCH = text("""
    CREATE TABLE IF NOT EXISTS "Match" (
        id              TEXT PRIMARY KEY,
        "tournamentId"  TEXT NOT NULL,
        "homeScore"     INTEGER,
        "awayScore"     INTEGER,
        status          TEXT NOT NULL DEFAULT 'Scheduled',
        "resultVersion" INTEGER NOT NULL DEFAULT 0,
        "updatedAt"     TIMESTAMPTZ
    )
""")

CREATE_PREDICTION = text("""
    CREATE TABLE IF NOT EXISTS "Prediction" (
        id                    TEXT PRIMARY KEY,
        "userId"              TEXT NOT NULL,
        "matchId"             TEXT NOT NULL REFERENCES "Match"(id),
        "leagueId"            TEXT NOT NULL REFERENCES "League"(id),
        "homeScore"           INTEGER NOT NULL,
        "awayScore"           INTEGER NOT NULL,
        "pointsEarned"        INTEGER,
        "isScored"            BOOLEAN NOT NULL DEFAULT FALSE,
        "scoredResultVersion" INTEGER,
        "scoredAt"            TIMESTAMPTZ,
        UNIQUE ("userId", "matchId", "leagueId")
    )
""")

CREATE_BONUS_QUESTION = text("""
    CREATE TABLE IF NOT EXISTS "BonusQuestion" (
        id             TEXT PRIMARY KEY,
        "tournamentId" TEXT NOT NULL,
        "questionType" TEXT NOT NULL DEFAULT 'Winner',
        question       TEXT NOT NULL DEFAULT '',
        "answerTeamId" TEXT,
        "answerText"   TEXT,
        "isResolved"   BOOLEAN NOT NULL DEFAULT FALSE,
        points         INTEGER NOT NULL DEFAULT 0
    )
""")

CREATE_BONUS_PREDICTION = text("""
    CREATE TABLE IF NOT EXISTS "BonusPrediction" (
        id                TEXT PRIMARY KEY,
        "userId"          TEXT NOT NULL,
        "bonusQuestionId" TEXT NOT NULL REFERENCES "BonusQuestion"(id),
        "leagueId"        TEXT NOT NULL REFERENCES "League"(id),
        "answerTeamId"    TEXT,
        "answerText"      TEXT,
        "pointsEarned"    INTEGER,
        UNIQUE ("userId", "bonusQuestionId", "leagueId")
    )
""")

CREATE_LEAGUE_STANDING = text("""
    CREATE TABLE IF NOT EXISTS "LeagueStanding" (
        id              TEXT PRIMARY KEY,
        "leagueId"      TEXT NOT NULL REFERENCES "League"(id),
        "userId"        TEXT NOT NULL,
        "matchPoints"   INTEGER NOT NULL DEFAULT 0,
        "bonusPoints"   INTEGER NOT NULL DEFAULT 0,
        "totalPoints"   INTEGER NOT NULL DEFAULT 0,
        rank            INTEGER NOT NULL DEFAULT 1,
        "previousRank"  INTEGER,
        "updatedAt"     TIMESTAMPTZ,
        UNIQUE ("leagueId", "userId")
    )
""")

ALL_TABLES = [
    CREATE_USER,
    CREATE_LEAGUE,
    CREATE_LEAGUE_SETTINGS,
    CREATE_MATCH,
    CREATE_PREDICTION,
    CREATE_BONUS_QUESTION,
    CREATE_BONUS_PREDICTION,
    CREATE_LEAGUE_STANDING,
]


def create_schema(db: Engine) -> None:
    with db.begin() as conn:
        for ddl in ALL_TABLES:
            conn.execute(ddl)
