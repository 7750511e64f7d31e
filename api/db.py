# db.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from config import DB_URL

if not DB_URL:
    raise RuntimeError("TIPLEAGUE_DB_URL is not set")

engine: Engine = create_engine(DB_URL, pool_pre_ping=True)
