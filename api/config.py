# config.py
import os

from dotenv import load_dotenv

load_dotenv()

DB_URL = os.getenv("TIPLEAGUE_DB_URL")
LOG_LEVEL = os.getenv("TIPLEAGUE_LOG_LEVEL", "INFO")

# Rank recompute fan-out across leagues. 1 keeps it sequential.
RANK_WORKERS = int(os.getenv("STANDINGS_RANK_WORKERS", "1"))

# Read-modify-write attempts before a scoring pass gives up on a conflict.
MAX_ATTEMPTS = int(os.getenv("STANDINGS_MAX_ATTEMPTS", "3"))
