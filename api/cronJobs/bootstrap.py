# cronJobs/bootstrap.py
# Preamble for every cron entry point: api/ on sys.path, api/.env loaded and
# the standard log handler installed before a job imports the engine.
import os
import sys

API_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if API_ROOT not in sys.path:
    sys.path.insert(0, API_ROOT)

from dotenv import load_dotenv

load_dotenv(os.path.join(API_ROOT, ".env"))

from config import LOG_LEVEL
from utils.logSetup import configure_logging

configure_logging(LOG_LEVEL)

__all__ = ["API_ROOT"]
