import argparse
import os
import sys

from dotenv import load_dotenv
from sqlalchemy import create_engine

from schema import create_schema


def arg_or_env(args, arg_name: str, env_name: str):
    val = getattr(args, arg_name)
    if val is not None:
        return val

    env_val = os.getenv(env_name)
    if env_val is not None:
        return env_val

    print(f"Missing required value: --{arg_name.upper()} or env {env_name}")
    sys.exit(1)


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(description="Create the standings tables if missing")
    parser.add_argument("--DB_URL")
    args = parser.parse_args()

    db_url = arg_or_env(args, "DB_URL", "TIPLEAGUE_DB_URL")
    engine = create_engine(db_url, pool_pre_ping=True)

    create_schema(engine)
    print(f"Schema ready on {engine.url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    main()


# PYTHONPATH=. python3 scripts/create_schema.py --DB_URL "sqlite:///tipleague.db"
