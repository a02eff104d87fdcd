#!/usr/bin/env python3
"""Wipe the game database and reseed the default teams and round 1.

Every participant, batch, joke and purchase is deleted; players must join
again afterwards. Use ``--yes`` to skip the confirmation prompt.
"""

from __future__ import annotations

import argparse
import logging
import sys

# Ensure the project package is importable when the script is executed directly.
if __name__ == "__main__" and __package__ is None:
    sys.path.append(".")

from joke_factory.database import Base, SessionLocal, engine  # noqa: E402
import joke_factory.models  # noqa: E402,F401
from joke_factory.data.game_store import GameStore  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("reset_game")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    return parser.parse_args(argv)


def reset_game() -> dict:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        return GameStore(db).reset()
    finally:
        db.close()


def main(argv=None) -> int:
    args = _parse_args(argv)
    if not args.yes:
        answer = input(f"Reset the game stored at {engine.url}? [y/N] ")
        if answer.strip().lower() not in {"y", "yes"}:
            logger.info("Aborted; nothing changed.")
            return 1
    result = reset_game()
    logger.info(
        "Game reset. Active round id %s, state version %s.",
        result["active_round_id"],
        result["state_version"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
