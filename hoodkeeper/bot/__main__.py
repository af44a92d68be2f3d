"""
hoodkeeper.bot.__main__ — Entry point for ``python -m hoodkeeper.bot``
======================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (role hierarchy, sync tuning).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Create the HoodkeeperBot and hand it config + engine.
5. Start the bot (blocking — runs the asyncio event loop).
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from hoodkeeper.bot.core import HoodkeeperBot
from hoodkeeper.config import load_config
from hoodkeeper.database.engine import create_db_engine, init_db
from hoodkeeper.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("hoodkeeper")


def main() -> None:
    """Bootstrap and run the Hoodkeeper bot."""
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    try:
        cfg = load_config(os.getenv("HOODKEEPER_CONFIG", "config.yaml"))
        engine = create_db_engine()
    except ConfigurationError as exc:
        logger.critical("%s", exc.message)
        sys.exit(1)

    logger.info("Config loaded — Community: %s", cfg.community_name)
    if not cfg.guild_id:
        logger.warning("guild_id is not set in config.yaml; roster sync will stay idle.")

    init_db(engine)

    bot = HoodkeeperBot(cfg=cfg, engine=engine)

    logger.info("Starting Hoodkeeper bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
