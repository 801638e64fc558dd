"""
Heimdall
========

A Discord bot that enforces staff-authored automod rules, keeps a decaying
infraction points ledger per member, and escalates repeat offenders through
configured tiers.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. HEIMDALL_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("HEIMDALL_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dataclasses import dataclass

import discord
from dotenv import load_dotenv

from heimdall.automod.rule_engine import RuleEngine
from heimdall.configuration.app_configuration import AppConfig, load_app_config
from heimdall.configuration.automod_settings import AutomodSettings
from heimdall.configuration.guild_settings import ModerationConfigManager
from heimdall.database.db_connection import ConnectionManager
from heimdall.services.automod_enforcer import AutomodEnforcer
from heimdall.services.discord_action_executor import DiscordActionExecutor
from heimdall.services.escalation_resolver import EscalationResolver
from heimdall.services.infraction_ledger import InfractionLedger
from heimdall.services.rule_store import RuleStore
from heimdall.util.logger import get_logger, handle_exception

logger = get_logger("main")


@dataclass
class Services:
    """Everything built at startup and shared by the cogs."""

    db: ConnectionManager
    config_manager: ModerationConfigManager
    rule_store: RuleStore
    ledger: InfractionLedger
    enforcer: AutomodEnforcer
    settings: AutomodSettings


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for message content, reactions and member join/update events."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.reactions = True
    intents.members = True
    return intents


async def build_services(bot: discord.Bot, app_config: AppConfig) -> Services:
    """Open the database and wire the automod services together."""
    db = ConnectionManager()
    await db.open(app_config.database_path)

    config_manager = ModerationConfigManager(db)
    await config_manager.load_from_disk()

    settings = app_config.automod
    rule_store = RuleStore(db, settings)
    ledger = InfractionLedger(db, config_manager)
    enforcer = AutomodEnforcer(
        config_manager=config_manager,
        rule_store=rule_store,
        rule_engine=RuleEngine(settings),
        ledger=ledger,
        resolver=EscalationResolver(config_manager, ledger),
        executor=DiscordActionExecutor(bot, config_manager),
    )
    return Services(
        db=db,
        config_manager=config_manager,
        rule_store=rule_store,
        ledger=ledger,
        enforcer=enforcer,
        settings=settings,
    )


def load_cogs(bot: discord.Bot, services: Services) -> None:
    """Register all operational cogs with the bot."""
    from heimdall.cog.commands import automod_cmds, infraction_cmds
    from heimdall.cog.listener import automod_listener

    automod_listener.setup(bot, services.enforcer)
    infraction_cmds.setup(bot, services.enforcer, services.ledger)
    automod_cmds.setup(bot, services.rule_store, services.config_manager, services.settings)

    logger.info("All cogs loaded successfully.")


async def async_main() -> int:
    """Bootstrap config, database, services and the bot, returning an exit code."""
    token = load_environment()
    app_config = load_app_config()
    bot = discord.Bot(intents=build_intents())

    try:
        logger.info("Opening database at %s...", app_config.database_path)
        services = await build_services(bot, app_config)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    load_cogs(bot, services)

    exit_code = 0
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        if not bot.is_closed():
            await bot.close()
        await services.db.close()
        logger.info("Shutdown complete.")

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Heimdall…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
