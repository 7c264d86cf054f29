# brainstorm_bot/cli.py
"""
Command-line entry point.

Reads ``user: message`` lines from stdin (or plays a short scripted session
with ``--demo``) through an in-memory chat, printing whatever the bot says.
SIGINT/SIGTERM stop the bot after in-flight messages have been handled.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from .bot import ProactiveBrainstormBot
from .config import BotSettings, load_settings
from .exceptions import ConfigurationError
from .transport import InMemoryChatInterface

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ("chuk_llm", "httpx", "httpcore")

DEMO_SCRIPT = [
    ("alice", "Let's review the Series A terms for the fintech startup."),
    ("bob", "Their ARR is growing 20% month over month and burn is under control."),
    ("carol", "Did anyone watch the game last night?"),
    ("bob", "Yeah, and the weather this weekend looks great for a barbecue."),
    ("alice", "@bot what do you think about their valuation?"),
    ("carol", "Bot, be quiet for a while."),
]


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="brainstorm-bot", description="Proactive brainstorming assistant")
    parser.add_argument("--demo", action="store_true", help="Play a scripted conversation and exit")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL (DEBUG, INFO, WARNING, ...)")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def parse_line(line: str) -> Optional[tuple[str, str]]:
    """Split ``user: message``; lines without a user are attributed to ``user``."""
    line = line.strip()
    if not line:
        return None
    user, sep, content = line.partition(":")
    if not sep or not user.strip() or " " in user.strip():
        return "user", line
    content = content.strip()
    return (user.strip(), content) if content else None


def print_replies(chat: InMemoryChatInterface, already_printed: int) -> int:
    for outgoing in chat.sent_messages[already_printed:]:
        print(f"bot> {outgoing.content}", flush=True)
    return len(chat.sent_messages)


async def run_demo(bot: ProactiveBrainstormBot, chat: InMemoryChatInterface) -> None:
    printed = 0
    for user_id, content in DEMO_SCRIPT:
        print(f"{user_id}> {content}", flush=True)
        chat.simulate_message(user_id, content)
        await bot.wait_until_idle()
        printed = print_replies(chat, printed)


async def run_stdin(bot: ProactiveBrainstormBot, chat: InMemoryChatInterface) -> None:
    loop = asyncio.get_running_loop()
    printed = 0
    while bot.is_running:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        parsed = parse_line(line)
        if parsed is None:
            continue
        chat.simulate_message(*parsed)
        await bot.wait_until_idle()
        printed = print_replies(chat, printed)
        if bot.fatal_error is not None:
            break


async def run(settings: BotSettings, demo: bool) -> int:
    chat = InMemoryChatInterface()
    bot = ProactiveBrainstormBot(settings, chat=chat)
    await bot.start()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(bot.stop()))
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    try:
        if demo:
            await run_demo(bot, chat)
        else:
            await run_stdin(bot, chat)
    finally:
        if bot.is_running:
            await bot.stop()

    metrics = bot.get_metrics()
    logger.info(
        "Processed %d messages, %d interventions, %d summons, %d errors",
        metrics.messages_processed, metrics.interventions_made, metrics.summons_handled, metrics.error_count,
    )
    if bot.fatal_error is not None:
        logger.error("Stopped after fatal error: %s", bot.fatal_error)
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        configure_logging(args.log_level or "INFO")
        logger.error("Configuration error: %s", exc)
        return 1

    configure_logging(args.log_level or settings.log_level)
    try:
        return asyncio.run(run(settings, args.demo))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
