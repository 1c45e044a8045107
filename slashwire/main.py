"""Console host for slashwire.

Initializes logging in two phases (defaults then config-driven), builds
the registry (built-ins plus commands.yaml) and an executor, then reads
slash commands from stdin and prints each CommandResult as one JSON line
on stdout. Shuts down gracefully on SIGTERM/SIGINT or end of input.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper that calls asyncio.run(main()).
"""

import asyncio
import json
import signal
import sys
import threading

import structlog

from .logging_config import setup_logging


def build_context(config, line: str):
    """CommandContext for the console actor described in settings.yaml."""
    from .exceptions import ConfigurationError
    from .models import ChannelType, CommandContext, Role

    try:
        role = Role(config.console_role)
    except ValueError:
        raise ConfigurationError(
            f"Unknown console role: {config.console_role}",
            setting_name="console.role",
        )
    try:
        channel_type = ChannelType(config.console_channel_type)
    except ValueError:
        raise ConfigurationError(
            f"Unknown console channel type: {config.console_channel_type}",
            setting_name="console.channel_type",
        )
    return CommandContext(
        user_id=config.console_user_id,
        username=config.console_user_id,
        role=role,
        channel_id=config.console_channel_id,
        channel_name=config.console_channel_id,
        channel_type=channel_type,
        raw_input=line,
    )


def _pump_stdin(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
    """Blocking stdin reader; runs in a daemon thread so exit never waits on it."""
    try:
        for line in sys.stdin:
            loop.call_soon_threadsafe(queue.put_nowait, line)
        loop.call_soon_threadsafe(queue.put_nowait, None)
    except RuntimeError:
        # Event loop already closed during shutdown
        return


async def _read_lines(executor, config, shutdown_event: asyncio.Event):
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    threading.Thread(target=_pump_stdin, args=(loop, queue), daemon=True).start()
    try:
        while not shutdown_event.is_set():
            line = await queue.get()
            if line is None:
                break
            line = line.strip()
            if not line:
                continue
            result = await executor.execute(line, build_context(config, line))
            print(json.dumps(result.to_dict(), default=str), flush=True)
    finally:
        shutdown_event.set()


async def main():
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("slashwire")

    from . import __version__
    logger.info("slashwire_starting", version=__version__)

    # Import here to ensure logging is configured first
    from .commands import CommandExecutor, CommandRegistry, load_custom_commands
    from .config import get_config

    config = get_config()
    config.validate()

    # Phase 2: reconfigure with real config, cache_logger_on_first_use=True
    setup_logging(config)

    # Fail fast on a bad console actor before reading any input
    build_context(config, "")

    registry = CommandRegistry.with_builtins(config)
    load_custom_commands(registry, config)
    executor = CommandExecutor(registry, config=config)
    logger.info("registry_ready", commands=len(registry))

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    try:
        reader = asyncio.create_task(_read_lines(executor, config, shutdown_event))
        await shutdown_event.wait()

        reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass

    except Exception as e:
        logger.error("console_error", error=str(e))
        raise
    finally:
        await executor.close()
        logger.info("slashwire_stopped")


def run():
    """Synchronous entry point for the ``slashwire`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
