"""TagAll — Main entry point."""

import asyncio
import logging
import os
import signal

from .config import TagallSettings, load_settings
from .commands.dispatcher import CommandDispatcher
from .security import AuthorizationGate
from .store import TagStore
from .transport.wacli import WacliTransport

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("tagall")


def setup_logging(settings: TagallSettings):
    logging.basicConfig(
        level=logging.INFO,
        format=_log_format,
        handlers=[
            logging.StreamHandler(),                                                  # stderr (console)
            logging.FileHandler(os.path.expanduser(settings.log_file), encoding="utf-8"),
        ],
    )
    if settings.debug:
        logger.setLevel(logging.DEBUG)


def build_dispatcher(settings: TagallSettings, transport) -> CommandDispatcher:
    """Wire the store, gate and dispatcher for a transport."""
    timeout = settings.collaborator_timeout or None
    store = TagStore(settings.data_file)
    gate = AuthorizationGate(transport, timeout=timeout)
    return CommandDispatcher(store, transport, gate=gate, timeout=timeout)


async def run(settings: TagallSettings | None = None):
    """Main run loop."""
    settings = settings or load_settings()
    transport = WacliTransport(
        wacli_path=settings.wacli_path,
        store_dir=settings.wacli_store_dir,
        poll_interval=settings.poll_interval,
        command_timeout=settings.collaborator_timeout,
    )
    dispatcher = build_dispatcher(settings, transport)
    logger.info(f"Tag registry: {dispatcher.store.path} ({len(dispatcher.store)} tag(s))")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # Windows

    try:
        if not await transport.start(dispatcher.on_message):
            logger.error("WhatsApp bridge failed to start.")
            return
        logger.info('TagAll bot is running. Send "tagall!" in any group where you are admin.')
        await stop_event.wait()
        logger.info("Shutting down bot...")
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
    finally:
        await transport.stop()


def main():
    """Entry point."""
    settings = load_settings()
    setup_logging(settings)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
