import asyncio
import logging
import signal
from typing import Iterable

logger = logging.getLogger(__name__)

TERM_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class TerminationWatcher:
    """Completes once, with the first termination signal the process receives."""

    def __init__(self, signals: Iterable[int] = TERM_SIGNALS):
        self.signals = tuple(signals)

    async def wait(self) -> int:
        loop = asyncio.get_event_loop()
        received: asyncio.Future = loop.create_future()

        def handle_signal(sig):
            if not received.done():
                logger.info(f"Received signal {signal.Signals(sig).name}, shutting down...")
                received.set_result(sig)

        for sig in self.signals:
            loop.add_signal_handler(sig, handle_signal, sig)
        try:
            return await received
        finally:
            for sig in self.signals:
                loop.remove_signal_handler(sig)
