"""
Signal handling for the lifecycle module.

This module routes termination signals and unhandled asyncio errors to the
orchestrator as shutdown triggers.
"""

import asyncio
import logging
import signal
from typing import Any, Callable, Dict, List, Optional

from ..validation import FatalRuntimeError

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGINT, signal.SIGQUIT)


class SignalHandler:
    """
    Manages signal registration and cleanup for one event loop.

    Signals are delivered as ``on_signal(<signal name>)``; exceptions that
    reach the loop's exception handler as ``on_error(FatalRuntimeError)``.
    """

    def __init__(self, on_signal: Callable[[str], None],
                 on_error: Callable[[BaseException], None]):
        self.on_signal = on_signal
        self.on_error = on_error
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: List[signal.Signals] = []
        self._original_exception_handler = None

    def setup_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Install handlers for SIGTERM, SIGINT and SIGQUIT on ``loop``."""
        self._loop = loop
        for sig in TERMINATION_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
                self._installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.warning(f"Failed to set up handler for {sig.name}: {e}")
        self._original_exception_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_exception)
        logger.debug(f"Signal handlers set up for {', '.join(s.name for s in self._installed)}")

    def cleanup_signal_handlers(self) -> None:
        """Remove the installed handlers and restore the exception handler."""
        if self._loop is None:
            return
        for sig in self._installed:
            self._loop.remove_signal_handler(sig)
        self._loop.set_exception_handler(self._original_exception_handler)
        self._installed = []
        self._loop = None
        logger.debug("Signal handlers restored")

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.warning(f"Signal {sig.name} received")
        self.on_signal(sig.name)

    def _handle_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exception = context.get("exception")
        message = context.get("message", "unhandled error")
        if exception is None:
            error = FatalRuntimeError(message)
        else:
            error = FatalRuntimeError(f"{message}: {exception!r}")
            error.__cause__ = exception
        self.on_error(error)
