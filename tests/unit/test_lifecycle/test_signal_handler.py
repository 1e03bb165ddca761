"""
Unit tests for signal handling.
"""

import asyncio
import signal
from unittest.mock import Mock

import pytest

from cirunner.lifecycle.signal_handler import TERMINATION_SIGNALS, SignalHandler
from cirunner.validation import FatalRuntimeError


@pytest.mark.unit
class TestSignalHandler:
    """Test cases for SignalHandler."""

    def test_setup_registers_termination_signals(self):
        loop = Mock()
        loop.get_exception_handler.return_value = None
        handler = SignalHandler(on_signal=Mock(), on_error=Mock())

        handler.setup_signal_handlers(loop)

        registered = [call.args[0] for call in loop.add_signal_handler.call_args_list]
        assert registered == list(TERMINATION_SIGNALS)
        loop.set_exception_handler.assert_called_once_with(handler._handle_exception)

    def test_cleanup_restores_previous_state(self):
        loop = Mock()
        original = Mock()
        loop.get_exception_handler.return_value = original
        handler = SignalHandler(on_signal=Mock(), on_error=Mock())
        handler.setup_signal_handlers(loop)

        handler.cleanup_signal_handlers()

        removed = [call.args[0] for call in loop.remove_signal_handler.call_args_list]
        assert removed == list(TERMINATION_SIGNALS)
        loop.set_exception_handler.assert_called_with(original)

    def test_unsupported_signal_is_skipped(self):
        loop = Mock()
        loop.get_exception_handler.return_value = None
        loop.add_signal_handler.side_effect = [NotImplementedError("no"), None, None]
        handler = SignalHandler(on_signal=Mock(), on_error=Mock())

        handler.setup_signal_handlers(loop)
        handler.cleanup_signal_handlers()

        assert loop.remove_signal_handler.call_count == len(TERMINATION_SIGNALS) - 1

    def test_signal_is_reported_by_name(self):
        on_signal = Mock()
        handler = SignalHandler(on_signal=on_signal, on_error=Mock())

        handler._handle_signal(signal.SIGTERM)

        on_signal.assert_called_once_with("SIGTERM")

    def test_unhandled_exception_becomes_fatal_error(self):
        on_error = Mock()
        handler = SignalHandler(on_signal=Mock(), on_error=on_error)
        cause = RuntimeError("callback blew up")

        handler._handle_exception(Mock(), {"message": "Exception in callback", "exception": cause})

        error = on_error.call_args.args[0]
        assert isinstance(error, FatalRuntimeError)
        assert error.__cause__ is cause

    @pytest.mark.asyncio
    async def test_real_signal_reaches_callback(self):
        received = asyncio.Event()
        names = []

        def on_signal(name):
            names.append(name)
            received.set()

        handler = SignalHandler(on_signal=on_signal, on_error=Mock())
        handler.setup_signal_handlers(asyncio.get_running_loop())
        try:
            signal.raise_signal(signal.SIGQUIT)
            await asyncio.wait_for(received.wait(), timeout=5)
        finally:
            handler.cleanup_signal_handlers()

        assert names == ["SIGQUIT"]
