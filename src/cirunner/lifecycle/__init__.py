"""
Runner lifecycle components.

The orchestrator lives in ``cirunner.lifecycle.orchestrator`` and is
imported from there; this package exports the components it wires together.
"""

from .jobs import SINGLE_JOB_REASON, JobActivityTracker
from .power import ACPI_REASON, PowerEventListener, is_power_event
from .signal_handler import TERMINATION_SIGNALS, SignalHandler
from .watchers import WATCHDOG_REASON, IdleWatcher, LongRunningJobWatchdog

__all__ = [
    "ACPI_REASON",
    "IdleWatcher",
    "JobActivityTracker",
    "LongRunningJobWatchdog",
    "PowerEventListener",
    "SINGLE_JOB_REASON",
    "SignalHandler",
    "TERMINATION_SIGNALS",
    "WATCHDOG_REASON",
    "is_power_event",
]
