"""Push fanout factory.

Provides get_fanout() / set_fanout() to swap implementations. The adapter is
chosen by the FANOUT_ADAPTER environment variable and defaults to FakeFanout.
"""

import os

from pickups.fanout.port import FanoutPort

_current_fanout: FanoutPort | None = None


def get_fanout() -> FanoutPort:
    """Return the active fanout adapter (singleton)."""
    global _current_fanout
    if _current_fanout is None:
        adapter = os.environ.get("FANOUT_ADAPTER", "fake")
        if adapter == "fake":
            from pickups.fanout.fake_adapter import FakeFanout

            _current_fanout = FakeFanout()
        else:
            raise ValueError(f"Unknown fanout adapter: {adapter}")
    return _current_fanout


def set_fanout(fanout: FanoutPort) -> None:
    """Override the active fanout adapter (useful for tests)."""
    global _current_fanout
    _current_fanout = fanout


def reset_fanout() -> None:
    """Reset to the default adapter."""
    global _current_fanout
    _current_fanout = None
