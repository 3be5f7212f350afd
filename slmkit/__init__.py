"""Host-side tooling for a serial LTE modem driven by AT commands."""

__version__ = "0.1.0"

__all__ = ["host", "monitor", "settings", "shell", "util"]