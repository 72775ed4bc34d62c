"""Core package for monitoring one or more Bitaxe miners."""

__all__ = ["api", "devices", "gui", "io", "orchestration", "polling", "telemetry"]
__version__ = "0.1.0"
