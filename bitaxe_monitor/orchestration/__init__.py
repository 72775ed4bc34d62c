"""Session orchestration."""

from .runner import SessionThread
from .session import MonitorSession, MonitorSnapshot

__all__ = ["MonitorSession", "MonitorSnapshot", "SessionThread"]
