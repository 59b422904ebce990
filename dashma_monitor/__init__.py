"""Background host monitoring for the Dashma start page."""

from .models import MonitorTarget, ProbeResult, StatusRecord
from .service import MonitorService
from .status_cache import StatusCache

__all__ = ["MonitorService", "MonitorTarget", "ProbeResult", "StatusCache", "StatusRecord"]
