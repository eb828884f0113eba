"""
Priority scheduler for geosentinel.

Keeps the gateway's active set to the nearest enabled regions, bounded by the
gateway's hard monitoring cap.

Features:
- Full stop-then-start recomputation (idempotent)
- Nearest-first prioritization by great-circle distance
- Radius clamping to [50, 2000] meters with diagnostics
- Coarse location/visit tracking in battery-saver mode
- Starvation diagnostics when enabled regions exceed the cap
"""

from .models import MonitoringPlan
from .module import SchedulerModule, select_active_regions

__all__ = [
    "SchedulerModule",
    "MonitoringPlan",
    "select_active_regions",
]
