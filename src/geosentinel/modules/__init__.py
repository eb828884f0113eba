"""
Modules package for geosentinel.

Modules are the behavioral units attached to the service.
"""

from geosentinel.modules.base import GeofenceModule

__all__ = ["GeofenceModule"]
