"""
LabSync - data synchronization core for the lab teaching platform

Transport, TTL caching with stale-while-revalidate, an offline-tolerant
catalog service and a reactive store with filtered/sorted views.
"""

__version__ = "0.1.0"
__author__ = "LabSync Team"

from .container import Services, apply_logging_settings, build_services

__all__ = [
    "Services",
    "apply_logging_settings",
    "build_services",
]
