"""
API routers module.

This module contains all API route definitions organized by domain.
"""
from telehealth_svc.api.routers.audit import router as audit_router
from telehealth_svc.api.routers.channel import router as channel_router
from telehealth_svc.api.routers.collections import collection_routers
from telehealth_svc.api.routers.forms import router as forms_router
from telehealth_svc.api.routers.health import router as health_router
from telehealth_svc.api.routers.monitoring import router as monitoring_router

__all__ = [
    "audit_router",
    "channel_router",
    "collection_routers",
    "forms_router",
    "health_router",
    "monitoring_router",
]
