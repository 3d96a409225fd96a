"""
Views Module - Black Box Interface

Purpose: Aggregated read-only views for operators
Interface: DashboardModule.index(), pods(), images(), create_dashboard_router()
Hidden: Composition of dispatched operations, per-section error collection

Presentation (HTML, terminal formatting) is left to the consumer.
"""

from .dashboard import Dashboard, DashboardModule, ImagesView, PodsView
from .router import create_dashboard_router

__all__ = ["Dashboard", "DashboardModule", "ImagesView", "PodsView", "create_dashboard_router"]
