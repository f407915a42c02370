"""
MajikRunway facade — one handle per business model.
"""

from .majik_runway import DashboardSnapshot, MajikRunway

__all__ = ["DashboardSnapshot", "MajikRunway"]
