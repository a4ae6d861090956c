"""Domain services: analysis, profit, ranking, alerts, notification and sync."""

from .signals import SignalService

__all__ = ["SignalService"]
