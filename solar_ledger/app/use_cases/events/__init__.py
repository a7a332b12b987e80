"""Ledger event delivery use cases"""
from .dispatch_events import DispatchEvents
from .dtos import DispatchResultDTO

__all__ = ["DispatchEvents", "DispatchResultDTO"]
