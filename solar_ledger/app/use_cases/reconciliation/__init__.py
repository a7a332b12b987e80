"""Generation reconciliation use cases"""
from .reconcile_generation import ReconcileGeneration
from .apply_true_up import ApplyTrueUp
from .dtos import ReconciliationResponseDTO, TrueUpAdjustmentDTO, TrueUpResultDTO

__all__ = [
    "ReconcileGeneration",
    "ApplyTrueUp",
    "ReconciliationResponseDTO",
    "TrueUpAdjustmentDTO",
    "TrueUpResultDTO",
]
