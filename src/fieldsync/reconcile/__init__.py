"""
Field reconciliation: diff analysis, the single-field engine, sequential
batches, the descriptor cache and outcome statistics.
"""

from fieldsync.reconcile.analyzer import ConfigurationAnalyzer, analyze_configuration
from fieldsync.reconcile.batch import BatchCoordinator
from fieldsync.reconcile.descriptor_cache import FieldDescriptorCache
from fieldsync.reconcile.engine import ReconcileState, ReconciliationEngine
from fieldsync.reconcile.stats import OperationStats

__all__ = [
    "ConfigurationAnalyzer",
    "analyze_configuration",
    "BatchCoordinator",
    "FieldDescriptorCache",
    "ReconcileState",
    "ReconciliationEngine",
    "OperationStats",
]
