"""
fieldsync - idempotent reconciliation of remote table fields.

Declare the fields a table should have; fieldsync creates what is missing,
updates what drifted and reports what it left alone::

    from fieldsync import BatchCoordinator, FieldConfiguration, TableRef, build_engine

    engine = build_engine()
    table = TableRef.parse("bascnXXXX:tblYYYY")
    batch = BatchCoordinator(engine).ensure_many(table, [
        FieldConfiguration(name="Status", type_code=3, ui_type="SingleSelect",
                           properties={"options": [{"name": "Want"}, {"name": "Read"}]}),
    ])
"""

__version__ = "0.1.0"

from fieldsync.core.errors import (  # noqa: E402
    ConfigurationMismatchError,
    FieldNotFoundError,
    FieldOperationError,
    FieldSyncError,
    InvalidOptionsError,
    OperationCancelledError,
)
from fieldsync.execution.cancellation import CancellationToken  # noqa: E402
from fieldsync.factory import build_engine  # noqa: E402
from fieldsync.gateway import (  # noqa: E402
    BitableFieldGateway,
    InMemoryFieldGateway,
    RemoteFieldGateway,
)
from fieldsync.models import (  # noqa: E402
    BatchResult,
    ConfigurationDifference,
    ConflictResolution,
    FieldConfiguration,
    FieldDescriptor,
    FieldType,
    MatchAnalysis,
    OperationOptions,
    OperationResult,
    OperationStrategy,
    OperationType,
    PlannedOperation,
    TableRef,
)
from fieldsync.reconcile import (  # noqa: E402
    BatchCoordinator,
    ConfigurationAnalyzer,
    FieldDescriptorCache,
    OperationStats,
    ReconciliationEngine,
    analyze_configuration,
)

__all__ = [
    "__version__",
    "build_engine",
    "ReconciliationEngine",
    "BatchCoordinator",
    "ConfigurationAnalyzer",
    "analyze_configuration",
    "FieldDescriptorCache",
    "OperationStats",
    "CancellationToken",
    "RemoteFieldGateway",
    "BitableFieldGateway",
    "InMemoryFieldGateway",
    "TableRef",
    "FieldType",
    "FieldDescriptor",
    "FieldConfiguration",
    "ConfigurationDifference",
    "MatchAnalysis",
    "OperationOptions",
    "OperationStrategy",
    "ConflictResolution",
    "OperationType",
    "OperationResult",
    "BatchResult",
    "PlannedOperation",
    "FieldSyncError",
    "FieldOperationError",
    "InvalidOptionsError",
    "OperationCancelledError",
    "FieldNotFoundError",
    "ConfigurationMismatchError",
]
