"""
Data model for field reconciliation.

Live descriptors come from the remote API and use its wire names
(``field_id``, ``field_name``, ``type``, ``ui_type``, ``property``); models
accept both the wire names and the Python attribute names.

::

    FieldDescriptor      live, remote-owned snapshot of one column
    FieldConfiguration   desired state, matched to live fields by name
    MatchAnalysis        scored, itemized diff + recommended action
    OperationOptions     strategy / conflict policy / retry / pacing knobs
    OperationResult      outcome of one reconciliation
    BatchResult          outcome of a sequential batch
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from fieldsync.core.errors import InvalidOptionsError


class FieldType(IntEnum):
    """Known remote type codes. Unknown codes are still accepted as plain ints."""

    TEXT = 1
    NUMBER = 2
    SINGLE_SELECT = 3
    MULTI_SELECT = 4
    DATE_TIME = 5
    CHECKBOX = 7
    URL = 15


class Severity(str, Enum):
    CRITICAL = "critical"
    MINOR = "minor"


class RecommendedAction(str, Enum):
    NO_ACTION = "no_action"
    UPDATE_FIELD = "update_field"
    RECREATE_FIELD = "recreate_field"


class OperationStrategy(str, Enum):
    CREATE_ONLY = "create_only"
    UPDATE_ONLY = "update_only"
    ENSURE_CORRECT = "ensure_correct"


class ConflictResolution(str, Enum):
    UPDATE_EXISTING = "update_existing"
    THROW_ERROR = "throw_error"
    SKIP_OPERATION = "skip_operation"


class OperationType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class PlannedAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    UNCHANGED = "unchanged"
    SKIP = "skip"
    ERROR = "error"


# ── Table & fields ───────────────────────────────────────────────────────


class TableRef(BaseModel):
    """Identity of a remote table: the app (base) token plus the table id."""

    model_config = ConfigDict(frozen=True)

    app_token: str = Field(min_length=1)
    table_id: str = Field(min_length=1)

    @property
    def key(self) -> str:
        return f"{self.app_token}:{self.table_id}"

    @classmethod
    def parse(cls, value: str) -> TableRef:
        """Parse ``"app_token:table_id"``."""
        app_token, sep, table_id = value.partition(":")
        if not sep or not app_token or not table_id:
            raise ValueError(f"table must look like APP_TOKEN:TABLE_ID, got {value!r}")
        return cls(app_token=app_token, table_id=table_id)

    def __str__(self) -> str:
        return self.key


def _description_text(value: Any) -> Any:
    # The remote sends descriptions either as plain text or as {"text": ...}
    if isinstance(value, Mapping):
        return value.get("text")
    return value


class FieldDescriptor(BaseModel):
    """Live snapshot of one remote field. Replaced wholesale on refetch."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(alias="field_id", min_length=1)
    name: str = Field(alias="field_name", min_length=1)
    type_code: int = Field(alias="type")
    ui_type: str = ""
    is_primary: bool = False
    properties: dict[str, Any] = Field(default_factory=dict, alias="property")
    description: str | None = None

    @field_validator("properties", mode="before")
    @classmethod
    def _null_properties(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("description", mode="before")
    @classmethod
    def _unwrap_description(cls, value: Any) -> Any:
        return _description_text(value)

    def to_configuration(self) -> FieldConfiguration:
        """Desired-state equivalent of this live field."""
        return FieldConfiguration(
            name=self.name,
            type_code=self.type_code,
            ui_type=self.ui_type,
            properties=dict(self.properties),
            description=self.description,
        )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with remote field names (also the cache format)."""
        return self.model_dump(by_alias=True, mode="json")


class FieldConfiguration(BaseModel):
    """Caller-owned desired state of a field, matched by exact name."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str = Field(alias="field_name", min_length=1)
    type_code: int = Field(alias="type")
    ui_type: str = Field(min_length=1)
    properties: dict[str, Any] = Field(default_factory=dict, alias="property")
    description: str | None = None

    @field_validator("properties", mode="before")
    @classmethod
    def _null_properties(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("description", mode="before")
    @classmethod
    def _unwrap_description(cls, value: Any) -> Any:
        return _description_text(value)

    def to_payload(self) -> dict[str, Any]:
        """Request body for the create/update field endpoints."""
        payload: dict[str, Any] = {
            "field_name": self.name,
            "type": self.type_code,
            "ui_type": self.ui_type,
        }
        if self.properties:
            payload["property"] = self.properties
        if self.description is not None:
            payload["description"] = {"text": self.description}
        return payload


# ── Analysis ─────────────────────────────────────────────────────────────


class ConfigurationDifference(BaseModel):
    """One itemized difference between a live field and its desired state."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    property: str
    from_value: Any = Field(default=None, alias="from")
    to_value: Any = Field(default=None, alias="to")
    severity: Severity
    description: str | None = None


class MatchAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_full_match: bool
    differences: list[ConfigurationDifference] = Field(default_factory=list)
    match_score: float = Field(ge=0.0, le=1.0)
    recommended_action: RecommendedAction

    @property
    def critical_differences(self) -> list[ConfigurationDifference]:
        return [d for d in self.differences if d.severity is Severity.CRITICAL]

    @property
    def minor_differences(self) -> list[ConfigurationDifference]:
        return [d for d in self.differences if d.severity is Severity.MINOR]


# ── Options ──────────────────────────────────────────────────────────────


class OperationOptions(BaseModel):
    """Caller-chosen policies for a reconciliation or batch.

    camelCase keys are accepted so option dicts written for the remote
    tooling (``conflictResolution``, ``maxRetries``, ``operationDelay``) work
    unchanged.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    strategy: OperationStrategy = OperationStrategy.ENSURE_CORRECT
    conflict_resolution: ConflictResolution = Field(
        default=ConflictResolution.UPDATE_EXISTING,
        validation_alias=AliasChoices("conflict_resolution", "conflictResolution"),
    )
    skip_cache: bool = Field(
        default=False,
        validation_alias=AliasChoices("skip_cache", "skipCache"),
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=5,
        validation_alias=AliasChoices("max_retries", "maxRetries"),
    )
    operation_delay_ms: int = Field(
        default=1000,
        ge=0,
        le=10_000,
        validation_alias=AliasChoices(
            "operation_delay_ms", "operationDelayMs", "operationDelay"
        ),
    )
    enable_detailed_logging: bool = Field(
        default=True,
        validation_alias=AliasChoices("enable_detailed_logging", "enableDetailedLogging"),
    )

    @model_validator(mode="after")
    def _reject_inconsistent_policies(self) -> OperationOptions:
        if (
            self.strategy is OperationStrategy.UPDATE_ONLY
            and self.conflict_resolution is ConflictResolution.THROW_ERROR
        ):
            raise ValueError(
                "strategy 'update_only' cannot be combined with "
                "conflict_resolution 'throw_error'"
            )
        return self


def resolve_options(
    options: OperationOptions | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> OperationOptions:
    """Validate caller options, raising InvalidOptionsError on any violation."""
    if isinstance(options, OperationOptions) and not overrides:
        return options
    if isinstance(options, OperationOptions):
        data: dict[str, Any] = options.model_dump()
    else:
        data = dict(options or {})
    data.update(overrides)
    try:
        return OperationOptions.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidOptionsError(f"Invalid operation options: {problems}", cause=exc) from exc


# ── Results ──────────────────────────────────────────────────────────────


class OperationMetadata(BaseModel):
    retry_count: int = Field(default=0, ge=0)
    cache_hit: bool = False
    api_call_count: int = Field(default=1, ge=0)


class OperationResult(BaseModel):
    field: FieldDescriptor
    operation: OperationType
    changes: list[ConfigurationDifference] = Field(default_factory=list)
    processing_time_ms: float = Field(ge=0)
    warnings: list[str] = Field(default_factory=list)
    metadata: OperationMetadata = Field(default_factory=OperationMetadata)


class BatchSummary(BaseModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    total_processing_time_ms: float = 0.0
    average_processing_time_ms: float = 0.0


class BatchFailure(BaseModel):
    field_name: str
    error: str
    retry_count: int = 0


class BatchResult(BaseModel):
    """Aggregate of a sequential batch. ``results`` holds successes only."""

    results: list[OperationResult] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)
    failures: list[BatchFailure] = Field(default_factory=list)
    total_execution_time_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.summary.failed == 0


class PlannedOperation(BaseModel):
    """What a reconciliation would do, computed without mutating anything."""

    field_name: str
    action: PlannedAction
    analysis: MatchAnalysis | None = None
    reason: str = ""


class OperationStatsSnapshot(BaseModel):
    total_operations: int = 0
    created_count: int = 0
    updated_count: int = 0
    unchanged_count: int = 0
    failed_count: int = 0
    average_processing_time_ms: float = 0.0
    success_rate: float = 0.0
    operation_type_distribution: dict[str, int] = Field(default_factory=dict)
    last_operation_time: datetime | None = None


class HealthReport(BaseModel):
    status: str
    api_connectivity: bool | None = None
    cache_connectivity: bool
    last_successful_operation: datetime | None = None


__all__ = [
    "FieldType",
    "Severity",
    "RecommendedAction",
    "OperationStrategy",
    "ConflictResolution",
    "OperationType",
    "PlannedAction",
    "TableRef",
    "FieldDescriptor",
    "FieldConfiguration",
    "ConfigurationDifference",
    "MatchAnalysis",
    "OperationOptions",
    "resolve_options",
    "OperationMetadata",
    "OperationResult",
    "BatchSummary",
    "BatchFailure",
    "BatchResult",
    "PlannedOperation",
    "OperationStatsSnapshot",
    "HealthReport",
]
