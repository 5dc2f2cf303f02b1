"""
Pydantic models for YAML job files.
Provides schema validation with clear error messages for batch job configurations.
"""

from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from mongo_batch.core.errors import InvalidArgumentError
from mongo_batch.core.models import DEFAULT_CHECKPOINT_PREFIX, BatchConfig, SortDirection


class JobSection(BaseModel):
    """Identity of a batch job and the callback it runs."""
    id: str = Field(..., description="Unique identifier for the job")
    name: str = Field(..., description="Human-readable name for the job")
    callback: str = Field("mongo_batch.main:log_document", description="Callback as 'module:function'")

    @field_validator('callback')
    @classmethod
    def validate_callback(cls, v):
        module, sep, func = v.partition(':')
        if not sep or not module.strip() or not func.strip():
            raise ValueError("callback must look like 'package.module:function'")
        return v


class SourceSection(BaseModel):
    """Where documents come from."""
    type: Literal["mongo", "memory"] = "mongo"
    uri: str = Field("mongodb://localhost:27017", description="MongoDB connection URI")
    database: Optional[str] = Field(None, description="Database name")
    collection: Optional[str] = Field(None, description="Collection name")
    documents: List[Dict[str, Any]] = Field(default_factory=list, description="Inline documents for type=memory")

    @model_validator(mode='after')
    def validate_mongo_target(self):
        if self.type == "mongo":
            missing = [name for name in ("database", "collection") if not (getattr(self, name) or "").strip()]
            if missing:
                raise ValueError(f'mongo source requires non-empty: {missing}')
        return self


class IterationSection(BaseModel):
    """What to iterate and how fast."""
    field: str = Field(..., min_length=1, description="Iteration field, e.g. _id")
    direction: Union[int, str] = Field(1, description="asc/desc or 1/-1")
    filter: Dict[str, Any] = Field(default_factory=dict, description="Mongo filter")
    projection: Optional[Union[Dict[str, Any], List[str]]] = Field(None, description="Projection")
    batch_size: int = Field(100, ge=2, description="Records between pauses")
    pause_s: float = Field(0.0, ge=0, le=3600, description="Pause after each batch in seconds")
    limit: Optional[int] = Field(None, ge=1, description="Maximum documents to process")
    count: bool = Field(True, description="Precompute total count (avoid on unindexed queries)")

    @field_validator('direction')
    @classmethod
    def validate_direction(cls, v):
        try:
            return SortDirection.parse(v).value
        except InvalidArgumentError as e:
            raise ValueError(str(e)) from e


class CheckpointSection(BaseModel):
    """Checkpoint backend and policy."""
    backend: Literal["none", "memory", "sqlite", "redis"] = "none"
    path: str = Field("output/checkpoints.db", description="SQLite file for backend=sqlite")
    url: str = Field("redis://localhost:6379/0", description="Redis URL for backend=redis")
    save_state: bool = Field(False, description="Persist the iteration position")
    ttl_seconds: int = Field(0, ge=0, description="Checkpoint expiry, 0 = never")
    prefix: str = Field(DEFAULT_CHECKPOINT_PREFIX, min_length=1, description="Checkpoint key prefix")
    clear_before: bool = Field(False, description="Delete the checkpoint before the run")
    clear_after: bool = Field(False, description="Delete the checkpoint after a successful run")

    @model_validator(mode='after')
    def validate_save_state_backend(self):
        if self.save_state and self.backend == "none":
            raise ValueError('checkpoint.save_state requires a checkpoint.backend')
        return self


class ScheduleConfig(BaseModel):
    """Configuration for scheduled execution."""
    enabled: bool = Field(False, description="Whether scheduling is enabled")
    interval_hours: int = Field(24, ge=1, le=168, description="Interval between runs in hours")


class BatchJobFile(BaseModel):
    """Root configuration model for batch jobs."""
    job: JobSection
    source: SourceSection
    iteration: IterationSection
    checkpoint: CheckpointSection = Field(default_factory=CheckpointSection)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)


def load_and_validate_config(config_path: str) -> BatchJobFile:
    """
    Load and validate a batch job configuration from YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated BatchJobFile object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If YAML is malformed or validation fails
    """
    import yaml

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}")

    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration in {config_path} must be a mapping")

    try:
        return BatchJobFile(**raw_config)
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            field_path = '.'.join(str(loc) for loc in error['loc'])
            error_messages.append(f"  {field_path}: {error['msg']}")

        raise ValueError(
            f"Configuration validation failed for {config_path}:\n" +
            '\n'.join(error_messages)
        ) from e


def config_to_batch_config(config: BatchJobFile) -> BatchConfig:
    """Convert a validated job file into a BatchConfig through its validating transforms."""
    it = config.iteration
    cp = config.checkpoint

    batch = (
        BatchConfig()
        .with_iteration_field(it.field, it.direction)
        .with_filter(it.filter)
        .with_projection(it.projection)
        .with_batch_size(it.batch_size)
        .with_pause(it.pause_s)
        .with_count(it.count)
        .with_save_state(cp.save_state, cp.ttl_seconds)
        .with_checkpoint_prefix(cp.prefix)
        .with_clear_before(cp.clear_before)
        .with_clear_after(cp.clear_after)
    )
    if it.limit is not None:
        batch = batch.with_limit(it.limit)
    return batch
