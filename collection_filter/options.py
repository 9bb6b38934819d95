"""Validated run options.

Accepts both the snake_case field names and the camelCase keys used by
JSON input files (``datasetIds``, ``outputLimit``, ...).
"""

from __future__ import annotations

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from collection_filter.errors import ConfigurationError


class RunOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    collection_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "collection_ids", "collectionIds", "datasetIds"
        ),
    )
    collection_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("collection_id", "collectionId", "datasetId"),
        description="Legacy single collection; appended to collection_ids.",
    )

    predicate: str | None = None
    transform: str | None = Field(
        default=None, validation_alias=AliasChoices("transform", "filterMap")
    )
    dedup_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("dedup_key", "dedupKey", "deduplicationKey"),
    )

    # Output
    buffer_limit: int = Field(
        default=50_000,
        gt=0,
        validation_alias=AliasChoices("buffer_limit", "bufferLimit"),
    )
    output_limit: int | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("output_limit", "outputLimit"),
    )
    output_offset: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("output_offset", "outputOffset"),
    )
    include_collection_id: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "include_collection_id", "includeCollectionId", "includeDatasetId"
        ),
    )

    # Loading
    parallel_loads: int = Field(
        default=1,
        gt=0,
        validation_alias=AliasChoices("parallel_loads", "parallelLoads"),
    )
    load_batch_size: int = Field(
        default=10_000,
        gt=0,
        validation_alias=AliasChoices("load_batch_size", "loadBatchSize"),
    )
    load_fields: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("load_fields", "loadFields"),
    )
    load_offset: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("load_offset", "loadOffset"),
    )
    load_limit: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("load_limit", "loadLimit"),
    )
    ordered: bool = True

    # Writer / transform tuning
    flush_interval: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("flush_interval", "flushInterval"),
    )
    flush_pause: float = Field(
        default=1.0,
        ge=0,
        validation_alias=AliasChoices("flush_pause", "flushPause"),
    )
    transform_timeout: float | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("transform_timeout", "transformTimeout"),
    )

    @model_validator(mode="after")
    def _merge_legacy_collection(self) -> RunOptions:
        if self.collection_id and self.collection_id not in self.collection_ids:
            self.collection_ids.append(self.collection_id)
        if not self.collection_ids:
            raise ValueError("at least one collection id is required")
        if any(not cid.strip() for cid in self.collection_ids):
            raise ValueError("collection ids must be non-empty strings")
        return self

    @classmethod
    def parse(cls, data: dict[str, Any]) -> RunOptions:
        """Validate *data*, raising :class:`ConfigurationError` on failure."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigurationError(details) from exc
