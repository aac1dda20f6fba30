"""
Lightweight DTO models used as typed contracts across the intake pipeline.
"""

from __future__ import annotations

from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, model_validator


class ValidatedIntent(BaseModel):
    """
    Base for schema-generated intent models.

    Concrete subclasses are compiled from a versioned schema file by
    ``SchemaValidator``; instances are immutable.
    """

    model_config = ConfigDict(frozen=True)

    schema_version: ClassVar[str] = ""


class FieldViolation(BaseModel):
    """
    A single schema violation: dotted field path plus readable message.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class SafeExtractionResult(BaseModel):
    """
    Non-raising extraction outcome.

    ``valid=True`` carries data and no errors; ``valid=False`` carries no data.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: list[FieldViolation] = Field(default_factory=list)
    data: Optional[SerializeAsAny[ValidatedIntent]] = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> "SafeExtractionResult":
        if self.valid and (self.data is None or self.errors):
            raise ValueError("valid result requires data and no errors")
        if not self.valid and self.data is not None:
            raise ValueError("invalid result must not carry data")
        return self

    @classmethod
    def success(cls, data: ValidatedIntent) -> "SafeExtractionResult":
        return cls(valid=True, errors=[], data=data)

    @classmethod
    def failure(cls, errors: list[FieldViolation]) -> "SafeExtractionResult":
        return cls(valid=False, errors=errors, data=None)


class ChunkSpec(BaseModel):
    """
    Controls whether a staging batch is split into fixed-size chunks.
    """

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=500, gt=0)
    use_chunking: bool = False


class WriteResult(BaseModel):
    """
    Outcome of a staging write; also attached to ``PartialWriteFailure``.
    """

    chunks_total: int = 0
    chunks_completed: int = 0
    records_written: int = 0


class ReconciliationResult(BaseModel):
    """
    Rows affected by a merge routine as reported by the store.
    """

    model_config = ConfigDict(frozen=True)

    rows_affected: int = Field(default=0, ge=0)
