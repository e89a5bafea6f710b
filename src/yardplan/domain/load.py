"""
Load domain models.

A load is a collection of identical pallets travelling together, plus the
cargo-compatibility constraints that govern where its pallets may sit.
"""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


ASSIGNED_STATUS = "ASSIGNED"
DEFAULT_LOAD_STATUS = "PLANNED"


class ConstraintKind(str, Enum):
    """
    Cargo-compatibility constraint kinds.

    Closed set; anything unrecognised normalises to UNKNOWN so that newer
    upstream values never reject a row.
    """

    NO_MIX = "NO_MIX"  # No foreign pallet adjacent
    NO_SPLIT = "NO_SPLIT"  # All pallets in one contiguous block, or none
    DIRECT_NO_TOUCH = "DIRECT_NO_TOUCH"  # No foreign pallet adjacent (hard)
    TEMP_CONTROLLED = "TEMP_CONTROLLED"  # Needs a segregated zone
    HAZMAT = "HAZMAT"  # Needs a segregated zone
    STACK_LIMITED = "STACK_LIMITED"  # At most one pallet per lane
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: Any) -> "ConstraintKind":
        """Normalise free text ("no-mix", "Hazmat ") to a constraint kind."""
        if isinstance(raw, cls):
            return raw
        text = re.sub(r"[\s\-]+", "_", str(raw).strip().upper())
        text = re.sub(r"[^A-Z_]", "", text)
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN

    @property
    def isolates(self) -> bool:
        """True for kinds that forbid foreign neighbours."""
        return self in (ConstraintKind.NO_MIX, ConstraintKind.DIRECT_NO_TOUCH)

    @property
    def needs_segregation(self) -> bool:
        """True for kinds that must ride in a reserved zone."""
        return self in (ConstraintKind.TEMP_CONTROLLED, ConstraintKind.HAZMAT)


class Load(BaseModel):
    """
    Freight load entity.

    Pallets and weight are always positive; a load without constraints has
    no placement restriction.
    """

    id: str = Field(..., min_length=1)
    load_number: str | None = None
    pallets: int = Field(..., ge=1)
    weight_lbs: float = Field(..., gt=0)
    cube_ft: float | None = None
    stop_window: str | None = None  # Opaque ordering key
    lane: str | None = None
    constraints: list[ConstraintKind] = Field(default_factory=list)
    destination_code: str | None = None
    trailer_id: str | None = None
    trailer_unit: str | None = None
    status: str = DEFAULT_LOAD_STATUS

    @field_validator("id")
    @classmethod
    def strip_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Load id must not be blank")
        return v

    @field_validator("constraints", mode="before")
    @classmethod
    def normalize_constraints(cls, v: Any) -> list[ConstraintKind]:
        """Accept None, a delimited string or a list; drop duplicates."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [part for part in re.split(r"[|,;]", v) if part.strip()]
        kinds = [ConstraintKind.parse(item) for item in v]
        return list(dict.fromkeys(kinds))

    @property
    def display_id(self) -> str:
        return self.load_number or self.id

    @property
    def pallet_weight_lbs(self) -> float:
        """Per-pallet share of the load weight."""
        return round(self.weight_lbs / self.pallets, 2)

    @property
    def is_assigned(self) -> bool:
        return bool(self.trailer_id)

    def has(self, kind: ConstraintKind) -> bool:
        return kind in self.constraints

    def isolates(self) -> bool:
        """True if the load forbids foreign neighbours."""
        return any(kind.isolates for kind in self.constraints)

    def needs_segregation(self) -> bool:
        """True if the load must ride in a segregated zone."""
        return any(kind.needs_segregation for kind in self.constraints)


class Trailer(BaseModel):
    """Physical trailer available for assignment."""

    id: str = Field(..., min_length=1)
    unit: str
    type: str
    status: str = "AVAILABLE"
