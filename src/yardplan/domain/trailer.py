"""
Trailer specification models.

Coordinates along the trailer are metres measured from the nose (front wall)
towards the rear doors.
"""

from pydantic import BaseModel, Field, model_validator


class TrailerSpec(BaseModel):
    """
    Engine-usable trailer specification.

    slot_count is the hard ceiling on placed pallets; lane_count partitions
    those slots into parallel rows used for adjacency constraints.
    """

    interior_length_m: float = Field(..., gt=0)
    interior_width_m: float = Field(..., gt=0)
    interior_height_m: float = Field(..., gt=0)
    lane_count: int = Field(..., ge=1)
    slot_count: int = Field(..., ge=1)
    legal_weight_lbs: float = Field(..., gt=0)
    drive_axle_x: float
    trailer_axle_x: float
    target_forward_fraction: float = Field(default=0.5, ge=0, le=1)
    segregated_lanes: list[int] = Field(default_factory=list)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_layout(self) -> "TrailerSpec":
        if self.slot_count < self.lane_count:
            raise ValueError("slot_count must be at least lane_count")
        if self.trailer_axle_x <= self.drive_axle_x:
            raise ValueError("trailer_axle_x must lie behind drive_axle_x")
        for lane in self.segregated_lanes:
            if lane < 0 or lane >= self.lane_count:
                raise ValueError(f"segregated lane {lane} outside 0..{self.lane_count - 1}")
        if len(set(self.segregated_lanes)) != len(self.segregated_lanes):
            raise ValueError("segregated_lanes must not repeat")
        return self


class TrailerSpecPatch(BaseModel):
    """Partial trailer specification; missing fields come from defaults."""

    interior_length_m: float | None = Field(default=None, gt=0)
    interior_width_m: float | None = Field(default=None, gt=0)
    interior_height_m: float | None = Field(default=None, gt=0)
    lane_count: int | None = Field(default=None, ge=1)
    slot_count: int | None = Field(default=None, ge=1)
    legal_weight_lbs: float | None = Field(default=None, gt=0)
    drive_axle_x: float | None = None
    trailer_axle_x: float | None = None
    target_forward_fraction: float | None = Field(default=None, ge=0, le=1)
    segregated_lanes: list[int] | None = None
