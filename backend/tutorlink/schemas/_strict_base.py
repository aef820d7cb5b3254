"""Schema bases that reject unknown fields."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Response base; extra fields are an error."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request base; clients sending unexpected fields get a 422."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class OrmResponseModel(StrictModel):
    """Response built straight from an ORM row."""

    model_config = ConfigDict(extra="forbid", from_attributes=True)
