"""
Pydantic schema for per-file resumption state
"""

import re
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

# Status files from other writers may carry nanosecond timestamps
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


class ResumptionState(BaseModel):
    """
    How far a single source file has been ingested.

    Serialized with the keys ``num_rows`` / ``last_row`` / ``updated_at`` so
    status files written by earlier versions of the tool keep working.
    """

    model_config = ConfigDict(populate_by_name=True)

    total_rows: int = Field(0, ge=0, alias="num_rows")
    cursor: int = Field(0, ge=0, alias="last_row")
    updated_at: Optional[datetime] = None

    @field_validator("updated_at", mode="before")
    @classmethod
    def truncate_nanoseconds(cls, v):
        """Keep microsecond precision of RFC 3339 timestamps"""
        if isinstance(v, str):
            return _EXTRA_FRACTION.sub(r"\1", v)
        return v
