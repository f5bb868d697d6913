"""
Dashboard search schemas: the query body and the tabular result frame.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from .common import CamelModel


class DashboardQuery(CamelModel):
    query: str = ""
    location: str = ""
    sort: str = ""
    tags: list[str] = Field(default_factory=list)
    kind: list[str] = Field(default_factory=list)
    uid: list[str] = Field(default_factory=list)
    explain: bool = False
    with_allowed_actions: bool = False
    from_: int = Field(default=0, ge=0, alias="from")
    limit: Optional[int] = Field(default=None, ge=0)


class FrameField(BaseModel):
    name: str
    type: str = "string"


class ResultFrame(BaseModel):
    """One named result set, stored column-wise."""

    name: str
    fields: list[FrameField] = Field(default_factory=list)
    values: list[list[Any]] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_columns(self) -> "ResultFrame":
        if len(self.values) != len(self.fields):
            raise ValueError(
                f"frame {self.name!r} has {len(self.fields)} fields "
                f"but {len(self.values)} value columns"
            )
        lengths = {len(column) for column in self.values}
        if len(lengths) > 1:
            raise ValueError(f"frame {self.name!r} has ragged columns")
        return self

    @property
    def row_count(self) -> int:
        return len(self.values[0]) if self.values else 0

    def to_wire(self) -> dict[str, Any]:
        """Serialize as {"schema": ..., "data": {"values": ...}}."""
        return {
            "schema": {
                "name": self.name,
                "fields": [f.model_dump() for f in self.fields],
            },
            "data": {"values": self.values},
        }


LOADING_FRAME_NAME = "Loading"


def loading_frame() -> ResultFrame:
    """Placeholder frame returned while search is not ready."""
    return ResultFrame(name=LOADING_FRAME_NAME)
