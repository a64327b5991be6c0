from datetime import datetime
from math import ceil
from uuid import UUID

from pydantic import BaseModel, ConfigDict, computed_field


class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class TimestampedSchema(BaseSchema):
    id: UUID
    created_at: datetime
    updated_at: datetime


class AuditedSchema(TimestampedSchema):
    created_by: UUID | None = None
    updated_by: UUID | None = None


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total: int

    @computed_field
    @property
    def pages(self) -> int:
        return ceil(self.total / self.page_size) if self.page_size else 0
