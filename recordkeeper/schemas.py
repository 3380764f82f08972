"""
Pydantic schemas and transfer objects used across the data-access layer.
"""

from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from recordkeeper.config.constants import SearchOperator, SearchOrder
from recordkeeper.utils.column_types import ColumnTypeGroup, get_group

T = TypeVar("T")


# =============================================================================
# Search
# =============================================================================


class SearchParameter(BaseModel):
    """One (field, operator, value) filter of a search request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    key: str
    value: Optional[str] = None
    operator: SearchOperator = SearchOperator.EQUALS
    order: SearchOrder = SearchOrder.DESCENDING


class SearchParameterRequest(BaseModel):
    """
    Search request with pagination.

    Accepts both snake_case and camelCase keys:
        {"page": 1, "pageSize": 20, "searchParameters": [...], "includeNotActive": false}
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)
    search_parameters: list[SearchParameter] = Field(default_factory=list)
    include_not_active: bool = False

    @property
    def offset(self) -> int:
        """Rows to skip for the requested page (1-indexed)."""
        return (self.page - 1) * self.page_size


@dataclass
class PaginatedResponse(Generic[T]):
    """
    One page of results.

    Attributes:
        page: Requested page (1-indexed), echoed even when empty
        page_size: Requested page size
        total_count: Size of the whole matching set, not just this page
        data: Items of this page, at most page_size
    """

    page: int
    page_size: int
    total_count: int = 0
    data: list[T] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total_count


# =============================================================================
# Table Columns
# =============================================================================


class TableColumn(BaseModel):
    """
    Column descriptor as stored in TableColumns.json.

    The JSON comes from a catalog view and uses PascalCase keys
    (ColumnName, Type, Order, DefaultValue, MaxLength, IsNullable).
    """

    model_config = ConfigDict(populate_by_name=True)

    column_name: str = Field(alias="ColumnName")
    type: str = Field(alias="Type")
    order: int = Field(default=0, alias="Order")
    default_value: Optional[str] = Field(default=None, alias="DefaultValue")
    max_length: int = Field(default=0, alias="MaxLength")
    is_nullable: int = Field(default=0, alias="IsNullable")

    @property
    def nullable(self) -> bool:
        return bool(self.is_nullable)

    @property
    def group(self) -> ColumnTypeGroup | None:
        return get_group(self.type)


class TableColumnDto(BaseModel):
    """Column descriptor exposed to callers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    type: str
    order: int = 0
    default_value: Optional[str] = None
    max_length: int = 0
    nullable: bool = True


class TableColumnsDto(BaseModel):
    """Schema metadata of one table."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    table_name: str
    columns: list[TableColumnDto] = Field(default_factory=list)
