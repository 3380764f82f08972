"""
Table Columns Model.
"""

from __future__ import annotations

from pydantic import TypeAdapter
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from recordkeeper.schemas import TableColumn

from .base import Base

_columns_adapter = TypeAdapter(list[TableColumn])


class TableColumns(Base):
    """
    Read-only schema metadata of one table.

    Rows are produced outside this layer (catalog view or loader job);
    ``json`` holds the serialized column descriptors.
    """

    __tablename__ = "table_columns"

    table_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    @property
    def columns(self) -> list[TableColumn]:
        """Parsed column descriptors, ordered by their Order field."""
        if not self.json:
            return []
        return sorted(_columns_adapter.validate_json(self.json), key=lambda c: c.order)

    def __repr__(self) -> str:
        return f"<TableColumns({self.table_name})>"
