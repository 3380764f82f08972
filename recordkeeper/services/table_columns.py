"""
Mapper between TableColumns rows and their transfer objects.
"""

from pydantic import TypeAdapter

from recordkeeper.models import TableColumns
from recordkeeper.schemas import TableColumn, TableColumnDto, TableColumnsDto

_columns_adapter = TypeAdapter(list[TableColumn])


def column_to_dto(column: TableColumn) -> TableColumnDto:
    return TableColumnDto(
        name=column.column_name,
        type=column.type,
        order=column.order,
        default_value=column.default_value,
        max_length=column.max_length,
        nullable=column.nullable,
    )


def to_dto(table_columns: TableColumns) -> TableColumnsDto:
    """Row -> DTO, columns in their stored order."""
    return TableColumnsDto(
        table_name=table_columns.table_name,
        columns=[column_to_dto(c) for c in table_columns.columns],
    )


def to_model(dto: TableColumnsDto) -> TableColumns:
    """
    DTO -> row.

    The JSON is written in the catalog's own PascalCase shape so the row
    reads back through TableColumns.columns unchanged.
    """
    columns = [
        TableColumn(
            column_name=c.name,
            type=c.type,
            order=c.order,
            default_value=c.default_value,
            max_length=c.max_length,
            is_nullable=1 if c.nullable else 0,
        )
        for c in dto.columns
    ]
    payload = _columns_adapter.dump_json(columns, by_alias=True).decode()
    return TableColumns(table_name=dto.table_name, json=payload)
