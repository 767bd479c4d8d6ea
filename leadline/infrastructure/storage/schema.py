"""
Schema DDL
Renders CREATE TABLE / CREATE INDEX statements for the call-core tables.

Usage:
    python -m leadline.infrastructure.storage.schema > schema.sql
"""
from typing import List

from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from leadline.infrastructure.storage.models import Base


def render_ddl() -> str:
    """PostgreSQL DDL for every table, in dependency order."""
    dialect = postgresql.dialect()
    statements: List[str] = []

    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table).compile(dialect=dialect)).strip() + ";")
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            statements.append(str(CreateIndex(index).compile(dialect=dialect)).strip() + ";")

    return "\n\n".join(statements) + "\n"


def main() -> None:
    print(render_ddl())


if __name__ == "__main__":
    main()
