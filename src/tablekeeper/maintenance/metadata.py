"""Information-schema reader for table snapshots and histogram candidates."""

from typing import List, Optional, Sequence

from ..core.exceptions import ErrorCodes, MetadataError, TableKeeperException
from ..database.base import SqlExecutor
from ..logging import get_logger
from .actions import HISTOGRAM_EXCLUDED_TYPES
from .models import TableSnapshot

TEMPORARY_COLUMN_QUERY = (
    "SELECT `COLUMN_NAME` FROM `information_schema`.`COLUMNS` "
    "WHERE `TABLE_SCHEMA`='information_schema' AND `TABLE_NAME`='TABLES' "
    "AND `COLUMN_NAME`='TEMPORARY';"
)

TABLES_QUERY = (
    "SELECT `TABLE_NAME`, `ENGINE`, `ROW_FORMAT`, `TABLE_ROWS`, `DATA_LENGTH`, "
    "`INDEX_LENGTH`, `DATA_FREE`, "
    "(SELECT COUNT(DISTINCT `INDEX_NAME`) FROM `information_schema`.`STATISTICS` "
    "WHERE `STATISTICS`.`TABLE_SCHEMA`=`TABLES`.`TABLE_SCHEMA` "
    "AND `STATISTICS`.`TABLE_NAME`=`TABLES`.`TABLE_NAME` "
    "AND `INDEX_TYPE` LIKE '%%FULLTEXT%%') AS `FULLTEXT_INDEXES` "
    "FROM `information_schema`.`TABLES` "
    "WHERE `TABLE_SCHEMA`=%s AND `TABLE_TYPE`='BASE TABLE'{temporary} "
    "ORDER BY `TABLE_NAME`;"
)

HISTOGRAM_COLUMNS_QUERY = (
    "SELECT `COLUMN_NAME` FROM `information_schema`.`COLUMNS` "
    "WHERE `TABLE_SCHEMA`=%s AND `TABLE_NAME`=%s "
    "AND COALESCE(`GENERATION_EXPRESSION`, '')='' AND `COLUMN_KEY` IN ('', 'MUL') "
    "AND `DATA_TYPE` NOT IN ({types}){excluded} "
    "ORDER BY `ORDINAL_POSITION`;"
)


class MetadataReader:
    """Reads table metadata for one schema at a time.

    Any failure here is fatal for the run that triggered it and is raised
    as ``MetadataError``.
    """

    def __init__(self, executor: SqlExecutor) -> None:
        self.executor = executor
        self.logger = get_logger("maintenance.metadata")
        self._has_temporary_column: Optional[bool] = None

    async def fetch_tables(self, schema: str) -> List[TableSnapshot]:
        """Snapshot every base table of ``schema``, ordered by name.

        Raises:
            MetadataError: If information_schema cannot be read
        """
        try:
            if self._has_temporary_column is None:
                # Not every server (or hosting setup) exposes TABLES.TEMPORARY
                rows = await self.executor.fetch_all(TEMPORARY_COLUMN_QUERY)
                self._has_temporary_column = bool(rows)
            temporary = " AND `TEMPORARY`!='Y'" if self._has_temporary_column else ""
            rows = await self.executor.fetch_all(
                TABLES_QUERY.format(temporary=temporary), (schema,)
            )
        except TableKeeperException as e:
            raise MetadataError(
                f"Failed to read tables of schema `{schema}`: {e.message}",
                code=ErrorCodes.METADATA_EXTRACTION_FAILED,
                context={"schema": schema},
                cause=e,
            ) from e

        snapshots = [TableSnapshot.from_row(row) for row in rows]
        self.logger.debug("Table metadata read", schema=schema, tables=len(snapshots))
        return snapshots

    async def fetch_histogram_columns(
        self, schema: str, table: str, excluded: Sequence[str] = ()
    ) -> List[str]:
        """Columns of ``table`` MySQL can build histograms for.

        Generated columns, primary/unique key columns, spatial and JSON
        columns and the ``excluded`` names are left out. Excluded names are
        bound as parameters.

        Raises:
            MetadataError: If information_schema cannot be read
        """
        types = ", ".join(f"'{data_type}'" for data_type in HISTOGRAM_EXCLUDED_TYPES)
        excluded = list(excluded)
        clause = ""
        if excluded:
            clause = " AND `COLUMN_NAME` NOT IN ({})".format(", ".join(["%s"] * len(excluded)))
        query = HISTOGRAM_COLUMNS_QUERY.format(types=types, excluded=clause)
        try:
            columns = await self.executor.fetch_column(query, (schema, table, *excluded))
        except TableKeeperException as e:
            raise MetadataError(
                f"Failed to read histogram columns of `{schema}`.`{table}`: {e.message}",
                code=ErrorCodes.METADATA_EXTRACTION_FAILED,
                context={"schema": schema, "table": table},
                cause=e,
            ) from e
        return [str(column) for column in columns]
