"""Server feature detection.

Capabilities are resolved once per session from the server version, two
InnoDB variables and the privileges of the current user.
"""

from typing import Optional

from ..core.exceptions import CapabilityError, ErrorCodes, TableKeeperException
from ..core.utils import ValidationUtils
from ..database.base import SqlExecutor
from ..logging import get_logger
from .models import CapabilitySet

FILE_PER_TABLE_QUERY = "SHOW GLOBAL VARIABLES WHERE `variable_name`='innodb_file_per_table';"
FILE_FORMAT_QUERY = "SHOW GLOBAL VARIABLES WHERE `variable_name`='innodb_file_format';"
VERSION_QUERY = "SELECT VERSION();"
SET_GLOBAL_PRIVILEGE_QUERY = (
    "SELECT COUNT(*) AS `count` FROM `information_schema`.`USER_PRIVILEGES` "
    "WHERE GRANTEE=CONCAT('\\'', SUBSTRING_INDEX(CURRENT_USER(), '@', 1), '\\'@\\'', "
    "SUBSTRING_INDEX(CURRENT_USER(), '@', -1), '\\'') "
    "AND `PRIVILEGE_TYPE` IN ('SUPER', 'SYSTEM_VARIABLES_ADMIN');"
)


def resolve_capabilities(
    version: str,
    file_per_table: Optional[str],
    file_format: Optional[str],
    privilege_count: int,
) -> CapabilitySet:
    """Derive the capability flags from raw server state.

    Args:
        version: Result of ``SELECT VERSION()``
        file_per_table: Value of ``innodb_file_per_table`` (None if absent)
        file_format: Value of ``innodb_file_format`` (None or "" if absent)
        privilege_count: Number of SUPER/SYSTEM_VARIABLES_ADMIN grants

    Example:
        >>> resolve_capabilities("10.5.9-MariaDB", "ON", "", 1).alter_algorithm
        True
    """
    file_format = file_format or ""
    compress = (file_per_table or "").lower() == "on" and (
        file_format == "" or file_format.lower() == "barracuda"
    )
    defragment = alter_algorithm = analyze_persistent = histogram = False

    parsed = ValidationUtils.parse_version(version)
    if "mariadb" in (version or "").lower():
        if parsed >= (10, 1, 1):
            defragment = True
            if parsed >= (10, 3, 7):
                alter_algorithm = True
                if parsed >= (10, 4, 0):
                    analyze_persistent = True
                    # Page compression replaced ROW_FORMAT=COMPRESSED
                    if parsed >= (10, 6, 0):
                        compress = False
    elif parsed >= (8, 0, 0):
        histogram = True

    return CapabilitySet(
        defragment=defragment,
        alter_algorithm=alter_algorithm,
        analyze_persistent=analyze_persistent,
        histogram=histogram,
        compress=compress,
        set_global=int(privilege_count or 0) > 0,
    )


class FeatureDetector:
    """Reads server state through an ``SqlExecutor`` and resolves capabilities."""

    def __init__(self, executor: SqlExecutor) -> None:
        self.executor = executor
        self.logger = get_logger("maintenance.capabilities")

    async def detect(self) -> CapabilitySet:
        """Query the server and return its capabilities.

        Raises:
            CapabilityError: If any of the detection queries fails
        """
        try:
            file_per_table = await self._variable(FILE_PER_TABLE_QUERY)
            file_format = await self._variable(FILE_FORMAT_QUERY)
            version = await self.executor.fetch_scalar(VERSION_QUERY)
            privilege_count = await self.executor.fetch_scalar(SET_GLOBAL_PRIVILEGE_QUERY)
        except TableKeeperException as e:
            raise CapabilityError(
                f"Failed to detect server capabilities: {e.message}",
                code=ErrorCodes.CAPABILITY_DETECTION_FAILED,
                context=e.context,
                cause=e,
            ) from e

        capabilities = resolve_capabilities(
            str(version or ""), file_per_table, file_format, privilege_count or 0
        )
        self.logger.info(
            "Server capabilities detected",
            server_version=version,
            **capabilities.to_dict(),
        )
        return capabilities

    async def _variable(self, query: str) -> Optional[str]:
        # SHOW VARIABLES returns (Variable_name, Value)
        values = await self.executor.fetch_column(query, index=1)
        return str(values[0]) if values else None
