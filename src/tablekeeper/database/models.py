"""Database result models for TableKeeper."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class QueryResult:
    """Standardized result of a single SQL statement."""
    rows: List[Dict[str, Any]]
    row_count: int
    columns: List[str]
    execution_time: float
    warnings: List[str] = field(default_factory=list)

    def column(self, index: int = 0) -> List[Any]:
        """Values of one column, by position."""
        if not self.columns:
            return []
        name = self.columns[index]
        return [row[name] for row in self.rows]

    def scalar(self) -> Any:
        """First column of the first row, or None for an empty result."""
        if not self.rows or not self.columns:
            return None
        return self.rows[0][self.columns[0]]
