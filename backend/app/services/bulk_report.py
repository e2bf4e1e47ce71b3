"""
Bulk Operation Report
Row-level outcome collection for spreadsheet imports and assignments.

Row failures are data, not exceptions: every row ends up either counted as
a success or recorded as a RowError, and the batch always completes.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class RowError:
    error: str
    row: Optional[int] = None
    file: Optional[str] = None
    store_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"row": self.row, "error": self.error}
        if self.file is not None:
            data["file"] = self.file
        if self.store_id is not None:
            data["storeId"] = self.store_id
        return data


@dataclass
class BulkReport:
    """Accumulates the outcome of every processed row."""

    success_count: int = 0
    errors: List[RowError] = field(default_factory=list)
    # rows that never reached processing (e.g. unreadable files) are not counted
    processed: int = 0

    def succeeded(self) -> None:
        self.processed += 1
        self.success_count += 1

    def failed(self, error: str, row: Optional[int] = None, file: Optional[str] = None,
               store_id: Optional[str] = None, counted: bool = True) -> None:
        if counted:
            self.processed += 1
        self.errors.append(RowError(error=error, row=row, file=file, store_id=store_id))

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def summary(self, message: str) -> dict:
        return {
            "message": message,
            "totalProcessed": self.processed,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "errors": [error.to_dict() for error in self.errors],
        }
