from typing import Any, List, Optional

from pydantic import BaseModel, Field


class FailedRecord(BaseModel):
    """A change event whose index operation did not succeed."""

    record_id: str
    error: str
    error_type: str
    retryable: bool = True
    sequence_number: Optional[str] = None


class BatchProcessingResult(BaseModel):
    """Outcome of one batch, reported back to the stream and then discarded."""

    succeeded: List[str] = Field(default_factory=list)
    failed: List[FailedRecord] = Field(default_factory=list)
    skipped: int = 0
    processed: int = 0

    def record_success(self, record_id: str) -> None:
        if record_id not in self.succeeded:
            self.succeeded.append(record_id)

    def record_failure(
        self,
        record_id: str,
        exc: Exception,
        sequence_number: str | None = None,
    ) -> None:
        self.failed.append(
            FailedRecord(
                record_id=record_id,
                error=str(exc) or type(exc).__name__,
                error_type=type(exc).__name__,
                retryable=getattr(exc, "retryable", True),
                sequence_number=sequence_number,
            )
        )

    def record_skip(self) -> None:
        self.skipped += 1

    def to_report(self) -> dict[str, Any]:
        """Payload returned to the hosting environment."""
        return {
            "processedRecords": self.processed,
            "succeededRecords": len(self.succeeded),
            "failedRecords": len(self.failed),
            "skippedRecords": self.skipped,
            "errors": [
                {"recordId": failure.record_id, "error": f"{failure.error_type}: {failure.error}"}
                for failure in self.failed
            ],
        }

    def batch_item_failures(self) -> list[dict[str, str]]:
        """Sequence numbers to redeliver, in the Lambda partial-batch response shape."""
        return [
            {"itemIdentifier": failure.sequence_number}
            for failure in self.failed
            if failure.sequence_number is not None
        ]
