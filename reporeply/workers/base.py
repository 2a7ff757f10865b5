"""Base worker abstraction for claim-based background processing.

Provides a clean interface for background workers that:
1. Poll for due work items
2. Claim each item exclusively before touching it
3. Record success or failure as a persisted state transition
4. Provide structured logging and observability

Design Principles:
- Exclusivity comes from the claim (a conditional write), not from locks
- A failing item never aborts the rest of the batch
- Testable via direct function calls
"""

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from sqlmodel import Session

logger = logging.getLogger(__name__)


class WorkerStatus(str, Enum):
    """Status of a worker run."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Some items processed, some failed
    FAILED = "failed"
    NO_WORK = "no_work"


@dataclass
class WorkerResult:
    """Result of a worker processing cycle.

    Attributes:
        status: Overall status of the worker run
        processed_count: Number of items successfully processed
        failed_count: Number of items that failed
        skipped_count: Items claimed by someone else in the meantime
        duration_ms: Time taken for the processing cycle
        errors: List of error details for failed items
        metadata: Additional worker-specific metadata
    """

    status: WorkerStatus
    processed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    duration_ms: float = 0.0
    errors: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "status": self.status.value,
            "processed_count": self.processed_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "duration_ms": self.duration_ms,
            "errors": self.errors,
            "metadata": self.metadata,
        }


# Generic type for work items
T = TypeVar("T")


class WorkerBase(ABC, Generic[T]):
    """Abstract base class for background workers.

    Workers follow this lifecycle per item:
    1. fetch_pending() - Get items to process
    2. mark_processing() - Claim the item (False means someone else has it)
    3. process_item() - Do the actual work
    4. mark_completed() or mark_failed() - Persist the outcome

    Subclasses must implement all abstract methods.
    """

    def __init__(self, batch_size: int = 50, error_max_length: int = 500) -> None:
        """Initialize the worker.

        Args:
            batch_size: Maximum items to process per cycle
            error_max_length: Longest error text kept in results
        """
        self.batch_size = batch_size
        self.error_max_length = error_max_length
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def worker_name(self) -> str:
        """Return the worker name for logging."""
        pass

    @abstractmethod
    def fetch_pending(self, session: Session) -> list[T]:
        """Fetch due items to process (up to batch_size)."""
        pass

    @abstractmethod
    def mark_processing(self, session: Session, item: T) -> bool:
        """Claim an item for exclusive processing.

        Must be atomic across processes (e.g. a conditional update).

        Returns:
            True if claimed, False if another worker owns it
        """
        pass

    @abstractmethod
    def process_item(self, session: Session, item: T) -> None:
        """Process a single claimed item.

        Raises:
            Exception: If processing fails
        """
        pass

    @abstractmethod
    def mark_completed(self, session: Session, item: T) -> None:
        """Mark an item as successfully completed."""
        pass

    @abstractmethod
    def mark_failed(self, session: Session, item: T, error: Exception) -> None:
        """Record a failed attempt (retry scheduling or dead-lettering)."""
        pass

    @abstractmethod
    def get_item_id(self, item: T) -> str:
        """Get the unique identifier for an item."""
        pass

    def stop_requested(self) -> bool:
        """Whether the worker should stop taking new items."""
        return False

    def in_flight(self) -> AbstractContextManager:
        """Context wrapped around each claimed item."""
        return nullcontext()

    def run(self, session: Session) -> WorkerResult:
        """Execute one processing cycle.

        This is the main entry point for worker execution.

        Args:
            session: Database session

        Returns:
            WorkerResult with processing statistics
        """
        start_time = datetime.utcnow()
        processed = 0
        failed = 0
        skipped = 0
        errors: list[dict[str, Any]] = []

        self._logger.info(
            f"[{self.worker_name}] Starting processing cycle",
            extra={"batch_size": self.batch_size},
        )

        try:
            items = self.fetch_pending(session)
        except Exception as e:
            self._logger.error(
                f"[{self.worker_name}] Worker cycle failed",
                extra={"error": str(e)},
                exc_info=True,
            )
            return WorkerResult(
                status=WorkerStatus.FAILED,
                duration_ms=self._elapsed_ms(start_time),
                errors=[{"error": str(e)}],
                metadata={"stage": "fetch"},
            )

        if not items:
            self._logger.debug(f"[{self.worker_name}] No pending items")
            return WorkerResult(
                status=WorkerStatus.NO_WORK,
                duration_ms=self._elapsed_ms(start_time),
            )

        self._logger.info(f"[{self.worker_name}] Found {len(items)} items to process")

        for item in items:
            if self.stop_requested():
                self._logger.info(
                    f"[{self.worker_name}] Stop requested, leaving remaining items"
                )
                break

            item_id = self.get_item_id(item)

            try:
                claimed = self.mark_processing(session, item)
            except Exception as e:
                session.rollback()
                failed += 1
                errors.append({"item_id": item_id, "error": str(e)[: self.error_max_length]})
                self._logger.error(
                    f"[{self.worker_name}] Failed to claim item {item_id}",
                    extra={"item_id": item_id},
                    exc_info=True,
                )
                continue

            if not claimed:
                skipped += 1
                self._logger.debug(f"[{self.worker_name}] Item {item_id} already locked")
                continue

            with self.in_flight():
                try:
                    self.process_item(session, item)
                    self.mark_completed(session, item)
                    session.commit()

                    processed += 1
                    self._logger.info(
                        f"[{self.worker_name}] Processed item {item_id}",
                        extra={"item_id": item_id},
                    )

                except Exception as e:
                    session.rollback()
                    failed += 1
                    error_msg = str(e)[: self.error_max_length]

                    errors.append({"item_id": item_id, "error": error_msg})
                    self._logger.warning(
                        f"[{self.worker_name}] Failed to process item {item_id}",
                        extra={"item_id": item_id, "error": error_msg},
                    )

                    try:
                        self.mark_failed(session, item, e)
                        session.commit()
                    except Exception:
                        session.rollback()
                        self._logger.error(
                            f"[{self.worker_name}] Could not record failure for item {item_id}",
                            extra={"item_id": item_id},
                            exc_info=True,
                        )

        # Determine overall status
        if failed == 0 and processed > 0:
            status = WorkerStatus.SUCCESS
        elif processed > 0 and failed > 0:
            status = WorkerStatus.PARTIAL
        elif failed > 0:
            status = WorkerStatus.FAILED
        else:
            status = WorkerStatus.NO_WORK

        result = WorkerResult(
            status=status,
            processed_count=processed,
            failed_count=failed,
            skipped_count=skipped,
            duration_ms=self._elapsed_ms(start_time),
            errors=errors,
        )

        self._logger.info(
            f"[{self.worker_name}] Cycle complete",
            extra=result.to_dict(),
        )

        return result

    def _elapsed_ms(self, start: datetime) -> float:
        """Calculate elapsed time in milliseconds."""
        return (datetime.utcnow() - start).total_seconds() * 1000
