"""BatchDispatcher - concurrent fan-out with per-item failure isolation.

Each item gets a pre-reserved result slot; the concurrent sends write
only their own slot, so the report order always matches the input order
and one failure never affects another item.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from src.shared.metrics import BATCH_DURATION, BATCH_ITEMS_TOTAL

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from src.shared.types import ProviderReceipt

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_SENT = "sent"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome of one item."""

    key: str
    status: str
    receipt_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SENT


@dataclass(frozen=True)
class BatchReport:
    """Aggregated outcome; ``sent + failed == total == len(results)``."""

    results: list[BatchItemResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return self.total - self.sent

    def to_dict(self, *, key_field: str = "to", receipt_field: str = "id") -> dict[str, Any]:
        """Wire shape: ``{summary: {total, sent, failed}, results: [...]}``."""
        results: list[dict[str, Any]] = []
        for r in self.results:
            entry: dict[str, Any] = {key_field: r.key, "status": r.status}
            if r.ok:
                entry[receipt_field] = r.receipt_id
            else:
                entry["error"] = r.error
            results.append(entry)
        return {
            "summary": {"total": self.total, "sent": self.sent, "failed": self.failed},
            "results": results,
        }


class BatchDispatcher:
    """Run one send per item concurrently and collect every outcome.

    Args:
        max_concurrency: Upper bound on in-flight sends; None means
            every item is started at once.
    """

    def __init__(self, *, max_concurrency: int | None = None) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            msg = "max_concurrency must be positive"
            raise ValueError(msg)
        self._max_concurrency = max_concurrency

    async def dispatch(
        self,
        items: Sequence[T],
        send_one: Callable[[T], Awaitable[ProviderReceipt]],
        *,
        key: Callable[[T], str] = str,
        channel: str = "generic",
    ) -> BatchReport:
        slots: list[BatchItemResult | None] = [None] * len(items)
        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency is not None else None
        )

        async def run(index: int, item: T) -> None:
            item_key = key(item)
            try:
                if semaphore is None:
                    receipt = await send_one(item)
                else:
                    async with semaphore:
                        receipt = await send_one(item)
            except Exception as exc:  # noqa: BLE001 -- one item's failure is that item's result
                logger.warning("Batch item %r failed on %s: %s", item_key, channel, exc)
                slots[index] = BatchItemResult(
                    key=item_key,
                    status=STATUS_ERROR,
                    error=str(exc) or type(exc).__name__,
                )
            else:
                slots[index] = BatchItemResult(
                    key=item_key,
                    status=STATUS_SENT,
                    receipt_id=receipt.receipt_id,
                )

        started = time.perf_counter()
        await asyncio.gather(*(run(i, item) for i, item in enumerate(items)))
        BATCH_DURATION.labels(channel=channel).observe(time.perf_counter() - started)

        results = [slot for slot in slots if slot is not None]
        report = BatchReport(results=results)
        BATCH_ITEMS_TOTAL.labels(channel=channel, status=STATUS_SENT).inc(report.sent)
        BATCH_ITEMS_TOTAL.labels(channel=channel, status=STATUS_ERROR).inc(report.failed)
        logger.info(
            "Batch on %s finished: total=%d sent=%d failed=%d",
            channel,
            report.total,
            report.sent,
            report.failed,
        )
        return report
