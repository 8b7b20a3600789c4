"""
Batch reconciliation — turns a per-item results array into a BatchOutcome.

The backend may omit items from its results. Every requested key is
accounted for: a key that is neither reported as processed nor reported
with an error becomes a Validation failure ("not processed by backend").
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from recall.core.classify import classify_item_status
from recall.core.codec import decode_value
from recall.core.errors import ErrorKind, NotFound, Validation
from recall.core.types import BatchItemResult, BatchOutcome

logger = logging.getLogger(__name__)


def parse_batch_body(body: Any) -> tuple[list[BatchItemResult], str | None]:
    """Extract (results, correlation_id) from a batch response body.

    Accepts {"results": [...], "correlationId": ...} or a bare list.
    Anything else is treated as an empty result set.
    """
    correlation_id: str | None = None
    raw: Any = []
    if isinstance(body, dict):
        raw = body.get("results") or []
        correlation_id = body.get("correlationId")
    elif isinstance(body, list):
        raw = body

    if not isinstance(raw, list):
        raw = []
    return [BatchItemResult.from_dict(item) for item in raw if isinstance(item, dict)], correlation_id


def reconcile(
    requested_keys: Sequence[str],
    results: Iterable[BatchItemResult],
    correlation_id: str | None = None,
    absent_ok: bool = False,
) -> BatchOutcome:
    """
    Reconcile requested keys against the backend's per-item results.

    Failures list unprocessed keys first (in request order), then items the
    backend reported as failed (in response order). With absent_ok, keys
    that are missing or reported 404 are not failures; get_many reads them
    as absent values.
    """
    results = list(results)
    reported = {item.id for item in results}
    failures: list[tuple[str, ErrorKind]] = []

    for key in requested_keys:
        if key in reported or absent_ok:
            continue
        failures.append((key, Validation(f"Item {key} not processed by backend.")))

    success_count = 0
    for item in results:
        if not item.failed:
            success_count += 1
            continue
        kind = classify_item_status(item.id, item.status, item.error)
        if absent_ok and isinstance(kind, NotFound):
            success_count += 1
            continue
        failures.append((item.id, kind))

    if failures:
        logger.debug(
            f"Batch reconciled: {success_count} ok, {len(failures)} failed "
            f"(correlation_id={correlation_id})"
        )
    return BatchOutcome(
        success_count=success_count,
        failures=failures,
        correlation_id=correlation_id,
    )


def collect_values(
    requested_keys: Sequence[str],
    results: Iterable[BatchItemResult],
) -> dict[str, str | None]:
    """Map every requested key to its decoded value, or None when absent."""
    values: dict[str, str | None] = {key: None for key in requested_keys}
    for item in results:
        if item.id not in values or item.failed or item.value is None:
            continue
        values[item.id] = decode_value(item.value, key=item.id)
    return values
