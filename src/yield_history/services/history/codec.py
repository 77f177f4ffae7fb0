"""
Serialization of the cache document.

Layout: {pool_id: {"id", "points": [...], "fetchedAt"}} with points in the
chart API's own camelCase shape, so a stored document reads like the API.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from yield_history.domain.models import DataPoint, SeriesRecord, parse_timestamp
from yield_history.observability.logging import get_logger
from yield_history.utils.decimals import safe_float

logger = get_logger(__name__)


def point_from_dict(item: Mapping[str, Any]) -> DataPoint | None:
    """Build a DataPoint from an API/stored item. Returns None without an ISO timestamp."""
    timestamp = item.get("timestamp")
    if not isinstance(timestamp, str) or not timestamp:
        return None
    try:
        parse_timestamp(timestamp)
    except ValueError:
        logger.debug(f"Skipping point with unparseable timestamp {timestamp!r}")
        return None
    return DataPoint(
        timestamp=str(timestamp),
        tvl_usd=safe_float(item.get("tvlUsd"), 0.0),
        apy=safe_float(item.get("apy"), 0.0),
        apy_base=safe_float(item.get("apyBase"), None),
        apy_reward=safe_float(item.get("apyReward"), None),
    )


def points_from_list(items: Any) -> list[DataPoint]:
    if not isinstance(items, list):
        return []
    points = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        point = point_from_dict(item)
        if point is not None:
            points.append(point)
    return points


def record_to_dict(record: SeriesRecord) -> dict[str, Any]:
    return {
        "id": record.pool_id,
        "points": [p.to_dict() for p in record.points],
        "fetchedAt": record.fetched_at.isoformat(),
    }


def record_from_dict(pool_id: str, raw: Mapping[str, Any]) -> SeriesRecord:
    fetched_at = datetime.fromisoformat(str(raw["fetchedAt"]))
    if fetched_at.tzinfo is None:
        fetched_at = fetched_at.replace(tzinfo=UTC)
    return SeriesRecord(
        pool_id=str(raw.get("id") or pool_id),
        points=tuple(points_from_list(raw.get("points"))),
        fetched_at=fetched_at,
    )


def encode_records(records: Mapping[str, SeriesRecord]) -> str:
    return json.dumps(
        {pool_id: record_to_dict(record) for pool_id, record in records.items()},
        separators=(",", ":"),
    )


def decode_records(payload: str | None) -> dict[str, SeriesRecord]:
    """
    Decode the stored document.

    An unreadable document is treated as an empty cache (logged); a single
    malformed record is dropped without losing the others.
    """
    if not payload:
        return {}
    try:
        raw = json.loads(payload)
    except ValueError as e:
        logger.warning(f"Discarding unreadable series cache document: {e}")
        return {}
    if not isinstance(raw, dict):
        logger.warning(f"Discarding series cache document of type {type(raw).__name__}")
        return {}

    records: dict[str, SeriesRecord] = {}
    for pool_id, item in raw.items():
        try:
            records[pool_id] = record_from_dict(pool_id, item)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping malformed series record for {pool_id}: {e}")
    return records
