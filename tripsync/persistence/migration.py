"""Versioned snapshot migration.

Each store registers pure upgrade steps keyed by the version they upgrade
from. `migrate` applies them one version at a time until the payload reaches
CURRENT_MEMORY_VERSION. It never raises: unparseable input yields None and a
missing step yields the best-effort payload with a warning.

Version history:
    v1: flat payload without a version wrapper. Accommodation entries lived
        under "accommodations" with no budget protection flag and no defaults.
    v2: {"version": 2, "data": {...}}; accommodation entries carry
        user_modified_budget; the store carries global budget defaults.
"""

import copy
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from tripsync.models.snapshot import CURRENT_MEMORY_VERSION, RawMemory

logger = logging.getLogger(__name__)

UpgradeStep = Callable[[dict[str, Any]], dict[str, Any]]


def migrate(
    stored: str,
    steps: Mapping[int, UpgradeStep],
    *,
    store: str,
    current: int = CURRENT_MEMORY_VERSION,
    on_upgraded: Callable[[RawMemory], None] | None = None,
) -> RawMemory | None:
    """Parse a stored snapshot and upgrade it to the current version.

    Args:
        stored: Raw JSON string from storage
        steps: Upgrade steps keyed by source version
        store: Store name (for logging)
        current: Target version
        on_upgraded: Called with the upgraded snapshot so it can be persisted

    Returns:
        Upgraded snapshot, or None if the input is unparseable
    """
    try:
        parsed = json.loads(stored)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Unparseable %s snapshot: %s", store, e)
        return None

    if not isinstance(parsed, dict):
        logger.warning("Unparseable %s snapshot: expected object, got %s", store, type(parsed).__name__)
        return None

    if "version" in parsed:
        version = parsed.get("version")
        data = parsed.get("data")
    else:
        # v1 payloads were stored flat
        version = 1
        data = parsed

    if not isinstance(version, int) or version < 1 or not isinstance(data, dict):
        logger.warning("Unparseable %s snapshot: bad version or data", store)
        return None

    if version > current:
        logger.warning(
            "%s snapshot version %d is newer than supported version %d", store, version, current
        )
        return RawMemory(version=version, data=data)

    upgraded = False
    while version < current:
        step = steps.get(version)
        if step is None:
            logger.warning("No migration defined for %s snapshot v%d, using as-is", store, version)
            break
        try:
            data = step(copy.deepcopy(data))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Migration of %s snapshot from v%d failed: %s", store, version, e)
            return None
        version += 1
        upgraded = True
        logger.info("Migrated %s snapshot to v%d", store, version)

    result = RawMemory(version=version, data=data)

    if upgraded and on_upgraded is not None:
        try:
            on_upgraded(result)
        except Exception as e:
            logger.warning("Failed to save migrated %s snapshot: %s", store, e)

    return result


def _accommodation_v1_to_v2(data: dict[str, Any]) -> dict[str, Any]:
    entries = data.pop("accommodations", None)
    if entries is None:
        entries = data.get("entries", [])

    migrated_entries = []
    for entry in entries:
        migrated = dict(entry)
        migrated.setdefault("user_modified_budget", False)
        migrated_entries.append(migrated)
    data["entries"] = migrated_entries

    active_index = data.pop("active_index", None)
    if (
        "active_id" not in data
        and isinstance(active_index, int)
        and 0 <= active_index < len(migrated_entries)
    ):
        data["active_id"] = migrated_entries[active_index].get("id")

    data.setdefault("defaults", {"budget_preset": "comfort", "min": 80, "max": 180})
    return data


def _identity(data: dict[str, Any]) -> dict[str, Any]:
    return data


ACCOMMODATION_STEPS: dict[int, UpgradeStep] = {1: _accommodation_v1_to_v2}
ACTIVITY_STEPS: dict[int, UpgradeStep] = {1: _identity}
FLIGHT_STEPS: dict[int, UpgradeStep] = {1: _identity}
TRAVELER_STEPS: dict[int, UpgradeStep] = {1: _identity}
