"""Memory store base classes.

A store owns one state model, persists it as a versioned snapshot and
announces every committed mutation on the bus (tab:flash + memory:changed).
Each logical mutation produces exactly one state transition.
"""

import logging
from collections.abc import Callable, Mapping
from datetime import date
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from tripsync.bus.event_bus import EventBus
from tripsync.models.common import (
    BUDGET_PRESETS,
    BudgetPreset,
    Origin,
    StoreName,
    SyncTarget,
    Tab,
    normalize_city,
)
from tripsync.models.destination import Destination, SyncAction
from tripsync.models.entries import ProtectedEntry, ProtectedFamily
from tripsync.models.events import (
    MemoryChanged,
    SyncApplied,
    SyncBlocked,
    SyncCityPropagated,
    TabFlash,
)
from tripsync.models.snapshot import CURRENT_MEMORY_VERSION, RawMemory
from tripsync.persistence.migration import UpgradeStep, migrate
from tripsync.policy.conflict import PolicyDecision, apply_protected, clear_protection
from tripsync.utils.logging import sync_logger
from tripsync.utils.metrics import sync_metrics

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)
E = TypeVar("E", bound=ProtectedEntry)


class DuplicateCityError(ValueError):
    """Raised when a write would make two entries share a normalized city."""


class MemoryStore(Generic[S]):
    """Base store: state ownership, change notification and snapshots."""

    store_name: ClassVar[StoreName]
    tab: ClassVar[Tab]
    state_model: ClassVar[type[BaseModel]]
    migration_steps: ClassVar[Mapping[int, UpgradeStep]] = {}

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._state: S = self.default_state()

    def default_state(self) -> S:
        """Fresh state used on first run and when a snapshot is unusable."""
        return self.state_model()  # type: ignore[return-value]

    @property
    def state(self) -> S:
        return self._state

    def update_batch(self, updater: Callable[[S], S]) -> None:
        """Apply a multi-entry change as one state transition.

        The updater receives the current state and returns the new state.
        Returning the same object means nothing changed.
        """
        new_state = updater(self._state)
        if new_state is self._state:
            return
        self._commit(new_state)

    def reset(self) -> None:
        """Restore default state."""
        self._commit(self.default_state())

    def get_serialized_state(self) -> dict[str, Any]:
        """Assistant-facing projection of the current state."""
        raise NotImplementedError

    def to_snapshot(self) -> RawMemory:
        """Versioned snapshot of the current state."""
        return RawMemory(version=CURRENT_MEMORY_VERSION, data=self._state.model_dump(mode="json"))

    def dump_snapshot(self) -> str:
        """Snapshot serialized for storage."""
        return self.to_snapshot().model_dump_json()

    def load_snapshot(
        self,
        stored: str | None,
        on_upgraded: Callable[[RawMemory], None] | None = None,
    ) -> bool:
        """Hydrate from a stored snapshot without emitting events.

        Falls back to default state on missing, unparseable or invalid input.

        Returns:
            True if the snapshot was loaded
        """
        if not stored:
            self._state = self.default_state()
            return False

        migrated = migrate(
            stored,
            self.migration_steps,
            store=self.store_name,
            on_upgraded=on_upgraded,
        )
        if migrated is None:
            sync_logger.log_snapshot(self.store_name, "load_failed", "unparseable")
            self._state = self.default_state()
            return False

        try:
            state = self.state_model.model_validate(migrated.data)
        except ValidationError as e:
            sync_logger.log_snapshot(self.store_name, "load_failed", f"invalid: {e.error_count()} errors")
            self._state = self.default_state()
            return False

        self._state = state  # type: ignore[assignment]
        sync_logger.log_snapshot(self.store_name, "loaded")
        return True

    def _commit(self, new_state: S) -> None:
        self._state = new_state
        self._bus.emit(TabFlash(tab=self.tab))
        self._bus.emit(MemoryChanged(store=self.store_name))


class EntryStore(MemoryStore[S], Generic[S, E]):
    """Store holding an ordered list of protected entries plus an active id.

    Every entry write goes through the conflict policy. Unknown ids are
    silently ignored.
    """

    entry_model: ClassVar[type[ProtectedEntry]]
    unique_cities: ClassVar[bool] = True

    @property
    def entries(self) -> list[E]:
        return list(self._state.entries)  # type: ignore[attr-defined]

    def get(self, entry_id: str) -> E | None:
        for entry in self._state.entries:  # type: ignore[attr-defined]
            if entry.id == entry_id:
                return entry
        return None

    def by_city(self, city: str | None) -> E | None:
        """First entry whose normalized city matches."""
        key = normalize_city(city)
        if not key:
            return None
        for entry in self._state.entries:  # type: ignore[attr-defined]
            if entry.city_key == key:
                return entry
        return None

    @property
    def active(self) -> E | None:
        """Entry being edited: the active id, else the first entry."""
        active_id = self._state.active_id  # type: ignore[attr-defined]
        if active_id is not None:
            entry = self.get(active_id)
            if entry is not None:
                return entry
        entries = self.entries
        return entries[0] if entries else None

    def set_active(self, entry_id: str) -> None:
        if self.get(entry_id) is None or self._state.active_id == entry_id:  # type: ignore[attr-defined]
            return
        self._commit(self._state.model_copy(update={"active_id": entry_id}))

    def add(self, fields: dict[str, Any] | None = None) -> str:
        """Add a manual (unprotected) entry and make it active.

        Raises:
            DuplicateCityError: If another entry already has this city
            pydantic.ValidationError: If the fields are invalid
        """
        fields = self._normalize_fields(dict(fields or {}))
        self._check_unique_city(fields.get("city"), exclude_id=None)
        entry = self.entry_model.model_validate({**self.default_entry_fields(), **fields})

        new_state = self._state.model_copy(
            update={"entries": [*self._state.entries, entry], "active_id": entry.id}  # type: ignore[attr-defined]
        )
        self._commit(new_state)
        self._after_add(entry)  # type: ignore[arg-type]
        return entry.id

    def remove(self, entry_id: str) -> None:
        entry = self.get(entry_id)
        if entry is None:
            logger.debug("remove: unknown %s entry %s", self.store_name, entry_id)
            return

        remaining = [e for e in self._state.entries if e.id != entry_id]  # type: ignore[attr-defined]
        active_id = self._state.active_id  # type: ignore[attr-defined]
        if active_id == entry_id:
            active_id = remaining[0].id if remaining else None

        self._commit(self._state.model_copy(update={"entries": remaining, "active_id": active_id}))
        self._after_remove(entry)

    def update(
        self,
        entry_id: str,
        fields: dict[str, Any],
        origin: Origin = "direct",
    ) -> PolicyDecision[E] | None:
        """Write fields to one entry through the conflict policy.

        Args:
            entry_id: Entry to update
            fields: Partial field values
            origin: "direct" for user edits (sets protection flags), "auto" otherwise

        Returns:
            PolicyDecision, or None if the id is unknown

        Raises:
            DuplicateCityError: If the new city is already used by another entry
            pydantic.ValidationError: If the resulting entry is invalid
        """
        entry = self.get(entry_id)
        if entry is None:
            logger.debug("update: unknown %s entry %s", self.store_name, entry_id)
            return None

        fields = self._normalize_fields(dict(fields))
        if "city" in fields:
            self._check_unique_city(fields["city"], exclude_id=entry_id)

        decision = apply_protected(entry, fields, origin)
        self._record_skips(decision)
        if decision.changed:
            self._commit(self._replace_entry(decision.entry))
            self._after_update(entry, decision, origin)
        return decision

    def update_many(
        self,
        entry_ids: list[str],
        fields: dict[str, Any],
        origin: Origin = "auto",
    ) -> list[PolicyDecision[E]]:
        """All-or-nothing update of several entries in one state transition.

        Raises:
            DuplicateCityError: If a city would be written to more than one entry
            pydantic.ValidationError: If any resulting entry is invalid (nothing is written)
        """
        fields = self._normalize_fields(dict(fields))
        if "city" in fields and len(entry_ids) > 1:
            raise DuplicateCityError(f"cannot move {len(entry_ids)} entries to {fields['city']!r}")

        decisions: list[PolicyDecision[E]] = []
        for entry_id in entry_ids:
            entry = self.get(entry_id)
            if entry is not None:
                decisions.append(apply_protected(entry, fields, origin))

        for decision in decisions:
            self._record_skips(decision)

        changed = {d.entry.id: d.entry for d in decisions if d.changed}
        if changed:
            entries = [changed.get(e.id, e) for e in self._state.entries]  # type: ignore[attr-defined]
            self._commit(self._state.model_copy(update={"entries": entries}))
        return decisions

    def unprotect(self, entry_id: str, family: ProtectedFamily) -> None:
        """Explicitly hand a field family back to automation."""
        entry = self.get(entry_id)
        if entry is None:
            return
        cleared = clear_protection(entry, family)
        if cleared is not entry:
            self._commit(self._replace_entry(cleared))

    def default_entry_fields(self) -> dict[str, Any]:
        """Field values for a freshly added entry."""
        return {}

    def _normalize_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        return fields

    def _after_add(self, entry: E) -> None:
        pass

    def _after_remove(self, entry: E) -> None:
        pass

    def _after_update(self, before: E, decision: PolicyDecision[E], origin: Origin) -> None:
        pass

    def _replace_entry(self, new_entry: ProtectedEntry) -> S:
        entries = [new_entry if e.id == new_entry.id else e for e in self._state.entries]  # type: ignore[attr-defined]
        return self._state.model_copy(update={"entries": entries})

    def _check_unique_city(self, city: Any, exclude_id: str | None) -> None:
        if not self.unique_cities or not isinstance(city, str):
            return
        existing = self.by_city(city)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateCityError(f"{self.store_name} already has an entry for {city!r}")

    def _record_skips(self, decision: PolicyDecision[Any]) -> None:
        counts: dict[str, int] = {}
        for reason in decision.skipped.values():
            counts[reason] = counts.get(reason, 0) + 1
        for reason, count in counts.items():
            sync_metrics.inc_policy_skip(self.store_name, reason, count)


class DestinationScopedStore(EntryStore[S, E]):
    """Entry store whose entries are keyed by destination and fed by propagation.

    Subclasses name their date and budget fields; this class handles
    `sync:cityPropagated` for its target, default inheritance for new
    synced entries, and budget preset normalization.
    """

    sync_target: ClassVar[SyncTarget]
    date_fields: ClassVar[tuple[str, str]]
    budget_fields: ClassVar[tuple[str, str, str]]

    def __init__(self, bus: EventBus) -> None:
        super().__init__(bus)
        bus.on(SyncCityPropagated, self._on_city_propagated)

    def by_destination_id(self, destination_id: str | None) -> E | None:
        if not destination_id:
            return None
        for entry in self._state.entries:  # type: ignore[attr-defined]
            if entry.destination_id == destination_id:
                return entry
        return None

    def default_entry_fields(self) -> dict[str, Any]:
        preset_field, min_field, max_field = self.budget_fields
        defaults = self._state.defaults  # type: ignore[attr-defined]
        return {
            preset_field: defaults.budget_preset,
            min_field: defaults.min,
            max_field: defaults.max,
        }

    def inherited_budget(self) -> dict[str, Any]:
        """Budget a new synced entry starts with.

        Siblings' shared budget if every non-blank sibling is unprotected and
        they all agree, otherwise the store's global default.
        """
        preset_field, min_field, max_field = self.budget_fields
        siblings = [e for e in self._state.entries if e.city_key]  # type: ignore[attr-defined]
        if siblings and not any(e.user_modified_budget for e in siblings):
            values = {
                (getattr(e, preset_field), getattr(e, min_field), getattr(e, max_field))
                for e in siblings
            }
            if len(values) == 1:
                preset, low, high = values.pop()
                return {preset_field: preset, min_field: low, max_field: high}
        return self.default_entry_fields()

    def set_default_budget(
        self,
        preset: BudgetPreset,
        min_value: int | None = None,
        max_value: int | None = None,
    ) -> None:
        """Change the global budget default.

        The new default is applied to every entry whose budget the user has
        not set, in the same state transition.
        """
        bounds = BUDGET_PRESETS[preset]
        low = bounds.min if min_value is None else min_value
        high = bounds.max if max_value is None else max_value
        defaults = self._state.defaults.model_copy(  # type: ignore[attr-defined]
            update={"budget_preset": preset, "min": low, "max": high}
        )
        preset_field, min_field, max_field = self.budget_fields
        incoming = {preset_field: preset, min_field: low, max_field: high}

        def apply(state: S) -> S:
            entries = []
            for entry in state.entries:  # type: ignore[attr-defined]
                decision = apply_protected(entry, incoming, "auto")
                self._record_skips(decision)
                entries.append(decision.entry)
            return state.model_copy(update={"entries": entries, "defaults": defaults})

        self.update_batch(apply)

    def apply_destination(
        self,
        destination: Destination,
        start: date | None = None,
        end: date | None = None,
        replaces_destination_id: str | None = None,
    ) -> SyncAction:
        """Upsert the entry for a destination under the auto policy.

        Matches an existing entry by destination id, then by normalized city,
        then by the destination it replaces. An entry already holding the
        destination's city wins over one that only carries its id, so a city
        is never written onto a second entry. Otherwise creates a synced entry
        with inherited budget defaults.

        Returns:
            created, updated, unchanged or blocked
        """
        incoming: dict[str, Any] = {
            "city": destination.city,
            "country": destination.country,
            "country_code": destination.country_code,
            "geo": destination.geo,
            "synced_from_destination": True,
            "synced_at": destination.synced_at,
        }
        dates = self._date_fields(start, end)

        existing = self._match_destination(destination, replaces_destination_id)

        if existing is None:
            return self._create_synced(destination, {**incoming, **dates})

        if existing.destination_id is None:
            incoming["destination_id"] = destination.id

        decision = self._apply_auto(existing, {**incoming, **dates}, incoming)
        self._record_skips(decision)

        _, destination_fields = type(existing).protected_families["destination"]
        blocked = any(
            decision.skipped.get(name) == "protected" and incoming[name] != getattr(existing, name)
            for name in destination_fields
        )

        if self._same_content(existing, decision.entry):
            action: SyncAction = "blocked" if blocked else "unchanged"
        else:
            self._commit(self._replace_entry(decision.entry))
            action = "blocked" if blocked else "updated"

        if blocked:
            self._bus.emit(
                SyncBlocked(widget=self.sync_target, destination_id=destination.id, reason="manual_edit")
            )
        return action

    def _match_destination(self, destination: Destination, replaces_destination_id: str | None) -> E | None:
        by_city = self.by_city(destination.city)
        by_id = self.by_destination_id(destination.id)
        if by_id is not None and (by_city is None or by_city.id == by_id.id):
            return by_id
        if by_city is not None:
            if by_id is not None:
                logger.info(
                    "%s entry %s moved away from %s; matching by city instead",
                    self.store_name,
                    by_id.id,
                    destination.city,
                )
            return by_city
        return self.by_destination_id(replaces_destination_id)

    def _create_synced(self, destination: Destination, incoming: dict[str, Any]) -> SyncAction:
        blank = self.entry_model.model_validate(self.default_entry_fields())
        fields = {**self.inherited_budget(), **incoming, "destination_id": destination.id}
        decision = self._apply_auto(blank, fields, {k: v for k, v in fields.items() if k not in self.date_fields})

        new_entries = [*self._state.entries, decision.entry]  # type: ignore[attr-defined]
        active_id = self._state.active_id or decision.entry.id  # type: ignore[attr-defined]
        self._commit(self._state.model_copy(update={"entries": new_entries, "active_id": active_id}))
        return "created"

    def _apply_auto(
        self,
        entry: E,
        incoming: dict[str, Any],
        without_dates: dict[str, Any],
    ) -> PolicyDecision[E]:
        try:
            return apply_protected(entry, incoming, "auto")
        except ValidationError as e:
            # Propagated dates conflict with the entry's other date; keep the location
            logger.warning(
                "Dropping propagated dates for %s %s: %s",
                self.store_name,
                entry.city or entry.id,
                e.error_count(),
            )
            return apply_protected(entry, without_dates, "auto")

    def _date_fields(self, start: date | None, end: date | None) -> dict[str, Any]:
        start_field, end_field = self.date_fields
        dates: dict[str, Any] = {}
        if start is not None:
            dates[start_field] = start
        if end is not None and (start is None or end >= start):
            dates[end_field] = end
        return dates

    @staticmethod
    def _same_content(before: ProtectedEntry, after: ProtectedEntry) -> bool:
        return before.model_dump(exclude={"synced_at"}) == after.model_dump(exclude={"synced_at"})

    def _on_city_propagated(self, event: SyncCityPropagated) -> None:
        if event.to != self.sync_target:
            return
        if event.from_ == self.sync_target:
            # Never re-apply a destination this store produced
            return

        action = self.apply_destination(
            event.destination,
            event.check_in,
            event.check_out,
            replaces_destination_id=event.replaces_destination_id,
        )
        self._bus.emit(
            SyncApplied(target=self.sync_target, destination_id=event.destination.id, action=action)
        )

    def _normalize_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Expand a preset into its bounds, or mark explicit bounds as custom."""
        preset_field, min_field, max_field = self.budget_fields
        has_bounds = min_field in fields or max_field in fields

        if preset_field in fields:
            try:
                preset = BudgetPreset(fields[preset_field])
            except ValueError:
                return fields
            fields[preset_field] = preset
            if preset != BudgetPreset.custom and not has_bounds:
                bounds = BUDGET_PRESETS[preset]
                fields[min_field] = bounds.min
                fields[max_field] = bounds.max
        elif has_bounds:
            fields[preset_field] = BudgetPreset.custom
        return fields
