"""Conflict resolution policy - field-level protection for automated writes.

This module is the only place that interprets protection flags. Every write to
a protected field family goes through `apply_protected`, whatever its source:
store-to-store propagation, chat targeting, or topology defaulting.

Rules:
    - origin="direct": every writable field is applied and the companion flag of
      each touched family is set.
    - origin="auto": fields whose family flag is set are skipped; all others are
      applied; flags are never set.
    - Flags are only cleared by `clear_protection`, an explicit user action.
    - Sync bookkeeping fields (`sync_managed_fields`) are written by automation only.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from tripsync.models.common import Origin
from tripsync.models.entries import ProtectedEntry, ProtectedFamily

E = TypeVar("E", bound=ProtectedEntry)

SkipReason = Literal["protected", "read_only", "unknown_field"]


@dataclass(frozen=True)
class PolicyDecision(Generic[E]):
    """Result of applying incoming fields to an entry.

    `entry` is a new instance; the input entry is never mutated.
    """

    entry: E
    applied: dict[str, Any] = field(default_factory=dict)
    skipped: dict[str, SkipReason] = field(default_factory=dict)
    flags_set: frozenset[str] = frozenset()

    @property
    def changed(self) -> bool:
        """True if any field or flag was written."""
        return bool(self.applied) or bool(self.flags_set)


def field_flags(entry_type: type[ProtectedEntry]) -> dict[str, str]:
    """Map each protected field to its companion flag."""
    mapping: dict[str, str] = {}
    for flag, fields in entry_type.protected_families.values():
        for name in fields:
            mapping[name] = flag
    return mapping


def flag_names(entry_type: type[ProtectedEntry]) -> frozenset[str]:
    """All protection flags of an entry type."""
    return frozenset(flag for flag, _ in entry_type.protected_families.values())


def is_protected(entry: ProtectedEntry, family: ProtectedFamily) -> bool:
    """True if the entry's family is user-owned."""
    guarded = type(entry).protected_families.get(family)
    if guarded is None:
        return False
    return bool(getattr(entry, guarded[0]))


def apply_protected(entry: E, incoming: dict[str, Any], origin: Origin) -> PolicyDecision[E]:
    """Apply incoming fields to an entry under the protection rules.

    Args:
        entry: Current entry
        incoming: Partial field values to write
        origin: "direct" for user edits, "auto" for propagation

    Returns:
        PolicyDecision with the new entry, applied fields and skipped fields

    Raises:
        pydantic.ValidationError: If the resulting entry is invalid
    """
    entry_type = type(entry)
    protected_fields = field_flags(entry_type)
    flags = flag_names(entry_type)

    applied: dict[str, Any] = {}
    skipped: dict[str, SkipReason] = {}
    flags_to_set: set[str] = set()

    for name, value in incoming.items():
        if name not in entry_type.model_fields:
            skipped[name] = "unknown_field"
            continue
        if name in entry_type.read_only_fields or name in flags:
            skipped[name] = "read_only"
            continue
        if origin == "direct" and name in entry_type.sync_managed_fields:
            skipped[name] = "read_only"
            continue

        flag = protected_fields.get(name)
        if origin == "auto" and flag is not None and getattr(entry, flag):
            skipped[name] = "protected"
            continue

        applied[name] = value
        if origin == "direct" and flag is not None and not getattr(entry, flag):
            flags_to_set.add(flag)

    if not applied:
        return PolicyDecision(entry=entry, skipped=skipped)

    merged = {**entry.model_dump(), **applied, **{flag: True for flag in flags_to_set}}
    new_entry = entry_type.model_validate(merged)

    return PolicyDecision(
        entry=new_entry,
        applied=applied,
        skipped=skipped,
        flags_set=frozenset(flags_to_set),
    )


def clear_protection(entry: E, family: ProtectedFamily) -> E:
    """Explicit user-initiated un-protect of one field family.

    Returns:
        New entry with the family's flag cleared (same entry if not applicable)
    """
    guarded = type(entry).protected_families.get(family)
    if guarded is None or not getattr(entry, guarded[0]):
        return entry
    return entry.model_copy(update={guarded[0]: False})
