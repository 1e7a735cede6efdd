"""Reconciliation of historical modifications against the current file snapshot.

History references paths that may have been deleted before the snapshot was
taken. Each such path gets exactly one placeholder file so every
modification has a target.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from forgesync.source.models import SourceModification


@dataclass
class ReconciliationPlan:
    """Modifications split by whether their path exists in the snapshot."""

    resolvable: list[SourceModification] = field(default_factory=list)
    # path -> modifications touching it, in first-seen order
    orphaned: dict[str, list[SourceModification]] = field(default_factory=dict)

    @property
    def orphaned_paths(self) -> list[str]:
        return list(self.orphaned)


def partition_modifications(
    modifications: Iterable[SourceModification], known_paths: Iterable[str]
) -> ReconciliationPlan:
    known = set(known_paths)
    plan = ReconciliationPlan()
    for mod in modifications:
        if mod.file in known:
            plan.resolvable.append(mod)
        else:
            plan.orphaned.setdefault(mod.file, []).append(mod)
    return plan


def placeholder_name(path: str) -> str:
    """Final path segment after the last '/'."""
    return path.rsplit("/", 1)[-1]


def file_extension(name: str) -> str | None:
    """Substring after the last '.', or None when the name has no dot."""
    if "." not in name:
        return None
    ext = name.rsplit(".", 1)[1]
    return ext or None
