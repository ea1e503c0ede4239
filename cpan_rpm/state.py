"""
Run-scoped build state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set


@dataclass
class ModuleRecord:
    """How a module required by one distribution was satisfied."""

    phases: Set[str] = field(default_factory=set)
    hard_phases: Set[str] = field(default_factory=set)
    owner: Optional[str] = None
    owner_version: Optional[str] = None
    failed: bool = False
    self_owned: bool = False

    @property
    def core(self) -> bool:
        return self.owner is None


class ModulePhaseMemo:
    """Modules already recorded while resolving a single distribution."""

    def __init__(self) -> None:
        self._records: Dict[str, ModuleRecord] = {}

    def __contains__(self, module: str) -> bool:
        return module in self._records

    def get(self, module: str) -> Optional[ModuleRecord]:
        return self._records.get(module)

    def record(
        self,
        module: str,
        phase: str,
        owner: Optional[str] = None,
        owner_version: Optional[str] = None,
        failed: bool = False,
        self_owned: bool = False,
        hard: bool = True,
    ) -> ModuleRecord:
        """Record a module for one phase; ``hard`` is False for suggestions."""
        record = self._records.setdefault(
            module,
            ModuleRecord(
                owner=owner, owner_version=owner_version, failed=failed, self_owned=self_owned
            ),
        )
        record.phases.add(phase)
        if hard:
            record.hard_phases.add(phase)
        return record


@dataclass
class BuildState:
    """Everything one run remembers about the distributions it touched.

    A distribution enters ``seen`` the moment its resolution starts, so a
    cycle back to it is treated as satisfied instead of being re-entered.
    """

    seen: Set[str] = field(default_factory=set)
    failed: List[str] = field(default_factory=list)
    built: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    attempts: int = 0
    depth: int = 0
    versions: Dict[str, str] = field(default_factory=dict)
    memos: Dict[str, ModulePhaseMemo] = field(default_factory=dict)

    def visit(self, distribution: str) -> bool:
        """Mark a distribution as visited; False if it already was."""
        if distribution in self.seen:
            return False
        self.seen.add(distribution)
        return True

    def mark_failed(self, distribution: str) -> None:
        if distribution not in self.failed:
            self.failed.append(distribution)

    def memo_for(self, distribution: str) -> ModulePhaseMemo:
        return self.memos.setdefault(distribution, ModulePhaseMemo())
