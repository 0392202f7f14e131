"""
Diagnostics collected while planning and applying resource operations.

A Diagnostics collection is handed back to the caller instead of raising, so
that several independent problems (a failed validator, an immutable attribute,
a conversion failure) can be reported together.
"""

import enum
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union


class Severity(enum.Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single problem report, optionally attached to an attribute path."""
    severity: Severity
    summary: str
    detail: str = ""
    path: Optional[str] = None

    def __str__(self) -> str:
        prefix = f"{self.path}: " if self.path else ""
        if self.detail:
            return f"{prefix}{self.summary} - {self.detail}"
        return f"{prefix}{self.summary}"


class Diagnostics:
    """Ordered collection of diagnostics."""

    def __init__(self, items: Optional[List[Diagnostic]] = None):
        self._items: List[Diagnostic] = list(items or [])

    def add_error(self, summary: str, detail: str = "") -> None:
        self._items.append(Diagnostic(Severity.ERROR, summary, detail))

    def add_warning(self, summary: str, detail: str = "") -> None:
        self._items.append(Diagnostic(Severity.WARNING, summary, detail))

    def add_attribute_error(self, path: str, summary: str, detail: str = "") -> None:
        self._items.append(Diagnostic(Severity.ERROR, summary, detail, path))

    def add_attribute_warning(self, path: str, summary: str, detail: str = "") -> None:
        self._items.append(Diagnostic(Severity.WARNING, summary, detail, path))

    def append(self, *diagnostics: Diagnostic) -> None:
        self._items.extend(diagnostics)

    def extend(self, other: "Diagnostics") -> None:
        self._items.extend(other)

    def has_error(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self._items)

    def errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.ERROR]

    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.WARNING]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Diagnostics({self._items!r})"


def join_path(parent: Optional[str], step: Union[str, int]) -> str:
    """Append one step to an attribute path.

    Attribute names are joined with dots, list indexes render as ``[i]`` and
    map keys as ``["key"]``:

        >>> join_path("rules", 0)
        'rules[0]'
        >>> join_path(join_path("tags", 'env'), "value")
        'tags.env.value'
    """
    if isinstance(step, int):
        return f"{parent or ''}[{step}]"
    if not parent:
        return step
    return f"{parent}.{step}"


def join_key(parent: Optional[str], key: str) -> str:
    """Append a map key step (``parent["key"]``)."""
    return f'{parent or ""}["{key}"]'
