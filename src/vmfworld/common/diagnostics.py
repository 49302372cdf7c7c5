from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DIAG_PARSE = "parse"
DIAG_GEOMETRY = "geometry"


class LoadFailure(RuntimeError):
    """A map load that cannot continue (unreadable source, broken structure)."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


@dataclass
class Diagnostic:
    kind: str
    context: str
    message: str
    count: int = 1

    def summary_line(self) -> str:
        base = f"[{self.kind}] {self.context}: {self.message}".strip()
        if self.count > 1:
            base += f" (x{self.count})"
        return base


class DiagnosticLog:
    """
    Ordered buffer of non-fatal load anomalies.

    Goals:
    - make malformed input observable from tests and tooling, not only from logs
    - fold consecutive identical reports (a broken side repeated across a brush)
    - keep a bounded feed so pathological maps cannot grow it without limit
    """

    def __init__(self, *, max_items: int = 500) -> None:
        self._max_items = max(1, int(max_items))
        self._items: list[Diagnostic] = []
        self._last_key: tuple[str, str, str] | None = None
        self.dropped: int = 0

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def items(self) -> list[Diagnostic]:
        return list(self._items)

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [d for d in self._items if d.kind == kind]

    def counts_by_kind(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for d in self._items:
            out[d.kind] = out.get(d.kind, 0) + int(d.count)
        return out

    def clear(self) -> None:
        self._items.clear()
        self._last_key = None
        self.dropped = 0

    def extend(self, other: DiagnosticLog) -> None:
        for d in other.items():
            for _ in range(max(1, int(d.count))):
                self._append(kind=d.kind, context=d.context, message=d.message)

    def parse(self, *, context: str, message: str) -> None:
        self.report(kind=DIAG_PARSE, context=context, message=message)

    def geometry(self, *, context: str, message: str) -> None:
        self.report(kind=DIAG_GEOMETRY, context=context, message=message)

    def report(self, *, kind: str, context: str, message: str) -> None:
        context = str(context or "unknown")
        message = str(message or "").strip() or "Unknown problem"
        self._append(kind=str(kind), context=context, message=message)
        logger.warning("%s: %s: %s", kind, context, message)

    def _append(self, *, kind: str, context: str, message: str) -> None:
        key = (kind, context, message)
        if self._items and self._last_key == key:
            self._items[-1].count += 1
            return

        if len(self._items) >= self._max_items:
            self.dropped += 1
            return
        self._items.append(Diagnostic(kind=kind, context=context, message=message))
        self._last_key = key
