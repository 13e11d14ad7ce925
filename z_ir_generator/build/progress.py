"""Progress reporting and failure bookkeeping for database replays."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

import click

logger = logging.getLogger(__name__)

_STAGE_COLORS = {
    "building": "green",
    "opt": "cyan",
    "failed": "red",
}


def percent(index: int, total: int) -> int:
    """``(index+1)/total`` as a whole percentage, halves rounded up."""
    if total <= 0:
        return 100
    return int((index + 1) * 100 / total + 0.5)


@dataclass
class ProgressEvent:
    stage: str  # "building" | "built" | "opt" | "failed"
    index: int
    total: int
    target: str

    @property
    def percent(self) -> int:
        return percent(self.index, self.total)

    def format(self) -> str:
        return f"{self.stage:<8} [{self.percent:3d}%] {self.target}"


def echo_event(event: ProgressEvent) -> None:
    click.secho(event.format(), fg=_STAGE_COLORS.get(event.stage))


class BuildProgress:
    """Collects progress events from (possibly concurrent) replays.

    Callbacks run on the thread that produced the event. ``echo=True``
    prints every event to stdout.
    """

    def __init__(self, echo: bool = True) -> None:
        self.echo = echo
        self.events: list[ProgressEvent] = []
        self.callbacks: list[Callable[[ProgressEvent], None]] = []
        self._lock = threading.Lock()
        if echo:
            self.callbacks.append(echo_event)

    def note(self, message: str) -> None:
        if self.echo:
            click.echo(message)

    def summarize(self, summary: BuildSummary) -> None:
        if self.echo:
            summary.echo()

    def emit(self, stage: str, index: int, total: int, target: str) -> ProgressEvent:
        event = ProgressEvent(stage=stage, index=index, total=total, target=target)
        with self._lock:
            self.events.append(event)
        for cb in self.callbacks:
            try:
                cb(event)
            except Exception:
                logger.debug("Progress callback error for %s", target, exc_info=True)
        return event

    def targets(self, stage: str) -> list[str]:
        with self._lock:
            return [e.target for e in self.events if e.stage == stage]


class FailureSet:
    """Targets whose replay failed, shared by all workers of one run."""

    def __init__(self) -> None:
        self._targets: set[str] = set()
        self._lock = threading.Lock()

    def add(self, target: str) -> None:
        with self._lock:
            self._targets.add(target)

    def snapshot(self) -> list[str]:
        with self._lock:
            return sorted(self._targets)

    def __contains__(self, target: object) -> bool:
        with self._lock:
            return target in self._targets

    def __len__(self) -> int:
        with self._lock:
            return len(self._targets)


@dataclass
class BuildSummary:
    total: int
    failed: list[str] = field(default_factory=list)

    @property
    def built(self) -> int:
        return self.total - len(self.failed)

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 100.0
        return (self.total - len(self.failed)) / self.total * 100

    def echo(self) -> None:
        for t in self.failed:
            click.secho(f"Failed {t}", fg="red")
        click.echo(f"Compilation success rate: {self.success_rate:.2f}%")
