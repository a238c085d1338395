"""Interaction boundary between the apply workflow and a front end.

The workflow only talks to ``Interaction``; how prompts and messages are
rendered (terminal, batch script, editor) is up to the implementation.
"""
from __future__ import annotations

import signal
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Literal, TextIO

from dwtsync.diff_report import DiffSummary

type ApplyDecision = Literal["apply", "skip", "apply_all", "cancel"]
type Severity = Literal["info", "warning", "error"]

_CHOICES: tuple[tuple[str, ApplyDecision], ...] = (
    ("Apply", "apply"),
    ("Apply to All", "apply_all"),
    ("Skip", "skip"),
    ("Cancel", "cancel"),
)


class Interaction(ABC):
    """User-facing side of a run: prompts, messages, progress, cancellation."""

    @abstractmethod
    def confirm(self, summary: DiffSummary) -> ApplyDecision:
        """Show a proposed change and return the user's decision."""
        ...

    @abstractmethod
    def notify(self, message: str, severity: Severity = "info") -> None:
        ...

    @abstractmethod
    def report_progress(self, message: str) -> None:
        ...

    @abstractmethod
    def is_cancelled(self) -> bool:
        """Polled between files; True stops the run before the next file."""
        ...


class TerminalInteraction(Interaction):
    """Numbered prompts on a text stream, messages on stderr.

    ``watch_interrupts`` turns the first Ctrl+C into a cooperative cancel
    request; a second one interrupts the process as usual.
    """

    def __init__(
        self,
        *,
        input_fn: Callable[[str], str] = input,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self._input = input_fn
        self._out = out or sys.stdout
        self._err = err or sys.stderr
        self._cancel_requested = False

    def confirm(self, summary: DiffSummary) -> ApplyDecision:
        print(f"\n=== Diff for {summary.path} ===\n", file=self._out)
        print(summary.render() or "No changes detected.", file=self._out)
        print(f"\n[INFO] Apply changes to {summary.path}?", file=self._out)
        print("Options:", file=self._out)
        for idx, (label, _) in enumerate(_CHOICES, start=1):
            print(f"  {idx}. {label}", file=self._out)
        while True:
            try:
                answer = self._input("Select an option (number): ")
            except EOFError:
                return "cancel"
            choice = answer.strip()
            if choice.isdigit() and 1 <= int(choice) <= len(_CHOICES):
                return _CHOICES[int(choice) - 1][1]
            print(f"Please enter a number between 1 and {len(_CHOICES)}.", file=self._out)

    def ask_yes_no(self, message: str) -> bool:
        print(f"[WARNING] {message}", file=self._out)
        try:
            answer = self._input("Confirm (y/N): ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    def notify(self, message: str, severity: Severity = "info") -> None:
        print(f"[{severity.upper()}] {message}", file=self._err)

    def report_progress(self, message: str) -> None:
        print(f"  {message}", file=self._err)

    def is_cancelled(self) -> bool:
        return self._cancel_requested

    def request_cancel(self) -> None:
        self._cancel_requested = True

    @contextmanager
    def watch_interrupts(self) -> Iterator[None]:
        def _handler(signum: int, frame: object) -> None:
            print("\nCancelling after the current file...", file=self._err)
            self.request_cancel()
            signal.signal(signal.SIGINT, previous)

        previous = signal.getsignal(signal.SIGINT)
        signal.signal(signal.SIGINT, _handler)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)


class ScriptedInteraction(Interaction):
    """Replays pre-recorded decisions; for batch runs and tests.

    When the script runs out, ``default`` is returned. ``cancel_before``
    simulates an interrupt arriving before the n-th file (1-based).
    """

    def __init__(
        self,
        decisions: Iterable[ApplyDecision] = (),
        *,
        default: ApplyDecision = "skip",
        cancel_before: int | None = None,
    ) -> None:
        self._decisions = list(decisions)
        self._default = default
        self._cancel_before = cancel_before
        self._polls = 0
        self.prompts: list[DiffSummary] = []
        self.messages: list[tuple[Severity, str]] = []
        self.progress: list[str] = []

    def confirm(self, summary: DiffSummary) -> ApplyDecision:
        self.prompts.append(summary)
        if self._decisions:
            return self._decisions.pop(0)
        return self._default

    def notify(self, message: str, severity: Severity = "info") -> None:
        self.messages.append((severity, message))

    def report_progress(self, message: str) -> None:
        self.progress.append(message)

    def is_cancelled(self) -> bool:
        self._polls += 1
        return self._cancel_before is not None and self._polls >= self._cancel_before
