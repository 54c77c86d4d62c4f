# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Exception taxonomy.

- AsyncUsageError: the computation uses `await` where it cannot be lowered.
  Raised at transform time, before any rewriting (a compile error).
- TransformInvariantError: a pipeline stage saw a tree it should never have
  been handed. Always a bug in an earlier stage, never user error.
- AutomatonStateError: the generated automaton was driven illegally (resume
  after termination, double completion).
- PromiseAlreadyCompletedError: a future-system promise was completed twice.
- MatchError: runtime failure when no `case` arm matches a scrutinee.

User exceptions raised by state code are never wrapped; they travel through
the result promise as-is.
"""

from __future__ import annotations

from typing import Iterable

from .diagnostics import Diagnostic


class AsyncTransformError(Exception):
	"""Base class for errors raised by the transformation and its automaton."""


class AsyncUsageError(AsyncTransformError):
	"""Unsupported suspension placement; carries every diagnostic found."""

	def __init__(self, diagnostics: Iterable[Diagnostic]) -> None:
		self.diagnostics: list[Diagnostic] = list(diagnostics)
		super().__init__(self.format_human())

	@property
	def node_ids(self) -> list[int]:
		return [d.node_id for d in self.diagnostics if d.node_id is not None]

	def format_human(self) -> str:
		if not self.diagnostics:
			return "await usage rejected"
		return "\n".join(d.format_human() for d in self.diagnostics)


class TransformInvariantError(AsyncTransformError, RuntimeError):
	"""Internal consistency failure inside the pipeline."""


class AutomatonStateError(AsyncTransformError, RuntimeError):
	"""The automaton was resumed or completed after reaching its terminal state."""


class PromiseAlreadyCompletedError(AsyncTransformError, RuntimeError):
	"""A promise was completed more than once."""


class MatchError(Exception):
	"""No case arm matched the scrutinee."""

	def __init__(self, value: object) -> None:
		self.value = value
		super().__init__(f"no case matched value {value!r}")


__all__ = [
	"AsyncTransformError",
	"AsyncUsageError",
	"TransformInvariantError",
	"AutomatonStateError",
	"PromiseAlreadyCompletedError",
	"MatchError",
]
