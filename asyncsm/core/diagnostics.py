# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Diagnostic record produced by the await-usage analyzer.

A diagnostic names one suspension point (`node_id`) and the construct it was
found in. The driver collects them into `AsyncUsageError`; nothing here
prints or logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .span import Span


@dataclass
class Diagnostic:
	"""A compile-time diagnostic attached to one tree node."""

	message: str
	code: str | None = None
	# Pipeline phase that emitted the diagnostic ("await-analysis", ...).
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)  # Span() denotes unknown.
	# NodeId of the offending suspension point, when there is one.
	node_id: int | None = None
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	def format_human(self) -> str:
		head = f"{self.span.describe()}: {self.severity}"
		if self.code:
			head += f"[{self.code}]"
		parts = [f"{head}: {self.message}"]
		if self.node_id is not None:
			parts.append(f"(await #{self.node_id})")
		text = " ".join(parts)
		for note in self.notes:
			text += f"\n  note: {note}"
		return text


__all__ = ["Diagnostic"]
