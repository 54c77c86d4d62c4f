# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Fresh-name generation.

A FreshNames value is created once per transformation and handed explicitly
from stage to stage (each stage returns it alongside its result). Nothing in
the pipeline keeps a module-level counter.

Generated names have the shape `<base><sep><n>` (`await$3`, `x$7`). The
automaton's own names use the reserved suffix `<sep>async` (`state$async`),
so a generated name can never equal an internal one.
"""

from __future__ import annotations

INTERNAL_SUFFIX = "async"


class FreshNames:
	"""Monotonic counter plus separator."""

	def __init__(self, separator: str = "$", start: int = 1) -> None:
		if not separator:
			raise ValueError("fresh-name separator must be non-empty")
		self.separator = separator
		self._next = start

	@property
	def counter(self) -> int:
		"""Next number that will be handed out."""
		return self._next

	def fresh(self, base: str) -> str:
		"""Return a new name derived from `base` (any previous suffix is dropped)."""
		stem = self.base_of(base)
		name = f"{stem}{self.separator}{self._next}"
		self._next += 1
		return name

	def base_of(self, name: str) -> str:
		"""Strip a generated suffix: `x$4` -> `x`; plain names are returned unchanged."""
		stem, sep, tail = name.rpartition(self.separator)
		if sep and stem and (tail.isdigit() or tail == INTERNAL_SUFFIX):
			return stem
		return name

	def internal(self, base: str) -> str:
		"""Automaton-internal name (`state` -> `state$async`)."""
		return f"{base}{self.separator}{INTERNAL_SUFFIX}"

	def is_internal(self, name: str) -> bool:
		return name.endswith(f"{self.separator}{INTERNAL_SUFFIX}")

	def __repr__(self) -> str:
		return f"FreshNames(separator={self.separator!r}, next={self._next})"


__all__ = ["FreshNames", "INTERNAL_SUFFIX"]
