# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lightweight source span used by tree nodes and diagnostics.

Trees built by hand carry `Span()` (unknown location). Trees produced by the
surface reader carry the line/column of the lark node they came from, with the
original meta object kept in `raw`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort file/line/column for a tree node."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None
	raw: Any = None

	@classmethod
	def from_meta(cls, meta: Any, *, file: str | None = None) -> "Span":
		"""
		Build a Span from a lark `Meta` (or any object with line/column fields).

		Empty metas (rules that matched no tokens) become the unknown Span.
		"""
		if meta is None or getattr(meta, "empty", False):
			return cls(file=file)
		if isinstance(meta, cls):
			return meta
		return cls(
			file=file,
			line=getattr(meta, "line", None),
			column=getattr(meta, "column", None),
			end_line=getattr(meta, "end_line", None),
			end_column=getattr(meta, "end_column", None),
			raw=meta,
		)

	@property
	def known(self) -> bool:
		return self.line is not None

	def describe(self) -> str:
		"""Render as `file:line:col`, dropping the parts that are unknown."""
		if not self.known:
			return "<unknown>" if self.file is None else self.file
		where = f"{self.line}:{self.column}" if self.column is not None else f"{self.line}"
		return f"{self.file}:{where}" if self.file else where


__all__ = ["Span"]
