# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stage 2: cross-state liveness (which bindings outlive a suspension).

Pipeline placement:
  ANF (stage1) → liveness (this file) → state builder (stage3) → automaton

Each resumption of the automaton runs in a fresh activation frame, so a
binding whose value is needed on the far side of an `await` must live in the
automaton itself. This pass finds those bindings and gives them globally
unique names; everything else stays frame-local.

Segments:
  the segment of a statement is the number of suspension statements that
  precede it in a pre-order scan (normalized branch arms are scanned in
  place, then-arm before else-arm). A binding is PROMOTED iff some use sits
  in a different segment than its definition. An await result is defined in
  the awaiting statement's segment and can only be read later, so a read
  await result is always promoted.

Counting arms in pre-order can promote a binding whose uses share a frame on
every real path (an else-arm after an awaiting then-arm). It never misses a
binding that crosses a suspension on some path.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional

from asyncsm.core.fresh import FreshNames
from asyncsm.stage1 import tree as T
from asyncsm.stage1.tree_utils import free_names, rename_free


class BindingKind(Enum):
	LOCAL = "local"
	PROMOTED = "promoted"


@dataclass
class BindingInfo:
	"""Classification of one root-level binding."""

	name: str  # name in the ANF tree
	def_segment: int
	use_segments: list[int] = field(default_factory=list)
	ty: Optional[str] = None  # declared type, drives the slot default
	kind: BindingKind = BindingKind.LOCAL
	renamed: Optional[str] = None  # automaton-wide name when promoted

	@property
	def promoted(self) -> bool:
		return self.kind is BindingKind.PROMOTED

	@property
	def storage_name(self) -> str:
		return self.renamed or self.name


@dataclass
class LivenessResult:
	block: T.Block
	bindings: Dict[str, BindingInfo]
	rename_map: Dict[str, str]
	fresh: FreshNames

	@property
	def promoted(self) -> list[BindingInfo]:
		return [b for b in self.bindings.values() if b.promoted]

	@property
	def promoted_names(self) -> frozenset[str]:
		return frozenset(b.storage_name for b in self.promoted)


def is_suspension(stmt: T.Stmt) -> bool:
	"""True for the `val x = await(f)` statements produced by ANF."""
	return isinstance(stmt, T.ValDef) and isinstance(stmt.value, T.Await)


class _SegmentScan:
	"""First pass: definition and use segments for every root binding."""

	def __init__(self) -> None:
		self.segment = 0
		self.bindings: Dict[str, BindingInfo] = {}

	def _define(self, name: str, ty: Optional[str]) -> None:
		self.bindings[name] = BindingInfo(name=name, def_segment=self.segment, ty=ty)

	def _use_all(self, node: T.Node) -> None:
		for name in sorted(free_names(node)):
			info = self.bindings.get(name)
			if info is not None:
				info.use_segments.append(self.segment)

	def stmts(self, stmts: tuple[T.Stmt, ...]) -> None:
		for stmt in stmts:
			self.stmt(stmt)

	def stmt(self, stmt: T.Stmt) -> None:
		if isinstance(stmt, T.ValDef):
			self._use_all(stmt.value)
			self._define(stmt.name, stmt.ty)
			if is_suspension(stmt):
				self.segment += 1
		elif isinstance(stmt, T.FunDef):
			self._define(stmt.name, None)
			self._use_all(stmt)
		elif isinstance(stmt, T.IfStmt):
			self._use_all(stmt.cond)
			self.stmts(stmt.then)
			self.stmts(stmt.else_)
		elif isinstance(stmt, T.MatchStmt):
			self._use_all(stmt.scrutinee)
			for arm in stmt.arms:
				for binder in T.pattern_binders(arm.pattern):
					ty = arm.pattern.type_name if isinstance(arm.pattern, T.BindPattern) else None
					self._define(binder, ty)
			# Pattern tests and guards all run in the dispatching state.
			for arm in stmt.arms:
				if arm.guard is not None:
					self._use_all(arm.guard)
			for arm in stmt.arms:
				self.stmts(arm.body)
		else:
			self._use_all(stmt)


class _Promoter:
	"""Second pass: rewrite promoted definitions and every later use."""

	def __init__(self, promoted: Dict[str, str]) -> None:
		self.promoted = promoted
		self.mapping: Dict[str, str] = {}

	def _bind(self, name: str) -> str:
		new = self.promoted.get(name)
		if new is None:
			return name
		self.mapping[name] = new
		return new

	def stmts(self, stmts: tuple[T.Stmt, ...]) -> tuple[T.Stmt, ...]:
		return tuple(self.stmt(s) for s in stmts)

	def stmt(self, stmt: T.Stmt) -> T.Stmt:
		if isinstance(stmt, T.ValDef):
			value = rename_free(stmt.value, self.mapping)
			return replace(stmt, name=self._bind(stmt.name), value=value)
		if isinstance(stmt, T.FunDef):
			name = self._bind(stmt.name)
			lam = rename_free(T.Lambda(params=stmt.params, body=stmt.body), self.mapping)
			assert isinstance(lam, T.Lambda)
			return replace(stmt, name=name, body=lam.body)
		if isinstance(stmt, T.IfStmt):
			cond = rename_free(stmt.cond, self.mapping)
			then = self.stmts(stmt.then)
			else_ = self.stmts(stmt.else_)
			return replace(stmt, cond=cond, then=then, else_=else_)
		if isinstance(stmt, T.MatchStmt):
			scrutinee = rename_free(stmt.scrutinee, self.mapping)
			heads = []
			for arm in stmt.arms:
				pattern = arm.pattern
				if isinstance(pattern, T.BindPattern):
					pattern = replace(pattern, name=self._bind(pattern.name))
				heads.append(pattern)
			arms = []
			for arm, pattern in zip(stmt.arms, heads):
				guard = rename_free(arm.guard, self.mapping) if arm.guard is not None else None
				arms.append(replace(arm, pattern=pattern, guard=guard))
			arms = [replace(arm, body=self.stmts(arm.body)) for arm in arms]
			return replace(stmt, scrutinee=scrutinee, arms=tuple(arms))
		return rename_free(stmt, self.mapping)  # type: ignore[return-value]


def analyze_liveness(block: T.Block, fresh: FreshNames | None = None) -> LivenessResult:
	"""
	Classify root-level bindings of an ANF block as LOCAL or PROMOTED and
	rename promoted ones to fresh automaton-wide names.
	"""
	fresh = fresh or FreshNames()
	scan = _SegmentScan()
	scan.stmts(block.stats)
	scan._use_all(block.expr)

	rename_map: Dict[str, str] = {}
	for info in scan.bindings.values():
		if any(seg != info.def_segment for seg in info.use_segments):
			info.kind = BindingKind.PROMOTED
			info.renamed = fresh.fresh(info.name)
			rename_map[info.name] = info.renamed

	if not rename_map:
		return LivenessResult(block=block, bindings=scan.bindings, rename_map={}, fresh=fresh)

	promoter = _Promoter(rename_map)
	stats = promoter.stmts(block.stats)
	expr = rename_free(block.expr, promoter.mapping)
	out = replace(block, stats=stats, expr=expr)
	return LivenessResult(block=out, bindings=scan.bindings, rename_map=rename_map, fresh=fresh)


__all__ = [
	"BindingKind",
	"BindingInfo",
	"LivenessResult",
	"analyze_liveness",
	"is_suspension",
]
