# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
States and transitions of the generated automaton.

A State is a straight-line slice of normalized statements plus exactly one
transition, the way a basic block is instructions plus one terminator.
States are numbered 0..N-1 in source order; state 0 is the entry.

Transitions:
  - Goto:          fall through to another state in the same activation
  - Suspend:       register a completion callback on a future, resume later
  - Branch:        if/else dispatch to arm states
  - MatchDispatch: pattern dispatch to arm states (no match -> MatchError)
  - Complete:      complete the result promise with the result expression
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from asyncsm.core.errors import TransformInvariantError
from asyncsm.stage1 import tree as T
from asyncsm.stage1.pretty import format_expr, format_pattern, format_stmt_inline


@dataclass(frozen=True)
class Goto:
	target: int


@dataclass(frozen=True)
class Suspend:
	"""
	Wait for `future`; on success store the value into `result_name` (a
	promoted slot, or nothing when the value is never read) and continue at
	`resume_to` in a new activation.
	"""
	await_id: int
	future: T.Expr
	result_name: Optional[str]
	resume_to: int


@dataclass(frozen=True)
class Branch:
	cond: T.Expr
	then_target: int
	else_target: int


@dataclass(frozen=True)
class DispatchArm:
	pattern: T.Pattern
	target: int
	guard: Optional[T.Expr] = None


@dataclass(frozen=True)
class MatchDispatch:
	scrutinee: T.Expr
	arms: tuple[DispatchArm, ...]


@dataclass(frozen=True)
class Complete:
	result: T.Expr


Transition = Union[Goto, Suspend, Branch, MatchDispatch, Complete]


@dataclass
class State:
	index: int
	stats: list[T.Stmt] = field(default_factory=list)
	transition: Optional[Transition] = None

	def successors(self) -> list[int]:
		tr = self.transition
		if isinstance(tr, Goto):
			return [tr.target]
		if isinstance(tr, Suspend):
			return [tr.resume_to]
		if isinstance(tr, Branch):
			return [tr.then_target, tr.else_target]
		if isinstance(tr, MatchDispatch):
			return [arm.target for arm in tr.arms]
		return []


@dataclass
class StateGraph:
	states: list[State]
	entry: int = 0

	def __len__(self) -> int:
		return len(self.states)

	def __getitem__(self, index: int) -> State:
		return self.states[index]

	def __iter__(self) -> Iterator[State]:
		return iter(self.states)

	@property
	def suspensions(self) -> list[Suspend]:
		return [s.transition for s in self.states if isinstance(s.transition, Suspend)]

	def validate(self) -> None:
		"""Every state is closed and every target exists."""
		for pos, state in enumerate(self.states):
			if state.index != pos:
				raise TransformInvariantError(f"state {state.index} stored at position {pos}")
			if state.transition is None:
				raise TransformInvariantError(f"state {state.index} has no transition")
			for target in state.successors():
				if not 0 <= target < len(self.states):
					raise TransformInvariantError(f"state {state.index} jumps to missing state {target}")
		completes = [s for s in self.states if isinstance(s.transition, Complete)]
		if len(completes) != 1:
			raise TransformInvariantError(f"expected one completing state, found {len(completes)}")

	def describe(self) -> str:
		"""Human-readable state list (verbose dumps)."""
		lines: list[str] = []
		for state in self.states:
			lines.append(f"state {state.index}:")
			for stmt in state.stats:
				lines.append(f"  {format_stmt_inline(stmt)}")
			lines.append(f"  -> {describe_transition(state.transition)}")
		return "\n".join(lines)


def describe_transition(tr: Optional[Transition]) -> str:
	if tr is None:
		return "<open>"
	if isinstance(tr, Goto):
		return f"goto {tr.target}"
	if isinstance(tr, Suspend):
		into = f" into {tr.result_name}" if tr.result_name else ""
		return f"suspend on {format_expr(tr.future)}{into} (await #{tr.await_id}), resume at {tr.resume_to}"
	if isinstance(tr, Branch):
		return f"branch {format_expr(tr.cond)} ? {tr.then_target} : {tr.else_target}"
	if isinstance(tr, MatchDispatch):
		arms = ", ".join(
			format_pattern(a.pattern)
			+ (f" if {format_expr(a.guard)}" if a.guard is not None else "")
			+ f" -> {a.target}"
			for a in tr.arms
		)
		return f"match {format_expr(tr.scrutinee)} {{ {arms} }}"
	return f"complete {format_expr(tr.result)}"


__all__ = [
	"Goto",
	"Suspend",
	"Branch",
	"DispatchArm",
	"MatchDispatch",
	"Complete",
	"Transition",
	"State",
	"StateGraph",
	"describe_transition",
]
