# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stage 3: partition a normalized block into states.

Pipeline placement:
  liveness (stage2) → state builder (this file) → automaton emitter (stage4)

Statements accumulate into the current state until one of:
  - a suspension `val x = await(f)`: close with Suspend, continue in a new state
  - `IfStmt`: close with Branch, lower each arm into its own states, then
    continue in a join state that every arm reaches with Goto
  - `MatchStmt`: same, with MatchDispatch and one arm state per case

Arms never copy the code after the branch; they reconverge at the join.
An `if` without else sends its false edge straight to the join.
"""

from __future__ import annotations

from typing import Collection, Optional

from asyncsm.core.errors import TransformInvariantError
from asyncsm.stage1 import tree as T
from asyncsm.stage2.liveness import is_suspension
from asyncsm.stage3.states import (
	Branch,
	Complete,
	DispatchArm,
	Goto,
	MatchDispatch,
	State,
	StateGraph,
	Suspend,
)


class StateBuilder:
	"""
	Incremental state-list construction.

	Mirrors a basic-block builder: `new_state` allocates the next number,
	`close` sets the transition of a state exactly once.
	"""

	def __init__(self, promoted: Collection[str] = frozenset()) -> None:
		self.states: list[State] = []
		self.promoted = frozenset(promoted)

	def new_state(self) -> State:
		state = State(index=len(self.states))
		self.states.append(state)
		return state

	def close(self, state: State, transition) -> None:
		if state.transition is not None:
			raise TransformInvariantError(
				f"state {state.index} already ends in {type(state.transition).__name__}"
			)
		state.transition = transition

	def link_to_join(self, state: Optional[State], join: State) -> None:
		if state is None:
			return
		if state.transition is not None:
			raise TransformInvariantError(
				f"branch arm ending in state {state.index} cannot reach join state {join.index}"
			)
		state.transition = Goto(target=join.index)

	def lower_stmts(self, stmts: tuple[T.Stmt, ...] | list[T.Stmt], cur: State) -> State:
		"""Lower `stmts` starting in `cur`; return the state left open at the end."""
		for stmt in stmts:
			if is_suspension(stmt):
				cur = self._lower_suspension(stmt, cur)  # type: ignore[arg-type]
			elif isinstance(stmt, T.IfStmt):
				cur = self._lower_if(stmt, cur)
			elif isinstance(stmt, T.MatchStmt):
				cur = self._lower_match(stmt, cur)
			else:
				cur.stats.append(stmt)
		return cur

	def _lower_suspension(self, stmt: T.ValDef, cur: State) -> State:
		awaited = stmt.value
		assert isinstance(awaited, T.Await)
		nxt = self.new_state()
		result_name = stmt.name if stmt.name in self.promoted else None
		self.close(
			cur,
			Suspend(
				await_id=awaited.node_id,
				future=awaited.future,
				result_name=result_name,
				resume_to=nxt.index,
			),
		)
		return nxt

	def _lower_if(self, stmt: T.IfStmt, cur: State) -> State:
		then_state = self.new_state()
		then_end = self.lower_stmts(stmt.then, then_state)
		else_state: Optional[State] = None
		else_end: Optional[State] = None
		if stmt.else_:
			else_state = self.new_state()
			else_end = self.lower_stmts(stmt.else_, else_state)
		join = self.new_state()
		else_target = else_state.index if else_state is not None else join.index
		self.close(cur, Branch(cond=stmt.cond, then_target=then_state.index, else_target=else_target))
		self.link_to_join(then_end, join)
		self.link_to_join(else_end, join)
		return join

	def _lower_match(self, stmt: T.MatchStmt, cur: State) -> State:
		arms: list[DispatchArm] = []
		ends: list[State] = []
		for arm in stmt.arms:
			arm_state = self.new_state()
			ends.append(self.lower_stmts(arm.body, arm_state))
			arms.append(DispatchArm(pattern=arm.pattern, target=arm_state.index, guard=arm.guard))
		join = self.new_state()
		self.close(cur, MatchDispatch(scrutinee=stmt.scrutinee, arms=tuple(arms)))
		for end in ends:
			self.link_to_join(end, join)
		return join


def build_state_machine(block: T.Block, promoted: Collection[str] = frozenset()) -> StateGraph:
	"""
	Partition `block` (ANF, promoted names already applied) into states.

	`promoted` is the set of automaton-wide names; a suspension whose binding
	is not among them discards the settled value.
	"""
	builder = StateBuilder(promoted)
	entry = builder.new_state()
	last = builder.lower_stmts(block.stats, entry)
	builder.close(last, Complete(result=block.expr))
	graph = StateGraph(states=builder.states, entry=entry.index)
	graph.validate()
	return graph


__all__ = ["StateBuilder", "build_state_machine"]
