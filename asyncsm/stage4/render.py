# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Pseudo-source rendering of an emitted automaton.

Verbose mode logs this text ("state machine expands to ..."). It shows the
automaton as if it were hand-written: internal fields, promoted slots, a
`resume` loop dispatching on the state field, and the completion callback.
The output is documentation only; nothing parses or executes it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from asyncsm.stage1.pretty import format_expr, format_literal, format_pattern, format_stmt
from asyncsm.stage3.states import Branch, Complete, Goto, MatchDispatch, Suspend

if TYPE_CHECKING:
	from asyncsm.stage4.emitter import AsyncProgram

_PAD = "    "


def _pad(depth: int) -> str:
	return _PAD * depth


def render_automaton(program: "AsyncProgram") -> str:
	names = program.names
	st = names.state
	out: list[str] = [f"class {program.name}_state_machine:"]
	out.append(f"{_pad(1)}{st} = 0")
	out.append(f"{_pad(1)}{names.result} = future_system.create_promise()")
	out.append(f"{_pad(1)}{names.exec_context} = future_system.get_execution_context()")
	for slot in program.slots:
		ty = f": {slot.ty}" if slot.ty else ""
		out.append(f"{_pad(1)}{slot.name}{ty} = {format_literal(slot.default)}")
	out.append("")

	out.append(f"{_pad(1)}def resume(self):")
	out.append(f"{_pad(2)}try:")
	out.append(f"{_pad(3)}while True:")
	out.append(f"{_pad(4)}match {st}:")
	for state in program.graph:
		out.append(f"{_pad(5)}case {state.index}:")
		body = _pad(6)
		for stmt in state.stats:
			out.extend(body + line for line in format_stmt(stmt))
		tr = state.transition
		if isinstance(tr, Goto):
			out.append(f"{body}{st} = {tr.target}")
		elif isinstance(tr, Branch):
			out.append(f"{body}{st} = {tr.then_target} if {format_expr(tr.cond)} else {tr.else_target}")
		elif isinstance(tr, MatchDispatch):
			out.append(f"{body}match {format_expr(tr.scrutinee)}:")
			for arm in tr.arms:
				guard = f" if {format_expr(arm.guard)}" if arm.guard is not None else ""
				out.append(f"{body}{_PAD}case {format_pattern(arm.pattern)}{guard}: {st} = {arm.target}")
			out.append(f"{body}{_PAD}case other: raise MatchError(other)")
		elif isinstance(tr, Suspend):
			out.append(f"{body}{st} = {tr.resume_to}")
			out.append(
				f"{body}future_system.on_complete({format_expr(tr.future)}, self, {names.exec_context})"
				f"  # await #{tr.await_id}"
			)
			out.append(f"{body}return")
		elif isinstance(tr, Complete):
			out.append(f"{body}future_system.complete({names.result}, Success({format_expr(tr.result)}))")
			out.append(f"{body}{st} = -1")
			out.append(f"{body}return")
	out.append(f"{_pad(2)}except Exception as exc:")
	out.append(f"{_pad(3)}future_system.complete({names.result}, Failure(exc))")
	out.append("")

	out.append(f"{_pad(1)}def __call__(self, outcome):")
	out.append(f"{_pad(2)}if isinstance(outcome, Failure):")
	out.append(f"{_pad(3)}future_system.complete({names.result}, outcome)")
	out.append(f"{_pad(3)}return")
	stores = [(s.resume_to, s.result_name) for s in program.graph.suspensions if s.result_name]
	if stores:
		out.append(f"{_pad(2)}match {st}:")
		for resume_to, slot in stores:
			out.append(f"{_pad(3)}case {resume_to}: {slot} = outcome.value")
	out.append(f"{_pad(2)}self.resume()")
	return "\n".join(out)


__all__ = ["render_automaton"]
