# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stage 4: automaton emission.

Pipeline placement:
  state builder (stage3) → emitter (this file) → StateMachine per invocation

The emitter assembles everything an invocation needs into an `AsyncProgram`:
the state list, one slot per promoted binding (with its default value) and
the automaton-internal field names. The program is a reusable template;
`start` creates a fresh `StateMachine` each time, so two invocations never
share promoted storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from asyncsm.core.errors import TransformInvariantError
from asyncsm.core.fresh import FreshNames
from asyncsm.core.options import TransformOptions
from asyncsm.stage1 import tree as T
from asyncsm.stage2.liveness import LivenessResult
from asyncsm.stage3.states import StateGraph
from asyncsm.stage4.automaton import StateMachine
from asyncsm.stage4.render import render_automaton


@dataclass(frozen=True)
class PromotedSlot:
	"""Automaton-wide storage for one promoted binding."""

	name: str
	ty: Optional[str] = None
	default: Any = None
	source_name: Optional[str] = None  # binding name before promotion


@dataclass(frozen=True)
class AutomatonNames:
	"""Names of the automaton's own fields (all carry the internal suffix)."""

	state: str
	result: str
	exec_context: str

	@classmethod
	def from_fresh(cls, names: FreshNames) -> "AutomatonNames":
		return cls(
			state=names.internal("state"),
			result=names.internal("result"),
			exec_context=names.internal("exec_context"),
		)

	def all(self) -> tuple[str, ...]:
		return (self.state, self.result, self.exec_context)


@dataclass
class AsyncProgram:
	"""Executable template produced by the pipeline."""

	graph: StateGraph
	slots: tuple[PromotedSlot, ...]
	names: AutomatonNames
	options: TransformOptions = field(default_factory=TransformOptions)
	normalized: Optional[T.Block] = None
	name: str = "async"

	@property
	def state_count(self) -> int:
		return len(self.graph)

	@property
	def slot_names(self) -> frozenset[str]:
		return frozenset(slot.name for slot in self.slots)

	def instantiate(self, future_system, env: Optional[Mapping[str, Any]] = None) -> StateMachine:
		"""Create a fresh automaton bound to `future_system` (not started)."""
		return StateMachine(self, future_system, env)

	def start(self, future_system, env: Optional[Mapping[str, Any]] = None):
		"""
		Create an automaton, schedule its first `resume`, and return the
		future-system view of its result promise.
		"""
		return self.instantiate(future_system, env).start()

	def render(self) -> str:
		return render_automaton(self)


def emit_automaton(
	graph: StateGraph,
	liveness: LivenessResult,
	names: FreshNames,
	*,
	options: Optional[TransformOptions] = None,
	name: str = "async",
) -> AsyncProgram:
	"""Assemble the program template from the state graph and liveness result."""
	fields_ = AutomatonNames.from_fresh(names)
	slots: list[PromotedSlot] = []
	seen: set[str] = set(fields_.all())
	for info in liveness.promoted:
		slot_name = info.storage_name
		if slot_name in seen:
			raise TransformInvariantError(f"promoted slot '{slot_name}' collides with another automaton field")
		seen.add(slot_name)
		slots.append(
			PromotedSlot(
				name=slot_name,
				ty=info.ty,
				default=T.zero_value(info.ty),
				source_name=info.name,
			)
		)
	return AsyncProgram(
		graph=graph,
		slots=tuple(slots),
		names=fields_,
		options=options or TransformOptions(),
		normalized=liveness.block,
		name=name,
	)


__all__ = ["PromotedSlot", "AutomatonNames", "AsyncProgram", "emit_automaton"]
