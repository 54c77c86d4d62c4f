# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Runtime automaton: one instance per invocation of a transformed computation.

The instance is both halves of the callback protocol:
  - called with no argument it is the `resume` thunk handed to `submit`;
  - called with an Outcome it is the completion callback handed to
    `on_complete` for the future it is waiting on.

Control flow of one activation (`_run`):
  1. apply the delivered outcome (store the value into its promoted slot, or
     fail the result promise),
  2. open a fresh Frame and run states from `state` until a Suspend or the
     Complete transition,
  3. register on the awaited future.

A future system that settles synchronously calls back while step 3 is still
inside `on_complete`. The callback then only parks the outcome, and the
running loop picks it up and continues (a trampoline) instead of nesting
another activation. `_running` and the parked outcome are guarded by a lock,
so a completion arriving from another thread is never lost.

An exception raised by state code, or by `on_complete` while registering on
the awaited value, completes the result promise. Errors from `complete`
itself and AutomatonStateError propagate to the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from asyncsm.core.errors import AutomatonStateError, MatchError
from asyncsm.core.outcome import Failure, Outcome, Success
from asyncsm.stage3.states import Branch, Complete, Goto, MatchDispatch, Suspend
from asyncsm.stage4.interp import Evaluator, Frame, match_pattern

if TYPE_CHECKING:
	from asyncsm.stage4.emitter import AsyncProgram

logger = logging.getLogger(__name__)

TERMINAL = -1


class StateMachine:
	def __init__(self, program: "AsyncProgram", future_system, env: Optional[Mapping[str, Any]] = None) -> None:
		self.program = program
		self.future_system = future_system
		self.env: Dict[str, Any] = dict(env or {})
		self.state = program.graph.entry
		self.slots: Dict[str, Any] = {slot.name: slot.default for slot in program.slots}
		self.result = future_system.create_promise()
		self.exec_context = future_system.get_execution_context()
		self._promoted = frozenset(self.slots)
		self._evaluator = Evaluator()
		self._trace = program.options.trace
		self._lock = threading.Lock()
		self._running = False
		self._awaiting: Optional[Suspend] = None
		self._parked: Optional[Outcome] = None

	# --- callback protocol -----------------------------------------------

	def __call__(self, outcome: Optional[Outcome] = None) -> None:
		if outcome is None:
			self.resume()
		else:
			self.on_complete(outcome)

	def start(self):
		"""Schedule the first `resume` and return the result future."""
		self.future_system.submit(self, self.exec_context)
		return self.future_system.promise_to_future(self.result)

	@property
	def terminated(self) -> bool:
		return self.state == TERMINAL

	def resume(self) -> None:
		"""Run from the current state (entry point of the first activation)."""
		with self._lock:
			if self.state == TERMINAL:
				raise AutomatonStateError(f"{self.program.name}: resume after termination")
			if self._running or self._awaiting is not None:
				raise AutomatonStateError(f"{self.program.name}: resume while state {self.state} is active")
			self._running = True
		self._run(None)

	def on_complete(self, outcome: Outcome) -> None:
		"""Completion callback for the future the automaton is suspended on."""
		with self._lock:
			if self.state == TERMINAL:
				raise AutomatonStateError(f"{self.program.name}: completion delivered after termination")
			if self._awaiting is None or self._parked is not None:
				raise AutomatonStateError(f"{self.program.name}: unexpected completion in state {self.state}")
			if self._running:
				self._parked = outcome
				return
			self._running = True
		self._run(outcome)

	# --- activation loop -------------------------------------------------

	def _run(self, outcome: Optional[Outcome]) -> None:
		while True:
			if outcome is not None and not self._apply(outcome):
				return
			frame = Frame(slots=self.slots, env=self.env, promoted=self._promoted)
			try:
				suspend, value = self._run_states(frame)
			except Exception as exc:
				self._finish(Failure(exc))
				return
			if suspend is None:
				self._finish(Success(value))
				return
			with self._lock:
				self._awaiting = suspend
			if self._trace:
				logger.info("%s: suspended on await #%d, resume at %d", self.program.name, suspend.await_id, suspend.resume_to)
			try:
				self.future_system.on_complete(value, self, self.exec_context)
			except Exception as exc:
				with self._lock:
					self._awaiting = None
					self._parked = None
				self._finish(Failure(exc))
				return
			with self._lock:
				outcome, self._parked = self._parked, None
				if outcome is None:
					self._running = False
					return

	def _apply(self, outcome: Outcome) -> bool:
		"""Consume the outcome of the pending suspension; False if it failed."""
		with self._lock:
			suspend, self._awaiting = self._awaiting, None
		assert suspend is not None
		if isinstance(outcome, Failure):
			if self._trace:
				logger.info("%s: await #%d failed: %r", self.program.name, suspend.await_id, outcome.exception)
			self._finish(outcome)
			return False
		if suspend.result_name is not None:
			self.slots[suspend.result_name] = outcome.value
		return True

	def _run_states(self, frame: Frame) -> tuple[Optional[Suspend], Any]:
		"""
		Execute states until the automaton must wait or is done.

		Returns (suspend, awaited future) or (None, result value).
		"""
		graph = self.program.graph
		ev = self._evaluator
		while True:
			state = graph[self.state]
			if self._trace:
				logger.info("%s: enter state %d", self.program.name, state.index)
			ev.exec_all(state.stats, frame)
			tr = state.transition
			if isinstance(tr, Goto):
				self.state = tr.target
			elif isinstance(tr, Branch):
				self.state = tr.then_target if ev.truthy(tr.cond, frame) else tr.else_target
			elif isinstance(tr, MatchDispatch):
				self.state = self._dispatch(tr, frame)
			elif isinstance(tr, Suspend):
				future = ev.eval(tr.future, frame)
				self.state = tr.resume_to
				return tr, future
			elif isinstance(tr, Complete):
				return None, ev.eval(tr.result, frame)
			else:
				raise AutomatonStateError(f"state {state.index} has no transition")

	def _dispatch(self, tr: MatchDispatch, frame: Frame) -> int:
		value = self._evaluator.eval(tr.scrutinee, frame)
		for arm in tr.arms:
			bindings = match_pattern(arm.pattern, value, frame)
			if bindings is None:
				continue
			for name, bound in bindings.items():
				frame.define(name, bound)
			if arm.guard is not None and not self._evaluator.truthy(arm.guard, frame):
				continue
			return arm.target
		raise MatchError(value)

	def _finish(self, outcome: Outcome) -> None:
		with self._lock:
			if self.state == TERMINAL:
				raise AutomatonStateError(f"{self.program.name}: result completed twice")
			self.state = TERMINAL
			self._running = False
			self._awaiting = None
		if self._trace:
			logger.info("%s: complete (%s)", self.program.name, "success" if outcome.is_success else "failure")
		self.future_system.complete(self.result, outcome)

	def __repr__(self) -> str:
		return f"<StateMachine {self.program.name} state={self.state}>"


__all__ = ["StateMachine", "TERMINAL"]
