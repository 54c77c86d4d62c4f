# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Thread-pool future system over `concurrent.futures`.

Promises and futures are `concurrent.futures.Future`; the execution context
is an Executor. Completion callbacks are resubmitted onto the executor, so
state code never runs on the thread that settled the awaited future.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future, InvalidStateError, ThreadPoolExecutor
from typing import Any, Callable, Optional

from asyncsm.core.errors import PromiseAlreadyCompletedError
from asyncsm.core.outcome import Failure, Outcome, Success
from asyncsm.futures.system import FutureSystem, outcome_of


class ConcurrentFutureSystem(FutureSystem):
	name = "concurrent"

	def __init__(self, executor: Optional[Executor] = None, max_workers: Optional[int] = None) -> None:
		self._executor = executor
		self._owns_executor = executor is None
		self._max_workers = max_workers

	def get_execution_context(self) -> Executor:
		if self._executor is None:
			self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="asyncsm")
		return self._executor

	def create_promise(self) -> Future:
		return Future()

	def complete(self, promise: Future, outcome: Outcome) -> None:
		if promise.done():
			raise PromiseAlreadyCompletedError("promise already completed")
		try:
			if isinstance(outcome, Failure):
				promise.set_exception(outcome.exception)
			else:
				promise.set_result(outcome.value)
		except InvalidStateError as exc:
			raise PromiseAlreadyCompletedError("promise already completed") from exc

	def on_complete(self, future: Any, callback: Callable[[Outcome], None], exec_context: Executor) -> None:
		if not isinstance(future, Future):
			exec_context.submit(callback, Success(future))
			return
		future.add_done_callback(lambda settled: exec_context.submit(callback, outcome_of(settled)))

	def promise_to_future(self, promise: Future) -> Future:
		return promise

	def submit(self, thunk: Callable[[], None], exec_context: Executor) -> None:
		exec_context.submit(thunk)

	def shutdown(self, wait: bool = True) -> None:
		"""Shut down the executor if this system created it."""
		if self._owns_executor and self._executor is not None:
			self._executor.shutdown(wait=wait)
			self._executor = None

	def __enter__(self) -> "ConcurrentFutureSystem":
		return self

	def __exit__(self, *exc_info) -> None:
		self.shutdown()


__all__ = ["ConcurrentFutureSystem"]
