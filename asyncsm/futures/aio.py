# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Event-loop future system over `asyncio`.

Promises are `asyncio.Future`s of the loop; the execution context is the loop
itself. Awaited values may be asyncio futures, tasks, coroutines or
`concurrent.futures.Future`s; anything else counts as an already-settled
value. Without an explicit loop, the running loop is used, so `start` must
then be called from inside a coroutine. With an explicit loop, `start` may be
called from any thread; the first activation and every plain-value delivery
are scheduled onto the loop thread.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Any, Callable, Optional

from asyncsm.core.errors import PromiseAlreadyCompletedError
from asyncsm.core.outcome import Failure, Outcome, Success
from asyncsm.futures.system import FutureSystem, outcome_of


class AsyncioFutureSystem(FutureSystem):
	name = "asyncio"

	def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
		self.loop = loop

	def get_execution_context(self) -> asyncio.AbstractEventLoop:
		return self.loop if self.loop is not None else asyncio.get_running_loop()

	def create_promise(self) -> asyncio.Future:
		return self.get_execution_context().create_future()

	def complete(self, promise: asyncio.Future, outcome: Outcome) -> None:
		if promise.done():
			raise PromiseAlreadyCompletedError("promise already completed")
		if isinstance(outcome, Failure):
			promise.set_exception(outcome.exception)
		else:
			promise.set_result(outcome.value)

	def on_complete(self, future: Any, callback: Callable[[Outcome], None], exec_context: asyncio.AbstractEventLoop) -> None:
		if isinstance(future, concurrent.futures.Future):
			future = asyncio.wrap_future(future, loop=exec_context)
		if asyncio.isfuture(future) or asyncio.iscoroutine(future):
			fut = asyncio.ensure_future(future, loop=exec_context)
			fut.add_done_callback(lambda settled: callback(outcome_of(settled)))
			return
		exec_context.call_soon_threadsafe(callback, Success(future))

	def promise_to_future(self, promise: asyncio.Future) -> asyncio.Future:
		return promise

	def submit(self, thunk: Callable[[], None], exec_context: asyncio.AbstractEventLoop) -> None:
		exec_context.call_soon_threadsafe(thunk)


__all__ = ["AsyncioFutureSystem"]
