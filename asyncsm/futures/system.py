# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Future-system capability interface.

The automaton never touches a concrete runtime. Everything it needs from one
is the six operations below, resolved once per invocation:

| operation                                  | contract                                   |
|--------------------------------------------|--------------------------------------------|
| create_promise()                           | fresh, uncompleted promise                 |
| complete(promise, outcome)                 | exactly once; again -> PromiseAlreadyCompletedError |
| on_complete(future, callback, exec_ctx)    | callback(outcome) once, when `future` settles |
| get_execution_context()                    | context used for scheduling                |
| promise_to_future(promise)                 | read-only view returned to the caller      |
| submit(thunk, exec_ctx)                    | run thunk() asynchronously                 |
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable

from asyncsm.core.outcome import Failure, Outcome, Success


class FutureSystem(ABC):
	name = "abstract"

	@abstractmethod
	def create_promise(self) -> Any:
		...

	@abstractmethod
	def complete(self, promise: Any, outcome: Outcome) -> None:
		...

	@abstractmethod
	def on_complete(self, future: Any, callback: Callable[[Outcome], None], exec_context: Any) -> None:
		...

	@abstractmethod
	def get_execution_context(self) -> Any:
		...

	@abstractmethod
	def promise_to_future(self, promise: Any) -> Any:
		...

	@abstractmethod
	def submit(self, thunk: Callable[[], None], exec_context: Any) -> None:
		...


def outcome_of(fut: Any) -> Outcome:
	"""Outcome of a settled `concurrent.futures` or `asyncio` future."""
	try:
		return Success(fut.result())
	except (Exception, asyncio.CancelledError) as exc:
		return Failure(exc)


__all__ = ["FutureSystem", "outcome_of"]
