# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Synchronous future system: a "future" is just its value.

Callbacks and submitted thunks run immediately on the calling thread, so a
whole computation finishes inside `start`. An awaited value that is already an
Outcome is delivered as-is, which is how a failed future is expressed.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from asyncsm.core.errors import AutomatonStateError, PromiseAlreadyCompletedError
from asyncsm.core.outcome import Failure, Outcome, Success
from asyncsm.futures.system import FutureSystem


class IdentityPromise:
	__slots__ = ("outcome",)

	def __init__(self) -> None:
		self.outcome: Optional[Outcome] = None

	@property
	def done(self) -> bool:
		return self.outcome is not None

	def __repr__(self) -> str:
		return f"IdentityPromise({self.outcome!r})"


class IdentityFutureSystem(FutureSystem):
	name = "identity"

	def create_promise(self) -> IdentityPromise:
		return IdentityPromise()

	def complete(self, promise: IdentityPromise, outcome: Outcome) -> None:
		if promise.outcome is not None:
			raise PromiseAlreadyCompletedError(f"promise already completed with {promise.outcome!r}")
		promise.outcome = outcome

	def on_complete(self, future: Any, callback: Callable[[Outcome], None], exec_context: Any) -> None:
		if isinstance(future, (Success, Failure)):
			callback(future)
		else:
			callback(Success(future))

	def get_execution_context(self) -> None:
		return None

	def promise_to_future(self, promise: IdentityPromise) -> Any:
		"""The settled value; raises the failure, or if the promise is still open."""
		if promise.outcome is None:
			raise AutomatonStateError("computation did not complete synchronously")
		return promise.outcome.get()

	def submit(self, thunk: Callable[[], None], exec_context: Any) -> None:
		thunk()


__all__ = ["IdentityPromise", "IdentityFutureSystem"]
