# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Result-or-failure value passed across suspension and completion boundaries.

Completion callbacks receive an Outcome; the automaton completes its result
promise with one. A Failure keeps the original exception object so callers
see exactly what the computation raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Union


@dataclass(frozen=True)
class Success:
	value: Any

	@property
	def is_success(self) -> bool:
		return True

	def get(self) -> Any:
		return self.value


@dataclass(frozen=True)
class Failure:
	exception: BaseException

	@property
	def is_success(self) -> bool:
		return False

	def get(self) -> Any:
		raise self.exception


Outcome = Union[Success, Failure]


def capture(thunk: Callable[[], Any]) -> Outcome:
	"""Run `thunk`, turning a raised exception into a Failure."""
	try:
		return Success(thunk())
	except Exception as exc:
		return Failure(exc)


__all__ = ["Success", "Failure", "Outcome", "capture"]
