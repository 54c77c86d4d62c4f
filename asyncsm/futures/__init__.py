# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Future-system adapters. The automaton is written against `FutureSystem`
only; pick an adapter per invocation.
"""

from .aio import AsyncioFutureSystem
from .pool import ConcurrentFutureSystem
from .identity import IdentityFutureSystem, IdentityPromise
from .system import FutureSystem, outcome_of

__all__ = [
	"FutureSystem",
	"outcome_of",
	"IdentityFutureSystem",
	"IdentityPromise",
	"ConcurrentFutureSystem",
	"AsyncioFutureSystem",
]
