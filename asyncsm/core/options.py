# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Transformation options.

`verbose` dumps the normalized tree, the state list and the rendered automaton
through the `asyncsm.driver` logger. `trace` makes every automaton log its
state transitions at runtime. Both can be switched on from the environment
(`ASYNCSM_DEBUG`, `ASYNCSM_TRACE`) without touching call sites.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(env: Mapping[str, str], key: str) -> bool:
	return env.get(key, "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class TransformOptions:
	"""Knobs for one transformation (all default off)."""

	verbose: bool = False
	trace: bool = False
	name_separator: str = "$"

	@classmethod
	def from_env(cls, environ: Mapping[str, str] | None = None) -> "TransformOptions":
		env = os.environ if environ is None else environ
		return cls(
			verbose=_flag(env, "ASYNCSM_DEBUG"),
			trace=_flag(env, "ASYNCSM_TRACE"),
			name_separator=env.get("ASYNCSM_NAME_SEPARATOR") or "$",
		)


__all__ = ["TransformOptions"]
