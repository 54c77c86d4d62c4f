# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
asyncsm: lowers `await`-style computations into callback-driven state machines.

Stages:
  stage1: computation tree, await-usage analysis, ANF normalization
  stage2: cross-state liveness (promotion of bindings to automaton storage)
  stage3: state partitioning (tagged transitions)
  stage4: automaton emission and the per-state evaluator

The pipeline is orchestrated by `asyncsm.driver`; future runtimes plug in via
`asyncsm.futures`.
"""

from asyncsm.driver import run_sync, transform, transform_source

__all__ = ["transform", "transform_source", "run_sync"]
