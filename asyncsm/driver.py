# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Pipeline driver.

  tree ─ assign_node_ids ─ analyze_await_usage ─ normalize ─ analyze_liveness
       ─ build_state_machine ─ emit_automaton → AsyncProgram

Usage errors stop the pipeline before anything is rewritten. With
`TransformOptions.verbose` the intermediate forms are logged at INFO on this
module's logger; the library never configures logging handlers itself.

`main` is a small inspection CLI (`python -m asyncsm FILE`): it prints the
requested dumps, optionally runs the computation synchronously, and reports
diagnostics as text or JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from asyncsm.core.diagnostics import Diagnostic
from asyncsm.core.errors import AsyncUsageError
from asyncsm.core.fresh import FreshNames
from asyncsm.core.options import TransformOptions
from asyncsm.futures.identity import IdentityFutureSystem
from asyncsm.parser import SurfaceSyntaxError, parse_computation
from asyncsm.stage1 import tree as T
from asyncsm.stage1.anf import normalize
from asyncsm.stage1.await_analysis import analyze_await_usage
from asyncsm.stage1.node_ids import assign_node_ids
from asyncsm.stage1.pretty import format_block
from asyncsm.stage2.liveness import analyze_liveness
from asyncsm.stage3.builder import build_state_machine
from asyncsm.stage4.emitter import AsyncProgram, emit_automaton

logger = logging.getLogger(__name__)


def transform(
	tree: T.Expr,
	*,
	options: Optional[TransformOptions] = None,
	fresh: Optional[FreshNames] = None,
	name: str = "async",
) -> AsyncProgram:
	"""
	Lower a computation into an automaton template.

	`tree` is normally a `Block`; any other expression is treated as a block
	with no statements. Raises AsyncUsageError when an `await` sits where it
	cannot be lowered.
	"""
	options = options if options is not None else TransformOptions.from_env()
	fresh = fresh if fresh is not None else FreshNames(options.name_separator)
	block = tree if isinstance(tree, T.Block) else T.Block(stats=(), expr=tree, span=tree.span)
	numbered, _ = assign_node_ids(block)
	assert isinstance(numbered, T.Block)

	analysis = analyze_await_usage(numbered)
	if not analysis.accepted:
		logger.debug("%s: rejected with %d diagnostic(s)", name, len(analysis.diagnostics))
		raise AsyncUsageError(analysis.diagnostics)

	anf = normalize(numbered, fresh)
	if options.verbose:
		logger.info("%s: ANF transform expands to:\n%s", name, format_block(anf.block))

	live = analyze_liveness(anf.block, anf.fresh)
	if options.verbose and live.rename_map:
		logger.info(
			"%s: promoted bindings: %s",
			name,
			", ".join(f"{old} -> {new}" for old, new in live.rename_map.items()),
		)

	graph = build_state_machine(live.block, live.promoted_names)
	if options.verbose:
		logger.info("%s: states:\n%s", name, graph.describe())

	program = emit_automaton(graph, live, live.fresh, options=options, name=name)
	if options.verbose:
		logger.info("%s: state machine expands to:\n%s", name, program.render())
	logger.debug("%s: %d state(s), %d promoted slot(s)", name, len(graph), len(program.slots))
	return program


def transform_source(
	text: str,
	*,
	options: Optional[TransformOptions] = None,
	file: Optional[str] = None,
) -> AsyncProgram:
	"""Parse surface notation and transform it."""
	block = parse_computation(text, file=file)
	return transform(block, options=options, name=Path(file).stem if file else "async")


def run_sync(
	program_or_text: Union[AsyncProgram, T.Expr, str],
	env: Optional[Mapping[str, Any]] = None,
	*,
	options: Optional[TransformOptions] = None,
) -> Any:
	"""
	Run a computation to completion with the identity future system.

	Returns the result value or raises the exception the computation failed
	with.
	"""
	if isinstance(program_or_text, str):
		program = transform_source(program_or_text, options=options)
	elif isinstance(program_or_text, AsyncProgram):
		program = program_or_text
	else:
		program = transform(program_or_text, options=options)
	return program.start(IdentityFutureSystem(), env)


# --- CLI -----------------------------------------------------------------------


def _diag_to_json(diag: Diagnostic, file: Optional[str]) -> dict[str, Any]:
	return {
		"phase": diag.phase,
		"code": diag.code,
		"message": diag.message,
		"severity": diag.severity,
		"file": file,
		"line": diag.span.line,
		"column": diag.span.column,
		"node_id": diag.node_id,
		"notes": list(diag.notes),
	}


def main(argv: list[str] | None = None) -> int:
	"""
	Inspect a computation written in surface notation.

	Exit code 0 on success, 1 on syntax or usage errors, 2 when `--run`
	finishes with an exception.
	"""
	parser = argparse.ArgumentParser(prog="asyncsm", description="Lower an async computation into a state machine")
	parser.add_argument("source", type=Path, help="Path to a computation in surface notation")
	parser.add_argument(
		"--dump",
		action="append",
		choices=["anf", "states", "automaton"],
		default=[],
		help="Print an intermediate form (repeatable)",
	)
	parser.add_argument("--run", action="store_true", help="Run with the synchronous future system and print the result")
	parser.add_argument("--json", action="store_true", help="Report diagnostics as JSON on stdout")
	parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline dumps at INFO")
	args = parser.parse_args(argv)

	if args.verbose:
		logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
	options = TransformOptions.from_env()
	if args.verbose:
		options = TransformOptions(verbose=True, trace=options.trace, name_separator=options.name_separator)

	file = str(args.source)
	try:
		program = transform_source(args.source.read_text(), options=options, file=file)
	except SurfaceSyntaxError as exc:
		if args.json:
			print(json.dumps({"exit_code": 1, "diagnostics": [{"phase": "parser", "message": str(exc), "file": file}]}))
		else:
			print(str(exc), file=sys.stderr)
		return 1
	except AsyncUsageError as exc:
		if args.json:
			payload = {"exit_code": 1, "diagnostics": [_diag_to_json(d, file) for d in exc.diagnostics]}
			print(json.dumps(payload))
		else:
			for d in exc.diagnostics:
				print(d.format_human(), file=sys.stderr)
		return 1

	for what in args.dump:
		if what == "anf" and program.normalized is not None:
			print(format_block(program.normalized))
		elif what == "states":
			print(program.graph.describe())
		elif what == "automaton":
			print(program.render())

	if args.run:
		try:
			value = run_sync(program)
		except Exception as exc:
			print(f"{file}: computation failed: {type(exc).__name__}: {exc}", file=sys.stderr)
			return 2
		print(repr(value))
	if args.json:
		print(json.dumps({"exit_code": 0, "diagnostics": []}))
	return 0


__all__ = ["transform", "transform_source", "run_sync", "main"]
