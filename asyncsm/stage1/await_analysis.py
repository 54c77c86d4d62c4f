# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Await-usage analysis.

Pipeline placement:
  tree (numbered) → await analysis (this file) → ANF → liveness → states

The lowering can only suspend at points that sit on the straight-line
evaluation path of the computation. This pass finds every `await` that does
not, and reports it with the construct it is nested in. When constructs nest,
the innermost one is reported (it is the one that needs rewriting).

Accepted:
- operands of strict operators, calls, selections and list literals
- conditions, branches and scrutinees of `if` / `match`
- case bodies (but not guards)
- immediately invoked closures: `(fn(x) => ...)(arg)`
- nested blocks and `val`/`var` initializers

The pass is read-only; it never rewrites the tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from asyncsm.core.diagnostics import Diagnostic
from asyncsm.stage1 import tree as T
from asyncsm.stage1.tree_utils import iter_children

PHASE = "await-analysis"


@dataclass(frozen=True)
class _Context:
	code: str
	what: str
	note: Optional[str] = None


_BOOL_OP = _Context(
	"ASYNC001",
	"the operand of a short-circuit boolean operator",
	"bind the awaited value with `val` before the condition",
)
_BY_NAME = _Context(
	"ASYNC002",
	"a by-name argument",
	"bind the awaited value with `val` and pass the name",
)
_CLOSURE = _Context(
	"ASYNC003",
	"a closure that is not immediately invoked",
)
_LOCAL_FUN = _Context(
	"ASYNC004",
	"the body of a local function",
)
_GUARD = _Context(
	"ASYNC005",
	"a pattern guard",
	"await before the match and test the value in the guard",
)
_TRY = _Context(
	"ASYNC006",
	"a try/catch/finally region",
)
_WHILE = _Context(
	"ASYNC007",
	"a while loop",
)
_LAZY = _Context(
	"ASYNC008",
	"a lazy initializer",
)


@dataclass
class AwaitAnalysisResult:
	diagnostics: list[Diagnostic]

	@property
	def accepted(self) -> bool:
		return not any(d.severity == "error" for d in self.diagnostics)


def analyze_await_usage(tree: T.Node) -> AwaitAnalysisResult:
	"""
	Report every `await` in an unsupported position.

	Returns an empty diagnostic list when the tree can be lowered.
	"""
	diags: list[Diagnostic] = []

	def _report(node: T.Await, ctx: _Context) -> None:
		diags.append(
			Diagnostic(
				message=f"await must not be used in {ctx.what}",
				code=ctx.code,
				phase=PHASE,
				severity="error",
				span=node.span,
				node_id=node.node_id,
				notes=[ctx.note] if ctx.note else [],
			)
		)

	def _walk(node: Optional[T.Node], ctx: Optional[_Context]) -> None:
		if node is None:
			return
		if isinstance(node, T.Await):
			if ctx is not None:
				_report(node, ctx)
			_walk(node.future, ctx)
			return
		if isinstance(node, T.BoolOp):
			_walk(node.left, _BOOL_OP)
			_walk(node.right, _BOOL_OP)
			return
		if isinstance(node, T.Call):
			if isinstance(node.fn, T.Lambda):
				# Immediate invocation: the closure body runs in place.
				_walk(node.fn.body, ctx)
			else:
				_walk(node.fn, ctx)
			for idx, arg in enumerate(node.args):
				_walk(arg, _BY_NAME if node.is_by_name(idx) else ctx)
			return
		if isinstance(node, T.Lambda):
			_walk(node.body, _CLOSURE)
			return
		if isinstance(node, T.FunDef):
			_walk(node.body, _LOCAL_FUN)
			return
		if isinstance(node, T.Case):
			_walk(node.guard, _GUARD)
			_walk(node.body, ctx)
			return
		if isinstance(node, T.Try):
			for child in iter_children(node):
				_walk(child, _TRY)
			return
		if isinstance(node, T.While):
			_walk(node.cond, _WHILE)
			_walk(node.body, _WHILE)
			return
		if isinstance(node, T.ValDef) and node.lazy:
			_walk(node.value, _LAZY)
			return
		for child in iter_children(node):
			_walk(child, ctx)

	_walk(tree, None)
	return AwaitAnalysisResult(diagnostics=diags)


__all__ = ["AwaitAnalysisResult", "analyze_await_usage", "PHASE"]
