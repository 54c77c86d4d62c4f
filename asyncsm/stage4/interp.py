# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Evaluator for state code.

States carry their statements as tree values; the automaton runs them through
this evaluator inside an activation `Frame`. Name lookup order in a frame:

  1. frame locals (bindings classified LOCAL)
  2. promoted slots of the automaton
  3. the host environment passed to `start`
  4. Python builtins (`len`, `str`, exception classes, ...)

Definitions of promoted names go straight to the automaton's slots, so a value
survives the end of the frame that computed it. Nested blocks, closures and
case arms get child scopes that chain back to the frame.

The evaluator can also run a whole source tree directly (`evaluate`), with an
`await_value` hook standing in for suspension. Tests use that as the
reference semantics the automaton must reproduce.
"""

from __future__ import annotations

import builtins
import operator
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional

from asyncsm.core.errors import MatchError, TransformInvariantError
from asyncsm.stage1 import tree as T

_BINARY_IMPL: Dict[T.BinaryOp, Callable[[Any, Any], Any]] = {
	T.BinaryOp.ADD: operator.add,
	T.BinaryOp.SUB: operator.sub,
	T.BinaryOp.MUL: operator.mul,
	T.BinaryOp.DIV: operator.truediv,
	T.BinaryOp.MOD: operator.mod,
	T.BinaryOp.EQ: operator.eq,
	T.BinaryOp.NE: operator.ne,
	T.BinaryOp.LT: operator.lt,
	T.BinaryOp.LE: operator.le,
	T.BinaryOp.GT: operator.gt,
	T.BinaryOp.GE: operator.ge,
}

# Declared type names that map onto Python classes for type patterns and
# `catch (e: Type)` when the environment does not define them.
_BUILTIN_TYPES: Dict[str, type] = {
	"Int": int,
	"Long": int,
	"Float": float,
	"Double": float,
	"String": str,
	"Bool": bool,
	"Boolean": bool,
	"List": list,
}

_MISSING = object()


class Lazy:
	"""Deferred `lazy val` initializer; evaluated once, on first read."""

	def __init__(self, thunk: Callable[[], Any]) -> None:
		self._thunk: Optional[Callable[[], Any]] = thunk
		self._value: Any = None

	def force(self) -> Any:
		if self._thunk is not None:
			thunk, self._thunk = self._thunk, None
			self._value = thunk()
		return self._value


def _force(value: Any) -> Any:
	return value.force() if isinstance(value, Lazy) else value


class Scope:
	"""Nested lexical scope (block, closure call, case arm, catch)."""

	def __init__(self, parent: "Scope") -> None:
		self.parent = parent
		self.vars: Dict[str, Any] = {}

	def lookup(self, name: str) -> Any:
		if name in self.vars:
			return _force(self.vars[name])
		return self.parent.lookup(name)

	def define(self, name: str, value: Any) -> None:
		self.vars[name] = value

	def assign(self, name: str, value: Any) -> None:
		if name in self.vars:
			self.vars[name] = value
			return
		self.parent.assign(name, value)

	def child(self) -> "Scope":
		return Scope(self)


class Frame(Scope):
	"""
	Root scope of one activation.

	`slots` is the automaton's promoted storage (shared across frames);
	`promoted` names the slots that definitions must write to.
	"""

	def __init__(
		self,
		slots: Optional[MutableMapping[str, Any]] = None,
		env: Optional[Mapping[str, Any]] = None,
		promoted: Optional[frozenset[str]] = None,
	) -> None:
		self.vars = {}
		self.slots: MutableMapping[str, Any] = slots if slots is not None else {}
		self.env: Mapping[str, Any] = env if env is not None else {}
		self.promoted = promoted if promoted is not None else frozenset(self.slots)

	def lookup(self, name: str) -> Any:
		if name in self.vars:
			return _force(self.vars[name])
		if name in self.slots:
			return _force(self.slots[name])
		if name in self.env:
			return self.env[name]
		value = getattr(builtins, name, _MISSING)
		if value is _MISSING:
			raise NameError(f"name '{name}' is not defined")
		return value

	def define(self, name: str, value: Any) -> None:
		if name in self.promoted:
			self.slots[name] = value
		else:
			self.vars[name] = value

	def assign(self, name: str, value: Any) -> None:
		if name in self.vars:
			self.vars[name] = value
		elif name in self.slots:
			self.slots[name] = value
		else:
			raise NameError(f"assignment to undeclared name '{name}'")


class Closure:
	"""Runtime value of a `fn(...) => ...` literal or a local `fun`."""

	def __init__(self, evaluator: "Evaluator", params: tuple[T.Param, ...], body: T.Expr, scope: Scope, name: str = "<fn>") -> None:
		self._evaluator = evaluator
		self.params = params
		self.body = body
		self.scope = scope
		self.name = name

	def __call__(self, *args: Any) -> Any:
		if len(args) != len(self.params):
			raise TypeError(f"{self.name}() takes {len(self.params)} argument(s) but {len(args)} were given")
		inner = self.scope.child()
		for param, arg in zip(self.params, args):
			inner.define(param.name, arg)
		return self._evaluator.eval(self.body, inner)

	def __repr__(self) -> str:
		return f"<closure {self.name}/{len(self.params)}>"


def resolve_type(name: str, scope: Scope) -> type:
	"""Class named by a type annotation: environment first, then builtins."""
	try:
		found = scope.lookup(name)
	except NameError:
		found = _BUILTIN_TYPES.get(name)
	else:
		if not isinstance(found, type):
			found = _BUILTIN_TYPES.get(name, found)
	if not isinstance(found, type):
		raise TypeError(f"'{name}' does not name a type")
	return found


def _is_instance(value: Any, cls: type) -> bool:
	if cls is int and isinstance(value, bool):
		return False
	return isinstance(value, cls)


def match_pattern(pattern: T.Pattern, value: Any, scope: Scope) -> Optional[Dict[str, Any]]:
	"""Bindings produced by matching `value`, or None when it does not match."""
	if isinstance(pattern, T.WildcardPattern):
		return {}
	if isinstance(pattern, T.LiteralPattern):
		if isinstance(pattern.value, bool) != isinstance(value, bool):
			return None
		if pattern.value is None:
			return {} if value is None else None
		return {} if value == pattern.value else None
	if isinstance(pattern, T.BindPattern):
		if pattern.type_name is not None and not _is_instance(value, resolve_type(pattern.type_name, scope)):
			return None
		return {pattern.name: value}
	raise TransformInvariantError(f"unknown pattern {type(pattern).__name__}")


class Evaluator:
	"""
	Tree-walking evaluator.

	`await_value`, when given, makes `await(e)` evaluate to `await_value(e)`
	(direct evaluation). Without it an `await` reaching the evaluator is a
	pipeline bug: state code never contains one.
	"""

	def __init__(self, await_value: Optional[Callable[[Any], Any]] = None) -> None:
		self._await_value = await_value

	# --- expressions -----------------------------------------------------

	def eval(self, expr: T.Expr, scope: Scope) -> Any:
		fn = getattr(self, f"_eval_{type(expr).__name__}", None)
		if fn is None:
			raise TransformInvariantError(f"cannot evaluate {type(expr).__name__}")
		return fn(expr, scope)

	def truthy(self, expr: T.Expr, scope: Scope) -> bool:
		return bool(self.eval(expr, scope))

	def _eval_Literal(self, expr: T.Literal, scope: Scope) -> Any:
		return expr.value

	def _eval_Name(self, expr: T.Name, scope: Scope) -> Any:
		return scope.lookup(expr.id)

	def _eval_Await(self, expr: T.Await, scope: Scope) -> Any:
		if self._await_value is None:
			raise TransformInvariantError(f"await #{expr.node_id} reached the evaluator")
		return self._await_value(self.eval(expr.future, scope))

	def _eval_Call(self, expr: T.Call, scope: Scope) -> Any:
		fn = self.eval(expr.fn, scope)
		args = []
		for idx, arg in enumerate(expr.args):
			if expr.is_by_name(idx):
				args.append(self._thunk(arg, scope))
			else:
				args.append(self.eval(arg, scope))
		return fn(*args)

	def _thunk(self, arg: T.Expr, scope: Scope) -> Callable[[], Any]:
		return lambda: self.eval(arg, scope)

	def _eval_Select(self, expr: T.Select, scope: Scope) -> Any:
		return getattr(self.eval(expr.subject, scope), expr.name)

	def _eval_BinOp(self, expr: T.BinOp, scope: Scope) -> Any:
		left = self.eval(expr.left, scope)
		right = self.eval(expr.right, scope)
		return _BINARY_IMPL[expr.op](left, right)

	def _eval_BoolOp(self, expr: T.BoolOp, scope: Scope) -> Any:
		left = self.eval(expr.left, scope)
		if expr.op is T.BoolOpKind.AND:
			return self.eval(expr.right, scope) if left else left
		return left if left else self.eval(expr.right, scope)

	def _eval_UnaryOp(self, expr: T.UnaryOp, scope: Scope) -> Any:
		value = self.eval(expr.operand, scope)
		if expr.op is T.UnaryOpKind.NOT:
			return not value
		return operator.neg(value)

	def _eval_ListLit(self, expr: T.ListLit, scope: Scope) -> Any:
		return [self.eval(item, scope) for item in expr.items]

	def _eval_Block(self, expr: T.Block, scope: Scope) -> Any:
		inner = scope.child()
		for stmt in expr.stats:
			self.exec(stmt, inner)
		return self.eval(expr.expr, inner)

	def _eval_If(self, expr: T.If, scope: Scope) -> Any:
		if self.truthy(expr.cond, scope):
			return self.eval(expr.then, scope)
		if expr.else_ is not None:
			return self.eval(expr.else_, scope)
		return None

	def _eval_Match(self, expr: T.Match, scope: Scope) -> Any:
		value = self.eval(expr.scrutinee, scope)
		for case in expr.cases:
			bindings = match_pattern(case.pattern, value, scope)
			if bindings is None:
				continue
			inner = scope.child()
			for name, bound in bindings.items():
				inner.define(name, bound)
			if case.guard is not None and not self.truthy(case.guard, inner):
				continue
			return self.eval(case.body, inner)
		raise MatchError(value)

	def _eval_Lambda(self, expr: T.Lambda, scope: Scope) -> Any:
		return Closure(self, expr.params, expr.body, scope)

	def _eval_Try(self, expr: T.Try, scope: Scope) -> Any:
		try:
			return self.eval(expr.body, scope)
		except Exception as exc:
			for handler in expr.handlers:
				if handler.type_name is not None and not isinstance(exc, resolve_type(handler.type_name, scope)):
					continue
				inner = scope.child()
				inner.define(handler.name, exc)
				return self.eval(handler.body, inner)
			raise
		finally:
			if expr.finalizer is not None:
				self.eval(expr.finalizer, scope)

	# --- statements ------------------------------------------------------

	def exec(self, stmt: T.Stmt, scope: Scope) -> None:
		fn = getattr(self, f"_exec_{type(stmt).__name__}", None)
		if fn is None:
			raise TransformInvariantError(f"cannot execute {type(stmt).__name__}")
		fn(stmt, scope)

	def exec_all(self, stmts, scope: Scope) -> None:
		for stmt in stmts:
			self.exec(stmt, scope)

	def _exec_ValDef(self, stmt: T.ValDef, scope: Scope) -> None:
		if stmt.lazy:
			scope.define(stmt.name, Lazy(self._thunk(stmt.value, scope)))
		else:
			scope.define(stmt.name, self.eval(stmt.value, scope))

	def _exec_Assign(self, stmt: T.Assign, scope: Scope) -> None:
		scope.assign(stmt.name, self.eval(stmt.value, scope))

	def _exec_ExprStmt(self, stmt: T.ExprStmt, scope: Scope) -> None:
		self.eval(stmt.expr, scope)

	def _exec_FunDef(self, stmt: T.FunDef, scope: Scope) -> None:
		scope.define(stmt.name, Closure(self, stmt.params, stmt.body, scope, name=stmt.name))

	def _exec_While(self, stmt: T.While, scope: Scope) -> None:
		while self.truthy(stmt.cond, scope):
			self.eval(stmt.body, scope)

	def _exec_Throw(self, stmt: T.Throw, scope: Scope) -> None:
		value = self.eval(stmt.value, scope)
		if not isinstance(value, BaseException):
			raise TypeError(f"throw requires an exception, got {type(value).__name__}")
		raise value

	# Normalized branches run their arms in the enclosing scope: arm bindings
	# belong to the frame, exactly as when the builder splits them into states.
	def _exec_IfStmt(self, stmt: T.IfStmt, scope: Scope) -> None:
		self.exec_all(stmt.then if self.truthy(stmt.cond, scope) else stmt.else_, scope)

	def _exec_MatchStmt(self, stmt: T.MatchStmt, scope: Scope) -> None:
		value = self.eval(stmt.scrutinee, scope)
		for arm in stmt.arms:
			bindings = match_pattern(arm.pattern, value, scope)
			if bindings is None:
				continue
			for name, bound in bindings.items():
				scope.define(name, bound)
			if arm.guard is not None and not self.truthy(arm.guard, scope):
				continue
			self.exec_all(arm.body, scope)
			return
		raise MatchError(value)


def evaluate(
	block: T.Block,
	env: Optional[Mapping[str, Any]] = None,
	*,
	await_value: Optional[Callable[[Any], Any]] = None,
) -> Any:
	"""Run `block` to completion in a fresh frame (no automaton involved)."""
	evaluator = Evaluator(await_value=await_value)
	frame = Frame(env=env)
	evaluator.exec_all(block.stats, frame)
	return evaluator.eval(block.expr, frame)


__all__ = [
	"Lazy",
	"Scope",
	"Frame",
	"Closure",
	"Evaluator",
	"match_pattern",
	"resolve_type",
	"evaluate",
]
