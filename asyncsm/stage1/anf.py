# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
A-normal form for computations with suspension points.

Pipeline placement:
  await analysis → ANF (this file) → liveness (asyncsm/stage2) → states

After this pass every `await` is the whole initializer of a root-level
`ValDef`, so the state builder can cut the statement list exactly at
suspension points. Expressions with no `await` inside are left as they are
(apart from renaming) and run atomically inside one state.

Rules for expressions that *do* contain an `await`:
- operands are evaluated left to right; an operand that is not atomic and is
  followed by an operand containing an `await` is bound to a fresh `tmp$N`
  first, so effects and exceptions keep their order;
- a `lazy val` name is never atomic: reading it runs the initializer. For the
  same reason an arm tail evaluated for effect is dropped only when it is a
  literal or a name of a plain root-level binding;
- by-name arguments stay unevaluated;
- `if` / `match` become `IfStmt` / `MatchStmt`. The condition or scrutinee
  is bound to an atomic expression first, and a value-producing branch
  assigns a fresh `ifres$N` / `matchres$N` var declared before it;
- nested blocks and immediately invoked closures are inlined;
- every root-level name is unique: a repeated definition gets a fresh name
  and later uses in its scope are rewritten.

Input is assumed to have passed `analyze_await_usage`; an `await` in a
rejected position reaching this pass is a TransformInvariantError.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping, Optional

from asyncsm.core.errors import TransformInvariantError
from asyncsm.core.fresh import FreshNames
from asyncsm.stage1 import tree as T
from asyncsm.stage1.tree_utils import AwaitScanner, rename_free

Env = Mapping[str, str]


@dataclass
class AnfResult:
	block: T.Block
	fresh: FreshNames


class _Normalizer:
	def __init__(self, fresh: FreshNames) -> None:
		self.fresh = fresh
		self.has_await = AwaitScanner()
		# Root-level names handed out so far (after renaming).
		self.root_names: set[str] = set()
		self.declared: set[str] = set()
		self.mutable: set[str] = set()
		# Reading a lazy val runs its initializer.
		self.lazy: set[str] = set()

	# --- names -----------------------------------------------------------

	def _define(self, name: str, *, mutable: bool = False) -> str:
		new = self.fresh.fresh(name) if name in self.root_names else name
		self.root_names.add(new)
		self.declared.add(new)
		if mutable:
			self.mutable.add(new)
		return new

	def _temp(self, base: str) -> str:
		name = self.fresh.fresh(base)
		self.root_names.add(name)
		self.declared.add(name)
		return name

	def _atomic(self, expr: T.Expr) -> bool:
		if isinstance(expr, T.Name) and expr.id in self.lazy:
			return False
		return T.is_atomic(expr, self.mutable)

	def _discardable(self, expr: T.Expr) -> bool:
		if isinstance(expr, T.Literal):
			return True
		return isinstance(expr, T.Name) and expr.id in self.declared and expr.id not in self.lazy

	def _bind_atomic(self, expr: T.Expr, base: str, prefix: list[T.Stmt]) -> T.Expr:
		if self._atomic(expr):
			return expr
		name = self._temp(base)
		prefix.append(T.ValDef(name=name, value=expr, span=expr.span))
		return T.Name(name, span=expr.span)

	# --- statements ------------------------------------------------------

	def block(self, block: T.Block) -> T.Block:
		stats, env = self._stmts(block.stats, {})
		tail, expr = self._expr(block.expr, env)
		return replace(block, stats=tuple(stats + tail), expr=expr)

	def _stmts(self, stmts: tuple[T.Stmt, ...], env: Env) -> tuple[list[T.Stmt], Env]:
		out: list[T.Stmt] = []
		for stmt in stmts:
			emitted, env = self._stmt(stmt, env)
			out.extend(emitted)
		return out, env

	def _stmt(self, stmt: T.Stmt, env: Env) -> tuple[list[T.Stmt], Env]:
		fn = getattr(self, f"_visit_stmt_{type(stmt).__name__}", None)
		if fn is None:
			raise TransformInvariantError(f"ANF: unexpected statement {type(stmt).__name__}")
		return fn(stmt, env)

	def _visit_stmt_ValDef(self, stmt: T.ValDef, env: Env) -> tuple[list[T.Stmt], Env]:
		prefix: list[T.Stmt] = []
		if isinstance(stmt.value, T.Await):
			fut_prefix, fut = self._expr(stmt.value.future, env)
			prefix.extend(fut_prefix)
			value: T.Expr = replace(stmt.value, future=fut)
		elif self.has_await(stmt.value):
			val_prefix, value = self._expr(stmt.value, env)
			prefix.extend(val_prefix)
		else:
			value = rename_free(stmt.value, env)  # type: ignore[assignment]
		new = self._define(stmt.name, mutable=stmt.mutable)
		if stmt.lazy:
			self.lazy.add(new)
		prefix.append(replace(stmt, name=new, value=value))
		return prefix, {**env, stmt.name: new}

	def _visit_stmt_Assign(self, stmt: T.Assign, env: Env) -> tuple[list[T.Stmt], Env]:
		target = env.get(stmt.name, stmt.name)
		if target not in self.declared:
			raise TransformInvariantError(f"ANF: assignment to undeclared binding '{stmt.name}'")
		if target not in self.mutable:
			raise TransformInvariantError(f"ANF: assignment to immutable binding '{stmt.name}'")
		if self.has_await(stmt.value):
			prefix, value = self._expr(stmt.value, env)
		else:
			prefix, value = [], rename_free(stmt.value, env)  # type: ignore[assignment]
		prefix.append(replace(stmt, name=target, value=value))
		return prefix, env

	def _visit_stmt_ExprStmt(self, stmt: T.ExprStmt, env: Env) -> tuple[list[T.Stmt], Env]:
		if not self.has_await(stmt.expr):
			return [replace(stmt, expr=rename_free(stmt.expr, env))], env
		return self._tail(stmt.expr, env, result=None), env

	def _visit_stmt_FunDef(self, stmt: T.FunDef, env: Env) -> tuple[list[T.Stmt], Env]:
		new = self._define(stmt.name)
		env = {**env, stmt.name: new}
		# Same scoping as a closure with these params, plus the function's own name.
		as_lambda = rename_free(T.Lambda(params=stmt.params, body=stmt.body), env)
		assert isinstance(as_lambda, T.Lambda)
		return [replace(stmt, name=new, body=as_lambda.body)], env

	def _visit_stmt_While(self, stmt: T.While, env: Env) -> tuple[list[T.Stmt], Env]:
		if self.has_await(stmt):
			raise TransformInvariantError("ANF: await inside a while loop")
		return [rename_free(stmt, env)], env  # type: ignore[list-item]

	def _visit_stmt_Throw(self, stmt: T.Throw, env: Env) -> tuple[list[T.Stmt], Env]:
		if self.has_await(stmt.value):
			prefix, value = self._expr(stmt.value, env)
		else:
			prefix, value = [], rename_free(stmt.value, env)  # type: ignore[assignment]
		prefix.append(replace(stmt, value=value))
		return prefix, env

	def _visit_stmt_IfStmt(self, stmt: T.IfStmt, env: Env) -> tuple[list[T.Stmt], Env]:
		raise TransformInvariantError("ANF: input already contains normalized branches")

	_visit_stmt_MatchStmt = _visit_stmt_IfStmt

	# --- branches --------------------------------------------------------

	def _tail(self, expr: T.Expr, env: Env, result: Optional[str]) -> list[T.Stmt]:
		"""
		Statements computing `expr` in tail position of an arm (or as a
		statement): assign it to `result`, or evaluate it for effect.
		"""
		if isinstance(expr, (T.If, T.Match)) and self.has_await(expr):
			return self._branch(expr, env, result)
		if isinstance(expr, T.Block) and self.has_await(expr):
			stats, inner = self._stmts(expr.stats, env)
			return stats + self._tail(expr.expr, inner, result)
		if self.has_await(expr):
			prefix, value = self._expr(expr, env)
		else:
			prefix, value = [], rename_free(expr, env)  # type: ignore[assignment]
		if result is not None:
			prefix.append(T.Assign(name=result, value=value, span=expr.span))
		elif not self._discardable(value):
			prefix.append(T.ExprStmt(expr=value, span=expr.span))
		return prefix

	def _arm(self, body: T.Expr, env: Env, result: Optional[str]) -> tuple[T.Stmt, ...]:
		if isinstance(body, T.Block):
			stats, inner = self._stmts(body.stats, env)
			return tuple(stats + self._tail(body.expr, inner, result))
		return tuple(self._tail(body, env, result))

	def _branch(self, expr: T.Expr, env: Env, result: Optional[str]) -> list[T.Stmt]:
		if isinstance(expr, T.If):
			prefix, cond = self._expr(expr.cond, env)
			cond = self._bind_atomic(cond, "cond", prefix)
			then = self._arm(expr.then, env, result)
			else_ = self._arm(expr.else_, env, result) if expr.else_ is not None else ()
			prefix.append(T.IfStmt(cond=cond, then=then, else_=else_, span=expr.span, node_id=expr.node_id))
			return prefix
		assert isinstance(expr, T.Match)
		prefix, scrutinee = self._expr(expr.scrutinee, env)
		scrutinee = self._bind_atomic(scrutinee, "scrut", prefix)
		arms: list[T.CaseArm] = []
		for case in expr.cases:
			pattern = case.pattern
			arm_env = env
			if isinstance(pattern, T.BindPattern):
				new = self._define(pattern.name)
				arm_env = {**env, pattern.name: new}
				pattern = replace(pattern, name=new)
			if case.guard is not None and self.has_await(case.guard):
				raise TransformInvariantError("ANF: await inside a pattern guard")
			guard = rename_free(case.guard, arm_env) if case.guard is not None else None
			arms.append(
				T.CaseArm(
					pattern=pattern,
					body=self._arm(case.body, arm_env, result),
					guard=guard,  # type: ignore[arg-type]
					span=case.span,
					node_id=case.node_id,
				)
			)
		prefix.append(T.MatchStmt(scrutinee=scrutinee, arms=tuple(arms), span=expr.span, node_id=expr.node_id))
		return prefix

	# --- expressions -----------------------------------------------------

	def _expr(self, expr: T.Expr, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		"""Return (prefix statements, await-free expression)."""
		if not self.has_await(expr):
			return [], rename_free(expr, env)  # type: ignore[return-value]
		fn = getattr(self, f"_visit_expr_{type(expr).__name__}", None)
		if fn is None:
			raise TransformInvariantError(f"ANF: await inside unsupported {type(expr).__name__}")
		return fn(expr, env)

	def _operands(
		self,
		exprs: tuple[T.Expr, ...],
		env: Env,
		by_name: tuple[bool, ...] = (),
	) -> tuple[list[T.Stmt], list[T.Expr]]:
		def deferred(i: int) -> bool:
			return i < len(by_name) and by_name[i]

		last_await = -1
		for i, e in enumerate(exprs):
			if not deferred(i) and self.has_await(e):
				last_await = i
		prefix: list[T.Stmt] = []
		out: list[T.Expr] = []
		for i, e in enumerate(exprs):
			if deferred(i):
				if self.has_await(e):
					raise TransformInvariantError("ANF: await inside a by-name argument")
				out.append(rename_free(e, env))  # type: ignore[arg-type]
				continue
			p, val = self._expr(e, env)
			prefix.extend(p)
			if i < last_await:
				val = self._bind_atomic(val, "tmp", prefix)
			out.append(val)
		return prefix, out

	def _visit_expr_Await(self, expr: T.Await, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		prefix, fut = self._expr(expr.future, env)
		name = self._temp("await")
		prefix.append(T.ValDef(name=name, value=replace(expr, future=fut), span=expr.span))
		return prefix, T.Name(name, span=expr.span)

	def _visit_expr_Call(self, expr: T.Call, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		if isinstance(expr.fn, T.Lambda):
			return self._inline_call(expr, env)
		prefix, vals = self._operands((expr.fn,) + expr.args, env, (False,) + tuple(expr.by_name))
		return prefix, replace(expr, fn=vals[0], args=tuple(vals[1:]))

	def _inline_call(self, expr: T.Call, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		lam = expr.fn
		assert isinstance(lam, T.Lambda)
		if len(lam.params) != len(expr.args):
			raise TransformInvariantError(
				f"ANF: closure takes {len(lam.params)} argument(s), called with {len(expr.args)}"
			)
		prefix: list[T.Stmt] = []
		body_env = dict(env)
		for idx, (param, arg) in enumerate(zip(lam.params, expr.args)):
			if expr.is_by_name(idx):
				value: T.Expr = T.Lambda(params=(), body=rename_free(arg, env), span=arg.span)  # type: ignore[arg-type]
			else:
				p, value = self._expr(arg, env)
				prefix.extend(p)
			new = self._define(param.name)
			prefix.append(T.ValDef(name=new, value=value, ty=param.ty, span=param.span))
			body_env[param.name] = new
		body = lam.body
		if isinstance(body, T.Block):
			stats, inner = self._stmts(body.stats, body_env)
			prefix.extend(stats)
			p, value = self._expr(body.expr, inner)
		else:
			p, value = self._expr(body, body_env)
		prefix.extend(p)
		return prefix, value

	def _visit_expr_Select(self, expr: T.Select, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		prefix, subject = self._expr(expr.subject, env)
		return prefix, replace(expr, subject=subject)

	def _visit_expr_BinOp(self, expr: T.BinOp, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		prefix, (left, right) = self._operands((expr.left, expr.right), env)
		return prefix, replace(expr, left=left, right=right)

	def _visit_expr_UnaryOp(self, expr: T.UnaryOp, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		prefix, operand = self._expr(expr.operand, env)
		return prefix, replace(expr, operand=operand)

	def _visit_expr_ListLit(self, expr: T.ListLit, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		prefix, items = self._operands(expr.items, env)
		return prefix, replace(expr, items=tuple(items))

	def _visit_expr_Block(self, expr: T.Block, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		stats, inner = self._stmts(expr.stats, env)
		prefix, value = self._expr(expr.expr, inner)
		return stats + prefix, value

	def _visit_expr_If(self, expr: T.If, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		return self._branch_value(expr, env, "ifres")

	def _visit_expr_Match(self, expr: T.Match, env: Env) -> tuple[list[T.Stmt], T.Expr]:
		return self._branch_value(expr, env, "matchres")

	def _branch_value(self, expr: T.Expr, env: Env, base: str) -> tuple[list[T.Stmt], T.Expr]:
		result = self._temp(base)
		self.mutable.add(result)
		decl = T.ValDef(name=result, value=T.Literal(None), mutable=True, span=expr.span)
		return [decl] + self._branch(expr, env, result), T.Name(result, span=expr.span)


def normalize(block: T.Block, fresh: FreshNames | None = None) -> AnfResult:
	"""
	Rewrite `block` into A-normal form.

	`fresh` is threaded through and returned; pass the same generator to the
	later stages so generated names never repeat.
	"""
	fresh = fresh or FreshNames()
	out = _Normalizer(fresh).block(block)
	return AnfResult(block=out, fresh=fresh)


__all__ = ["AnfResult", "normalize"]
