# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Generic traversal helpers shared by the tree passes.

Children are discovered through `__dataclass_fields__`, so new node kinds
need no registration here. The scoped walker knows where names are bound:

- `Block` statements bind left to right (`ValDef`, `FunDef`);
- `FunDef` is visible inside its own body;
- `Lambda` parameters bind over the body;
- a case pattern binds over its guard and body;
- a `catch` name binds over the handler body;
- normalized `IfStmt`/`MatchStmt` arms are nested statement scopes.
"""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Callable, Iterator, Mapping, Optional

from asyncsm.stage1 import tree as T


def iter_children(node: T.Node) -> Iterator[T.Node]:
	"""Yield the direct child nodes of `node` in field order."""
	for f in fields(node):  # type: ignore[arg-type]
		val = getattr(node, f.name)
		if isinstance(val, T.Node):
			yield val
		elif isinstance(val, tuple):
			for item in val:
				if isinstance(item, T.Node):
					yield item


def map_children(node: T.Node, fn: Callable[[T.Node], T.Node]) -> T.Node:
	"""
	Rebuild `node` with `fn` applied to every direct child.

	Returns `node` itself when no child changed.
	"""
	changes: dict[str, object] = {}
	for f in fields(node):  # type: ignore[arg-type]
		val = getattr(node, f.name)
		if isinstance(val, T.Node):
			new_val = fn(val)
			if new_val is not val:
				changes[f.name] = new_val
		elif isinstance(val, tuple) and any(isinstance(item, T.Node) for item in val):
			new_items = tuple(fn(item) if isinstance(item, T.Node) else item for item in val)
			if any(a is not b for a, b in zip(new_items, val)):
				changes[f.name] = new_items
	if not changes:
		return node
	return replace(node, **changes)  # type: ignore[type-var]


def walk(node: T.Node) -> Iterator[T.Node]:
	"""Pre-order iteration over `node` and all of its descendants."""
	stack = [node]
	while stack:
		cur = stack.pop()
		yield cur
		stack.extend(reversed(list(iter_children(cur))))


class AwaitScanner:
	"""
	Memoized "does this subtree contain an Await?" query.

	The cache is keyed by object identity and keeps the nodes alive, so one
	scanner must only be used while its trees are live (one pass).
	"""

	def __init__(self) -> None:
		self._cache: dict[int, tuple[T.Node, bool]] = {}

	def __call__(self, node: Optional[T.Node]) -> bool:
		if node is None:
			return False
		hit = self._cache.get(id(node))
		if hit is not None and hit[0] is node:
			return hit[1]
		if isinstance(node, T.Await):
			result = True
		else:
			result = any(self(child) for child in iter_children(node))
		self._cache[id(node)] = (node, result)
		return result


def contains_await(node: Optional[T.Node]) -> bool:
	"""Uncached variant of `AwaitScanner` for one-off queries."""
	if node is None:
		return False
	return any(isinstance(n, T.Await) for n in walk(node))


class _ScopedRenamer:
	"""Rename free name references; report each free reference to `on_free`."""

	def __init__(self, on_free: Callable[[str], None] | None = None) -> None:
		self._on_free = on_free

	def rename(self, node: T.Node, mapping: Mapping[str, str], bound: frozenset[str]) -> T.Node:
		fn = getattr(self, f"_visit_{type(node).__name__}", None)
		if fn is not None:
			return fn(node, mapping, bound)
		return map_children(node, lambda child: self.rename(child, mapping, bound))

	def _use(self, name: str, mapping: Mapping[str, str], bound: frozenset[str]) -> str:
		if name in bound:
			return name
		if self._on_free is not None:
			self._on_free(name)
		return mapping.get(name, name)

	@staticmethod
	def _bind(
		names: tuple[str, ...] | list[str],
		mapping: Mapping[str, str],
		bound: frozenset[str],
	) -> tuple[Mapping[str, str], frozenset[str]]:
		if not names:
			return mapping, bound
		shadowed = {k: v for k, v in mapping.items() if k not in names}
		return shadowed, bound | frozenset(names)

	def _visit_Name(self, node: T.Name, mapping, bound) -> T.Node:
		new_id = self._use(node.id, mapping, bound)
		return node if new_id == node.id else replace(node, id=new_id)

	def _visit_Lambda(self, node: T.Lambda, mapping, bound) -> T.Node:
		inner_map, inner_bound = self._bind([p.name for p in node.params], mapping, bound)
		body = self.rename(node.body, inner_map, inner_bound)
		return node if body is node.body else replace(node, body=body)

	def _visit_Case(self, node: T.Case, mapping, bound) -> T.Node:
		inner_map, inner_bound = self._bind(T.pattern_binders(node.pattern), mapping, bound)
		guard = self.rename(node.guard, inner_map, inner_bound) if node.guard is not None else None
		body = self.rename(node.body, inner_map, inner_bound)
		if guard is node.guard and body is node.body:
			return node
		return replace(node, guard=guard, body=body)

	def _visit_Handler(self, node: T.Handler, mapping, bound) -> T.Node:
		inner_map, inner_bound = self._bind([node.name], mapping, bound)
		body = self.rename(node.body, inner_map, inner_bound)
		return node if body is node.body else replace(node, body=body)

	def _visit_Block(self, node: T.Block, mapping, bound) -> T.Node:
		stats, mapping, bound = self.rename_stmts(node.stats, mapping, bound)
		expr = self.rename(node.expr, mapping, bound)
		if expr is node.expr and all(a is b for a, b in zip(stats, node.stats)):
			return node
		return replace(node, stats=stats, expr=expr)

	def _visit_IfStmt(self, node: T.IfStmt, mapping, bound) -> T.Node:
		cond = self.rename(node.cond, mapping, bound)
		then, _, _ = self.rename_stmts(node.then, mapping, bound)
		else_, _, _ = self.rename_stmts(node.else_, mapping, bound)
		return replace(node, cond=cond, then=then, else_=else_)

	def _visit_MatchStmt(self, node: T.MatchStmt, mapping, bound) -> T.Node:
		scrutinee = self.rename(node.scrutinee, mapping, bound)
		arms = []
		for arm in node.arms:
			inner_map, inner_bound = self._bind(T.pattern_binders(arm.pattern), mapping, bound)
			guard = self.rename(arm.guard, inner_map, inner_bound) if arm.guard is not None else None
			body, _, _ = self.rename_stmts(arm.body, inner_map, inner_bound)
			arms.append(replace(arm, guard=guard, body=body))
		return replace(node, scrutinee=scrutinee, arms=tuple(arms))

	def rename_stmts(
		self,
		stmts: tuple[T.Stmt, ...],
		mapping: Mapping[str, str],
		bound: frozenset[str],
	) -> tuple[tuple[T.Stmt, ...], Mapping[str, str], frozenset[str]]:
		out: list[T.Stmt] = []
		for stmt in stmts:
			if isinstance(stmt, T.ValDef):
				value = self.rename(stmt.value, mapping, bound)
				out.append(stmt if value is stmt.value else replace(stmt, value=value))
				mapping, bound = self._bind([stmt.name], mapping, bound)
			elif isinstance(stmt, T.FunDef):
				mapping, bound = self._bind([stmt.name], mapping, bound)
				fn_map, fn_bound = self._bind([p.name for p in stmt.params], mapping, bound)
				body = self.rename(stmt.body, fn_map, fn_bound)
				out.append(stmt if body is stmt.body else replace(stmt, body=body))
			elif isinstance(stmt, T.Assign):
				value = self.rename(stmt.value, mapping, bound)
				target = self._use(stmt.name, mapping, bound)
				if value is stmt.value and target == stmt.name:
					out.append(stmt)
				else:
					out.append(replace(stmt, name=target, value=value))
			else:
				out.append(self.rename(stmt, mapping, bound))  # type: ignore[arg-type]
		return tuple(out), mapping, bound


def rename_free(node: T.Node, mapping: Mapping[str, str]) -> T.Node:
	"""
	Rename free references according to `mapping`.

	References captured by an inner binder of the same name are left alone.
	A bare statement is treated as one element of a statement list: a
	`ValDef`'s own name is not renamed, an `Assign` target is.
	"""
	if not mapping:
		return node
	renamer = _ScopedRenamer()
	if isinstance(node, T.Stmt):
		stmts, _, _ = renamer.rename_stmts((node,), mapping, frozenset())
		return stmts[0]
	return renamer.rename(node, mapping, frozenset())


def free_names(node: T.Node) -> set[str]:
	"""Names referenced (or assigned) in `node` that `node` itself does not bind."""
	found: set[str] = set()
	renamer = _ScopedRenamer(on_free=found.add)
	if isinstance(node, T.Stmt):
		renamer.rename_stmts((node,), {}, frozenset())
	else:
		renamer.rename(node, {}, frozenset())
	return found


__all__ = [
	"iter_children",
	"map_children",
	"walk",
	"AwaitScanner",
	"contains_await",
	"rename_free",
	"free_names",
]
