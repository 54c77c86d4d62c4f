# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
NodeId assignment for computation trees.

Suspension points are identified by their NodeId everywhere downstream
(diagnostics, `Suspend.await_id`, trace logs), so the driver numbers the tree
once before analysis. Nodes are frozen, so numbering returns a new tree.
"""

from __future__ import annotations

from dataclasses import fields, replace

from asyncsm.stage1 import tree as T


def assign_node_ids(root: T.Node, *, start: int = 1) -> tuple[T.Node, int]:
	"""
	Number every node reachable from `root` in pre-order.

	Returns the renumbered tree and the next available NodeId.
	"""
	next_id = start

	def walk(node: T.Node) -> T.Node:
		nonlocal next_id
		node_id = next_id
		next_id += 1
		changes: dict[str, object] = {"node_id": node_id}
		for f in fields(node):  # type: ignore[arg-type]
			val = getattr(node, f.name)
			if isinstance(val, T.Node):
				changes[f.name] = walk(val)
			elif isinstance(val, tuple) and any(isinstance(item, T.Node) for item in val):
				changes[f.name] = tuple(walk(item) if isinstance(item, T.Node) else item for item in val)
		return replace(node, **changes)  # type: ignore[type-var]

	return walk(root), next_id


__all__ = ["assign_node_ids"]
