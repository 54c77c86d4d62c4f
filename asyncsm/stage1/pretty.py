# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Readable rendering of computation trees.

Used for verbose-mode dumps ("ANF transform expands to ...") and for test
failure messages. Expressions render on one line in the surface notation;
statement lists render one statement per line, with normalized branch arms
indented.
"""

from __future__ import annotations

from asyncsm.stage1 import tree as T

_INDENT = "  "


def format_literal(value: object) -> str:
	if value is None:
		return "none"
	if value is True:
		return "true"
	if value is False:
		return "false"
	if isinstance(value, str):
		escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
		return f'"{escaped}"'
	return repr(value)


def format_pattern(pat: T.Pattern) -> str:
	if isinstance(pat, T.WildcardPattern):
		return "_"
	if isinstance(pat, T.BindPattern):
		return f"{pat.name}: {pat.type_name}" if pat.type_name else pat.name
	if isinstance(pat, T.LiteralPattern):
		return format_literal(pat.value)
	raise TypeError(f"unknown pattern {type(pat).__name__}")


def _params(params: tuple[T.Param, ...]) -> str:
	return ", ".join(f"{p.name}: {p.ty}" if p.ty else p.name for p in params)


def format_expr(expr: T.Expr) -> str:
	if isinstance(expr, T.Literal):
		return format_literal(expr.value)
	if isinstance(expr, T.Name):
		return expr.id
	if isinstance(expr, T.Await):
		return f"await({format_expr(expr.future)})"
	if isinstance(expr, T.Call):
		args = [
			("=> " if expr.is_by_name(i) else "") + format_expr(a)
			for i, a in enumerate(expr.args)
		]
		return f"{format_expr(expr.fn)}({', '.join(args)})"
	if isinstance(expr, T.Select):
		return f"{format_expr(expr.subject)}.{expr.name}"
	if isinstance(expr, T.BinOp):
		return f"({format_expr(expr.left)} {expr.op.value} {format_expr(expr.right)})"
	if isinstance(expr, T.BoolOp):
		return f"({format_expr(expr.left)} {expr.op.value} {format_expr(expr.right)})"
	if isinstance(expr, T.UnaryOp):
		return f"{expr.op.value}{format_expr(expr.operand)}"
	if isinstance(expr, T.ListLit):
		return "[" + ", ".join(format_expr(i) for i in expr.items) + "]"
	if isinstance(expr, T.Block):
		parts = [format_stmt_inline(s) for s in expr.stats] + [format_expr(expr.expr)]
		return "{ " + "; ".join(parts) + " }"
	if isinstance(expr, T.If):
		text = f"if ({format_expr(expr.cond)}) {format_expr(expr.then)}"
		if expr.else_ is not None:
			text += f" else {format_expr(expr.else_)}"
		return text
	if isinstance(expr, T.Match):
		cases = " ".join(_format_case(c) for c in expr.cases)
		return f"match ({format_expr(expr.scrutinee)}) {{ {cases} }}"
	if isinstance(expr, T.Lambda):
		return f"fn({_params(expr.params)}) => {format_expr(expr.body)}"
	if isinstance(expr, T.Try):
		text = f"try {format_expr(expr.body)}"
		for h in expr.handlers:
			binder = f"{h.name}: {h.type_name}" if h.type_name else h.name
			text += f" catch ({binder}) {format_expr(h.body)}"
		if expr.finalizer is not None:
			text += f" finally {format_expr(expr.finalizer)}"
		return text
	raise TypeError(f"unknown expression {type(expr).__name__}")


def _format_case(case: T.Case) -> str:
	guard = f" if {format_expr(case.guard)}" if case.guard is not None else ""
	return f"case {format_pattern(case.pattern)}{guard} => {format_expr(case.body)}"


def format_stmt_inline(stmt: T.Stmt) -> str:
	"""One-line rendering (normalized arms collapse into braces)."""
	lines = format_stmt(stmt)
	return " ".join(line.strip() for line in lines)


def format_stmt(stmt: T.Stmt, depth: int = 0) -> list[str]:
	pad = _INDENT * depth
	if isinstance(stmt, T.ValDef):
		kw = "var" if stmt.mutable else ("lazy val" if stmt.lazy else "val")
		ty = f": {stmt.ty}" if stmt.ty else ""
		return [f"{pad}{kw} {stmt.name}{ty} = {format_expr(stmt.value)}"]
	if isinstance(stmt, T.Assign):
		return [f"{pad}{stmt.name} = {format_expr(stmt.value)}"]
	if isinstance(stmt, T.ExprStmt):
		return [f"{pad}{format_expr(stmt.expr)}"]
	if isinstance(stmt, T.FunDef):
		return [f"{pad}fun {stmt.name}({_params(stmt.params)}) = {format_expr(stmt.body)}"]
	if isinstance(stmt, T.While):
		return [f"{pad}while ({format_expr(stmt.cond)}) {format_expr(stmt.body)}"]
	if isinstance(stmt, T.Throw):
		return [f"{pad}throw {format_expr(stmt.value)}"]
	if isinstance(stmt, T.IfStmt):
		lines = [f"{pad}if ({format_expr(stmt.cond)}) {{"]
		lines += format_stmts(stmt.then, depth + 1)
		if stmt.else_:
			lines.append(f"{pad}}} else {{")
			lines += format_stmts(stmt.else_, depth + 1)
		lines.append(f"{pad}}}")
		return lines
	if isinstance(stmt, T.MatchStmt):
		lines = [f"{pad}match ({format_expr(stmt.scrutinee)}) {{"]
		for arm in stmt.arms:
			guard = f" if {format_expr(arm.guard)}" if arm.guard is not None else ""
			lines.append(f"{pad}{_INDENT}case {format_pattern(arm.pattern)}{guard} =>")
			lines += format_stmts(arm.body, depth + 2)
		lines.append(f"{pad}}}")
		return lines
	raise TypeError(f"unknown statement {type(stmt).__name__}")


def format_stmts(stmts: tuple[T.Stmt, ...], depth: int = 0) -> list[str]:
	lines: list[str] = []
	for stmt in stmts:
		lines.extend(format_stmt(stmt, depth))
	return lines


def format_block(block: T.Block) -> str:
	"""Multi-line rendering of a root block; the result expression comes last."""
	lines = format_stmts(block.stats)
	lines.append(format_expr(block.expr))
	return "\n".join(lines)


__all__ = [
	"format_literal",
	"format_pattern",
	"format_expr",
	"format_stmt",
	"format_stmt_inline",
	"format_stmts",
	"format_block",
]
