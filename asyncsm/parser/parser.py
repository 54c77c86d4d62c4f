# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Surface reader: text -> computation tree.

The notation exists so tests and prototypes can write computations as text
instead of nested constructors:

    val x = await(fetch(1));
    if (x > 0) { await(fetch(x)) } else { 0 }

It does no name resolution and no type checking; the result is a plain
`Block` that the driver numbers and analyzes like a hand-built tree.
"""

from __future__ import annotations

import codecs
from pathlib import Path
from typing import Optional

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from asyncsm.core.span import Span
from asyncsm.stage1 import tree as T

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()


class SurfaceSyntaxError(ValueError):
	"""User-facing parse error carrying the location of the offending token."""

	def __init__(self, message: str, *, span: Span) -> None:
		super().__init__(f"{span.describe()}: {message}")
		self.span = span


_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="contextual",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

_BINARY_OPS = {
	"add": T.BinaryOp.ADD,
	"sub": T.BinaryOp.SUB,
	"mul": T.BinaryOp.MUL,
	"div": T.BinaryOp.DIV,
	"mod": T.BinaryOp.MOD,
	"eq": T.BinaryOp.EQ,
	"ne": T.BinaryOp.NE,
	"lt": T.BinaryOp.LT,
	"le": T.BinaryOp.LE,
	"gt": T.BinaryOp.GT,
	"ge": T.BinaryOp.GE,
}

_BOOL_OPS = {
	"and_": T.BoolOpKind.AND,
	"or_": T.BoolOpKind.OR,
}

_STMT_RULES = {"val_def", "var_def", "lazy_def", "assign", "fun_def", "while_stmt", "throw_stmt"}


def _decode_string_token(tok: Token) -> str:
	"""
	Decode STRING tokens with Python-style escapes. Characters outside latin-1
	are turned into `\\uXXXX` escapes first, so unicode_escape sees only
	latin-1 bytes and both `"caf\\u00e9"` and literal non-ASCII text decode to
	the same string. A malformed escape raises UnicodeDecodeError.
	"""
	content = tok.value[1:-1]
	return codecs.decode(content.encode("latin-1", "backslashreplace"), "unicode_escape")


def _decode_number(tok: Token) -> int | float:
	text = tok.value
	return float(text) if "." in text else int(text)


class _TreeBuilder:
	"""Converts lark parse trees into computation-tree nodes."""

	def __init__(self, file: Optional[str] = None) -> None:
		self.file = file

	def _span(self, node: Tree | Token) -> Span:
		meta = node if isinstance(node, Token) else node.meta
		return Span.from_meta(meta, file=self.file)

	def _string(self, tok: Token, span: Span) -> str:
		try:
			return _decode_string_token(tok)
		except UnicodeError as exc:
			raise SurfaceSyntaxError(f"invalid string literal {tok.value}: {exc}", span=span) from exc

	@staticmethod
	def _trees(node: Tree) -> list[Tree]:
		return [c for c in node.children if isinstance(c, Tree)]

	@staticmethod
	def _names(node: Tree) -> list[Token]:
		return [c for c in node.children if isinstance(c, Token) and c.type == "NAME"]

	@staticmethod
	def _type_ann(node: Tree) -> Optional[str]:
		for child in node.children:
			if isinstance(child, Tree) and child.data == "type_ann":
				return str(child.children[0])
		return None

	# --- blocks ----------------------------------------------------------

	def items(self, node: Tree, children: list) -> T.Block:
		stats: list[T.Stmt] = []
		result: T.Expr = T.Literal(None)
		for idx, child in enumerate(children):
			last = idx == len(children) - 1
			if isinstance(child, Tree) and child.data in _STMT_RULES:
				stats.append(self.stmt(child))
			elif last:
				result = self.expr(child)
			else:
				expr = self.expr(child)
				stats.append(T.ExprStmt(expr=expr, span=expr.span))
		return T.Block(stats=tuple(stats), expr=result, span=self._span(node))

	def block(self, node: Tree) -> T.Block:
		return self.items(node, list(node.children))

	# --- statements ------------------------------------------------------

	def stmt(self, node: Tree) -> T.Stmt:
		kind = node.data
		span = self._span(node)
		if kind in ("val_def", "var_def", "lazy_def"):
			name = self._names(node)[0]
			value = [c for c in self._trees(node) if c.data != "type_ann"][-1]
			return T.ValDef(
				name=str(name),
				value=self.expr(value),
				ty=self._type_ann(node),
				mutable=kind == "var_def",
				lazy=kind == "lazy_def",
				span=span,
			)
		if kind == "assign":
			name = self._names(node)[0]
			return T.Assign(name=str(name), value=self.expr(self._trees(node)[0]), span=span)
		if kind == "fun_def":
			name = self._names(node)[0]
			params: tuple[T.Param, ...] = ()
			body_node = self._trees(node)[-1]
			for child in self._trees(node):
				if child.data == "params":
					params = self.params(child)
			return T.FunDef(name=str(name), params=params, body=self.expr(body_node), span=span)
		if kind == "while_stmt":
			cond, body = self._trees(node)
			return T.While(cond=self.expr(cond), body=self.block(body), span=span)
		if kind == "throw_stmt":
			return T.Throw(value=self.expr(self._trees(node)[0]), span=span)
		raise TypeError(f"Unexpected statement node: {kind}")

	def params(self, node: Tree) -> tuple[T.Param, ...]:
		out = []
		for p in self._trees(node):
			out.append(T.Param(name=str(self._names(p)[0]), ty=self._type_ann(p), span=self._span(p)))
		return tuple(out)

	# --- expressions -----------------------------------------------------

	def expr(self, node: Tree | Token) -> T.Expr:
		if not isinstance(node, Tree):
			raise TypeError(f"Unexpected expression token: {node!r}")
		kind = node.data
		span = self._span(node)
		if kind in _BINARY_OPS:
			left, right = self._trees(node)
			return T.BinOp(op=_BINARY_OPS[kind], left=self.expr(left), right=self.expr(right), span=span)
		if kind in _BOOL_OPS:
			left, right = self._trees(node)
			return T.BoolOp(op=_BOOL_OPS[kind], left=self.expr(left), right=self.expr(right), span=span)
		if kind == "not_":
			return T.UnaryOp(op=T.UnaryOpKind.NOT, operand=self.expr(self._trees(node)[0]), span=span)
		if kind == "neg":
			operand = self.expr(self._trees(node)[0])
			if isinstance(operand, T.Literal) and isinstance(operand.value, (int, float)) and not isinstance(operand.value, bool):
				return T.Literal(-operand.value, span=span)
			return T.UnaryOp(op=T.UnaryOpKind.NEG, operand=operand, span=span)
		if kind == "number":
			return T.Literal(_decode_number(node.children[0]), span=span)
		if kind == "string":
			return T.Literal(self._string(node.children[0], span), span=span)
		if kind == "true":
			return T.Literal(True, span=span)
		if kind == "false":
			return T.Literal(False, span=span)
		if kind == "none":
			return T.Literal(None, span=span)
		if kind == "name":
			return T.Name(str(node.children[0]), span=span)
		if kind == "await_":
			return T.Await(future=self.expr(self._trees(node)[0]), span=span)
		if kind == "list_lit":
			return T.ListLit(items=tuple(self.expr(c) for c in self._trees(node)), span=span)
		if kind == "call":
			return self.call(node)
		if kind == "select":
			subject = self._trees(node)[0]
			return T.Select(subject=self.expr(subject), name=str(self._names(node)[-1]), span=span)
		if kind == "block":
			return self.block(node)
		if kind == "if_expr":
			return self.if_expr(node)
		if kind == "match_expr":
			return self.match_expr(node)
		if kind == "try_expr":
			return self.try_expr(node)
		if kind == "lambda_expr":
			params: tuple[T.Param, ...] = ()
			trees = self._trees(node)
			if trees and trees[0].data == "params":
				params = self.params(trees[0])
			return T.Lambda(params=params, body=self.expr(trees[-1]), span=span)
		raise TypeError(f"Unexpected expression node: {kind}")

	def call(self, node: Tree) -> T.Call:
		trees = self._trees(node)
		fn = self.expr(trees[0])
		args: list[T.Expr] = []
		by_name: list[bool] = []
		if len(trees) > 1:
			for arg in self._trees(trees[1]):
				if arg.data == "by_name":
					args.append(self.expr(self._trees(arg)[0]))
					by_name.append(True)
				else:
					args.append(self.expr(arg))
					by_name.append(False)
		return T.Call(
			fn=fn,
			args=tuple(args),
			by_name=tuple(by_name) if any(by_name) else (),
			span=self._span(node),
		)

	def if_expr(self, node: Tree) -> T.If:
		trees = self._trees(node)
		cond = self.expr(trees[0])
		then = self.block(trees[1])
		else_: Optional[T.Block] = None
		if len(trees) > 2:
			branch = self._trees(trees[2])[0]
			if branch.data == "block":
				else_ = self.block(branch)
			else:
				nested = self.if_expr(branch)
				else_ = T.Block(stats=(), expr=nested, span=nested.span)
		return T.If(cond=cond, then=then, else_=else_, span=self._span(node))

	def match_expr(self, node: Tree) -> T.Match:
		trees = self._trees(node)
		scrutinee = self.expr(trees[0])
		cases = []
		for clause in trees[1:]:
			parts = self._trees(clause)
			pattern = self.pattern(parts[0])
			guard: Optional[T.Expr] = None
			if len(parts) == 3:
				guard = self.expr(self._trees(parts[1])[0])
			cases.append(T.Case(pattern=pattern, body=self.expr(parts[-1]), guard=guard, span=self._span(clause)))
		return T.Match(scrutinee=scrutinee, cases=tuple(cases), span=self._span(node))

	def pattern(self, node: Tree) -> T.Pattern:
		kind = node.data
		span = self._span(node)
		if kind == "wildcard_pat":
			return T.WildcardPattern(span=span)
		if kind == "bind_pat":
			return T.BindPattern(name=str(self._names(node)[0]), type_name=self._type_ann(node), span=span)
		if kind == "number_pat":
			return T.LiteralPattern(_decode_number(node.children[0]), span=span)
		if kind == "neg_number_pat":
			return T.LiteralPattern(-_decode_number(node.children[0]), span=span)
		if kind == "string_pat":
			return T.LiteralPattern(self._string(node.children[0], span), span=span)
		if kind == "true_pat":
			return T.LiteralPattern(True, span=span)
		if kind == "false_pat":
			return T.LiteralPattern(False, span=span)
		if kind == "none_pat":
			return T.LiteralPattern(None, span=span)
		raise TypeError(f"Unexpected pattern node: {kind}")

	def try_expr(self, node: Tree) -> T.Try:
		trees = self._trees(node)
		body = self.block(trees[0])
		handlers = []
		finalizer: Optional[T.Block] = None
		for clause in trees[1:]:
			if clause.data == "catch_clause":
				block = [c for c in self._trees(clause) if c.data == "block"][0]
				handlers.append(
					T.Handler(
						name=str(self._names(clause)[0]),
						body=self.block(block),
						type_name=self._type_ann(clause),
						span=self._span(clause),
					)
				)
			elif clause.data == "finally_clause":
				finalizer = self.block(self._trees(clause)[0])
		return T.Try(body=body, handlers=tuple(handlers), finalizer=finalizer, span=self._span(node))


def parse_computation(source: str, *, file: Optional[str] = None) -> T.Block:
	"""
	Parse a computation body. A trailing expression becomes the block's
	result; a body that ends in a statement yields `none`.
	"""
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as exc:
		span = Span(file=file, line=getattr(exc, "line", None), column=getattr(exc, "column", None))
		context = exc.get_context(source).rstrip()
		raise SurfaceSyntaxError(f"syntax error\n{context}", span=span) from exc
	builder = _TreeBuilder(file)
	return builder.items(tree, list(tree.children))


def parse_expr(source: str, *, file: Optional[str] = None) -> T.Expr:
	"""Parse a single expression (a computation whose only item is its result)."""
	block = parse_computation(source, file=file)
	if block.stats:
		raise SurfaceSyntaxError("expected a single expression", span=block.stats[0].span)
	return block.expr


__all__ = ["SurfaceSyntaxError", "parse_computation", "parse_expr"]
