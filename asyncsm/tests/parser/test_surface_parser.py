# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from asyncsm.parser import SurfaceSyntaxError, parse_computation, parse_expr
from asyncsm.stage1 import tree as T


def test_statements_and_result_expression() -> None:
	block = parse_computation("val x: Int = 1; var y = x; y = y + 1; y")
	assert block.stats == (
		T.ValDef(name="x", value=T.Literal(1), ty="Int"),
		T.ValDef(name="y", value=T.Name("x"), mutable=True),
		T.Assign(name="y", value=T.BinOp(T.BinaryOp.ADD, T.Name("y"), T.Literal(1))),
	)
	assert block.expr == T.Name("y")


def test_trailing_statement_yields_none() -> None:
	block = parse_computation("val x = 1;")
	assert block.expr == T.Literal(None)
	assert parse_computation("") == T.Block()


def test_operator_precedence() -> None:
	expr = parse_expr("1 + 2 * 3 == 7 && !done || -x < 0")
	assert expr == T.BoolOp(
		T.BoolOpKind.OR,
		T.BoolOp(
			T.BoolOpKind.AND,
			T.BinOp(
				T.BinaryOp.EQ,
				T.BinOp(T.BinaryOp.ADD, T.Literal(1), T.BinOp(T.BinaryOp.MUL, T.Literal(2), T.Literal(3))),
				T.Literal(7),
			),
			T.UnaryOp(T.UnaryOpKind.NOT, T.Name("done")),
		),
		T.BinOp(T.BinaryOp.LT, T.UnaryOp(T.UnaryOpKind.NEG, T.Name("x")), T.Literal(0)),
	)


def test_literals() -> None:
	assert parse_expr("-3") == T.Literal(-3)
	assert parse_expr("2.5") == T.Literal(2.5)
	assert parse_expr('"a\\nb"') == T.Literal("a\nb")
	assert parse_expr("true") == T.Literal(True)
	assert parse_expr("none") == T.Literal(None)
	assert parse_expr("[1, x]") == T.ListLit((T.Literal(1), T.Name("x")))


def test_calls_selects_await_and_by_name() -> None:
	expr = parse_expr("client.get(await(fetch(1)), => fallback())")
	assert expr == T.Call(
		fn=T.Select(T.Name("client"), "get"),
		args=(
			T.Await(T.Call(T.Name("fetch"), (T.Literal(1),))),
			T.Call(T.Name("fallback")),
		),
		by_name=(False, True),
	)


def test_lambda_and_immediate_invocation() -> None:
	expr = parse_expr("(fn(a, b: Int) => a + b)(1, 2)")
	assert expr == T.Call(
		fn=T.Lambda(
			params=(T.Param("a"), T.Param("b", "Int")),
			body=T.BinOp(T.BinaryOp.ADD, T.Name("a"), T.Name("b")),
		),
		args=(T.Literal(1), T.Literal(2)),
	)


def test_if_else_if_chain() -> None:
	expr = parse_expr("if (a) { 1 } else if (b) { 2 } else { 3 }")
	assert expr == T.If(
		cond=T.Name("a"),
		then=T.Block(expr=T.Literal(1)),
		else_=T.Block(
			expr=T.If(cond=T.Name("b"), then=T.Block(expr=T.Literal(2)), else_=T.Block(expr=T.Literal(3)))
		),
	)


def test_match_with_patterns_and_guard() -> None:
	expr = parse_expr('match (v) { case 0 => "zero" case -1 => "minus" case n: Int if n > 9 => "big" case _ => "other" }')
	assert isinstance(expr, T.Match)
	patterns = [c.pattern for c in expr.cases]
	assert patterns == [
		T.LiteralPattern(0),
		T.LiteralPattern(-1),
		T.BindPattern("n", "Int"),
		T.WildcardPattern(),
	]
	assert expr.cases[2].guard == T.BinOp(T.BinaryOp.GT, T.Name("n"), T.Literal(9))
	assert expr.cases[3].body == T.Literal("other")


def test_try_catch_finally() -> None:
	expr = parse_expr("try { risky() } catch (e: ValueError) { 0 } finally { done() }")
	assert expr == T.Try(
		body=T.Block(expr=T.Call(T.Name("risky"))),
		handlers=(T.Handler(name="e", body=T.Block(expr=T.Literal(0)), type_name="ValueError"),),
		finalizer=T.Block(expr=T.Call(T.Name("done"))),
	)


def test_fun_while_throw_and_lazy() -> None:
	block = parse_computation(
		"""
		// helpers
		fun inc(n) = n + 1;
		lazy val z = inc(1);
		while (false) { throw oops() };
		z
		"""
	)
	fun, lazy, loop = block.stats
	assert fun == T.FunDef(
		name="inc",
		params=(T.Param("n"),),
		body=T.BinOp(T.BinaryOp.ADD, T.Name("n"), T.Literal(1)),
	)
	assert lazy == T.ValDef(name="z", value=T.Call(T.Name("inc"), (T.Literal(1),)), lazy=True)
	assert loop == T.While(
		cond=T.Literal(False),
		body=T.Block(stats=(T.Throw(T.Call(T.Name("oops"))),)),
	)


def test_spans_are_recorded() -> None:
	block = parse_computation("val a = 1;\nval b = await(a);\nb", file="demo.async")
	awaited = block.stats[1].value
	assert isinstance(awaited, T.Await)
	assert awaited.span.file == "demo.async"
	assert awaited.span.line == 2


def test_syntax_error_has_location() -> None:
	with pytest.raises(SurfaceSyntaxError) as excinfo:
		parse_computation("val = 3")
	assert excinfo.value.span.line == 1


def test_parse_expr_rejects_statements() -> None:
	with pytest.raises(SurfaceSyntaxError):
		parse_expr("val a = 1; a")


def test_unicode_escapes_and_non_ascii_text() -> None:
	assert parse_expr('"caf\\u00e9"') == T.Literal("café")
	assert parse_expr('"café €"') == T.Literal("café €")
	assert parse_expr('"\\x41\\t"') == T.Literal("A\t")


def test_malformed_escape_is_a_syntax_error() -> None:
	with pytest.raises(SurfaceSyntaxError, match="invalid string literal") as excinfo:
		parse_computation('val s = 1;\nval t = "\\x4"; t')
	assert excinfo.value.span.line == 2
	with pytest.raises(SurfaceSyntaxError):
		parse_expr('match (s) { case "\\u12" => 1 case _ => 0 }')
