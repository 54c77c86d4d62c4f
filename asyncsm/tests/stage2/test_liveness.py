# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from asyncsm.parser import parse_computation
from asyncsm.stage1 import tree as T
from asyncsm.stage1.anf import normalize
from asyncsm.stage2.liveness import (
	BindingKind,
	LivenessResult,
	analyze_liveness,
	is_suspension,
)


def _live(src: str) -> LivenessResult:
	anf = normalize(parse_computation(src))
	return analyze_liveness(anf.block, anf.fresh)


def _kinds(result: LivenessResult) -> dict[str, BindingKind]:
	return {name: info.kind for name, info in result.bindings.items()}


def test_bindings_crossing_an_await_are_promoted() -> None:
	result = _live("val x = await(f(1)); val y = x + await(f(2)); y")
	assert _kinds(result) == {
		"x": BindingKind.PROMOTED,
		"await$1": BindingKind.PROMOTED,
		"y": BindingKind.LOCAL,
	}
	assert result.rename_map == {"x": "x$2", "await$1": "await$3"}
	assert result.promoted_names == frozenset({"x$2", "await$3"})
	assert result.block.stats == (
		T.ValDef(name="x$2", value=T.Await(T.Call(T.Name("f"), (T.Literal(1),)))),
		T.ValDef(name="await$3", value=T.Await(T.Call(T.Name("f"), (T.Literal(2),)))),
		T.ValDef(name="y", value=T.BinOp(T.BinaryOp.ADD, T.Name("x$2"), T.Name("await$3"))),
	)
	assert result.block.expr == T.Name("y")


def test_bindings_used_within_one_segment_stay_local() -> None:
	result = _live("val a = 1; val b = a + 1; val c = await(f(b)); c")
	assert result.bindings["a"].kind is BindingKind.LOCAL
	assert result.bindings["b"].kind is BindingKind.LOCAL
	assert result.bindings["b"].use_segments == [0]
	assert result.rename_map == {"c": "c$1"}


def test_classification_ignores_order_within_a_segment() -> None:
	first = _live("val a = 1; val b = 2; val x = await(f(a)); b + x")
	second = _live("val b = 2; val a = 1; val x = await(f(a)); b + x")
	assert _kinds(first) == _kinds(second)
	assert first.bindings["a"].kind is BindingKind.LOCAL
	assert first.bindings["b"].kind is BindingKind.PROMOTED


def test_unread_await_result_stays_local() -> None:
	anf = normalize(parse_computation("val x = await(f(1)); 2"))
	result = analyze_liveness(anf.block, anf.fresh)
	assert result.bindings["x"].kind is BindingKind.LOCAL
	assert result.rename_map == {}
	assert result.block is anf.block
	assert result.promoted == []


def test_var_assigned_after_await_is_promoted() -> None:
	result = _live("var n = 0; val a = await(f(1)); n = a; n")
	assert result.bindings["n"].promoted
	assert result.bindings["a"].promoted
	assign = result.block.stats[2]
	assert assign == T.Assign(name=result.rename_map["n"], value=T.Name(result.rename_map["a"]))


def test_branch_conditions_and_arms() -> None:
	result = _live("val c = await(f(1)); if (c) { await(f(2)) }; 3")
	assert result.bindings["c"].promoted
	assert result.bindings["await$1"].kind is BindingKind.LOCAL
	branch = result.block.stats[1]
	assert isinstance(branch, T.IfStmt)
	assert branch.cond == T.Name(result.rename_map["c"])


def test_match_binder_used_after_arm_await_is_promoted() -> None:
	result = _live("val r = match (await(f(1))) { case n => await(f(n)) + n }; r")
	assert result.bindings["n"].promoted
	assert result.bindings["r"].kind is BindingKind.LOCAL
	match = result.block.stats[2]
	assert isinstance(match, T.MatchStmt)
	new_n = result.rename_map["n"]
	arm = match.arms[0]
	assert arm.pattern == T.BindPattern(new_n)
	assert arm.body[0].value == T.Await(T.Call(T.Name("f"), (T.Name(new_n),)))


def test_declared_type_is_recorded() -> None:
	result = _live("val n: Int = await(f(1)); n + 1")
	info = result.bindings["n"]
	assert info.ty == "Int"
	assert info.promoted
	assert info.storage_name == result.rename_map["n"]


def test_local_function_used_after_await_is_promoted() -> None:
	result = _live("fun twice(n) = n * 2; val a = await(f(5)); twice(a)")
	assert result.bindings["twice"].promoted
	fun = result.block.stats[0]
	assert isinstance(fun, T.FunDef)
	assert fun.name == result.rename_map["twice"]
	assert result.block.expr == T.Call(T.Name(fun.name), (T.Name(result.rename_map["a"]),))


def test_is_suspension() -> None:
	assert is_suspension(T.ValDef(name="a", value=T.Await(T.Name("f"))))
	assert not is_suspension(T.ValDef(name="a", value=T.Name("f")))
	assert not is_suspension(T.ExprStmt(T.Await(T.Name("f"))))
