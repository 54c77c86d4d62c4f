# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from asyncsm.core.errors import TransformInvariantError
from asyncsm.parser import parse_computation
from asyncsm.stage1 import tree as T
from asyncsm.stage1.anf import normalize
from asyncsm.stage1.node_ids import assign_node_ids
from asyncsm.stage1.tree_utils import walk
from asyncsm.stage2.liveness import LivenessResult, analyze_liveness
from asyncsm.stage3.builder import StateBuilder, build_state_machine
from asyncsm.stage3.states import (
	Branch,
	Complete,
	Goto,
	MatchDispatch,
	State,
	StateGraph,
	Suspend,
)


def _lower(src: str) -> tuple[StateGraph, LivenessResult, T.Block]:
	numbered, _ = assign_node_ids(parse_computation(src))
	assert isinstance(numbered, T.Block)
	anf = normalize(numbered)
	live = analyze_liveness(anf.block, anf.fresh)
	return build_state_machine(live.block, live.promoted_names), live, numbered


def test_no_await_is_a_single_completing_state() -> None:
	graph, _, _ = _lower("val a = 1; a + 1")
	assert len(graph) == 1
	assert graph.entry == 0
	assert graph[0].stats == [T.ValDef(name="a", value=T.Literal(1))]
	assert graph[0].transition == Complete(T.BinOp(T.BinaryOp.ADD, T.Name("a"), T.Literal(1)))


def test_sequential_awaits_make_a_chain() -> None:
	graph, live, numbered = _lower("val x = await(f(1)); val y = x + await(f(2)); g(y); y")
	assert len(graph) == 3
	awaits = [n for n in walk(numbered) if isinstance(n, T.Await)]
	assert [s.await_id for s in graph.suspensions] == [a.node_id for a in awaits]
	first, second = graph.suspensions
	assert first.resume_to == 1 and first.result_name == live.rename_map["x"]
	assert second.resume_to == 2 and second.result_name == live.rename_map["await$1"]
	assert isinstance(graph[2].transition, Complete)
	assert len(graph[2].stats) == 2


def test_unread_await_result_is_discarded() -> None:
	graph, _, _ = _lower("val ignored = await(f(1)); 2")
	(susp,) = graph.suspensions
	assert susp.result_name is None


def test_if_else_arms_reconverge_at_one_join() -> None:
	graph, live, _ = _lower('if (await(ready)) { log("a") } else { log("b") }; log("tail"); 1')
	assert len(graph) == 5
	assert graph[1].transition == Branch(cond=T.Name(live.rename_map["await$1"]), then_target=2, else_target=3)
	assert graph[2].transition == Goto(4)
	assert graph[3].transition == Goto(4)
	assert graph[4].stats == [T.ExprStmt(T.Call(T.Name("log"), (T.Literal("tail"),)))]
	assert graph[4].transition == Complete(T.Literal(1))


def test_if_without_else_branches_straight_to_join() -> None:
	graph, live, _ = _lower("val c = await(f(1)); if (c) { await(f(2)) }; 3")
	assert len(graph) == 5
	assert graph[1].transition == Branch(cond=T.Name(live.rename_map["c"]), then_target=2, else_target=4)
	arm = graph[2].transition
	assert isinstance(arm, Suspend)
	assert arm.result_name is None
	assert arm.resume_to == 3
	assert graph[3].transition == Goto(4)
	assert graph[4].transition == Complete(T.Literal(3))


def test_match_dispatch_arms_reconverge() -> None:
	graph, _, _ = _lower("val v = await(f(1)); match (v) { case 1 => g(await(f(2))) case _ => 0 }; 5")
	assert len(graph) == 6
	dispatch = graph[1].transition
	assert isinstance(dispatch, MatchDispatch)
	assert [a.target for a in dispatch.arms] == [2, 4]
	assert [a.pattern for a in dispatch.arms] == [T.LiteralPattern(1), T.WildcardPattern()]
	assert isinstance(graph[2].transition, Suspend)
	assert graph[3].transition == Goto(5)
	assert graph[4].stats == []
	assert graph[4].transition == Goto(5)
	assert graph[5].transition == Complete(T.Literal(5))


def test_nested_branches_have_one_completing_state() -> None:
	graph, _, _ = _lower(
		"""
		val a = await(f(1));
		val r = if (a > 0) {
			match (await(f(a))) { case 1 => await(f(10)) case n => if (n > 5) { await(f(n)) } else { n } }
		} else {
			0
		};
		r
		"""
	)
	graph.validate()
	assert sum(isinstance(s.transition, Complete) for s in graph) == 1
	assert len(graph.suspensions) == 4
	for state in graph:
		assert all(0 <= t < len(graph) for t in state.successors())


def test_describe_lists_every_state() -> None:
	graph, live, _ = _lower("val x = await(f(1)); x")
	text = graph.describe()
	assert "state 0:" in text and "state 1:" in text
	assert f"suspend on f(1) into {live.rename_map['x']}" in text
	assert f"complete {live.rename_map['x']}" in text


def test_validate_rejects_malformed_graphs() -> None:
	open_state = StateGraph(states=[State(index=0)])
	with pytest.raises(TransformInvariantError):
		open_state.validate()
	dangling = StateGraph(states=[State(index=0, transition=Goto(3))])
	with pytest.raises(TransformInvariantError):
		dangling.validate()
	two_exits = StateGraph(
		states=[
			State(index=0, transition=Complete(T.Literal(1))),
			State(index=1, transition=Complete(T.Literal(2))),
		]
	)
	with pytest.raises(TransformInvariantError):
		two_exits.validate()


def test_builder_closes_each_state_once() -> None:
	builder = StateBuilder()
	state = builder.new_state()
	join = builder.new_state()
	builder.close(state, Complete(T.Literal(None)))
	with pytest.raises(TransformInvariantError):
		builder.close(state, Goto(1))
	with pytest.raises(TransformInvariantError):
		builder.link_to_join(state, join)
	builder.link_to_join(None, join)
	assert join.transition is None
