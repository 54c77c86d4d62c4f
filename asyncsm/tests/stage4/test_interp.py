# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from typing import Any

import pytest

from asyncsm.core.errors import MatchError, TransformInvariantError
from asyncsm.parser import parse_computation
from asyncsm.stage4.interp import Frame, evaluate


def _eval(src: str, env: dict[str, Any] | None = None) -> Any:
	return evaluate(parse_computation(src), env)


def test_arithmetic_and_comparisons() -> None:
	assert _eval("1 + 2 * 3") == 7
	assert _eval("7 / 2") == 3.5
	assert _eval("7 % 4 == 3 && !(2 > 3)") is True
	assert _eval('"ab" + "c"') == "abc"


def test_short_circuit_skips_right_operand() -> None:
	calls: list[int] = []

	def boom() -> bool:
		calls.append(1)
		return True

	assert _eval("false && boom()", {"boom": boom}) is False
	assert _eval("true || boom()", {"boom": boom}) is True
	assert calls == []


def test_while_loop_updates_outer_vars() -> None:
	assert _eval("var i = 0; var s = 0; while (i < 4) { s = s + i; i = i + 1 }; s") == 6


def test_try_catch_finally() -> None:
	log: list[str] = []
	env = {"boom": ValueError, "log": log.append}
	src = 'try { throw boom("x") } catch (e: ValueError) { "caught" } finally { log("fin") }'
	assert _eval(src, env) == "caught"
	assert log == ["fin"]


def test_unmatched_handler_rethrows() -> None:
	with pytest.raises(ValueError):
		_eval('try { throw boom("x") } catch (e: KeyError) { 1 }', {"boom": ValueError})


def test_throw_requires_an_exception() -> None:
	with pytest.raises(TypeError):
		_eval("throw 1; 2")


def test_match_patterns() -> None:
	assert _eval('match (true) { case 1 => "int" case true => "bool" }') == "bool"
	assert _eval('match (true) { case n: Int => "int" case _ => "other" }') == "other"
	assert _eval('match (4) { case n: Int if n > 3 => n * 10 case _ => 0 }') == 40
	assert _eval('match (none) { case 0 => "zero" case none => "none" }') == "none"


def test_match_without_matching_arm() -> None:
	with pytest.raises(MatchError) as excinfo:
		_eval("match (3) { case 1 => 1 }")
	assert excinfo.value.value == 3


def test_lazy_initializer_runs_once_on_first_read() -> None:
	calls: list[int] = []

	def tick() -> int:
		calls.append(1)
		return 5

	assert _eval("lazy val z = tick(); val a = 1; z + z", {"tick": tick}) == 10
	assert calls == [1]
	_eval("lazy val z = tick(); 0", {"tick": tick})
	assert calls == [1]


def test_closures_and_local_functions() -> None:
	assert _eval("fun fact(n) = if (n <= 1) { 1 } else { n * fact(n - 1) }; fact(5)") == 120
	assert _eval("val k = 10; val add = fn(a) => a + k; add(5)") == 15
	with pytest.raises(TypeError):
		_eval("val add = fn(a, b) => a + b; add(1)")


def test_by_name_argument_is_a_thunk() -> None:
	env = {"either": lambda a, b: a or b()}
	assert _eval("either(false, => 7)", env) == 7
	assert _eval("either(3, => missing())", env) == 3


def test_select_and_builtins() -> None:
	assert _eval('"abc".upper()') == "ABC"
	assert _eval("len([1, 2, 3])") == 3


def test_await_needs_a_hook() -> None:
	block = parse_computation("await(f(2)) + 1")
	assert evaluate(block, {"f": lambda v: v * 10}, await_value=lambda v: v) == 21
	with pytest.raises(TransformInvariantError):
		evaluate(block, {"f": lambda v: v})


def test_frame_lookup_order_and_promoted_definitions() -> None:
	slots: dict[str, Any] = {"x$1": 0}
	frame = Frame(slots=slots, env={"x$1": "env", "y": "env-y"}, promoted=frozenset(slots))
	assert frame.lookup("x$1") == 0
	frame.define("x$1", 5)
	frame.define("tmp", 7)
	assert slots == {"x$1": 5}
	assert frame.vars == {"tmp": 7}
	assert frame.lookup("y") == "env-y"
	assert frame.lookup("len") is len
	with pytest.raises(NameError):
		frame.lookup("nowhere")
	with pytest.raises(NameError):
		frame.assign("nowhere", 1)
