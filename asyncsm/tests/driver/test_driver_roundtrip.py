# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from asyncsm import run_sync, transform, transform_source
from asyncsm.core.errors import AsyncUsageError
from asyncsm.core.options import TransformOptions
from asyncsm.driver import main
from asyncsm.parser import parse_computation, parse_expr
from asyncsm.stage1 import tree as T
from asyncsm.stage1.node_ids import assign_node_ids
from asyncsm.stage1.tree_utils import walk
from asyncsm.stage4.interp import evaluate


def _ident(v: Any) -> Any:
	return v


ENV = {
	"f": _ident,
	"g": lambda n: n * 3,
	"either": lambda a, b: a or b(),
}

ROUND_TRIPS = [
	("val x = await(f(1)); val y = x + await(f(2)); y", 3),
	("var acc = 0; acc = acc + await(f(3)); acc = acc * await(f(4)); acc", 12),
	("val v = if (await(f(true))) { await(f(10)) } else { 0 }; v + 1", 11),
	('match (await(f(2))) { case 1 => "one" case n: Int if n > 1 => str(n) + "!" case _ => "?" }', "2!"),
	("val xs = [await(f(1)), g(2), await(f(3))]; xs", [1, 6, 3]),
	("fun twice(n) = n * 2; val a = await(f(5)); twice(a)", 10),
	("val r = (fn(a) => a + await(f(a)))(2); r", 4),
	("val k = { val t = await(f(4)); t * t }; k", 16),
	("lazy val z = f(7) + 1; val w = await(f(1)); z + w", 9),
	('val s = "a"; if (await(f(false))) { s } else { s + "b" }', "ab"),
	("val r = either(await(f(false)), => g(9)); r", 27),
	('val x = await(f(3)); if (x < 2) { "small" } else if (x < 5) { await(f("mid")) } else { "big" }', "mid"),
	("val a = await(f(1)); try { a / 0 } catch (e: ZeroDivisionError) { -1 }", -1),
	("val a = await(f(2)); val b = await(f(a * 3)); match (b) { case 6 => a + b case _ => 0 }", 8),
]


@pytest.mark.parametrize("src, expected", ROUND_TRIPS)
def test_automaton_matches_direct_evaluation(src: str, expected: Any) -> None:
	direct = evaluate(parse_computation(src), ENV, await_value=_ident)
	assert direct == expected
	assert run_sync(src, ENV) == expected


EFFECT_ORDERS = [
	('lazy val z = rec("z"); val r = z + await(f(rec("f"))); r', ["z", "f"]),
	('lazy val z = rec("z"); if (await(f(true))) { z } else { 0 }; rec("end")', ["z", "end"]),
	('val a = rec("a") + await(f(rec("b"))); a + rec("c")', ["a", "b", "c"]),
]


@pytest.mark.parametrize("src, expected", EFFECT_ORDERS)
def test_automaton_keeps_effect_order(src: str, expected: list[str]) -> None:
	def run(use_automaton: bool) -> list[str]:
		seen: list[str] = []

		def rec(tag: str) -> str:
			seen.append(tag)
			return tag

		env = {**ENV, "rec": rec}
		if use_automaton:
			run_sync(src, env)
		else:
			evaluate(parse_computation(src), env, await_value=_ident)
		return seen

	assert run(use_automaton=False) == expected
	assert run(use_automaton=True) == expected


def test_transform_accepts_a_bare_expression() -> None:
	program = transform(parse_expr("await(f(2)) + 1"))
	assert program.state_count == 2
	assert run_sync(program, ENV) == 3
	assert run_sync(parse_expr("await(f(4))"), ENV) == 4


def test_usage_error_names_the_offending_await() -> None:
	block = parse_computation("val a = ready && await(f(1)); val b = await(f(2)); a")
	numbered, _ = assign_node_ids(block)
	first_await = next(n for n in walk(numbered) if isinstance(n, T.Await))
	with pytest.raises(AsyncUsageError) as excinfo:
		transform(block)
	assert excinfo.value.node_ids == [first_await.node_id]
	assert excinfo.value.diagnostics[0].code == "ASYNC001"


def test_verbose_mode_logs_every_stage(caplog: pytest.LogCaptureFixture) -> None:
	caplog.set_level(logging.INFO, logger="asyncsm.driver")
	transform_source("val x = await(f(1)); x + 1", options=TransformOptions(verbose=True), file="demo.async")
	messages = [r.getMessage() for r in caplog.records if r.name == "asyncsm.driver"]
	assert any(m.startswith("demo: ANF transform expands to:") for m in messages)
	assert "demo: promoted bindings: x -> x$1" in messages
	assert any(m.startswith("demo: states:") for m in messages)
	assert any(m.startswith("demo: state machine expands to:") and "state$async" in m for m in messages)


def test_verbose_mode_from_environment(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
	monkeypatch.setenv("ASYNCSM_DEBUG", "1")
	caplog.set_level(logging.INFO, logger="asyncsm.driver")
	transform_source("val x = await(f(1)); x")
	assert any("ANF transform expands to" in r.getMessage() for r in caplog.records)


def test_quiet_by_default(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
	monkeypatch.delenv("ASYNCSM_DEBUG", raising=False)
	caplog.set_level(logging.INFO, logger="asyncsm.driver")
	transform_source("val x = await(f(1)); x")
	assert not [r for r in caplog.records if r.levelno >= logging.INFO]


# --- CLI -------------------------------------------------------------------


def _write(tmp_path: Path, name: str, text: str) -> Path:
	path = tmp_path / name
	path.write_text(text)
	return path


def test_cli_runs_and_dumps(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	path = _write(tmp_path, "triple.async", "val x = await(1 + 1); x * 3")
	assert main([str(path), "--dump", "anf", "--dump", "states", "--run"]) == 0
	out = capsys.readouterr().out
	assert "await((1 + 1))" in out
	assert "state 0:" in out and "state 1:" in out
	assert out.rstrip().endswith("6")


def test_cli_dumps_automaton(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	path = _write(tmp_path, "auto.async", "val x = await(1); x")
	assert main([str(path), "--dump", "automaton"]) == 0
	assert "class auto_state_machine:" in capsys.readouterr().out


def test_cli_reports_usage_errors_as_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	path = _write(tmp_path, "bad.async", "val a = ok && await(f()); a")
	assert main([str(path), "--json"]) == 1
	payload = json.loads(capsys.readouterr().out)
	assert payload["exit_code"] == 1
	(diag,) = payload["diagnostics"]
	assert diag["code"] == "ASYNC001"
	assert diag["phase"] == "await-analysis"
	assert diag["file"] == str(path)
	assert diag["line"] == 1


def test_cli_reports_usage_errors_as_text(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	path = _write(tmp_path, "bad.async", "while (true) { await(f()) }; 1")
	assert main([str(path)]) == 1
	assert "error[ASYNC007]" in capsys.readouterr().err


def test_cli_syntax_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	path = _write(tmp_path, "broken.async", "val = 1")
	assert main([str(path)]) == 1
	assert "syntax error" in capsys.readouterr().err


def test_cli_run_failure_exit_code(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	path = _write(tmp_path, "div.async", "val x = await(1); x / 0")
	assert main([str(path), "--run"]) == 2
	assert "ZeroDivisionError" in capsys.readouterr().err


def test_cli_malformed_string_escape(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	path = _write(tmp_path, "escape.async", 'val s = "\\x4"; s')
	assert main([str(path)]) == 1
	assert "invalid string literal" in capsys.readouterr().err
