# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import pytest

from asyncsm.core.errors import AutomatonStateError, PromiseAlreadyCompletedError
from asyncsm.core.outcome import Failure, Success
from asyncsm.driver import transform_source
from asyncsm.futures import (
	AsyncioFutureSystem,
	ConcurrentFutureSystem,
	FutureSystem,
	IdentityFutureSystem,
	outcome_of,
)

TWO_FETCHES = "val a = await(fetch(1)); val b = await(fetch(a)); a + b"


def test_future_system_is_abstract() -> None:
	with pytest.raises(TypeError):
		FutureSystem()  # type: ignore[abstract]


# --- identity --------------------------------------------------------------


def test_identity_promise_completes_once() -> None:
	fs = IdentityFutureSystem()
	promise = fs.create_promise()
	with pytest.raises(AutomatonStateError):
		fs.promise_to_future(promise)
	fs.complete(promise, Success(3))
	assert promise.done
	assert fs.promise_to_future(promise) == 3
	with pytest.raises(PromiseAlreadyCompletedError):
		fs.complete(promise, Success(4))


def test_identity_on_complete_passes_outcomes_through() -> None:
	fs = IdentityFutureSystem()
	seen: list[Any] = []
	failure = Failure(ValueError("x"))
	fs.on_complete(5, seen.append, None)
	fs.on_complete(failure, seen.append, None)
	assert seen == [Success(5), failure]


# --- concurrent.futures ----------------------------------------------------


def test_thread_pool_runs_to_completion() -> None:
	with ThreadPoolExecutor(max_workers=4) as pool:
		fs = ConcurrentFutureSystem(executor=pool)
		env = {"fetch": lambda n: pool.submit(lambda: n * 2)}
		result = transform_source(TWO_FETCHES).start(fs, env)
		assert isinstance(result, Future)
		assert result.result(timeout=5) == 6


def test_thread_pool_failure_propagates_and_stops() -> None:
	calls: list[Any] = []

	def fail() -> None:
		raise ValueError("boom")

	with ThreadPoolExecutor(max_workers=2) as pool:
		fs = ConcurrentFutureSystem(executor=pool)
		env = {
			"fetch": lambda n: pool.submit(lambda: n),
			"boom": lambda _: pool.submit(fail),
			"record": calls.append,
		}
		program = transform_source("val a = await(fetch(1)); val b = await(boom(a)); record(b); b")
		result = program.start(fs, env)
		with pytest.raises(ValueError, match="boom"):
			result.result(timeout=5)
	assert calls == []


def test_owned_executor_with_plain_values() -> None:
	with ConcurrentFutureSystem(max_workers=2) as fs:
		result = transform_source(TWO_FETCHES).start(fs, {"fetch": lambda n: n + 1})
		assert result.result(timeout=5) == 5


def test_concurrent_promise_completes_once() -> None:
	fs = ConcurrentFutureSystem()
	promise = fs.create_promise()
	fs.complete(promise, Failure(KeyError("k")))
	with pytest.raises(PromiseAlreadyCompletedError):
		fs.complete(promise, Success(1))
	assert isinstance(outcome_of(promise), Failure)


# --- asyncio ---------------------------------------------------------------


def test_asyncio_drives_coroutines() -> None:
	async def fetch(n: int) -> int:
		await asyncio.sleep(0)
		return n + 1

	program = transform_source(TWO_FETCHES)

	async def main() -> Any:
		return await program.start(AsyncioFutureSystem(), {"fetch": fetch})

	assert asyncio.run(main()) == 5


def test_asyncio_failure_propagates() -> None:
	async def bad() -> None:
		raise LookupError("missing")

	program = transform_source("val a = await(bad()); a")

	async def main() -> Any:
		return await program.start(AsyncioFutureSystem(), {"bad": bad})

	with pytest.raises(LookupError):
		asyncio.run(main())


def test_asyncio_accepts_thread_futures_and_plain_values() -> None:
	program = transform_source("val a = await(slow(2)); val b = await(7); a + b")

	with ThreadPoolExecutor(max_workers=1) as pool:
		async def main() -> Any:
			env = {"slow": lambda v: pool.submit(lambda: v * 3)}
			return await program.start(AsyncioFutureSystem(), env)

		assert asyncio.run(main()) == 13


def test_asyncio_future_of_another_loop_fails_the_result() -> None:
	other = asyncio.new_event_loop()
	try:
		foreign = other.create_future()
		program = transform_source("val a = await(foreign); a")

		async def main() -> Any:
			result = program.start(AsyncioFutureSystem(), {"foreign": foreign})
			return await asyncio.wait_for(result, 1.0)

		with pytest.raises(ValueError, match="different loop"):
			asyncio.run(main())
	finally:
		other.close()


def test_asyncio_start_from_another_thread() -> None:
	loop = asyncio.new_event_loop()
	try:
		fs = AsyncioFutureSystem(loop)
		program = transform_source(TWO_FETCHES)
		with ThreadPoolExecutor(max_workers=1) as pool:
			result = pool.submit(program.start, fs, {"fetch": lambda n: n + 2}).result(timeout=5)
		assert loop.run_until_complete(asyncio.wait_for(result, 1.0)) == 8
	finally:
		loop.close()


def test_asyncio_with_explicit_loop() -> None:
	loop = asyncio.new_event_loop()
	try:
		fs = AsyncioFutureSystem(loop)
		result = transform_source(TWO_FETCHES).start(fs, {"fetch": lambda n: n * 10})
		assert loop.run_until_complete(result) == 110
	finally:
		loop.close()


def test_asyncio_promise_and_cancellation() -> None:
	async def main() -> Any:
		fs = AsyncioFutureSystem()
		promise = fs.create_promise()
		fs.complete(promise, Success(1))
		with pytest.raises(PromiseAlreadyCompletedError):
			fs.complete(promise, Success(2))
		cancelled = fs.create_promise()
		cancelled.cancel()
		outcome = outcome_of(cancelled)
		assert isinstance(outcome, Failure)
		assert isinstance(outcome.exception, asyncio.CancelledError)
		return await promise

	assert asyncio.run(main()) == 1
