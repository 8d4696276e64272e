from kungfu import Error, LazyCoroResult, Ok

from orderflow._errors import FailureCode, FailureKind, conflict, dependency, rejected
from orderflow._retry import on_conflict
from orderflow._saga import Saga, step


def ok(value):
    async def run():
        return Ok(value)

    return LazyCoroResult(run)


def fail(failure):
    async def run():
        return Error(failure)

    return LazyCoroResult(run)


class TestSaga:
    async def test_compensators_run_in_reverse(self):
        undone: list[str] = []

        async def undo(value):
            undone.append(value)
            return Ok(None)

        saga = Saga("demo")
        await saga.run(step(ok("a"), compensate=undo))
        await saga.run(step(ok("b"), compensate=undo))
        result = await saga.run(step(fail(dependency("boom"))))

        outcome = await saga.abort(result.error)

        assert undone == ["b", "a"]
        assert outcome.step_failed == 3
        assert outcome.compensators_run == 2
        assert outcome.rollback_complete

    async def test_failing_compensator_does_not_stop_others(self):
        undone: list[str] = []

        async def undo(value):
            undone.append(value)
            return Ok(None)

        async def broken(value):
            raise RuntimeError("cannot undo")

        saga = Saga("demo")
        await saga.run(step(ok("a"), compensate=undo))
        await saga.run(step(ok("b"), compensate=broken))

        outcome = await saga.abort(dependency("boom"))

        assert undone == ["a"]
        assert outcome.compensators_failed == 1
        assert not outcome.rollback_complete

    async def test_failed_step_records_no_compensator(self):
        undone: list[str] = []

        async def undo(value):
            undone.append(value)
            return Ok(None)

        saga = Saga("demo")
        await saga.run(step(fail(dependency("boom")), compensate=undo))

        await saga.abort(dependency("boom"))

        assert undone == []


class TestOnConflict:
    async def test_retries_conflicts_until_success(self):
        calls = 0

        async def op():
            nonlocal calls
            calls += 1
            return Error(conflict("lost")) if calls < 3 else Ok(calls)

        result = await on_conflict(op, times=3, label="demo")

        assert result.unwrap() == 3

    async def test_gives_up_after_budget(self):
        calls = 0

        async def op():
            nonlocal calls
            calls += 1
            return Error(conflict("lost"))

        result = await on_conflict(op, times=2, label="demo")

        assert isinstance(result, Error)
        assert result.error.kind is FailureKind.CONFLICT
        assert calls == 2

    async def test_business_failures_not_retried(self):
        calls = 0

        async def op():
            nonlocal calls
            calls += 1
            return Error(rejected(FailureCode.INSUFFICIENT_STOCK, "none left"))

        result = await on_conflict(op, times=5, label="demo")

        assert result.error.code is FailureCode.INSUFFICIENT_STOCK
        assert calls == 1
