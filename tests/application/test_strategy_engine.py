"""Tests for the deployment strategy engine."""

import pytest
from unittest.mock import MagicMock
from conftest import FakeDeployAction, FakeRemote, make_run
from nixfleet.application.confirm import assume_no, assume_yes
from nixfleet.application.orchestration.strategy_engine import (
    StrategyEngine,
    plan_batches,
)
from nixfleet.application.use_cases.deploy_host import DeployExecutor
from nixfleet.application.use_cases.render_report import ReportGenerator
from nixfleet.domain.entities.deployment_run import (
    DeploymentMode,
    DeploymentStatus,
    RunPhase,
)

P, D, S, F = (
    DeploymentStatus.PENDING,
    DeploymentStatus.DEPLOYING,
    DeploymentStatus.SUCCESS,
    DeploymentStatus.FAILED,
)


class RecordingConfirm:
    def __init__(self, answer: bool):
        self.answer = answer
        self.questions = []

    def __call__(self, question: str) -> bool:
        self.questions.append(question)
        return self.answer


def executor_for(action: FakeDeployAction) -> DeployExecutor:
    return DeployExecutor(action, FakeRemote())


class TestPlanBatches:
    def test_even_split(self):
        assert plan_batches([1, 2, 3, 4], 2) == [[1, 2], [3, 4]]

    def test_last_batch_short(self):
        assert plan_batches(["a", "b", "c"], 2) == [["a", "b"], ["c"]]

    def test_empty(self):
        assert plan_batches([], 3) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            plan_batches([1], 0)


class TestEngineConstruction:
    @pytest.mark.parametrize(
        "kwargs",
        [{"max_parallel": 0}, {"batch_size": 0}, {"batch_delay": -1.0}],
    )
    def test_rejects_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            StrategyEngine(executor_for(FakeDeployAction()), assume_yes, **kwargs)

    @pytest.mark.asyncio
    async def test_engine_is_single_use(self, tmp_path):
        engine = StrategyEngine(executor_for(FakeDeployAction()), assume_yes)
        await engine.run(make_run(["a"], tmp_path))
        with pytest.raises(RuntimeError):
            await engine.run(make_run(["b"], tmp_path))


class TestSequential:
    @pytest.mark.asyncio
    async def test_all_succeed_in_order(self, tmp_path):
        action = FakeDeployAction()
        run = make_run(["a", "b", "c"], tmp_path)
        confirm = RecordingConfirm(True)
        engine = StrategyEngine(executor_for(action), confirm)

        phase = await engine.run(run)

        assert phase is RunPhase.DONE_SUCCESS
        assert engine.phase is RunPhase.DONE_SUCCESS
        assert action.calls == ["a", "b", "c"]
        assert run.registry.snapshot() == {"a": S, "b": S, "c": S}
        assert confirm.questions == []

    @pytest.mark.asyncio
    async def test_failure_then_decline_leaves_rest_pending(self, tmp_path):
        action = FakeDeployAction(fail={"a"})
        run = make_run(["a", "b"], tmp_path)
        confirm = RecordingConfirm(False)

        phase = await StrategyEngine(executor_for(action), confirm).run(run)

        assert phase is RunPhase.DONE_WITH_FAILURES
        assert action.calls == ["a"]
        assert run.registry.snapshot() == {"a": F, "b": P}
        assert len(confirm.questions) == 1
        assert "Continue with remaining 1 host(s)?" in confirm.questions[0]

    @pytest.mark.asyncio
    async def test_failure_then_accept_continues(self, tmp_path):
        action = FakeDeployAction(fail={"a"})
        run = make_run(["a", "b"], tmp_path)

        phase = await StrategyEngine(executor_for(action), assume_yes).run(run)

        assert phase is RunPhase.DONE_WITH_FAILURES
        assert run.registry.snapshot() == {"a": F, "b": S}

    @pytest.mark.asyncio
    async def test_failure_on_last_host_asks_nothing(self, tmp_path):
        action = FakeDeployAction(fail={"b"})
        run = make_run(["a", "b"], tmp_path)
        confirm = RecordingConfirm(False)

        await StrategyEngine(executor_for(action), confirm).run(run)

        assert confirm.questions == []
        assert run.registry.snapshot() == {"a": S, "b": F}


class TestParallel:
    @pytest.mark.asyncio
    async def test_all_hosts_attempted(self, tmp_path):
        action = FakeDeployAction(default_delay=0.01)
        run = make_run(["a", "b", "c"], tmp_path, DeploymentMode.PARALLEL)

        phase = await StrategyEngine(executor_for(action), assume_no, max_parallel=2).run(run)

        assert phase is RunPhase.DONE_SUCCESS
        assert sorted(action.calls) == ["a", "b", "c"]
        assert run.registry.counts_by_status()[S] == 3
        assert run.registry.peak_deploying <= 2

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_bound(self, tmp_path):
        hosts = [f"host{i}" for i in range(8)]
        run = make_run(hosts, tmp_path, DeploymentMode.PARALLEL)
        in_flight = []

        def on_apply(host):
            deploying = sum(1 for s in run.registry.snapshot().values() if s is D)
            in_flight.append(deploying)

        action = FakeDeployAction(default_delay=0.01, on_apply=on_apply)
        await StrategyEngine(executor_for(action), assume_no, max_parallel=3).run(run)

        assert max(in_flight) <= 3
        assert run.registry.peak_deploying == 3

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_siblings(self, tmp_path):
        action = FakeDeployAction(
            fail={"b"}, raise_for={"c"}, delays={"a": 0.02, "d": 0.02}
        )
        run = make_run(["a", "b", "c", "d"], tmp_path, DeploymentMode.PARALLEL)
        confirm = RecordingConfirm(False)

        phase = await StrategyEngine(executor_for(action), confirm, max_parallel=4).run(run)

        assert phase is RunPhase.DONE_WITH_FAILURES
        assert run.registry.snapshot() == {"a": S, "b": F, "c": F, "d": S}
        assert confirm.questions == []

    @pytest.mark.asyncio
    async def test_more_workers_than_hosts(self, tmp_path):
        action = FakeDeployAction()
        run = make_run(["a"], tmp_path, DeploymentMode.PARALLEL)

        await StrategyEngine(executor_for(action), assume_no, max_parallel=10).run(run)

        assert action.calls == ["a"]


class TestRolling:
    @pytest.mark.asyncio
    async def test_canary_failure_aborts(self, tmp_path):
        action = FakeDeployAction(fail={"c"})
        run = make_run(["c", "x", "y"], tmp_path, DeploymentMode.ROLLING)
        confirm = RecordingConfirm(True)

        phase = await StrategyEngine(executor_for(action), confirm).run(run)

        assert phase is RunPhase.DONE_WITH_FAILURES
        assert action.calls == ["c"]
        assert run.registry.snapshot() == {"c": F, "x": P, "y": P}
        assert confirm.questions == []

    @pytest.mark.asyncio
    async def test_canary_finishes_before_anyone_else_starts(self, tmp_path):
        run = make_run(["c", "h1", "h2", "h3"], tmp_path, DeploymentMode.ROLLING)
        seen = {}

        def on_apply(host):
            seen[host] = run.registry.snapshot()

        action = FakeDeployAction(on_apply=on_apply)
        await StrategyEngine(executor_for(action), assume_yes, batch_size=2).run(run)

        assert action.calls[0] == "c"
        for host in ("h1", "h2", "h3"):
            assert seen[host]["c"] is S

    @pytest.mark.asyncio
    async def test_batches_are_barriers(self, tmp_path):
        hosts = ["c", "h1", "h2", "h3", "h4"]
        run = make_run(hosts, tmp_path, DeploymentMode.ROLLING)
        seen = {}

        def on_apply(host):
            seen[host] = run.registry.snapshot()

        action = FakeDeployAction(
            delays={"h1": 0.03, "h2": 0.01}, on_apply=on_apply
        )
        phase = await StrategyEngine(executor_for(action), assume_yes, batch_size=2).run(run)

        assert phase is RunPhase.DONE_SUCCESS
        assert set(action.calls[1:3]) == {"h1", "h2"}
        assert set(action.calls[3:]) == {"h3", "h4"}
        for host in ("h3", "h4"):
            assert seen[host]["h1"] is S
            assert seen[host]["h2"] is S

    @pytest.mark.asyncio
    async def test_decline_after_canary(self, tmp_path):
        action = FakeDeployAction()
        run = make_run(["c", "x"], tmp_path, DeploymentMode.ROLLING)
        confirm = RecordingConfirm(False)

        phase = await StrategyEngine(executor_for(action), confirm).run(run)

        assert phase is RunPhase.DONE_SUCCESS
        assert run.registry.snapshot() == {"c": S, "x": P}
        assert len(confirm.questions) == 1
        assert "Canary c deployed successfully" in confirm.questions[0]

    @pytest.mark.asyncio
    async def test_canary_only_run_asks_nothing(self, tmp_path):
        confirm = RecordingConfirm(False)
        run = make_run(["c"], tmp_path, DeploymentMode.ROLLING)

        phase = await StrategyEngine(executor_for(FakeDeployAction()), confirm).run(run)

        assert phase is RunPhase.DONE_SUCCESS
        assert confirm.questions == []

    @pytest.mark.asyncio
    async def test_batch_failure_decline_halts(self, tmp_path):
        answers = iter([True, False])
        questions = []

        def confirm(question):
            questions.append(question)
            return next(answers)

        action = FakeDeployAction(fail={"h1"})
        run = make_run(["c", "h1", "h2", "h3"], tmp_path, DeploymentMode.ROLLING)

        phase = await StrategyEngine(executor_for(action), confirm, batch_size=2).run(run)

        assert phase is RunPhase.DONE_WITH_FAILURES
        assert run.registry.snapshot() == {"c": S, "h1": F, "h2": S, "h3": P}
        assert "Batch 1 had 1 failure(s)" in questions[1]

    @pytest.mark.asyncio
    async def test_last_batch_failure_asks_nothing(self, tmp_path):
        confirm = RecordingConfirm(True)
        action = FakeDeployAction(fail={"h2"})
        run = make_run(["c", "h1", "h2"], tmp_path, DeploymentMode.ROLLING)

        await StrategyEngine(executor_for(action), confirm, batch_size=2).run(run)

        assert len(confirm.questions) == 1
        assert run.registry.snapshot() == {"c": S, "h1": S, "h2": F}

    @pytest.mark.asyncio
    async def test_delay_only_between_batches(self, tmp_path):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        run = make_run(["c", "a", "b", "d", "e", "f"], tmp_path, DeploymentMode.ROLLING)
        engine = StrategyEngine(
            executor_for(FakeDeployAction()),
            assume_yes,
            batch_size=2,
            batch_delay=5.0,
            sleep=fake_sleep,
        )
        await engine.run(run)

        # three batches -> two gaps
        assert delays == [5.0, 5.0]


class TestRunLevelProperties:
    @pytest.mark.asyncio
    async def test_registry_size_is_constant(self, tmp_path):
        action = FakeDeployAction(fail={"b"})
        run = make_run(["a", "b", "c"], tmp_path, DeploymentMode.PARALLEL)

        await StrategyEngine(executor_for(action), assume_no).run(run)

        assert len(run.registry) == 3
        assert sum(run.registry.counts_by_status().values()) == 3

    @pytest.mark.asyncio
    async def test_report_is_idempotent_after_run(self, tmp_path):
        action = FakeDeployAction(fail={"b"})
        run = make_run(["a", "b"], tmp_path, DeploymentMode.PARALLEL)
        await StrategyEngine(executor_for(action), assume_no).run(run)

        generator = ReportGenerator()
        first = generator.render(run)
        second = generator.render(run)

        assert first.to_markdown() == second.to_markdown()
        assert first.to_dict() == second.to_dict()

    @pytest.mark.asyncio
    async def test_no_host_left_deploying(self, tmp_path):
        action = FakeDeployAction(fail={"x"})
        run = make_run(["c", "x", "y", "z"], tmp_path, DeploymentMode.ROLLING)

        await StrategyEngine(executor_for(action), assume_no, batch_size=1).run(run)

        assert D not in run.registry.snapshot().values()

    @pytest.mark.asyncio
    async def test_broken_telemetry_still_attempts_every_host(self, tmp_path):
        telemetry = MagicMock()
        telemetry.record_host_outcome.side_effect = RuntimeError("collector down")
        action = FakeDeployAction(default_delay=0.01)
        executor = DeployExecutor(action, FakeRemote(), telemetry=telemetry)
        run = make_run(["a", "b", "c"], tmp_path, DeploymentMode.PARALLEL)

        phase = await StrategyEngine(executor, assume_no, max_parallel=2).run(run)

        assert phase is RunPhase.DONE_SUCCESS
        assert run.registry.snapshot() == {"a": S, "b": S, "c": S}
