"""
Tests for stage execution and pipeline composition.

Fake tasks record when they start and finish so stage ordering can be
checked without running real transforms.
"""

import asyncio

import pytest

from kiln.core.pipeline.composer import ASSET_STAGES, pipeline_stages
from kiln.core.pipeline.models import PipelineResult, Stage, TaskResult, TaskStatus
from kiln.core.pipeline.notify import Notifier
from kiln.core.pipeline.runner import PipelineRunner


class FakeTask:
    """Task that sleeps, logs its start/end and optionally fails."""

    def __init__(self, name, log, delay=0.0, fail=False, raises=None):
        self.name = name
        self.log = log
        self.delay = delay
        self.fail = fail
        self.raises = raises

    def watch_globs(self, ctx):
        return []

    async def run(self, ctx):
        self.log.append(("start", self.name))
        await asyncio.sleep(self.delay)
        self.log.append(("end", self.name))
        if self.raises is not None:
            raise self.raises
        if self.fail:
            return TaskResult.failed(self.name, "broken input")
        return TaskResult(task=self.name)


class RecordingCallback:
    def __init__(self):
        self.events = []

    def on_stage_start(self, index, stage):
        self.events.append(("stage", index))

    def on_task_complete(self, result):
        self.events.append(("task", result.task))

    def on_halt(self, index, stage_result):
        self.events.append(("halt", index))


def _runner(ctx, tasks, callback=None):
    return PipelineRunner(ctx, callback, tasks={t.name: t for t in tasks})


class TestStageOrdering:
    """A stage starts only after every task of the previous stage settled."""

    @pytest.mark.asyncio
    async def test_next_stage_waits_for_slowest_task(self, dev_ctx):
        log = []
        tasks = [FakeTask("slow", log, delay=0.05), FakeTask("fast", log), FakeTask("last", log)]
        runner = _runner(dev_ctx, tasks)

        await runner.run([Stage.of("slow", "fast"), Stage.of("last")])

        assert log.index(("start", "last")) > log.index(("end", "slow"))
        assert log.index(("start", "last")) > log.index(("end", "fast"))

    @pytest.mark.asyncio
    async def test_stage_members_run_concurrently(self, dev_ctx):
        log = []
        tasks = [FakeTask("a", log, delay=0.05), FakeTask("b", log, delay=0.05)]
        await _runner(dev_ctx, tasks).run([Stage.of("a", "b")])

        # both started before either finished
        assert log[:2] == [("start", "a"), ("start", "b")]

    @pytest.mark.asyncio
    async def test_results_keep_declaration_order(self, dev_ctx):
        log = []
        tasks = [FakeTask("a", log, delay=0.03), FakeTask("b", log)]
        result = await _runner(dev_ctx, tasks).run([Stage.of("a", "b")])
        assert [r.task for r in result.stages[0].results] == ["a", "b"]


class TestFailureHandling:
    """Failed tasks settle their stage; halting is opt-in."""

    @pytest.mark.asyncio
    async def test_failed_task_does_not_stop_pipeline(self, dev_ctx):
        log = []
        tasks = [FakeTask("broken", log, fail=True), FakeTask("next", log)]
        result = await _runner(dev_ctx, tasks).run([Stage.of("broken"), Stage.of("next")])

        assert not result.halted
        assert result.result_for("broken").status is TaskStatus.FAILED
        assert result.result_for("next").ok
        assert result.tasks_failed == 1
        assert not result.ok

    @pytest.mark.asyncio
    async def test_halt_on_failure(self, dev_ctx):
        log = []
        callback = RecordingCallback()
        tasks = [FakeTask("broken", log, fail=True), FakeTask("next", log)]
        result = await _runner(dev_ctx, tasks, callback).run(
            [Stage.of("broken"), Stage.of("next")], halt_on_failure=True
        )

        assert result.halted
        assert ("start", "next") not in log
        assert ("halt", 0) in callback.events

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failed_result(self, dev_ctx):
        log = []
        tasks = [FakeTask("boom", log, raises=RuntimeError("kaput")), FakeTask("ok", log)]
        result = await _runner(dev_ctx, tasks).run([Stage.of("boom", "ok")])

        failed = result.result_for("boom")
        assert failed.status is TaskStatus.FAILED
        assert "kaput" in failed.errors[0]
        assert result.result_for("ok").ok
        assert dev_ctx.notifier.for_task("boom")

    @pytest.mark.asyncio
    async def test_partial_assets_kept_on_failure(self, dev_ctx, tmp_path):
        result = TaskResult.failed("styles", "a.scss: bad", assets=[tmp_path / "b.min.css"])
        assert result.status is TaskStatus.FAILED
        assert result.assets == [tmp_path / "b.min.css"]


class TestCallbacks:
    @pytest.mark.asyncio
    async def test_events_and_durations(self, dev_ctx):
        log = []
        callback = RecordingCallback()
        tasks = [FakeTask("a", log, delay=0.01)]
        result = await _runner(dev_ctx, tasks, callback).run([Stage.of("a")])

        assert callback.events == [("stage", 0), ("task", "a")]
        assert result.results[0].duration_seconds > 0
        assert result.total_duration >= result.results[0].duration_seconds


class TestComposition:
    def test_pipeline_starts_with_clean(self):
        stages = pipeline_stages()
        assert stages[0] == Stage.of("clean")
        assert stages[1:] == list(ASSET_STAGES)

    def test_styles_run_alone_after_other_assets(self):
        assert ASSET_STAGES[0].tasks == (
            "layout",
            "scripts",
            "fonts",
            "resources",
            "img",
            "svgSprites",
        )
        assert ASSET_STAGES[1].tasks == ("styles",)

    def test_unknown_task_name(self, dev_ctx):
        with pytest.raises(ValueError, match="not registered"):
            PipelineRunner(dev_ctx).task("webpack")

    def test_empty_pipeline_is_ok(self):
        assert PipelineResult().ok


class TestNotifier:
    def test_keeps_only_the_newest_records(self):
        notifier = Notifier(quiet=True, max_records=3)
        for i in range(5):
            notifier.error("styles", f"error {i}")

        assert [n.message for n in notifier.records] == ["error 2", "error 3", "error 4"]
        assert len(notifier.for_task("styles")) == 3
