import asyncio

import pytest

from chat_script_engine.execution.errors import (
    HookFailure,
    InvalidScriptDefinition,
    NavigationRejected,
    NothingToRetry,
    ScriptNotRunning,
    TransitionInProgress,
    ValidationFailure,
)
from chat_script_engine.execution.runner import ScriptRunner
from chat_script_engine.models.enums import ErrorCode, RunStatus, TransitionStatus
from chat_script_engine.models.script import (
    ComponentConfig,
    ScriptDefinition,
    ScriptStep,
)
from chat_script_engine.models.validation import ValidationOutcome
from chat_script_engine.registry.components import ComponentRegistry


class AllowBack:
    def __init__(self, allowed=True):
        self.allowed = allowed
        self.asked = []

    def can_go_back(self, step_index):
        self.asked.append(step_index)
        return self.allowed


def make_step(step_id, **kwargs):
    kwargs.setdefault("display_name", step_id.upper())
    kwargs.setdefault("prompt_message", f"Prompt for {step_id}")
    return ScriptStep(id=step_id, **kwargs)


def make_script(*steps, **kwargs):
    return ScriptDefinition(
        id=kwargs.pop("id", "demo"),
        feature=kwargs.pop("feature", "demo"),
        steps=tuple(steps),
        **kwargs,
    )


class TestScriptRunner:
    @pytest.fixture
    def registry(self):
        registry = ComponentRegistry()
        registry.register("comp-a", "CompA", {"size": "s"})
        registry.register("comp-b", "CompB")
        return registry

    @pytest.fixture
    def runner(self, registry):
        return ScriptRunner(registry)

    @pytest.fixture
    def completions(self):
        return []

    @pytest.fixture
    def two_steps(self, completions):
        return make_script(
            make_step(
                "A",
                component=ComponentConfig(type_key="comp-a"),
                validator=lambda data: True,
            ),
            make_step(
                "B",
                component=ComponentConfig(type_key="comp-b"),
                validator=lambda data: True,
            ),
            on_complete=lambda ctx: completions.append(ctx.collected()),
        )

    @pytest.mark.asyncio
    async def test_two_step_scenario(self, runner, two_steps, completions):
        context, message = await runner.start(two_steps)
        assert context.status == RunStatus.RUNNING
        assert message.component.type == "comp-a"

        result = await runner.submit_step_data(context, {"text": "x"})
        assert result.status == TransitionStatus.ADVANCED
        assert context.current_step_index == 1
        assert context.accumulated_data == {"A": {"text": "x"}}
        assert result.message.component.type == "comp-b"

        result = await runner.submit_step_data(context, {"text": "y"})
        assert result.status == TransitionStatus.COMPLETED
        assert context.status == RunStatus.COMPLETED
        assert completions == [{"A": {"text": "x"}, "B": {"text": "y"}}]

    @pytest.mark.asyncio
    async def test_on_complete_runs_exactly_once(self, runner, completions):
        script = make_script(
            *(make_step(f"s{i}") for i in range(4)),
            on_complete=lambda ctx: completions.append(ctx.script_id),
        )
        context, _ = await runner.start(script)
        for i in range(4):
            result = await runner.submit_step_data(context, {"n": i})
        assert result.status == TransitionStatus.COMPLETED
        assert completions == ["demo"]
        assert context.completed_step_ids == ["s0", "s1", "s2", "s3"]
        assert result.message.metadata["data"]["s3"] == {"n": 3}

        with pytest.raises(ScriptNotRunning):
            await runner.submit_step_data(context, {"n": 4})
        assert completions == ["demo"]

    @pytest.mark.asyncio
    async def test_completion_message_falls_back_to_config(self, runner):
        context, _ = await runner.start(make_script(make_step("only")))
        result = await runner.submit_step_data(context, {})
        assert result.message.content == "All done!"

        script = make_script(make_step("only"), completion_message="Saved.")
        context, _ = await runner.start(script)
        result = await runner.submit_step_data(context, {})
        assert result.message.content == "Saved."

    @pytest.mark.asyncio
    async def test_failed_validation_does_not_mutate(self, runner):
        script = make_script(
            make_step("A"),
            make_step("B", validator=lambda data: "Name is required"),
        )
        context, _ = await runner.start(script)
        await runner.submit_step_data(context, {"text": "x"})
        before = context.model_dump()

        result = await runner.submit_step_data(context, {"text": ""})

        assert result.status == TransitionStatus.VALIDATION_FAILED
        assert result.error.code == ErrorCode.VALIDATION_FAILED
        assert result.error.detail == "Name is required"
        assert result.message.content == "Name is required\n\nPrompt for B"
        assert result.message.metadata["error"] == "Name is required"
        assert context.model_dump() == before

    @pytest.mark.asyncio
    async def test_validation_failure_variants(self, runner):
        def raising(data):
            raise ValidationFailure("bad data")

        script = make_script(
            make_step("A", validator=lambda data: False),
            make_step("B", validator=raising),
            make_step("C", validator={"required_any": ["jobText", "files"]}),
        )
        context, _ = await runner.start(script)

        result = await runner.submit_step_data(context, {})
        assert result.error.detail == "The data provided is not valid."

        context.current_step_index = 1
        result = await runner.submit_step_data(context, {})
        assert result.error.detail == "bad data"

        context.current_step_index = 2
        result = await runner.submit_step_data(context, {"other": 1})
        assert "jobText" in result.error.detail
        assert context.accumulated_data == {}

    @pytest.mark.asyncio
    async def test_async_validator_and_hook(self, runner):
        seen = []

        async def validate(data):
            await asyncio.sleep(0)
            return ValidationOutcome.success() if data.get("ok") else "not ok"

        async def hook(data, ctx):
            await asyncio.sleep(0)
            ctx.artifacts["echo"] = data["ok"]
            seen.append(data)

        script = make_script(
            make_step("A", validator=validate, on_complete=hook), make_step("B")
        )
        context, _ = await runner.start(script)

        result = await runner.submit_step_data(context, {})
        assert result.status == TransitionStatus.VALIDATION_FAILED
        assert seen == []

        result = await runner.submit_step_data(context, {"ok": 1})
        assert result.status == TransitionStatus.ADVANCED
        assert context.artifacts == {"echo": 1}

    @pytest.mark.asyncio
    async def test_unregistered_component_degrades_to_text(self, runner):
        script = make_script(
            make_step("A", component=ComponentConfig(type_key="missing"))
        )
        context, message = await runner.start(script)
        assert message.component is None
        assert "component" not in message.to_payload()
        assert message.content == "Prompt for A"

    @pytest.mark.asyncio
    async def test_component_props_merge(self, runner):
        def hook(data, ctx):
            ctx.artifacts["parsed"] = {"name": "Jane"}

        script = make_script(
            make_step("A", on_complete=hook),
            make_step(
                "B",
                component=ComponentConfig(
                    type_key="comp-a",
                    params={"size": "l", "title": "Review"},
                    artifact_params={"candidate": "parsed", "absent": "nothing"},
                ),
            ),
        )
        context, _ = await runner.start(script)
        result = await runner.submit_step_data(context, {})
        assert result.message.component.props == {
            "size": "l",
            "title": "Review",
            "candidate": {"name": "Jane"},
        }

    @pytest.mark.asyncio
    async def test_component_without_props_omits_them(self, runner):
        script = make_script(
            make_step("B", component=ComponentConfig(type_key="comp-b"))
        )
        _, message = await runner.start(script)
        assert message.to_payload()["component"] == {"type": "comp-b"}

    @pytest.mark.asyncio
    async def test_go_back_rejected_leaves_context_unchanged(
        self, runner, two_steps
    ):
        context, _ = await runner.start(two_steps)
        await runner.submit_step_data(context, {"text": "x"})
        before = context.model_dump()
        policy = AllowBack(allowed=False)

        with pytest.raises(NavigationRejected) as exc:
            runner.go_back(context, policy)

        assert exc.value.code == ErrorCode.NAVIGATION_REJECTED
        assert policy.asked == [1]
        assert context.model_dump() == before

    @pytest.mark.asyncio
    async def test_go_back_from_first_step_rejected(self, runner, two_steps):
        context, _ = await runner.start(two_steps)
        with pytest.raises(NavigationRejected):
            runner.go_back(context, AllowBack())
        assert context.current_step_index == 0

    @pytest.mark.asyncio
    async def test_go_back_then_redo_reproduces_state(self, runner, two_steps):
        context, _ = await runner.start(two_steps)
        await runner.submit_step_data(context, {"text": "x"})
        before = context.model_dump()

        runner.go_back(context, AllowBack())
        assert context.current_step_index == 0
        assert context.accumulated_data == {}
        assert context.completed_step_ids == []

        await runner.submit_step_data(context, {"text": "x"})
        assert context.model_dump() == before

    @pytest.mark.asyncio
    async def test_go_back_then_abort_leaves_no_stale_data(
        self, runner, two_steps
    ):
        context, _ = await runner.start(two_steps)
        await runner.submit_step_data(context, {"text": "x"})
        runner.go_back(context, AllowBack())
        runner.abort(context)
        assert "A" not in context.accumulated_data
        assert context.status == RunStatus.ABORTED

    @pytest.mark.asyncio
    async def test_hook_failure_retains_data_without_completion(self, runner):
        attempts = []

        def flaky(data, ctx):
            attempts.append(data)
            if len(attempts) == 1:
                raise RuntimeError("backend down")

        script = make_script(make_step("A", on_complete=flaky), make_step("B"))
        context, _ = await runner.start(script)

        result = await runner.submit_step_data(context, {"text": "x"})
        assert result.status == TransitionStatus.HOOK_FAILED
        assert result.error.code == ErrorCode.HOOK_FAILED
        assert result.error.detail == "backend down"
        assert result.message.content.startswith("Something went wrong")
        assert context.accumulated_data == {"A": {"text": "x"}}
        assert context.completed_step_ids == []
        assert context.current_step_index == 0
        assert context.pending_hook == "A"

        result = await runner.retry_completion(context)
        assert result.status == TransitionStatus.ADVANCED
        assert attempts == [{"text": "x"}, {"text": "x"}]
        assert context.completed_step_ids == ["A"]
        assert context.pending_hook is None

    @pytest.mark.asyncio
    async def test_hook_failure_detail_is_shown(self, runner):
        def hook(data, ctx):
            raise HookFailure("Could not parse the CV")

        context, _ = await runner.start(make_script(make_step("A", on_complete=hook)))
        result = await runner.submit_step_data(context, {})
        assert result.message.content == "Could not parse the CV\n\nPrompt for A"

    @pytest.mark.asyncio
    async def test_resubmit_after_hook_failure_replaces_data(self, runner):
        def hook(data, ctx):
            if data["text"] == "bad":
                raise HookFailure("unreadable")

        script = make_script(make_step("A", on_complete=hook), make_step("B"))
        context, _ = await runner.start(script)
        await runner.submit_step_data(context, {"text": "bad"})

        result = await runner.submit_step_data(context, {"text": "good"})
        assert result.status == TransitionStatus.ADVANCED
        assert context.accumulated_data == {"A": {"text": "good"}}

    @pytest.mark.asyncio
    async def test_retry_without_failure_raises(self, runner, two_steps):
        context, _ = await runner.start(two_steps)
        with pytest.raises(NothingToRetry):
            await runner.retry_completion(context)

    @pytest.mark.asyncio
    async def test_script_hook_failure_can_be_retried(self, runner):
        calls = []

        def finish(ctx):
            calls.append(ctx.script_id)
            if len(calls) == 1:
                raise RuntimeError("store offline")

        context, _ = await runner.start(
            make_script(make_step("A"), on_complete=finish)
        )
        result = await runner.submit_step_data(context, {"text": "x"})
        assert result.status == TransitionStatus.HOOK_FAILED
        assert context.status == RunStatus.RUNNING
        assert context.finalize_pending is True
        assert context.completed_step_ids == ["A"]

        result = await runner.retry_completion(context)
        assert result.status == TransitionStatus.COMPLETED
        assert context.status == RunStatus.COMPLETED
        assert context.finalize_pending is False
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_abort(self, runner, two_steps):
        context, _ = await runner.start(two_steps)
        await runner.submit_step_data(context, {"text": "x"})
        runner.abort(context)

        assert context.status == RunStatus.ABORTED
        assert context.accumulated_data == {}
        assert context.completed_step_ids == []
        with pytest.raises(ScriptNotRunning):
            await runner.submit_step_data(context, {"text": "y"})
        with pytest.raises(ScriptNotRunning):
            runner.abort(context)

    @pytest.mark.asyncio
    async def test_abort_while_hook_in_flight_blocks_transition(self, runner):
        holder = {}

        def hook(data, ctx):
            runner.abort(holder["context"])

        script = make_script(make_step("A", on_complete=hook), make_step("B"))
        context, _ = await runner.start(script)
        holder["context"] = context

        with pytest.raises(ScriptNotRunning):
            await runner.submit_step_data(context, {"text": "x"})
        assert context.status == RunStatus.ABORTED
        assert context.current_step_index == 0
        assert context.in_flight is False

    @pytest.mark.asyncio
    async def test_hook_writes_after_abort_are_dropped(self, runner):
        def hook(data, ctx):
            runner.abort(ctx)
            ctx.artifacts["draft"] = data
            ctx.accumulated_data["A"] = data

        script = make_script(make_step("A", on_complete=hook), make_step("B"))
        context, _ = await runner.start(script)

        with pytest.raises(ScriptNotRunning):
            await runner.submit_step_data(context, {"text": "x"})
        assert context.artifacts == {}
        assert context.accumulated_data == {}
        assert context.pending_hook is None

    @pytest.mark.asyncio
    async def test_concurrent_transition_rejected(self, runner):
        release = asyncio.Event()

        async def slow(data, ctx):
            await release.wait()

        script = make_script(make_step("A", on_complete=slow), make_step("B"))
        context, _ = await runner.start(script)

        first = asyncio.create_task(runner.submit_step_data(context, {"n": 1}))
        await asyncio.sleep(0)
        assert context.in_flight is True
        with pytest.raises(TransitionInProgress):
            await runner.submit_step_data(context, {"n": 2})

        release.set()
        result = await first
        assert result.status == TransitionStatus.ADVANCED
        assert context.accumulated_data == {"A": {"n": 1}}

    @pytest.mark.asyncio
    async def test_on_start_failure_raises(self, runner):
        def boom(ctx):
            raise ValueError("no session")

        with pytest.raises(HookFailure) as exc:
            await runner.start(make_script(make_step("A"), on_start=boom))
        assert exc.value.detail == "no session"

    @pytest.mark.asyncio
    async def test_start_rejects_malformed_definitions(self, runner):
        with pytest.raises(InvalidScriptDefinition):
            await runner.start(make_script())
        with pytest.raises(InvalidScriptDefinition):
            await runner.start(make_script(make_step("A"), make_step("A")))

    @pytest.mark.asyncio
    async def test_step_message_metadata_and_progress(self, runner, two_steps):
        context, message = await runner.start(two_steps)
        assert message.metadata == {
            "script_id": "demo",
            "step_id": "A",
            "step_index": 0,
            "total_steps": 2,
        }
        assert runner.progress(context) == (1, 2)
        assert runner.current_step(context).id == "A"

        await runner.submit_step_data(context, {})
        assert runner.progress(context) == (2, 2)
