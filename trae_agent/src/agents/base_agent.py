# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from __future__ import annotations

import logging

from abc import ABC, abstractmethod
from uuid import uuid4
from typing import Any, Callable, ClassVar
from pathlib import Path
from datetime import datetime

from ..config import AgentConfig
from ..events import EventBus
from ..llm.base import Completion
from ..llm.providers.base_provider import BaseProvider
from ..oversight.step_summarizer import StepSummarizer
from ..tools import ToolRegistry, ToolExecutor, TaskDoneTool, TASK_DONE_TOOL_NAME
from ..utils.git_utils import PatchDetector
from ..utils.trajectory import EntryKind, TrajectoryRecorder
from ..types.tool_types import ToolResult, ToolContext, ToolErrorKind
from ..types.agent_types import AgentState, AgentStatus, Task
from ..types.event_types import EventType, Event
from ..types.llm_types import Message, ToolCallContent
from ..types.error_types import (
    ProviderError,
    StepLimitExceeded,
    PatchRequiredButAbsent,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# Create an empty registry dictionary.
agent_registry: dict[str, type["BaseAgent"]] = {}

PATCH_REQUIRED_MESSAGE = "ERROR! Your Patch is empty. Please provide a patch that fixes the problem."

NO_TOOL_CALL_MESSAGE = (
    "You replied without calling any tool. If you have more work to do, continue by "
    f"calling the appropriate tools. If the task is complete, you MUST call the "
    f"`{TASK_DONE_TOOL_NAME}` tool to finish."
)


class BaseAgent(ABC):
    """
    Abstract base class for all agents.

    An agent owns one conversation and runs the turn loop over it: ask the
    provider for the next turn, dispatch any tool calls, feed the results
    back, and stop on completion, failure or the step limit. Everything it
    depends on (configuration, provider, tools, trajectory, event bus) is
    passed in, so that several agents can run side by side.

    `run` may be called repeatedly; the conversation carries over between
    runs until `clear_history` is called.
    """

    # Required class-level attributes
    AGENT_NAME: ClassVar[str]
    SYSTEM_PROMPT: ClassVar[str]

    def __init__(
        self,
        config: AgentConfig,
        provider: BaseProvider,
        registry: ToolRegistry | None = None,
        event_bus: EventBus | None = None,
        recorder_factory: Callable[[], TrajectoryRecorder] | None = None,
        summarizer: StepSummarizer | None = None,
        parallel_tool_calls: bool | None = None,
    ):
        self.config = config
        self.provider = provider
        self.registry = registry if registry is not None else ToolRegistry.from_names(config.tools)
        # Without the completion tool a run could only ever hit the step limit
        if TASK_DONE_TOOL_NAME not in self.registry:
            self.registry.register(TaskDoneTool)

        self.event_bus = event_bus or EventBus()
        self.recorder_factory = recorder_factory
        self.summarizer = summarizer
        self.parallel_tool_calls = (
            parallel_tool_calls
            if parallel_tool_calls is not None
            else provider.params.parallel_tool_calls
        )

        self._id = f"agent_{uuid4().hex[:8]}"
        self.state = AgentState()
        self.context = ToolContext(tool_timeout=config.tool_timeout)
        self.recorder: TrajectoryRecorder | None = None
        self.patch_detector: PatchDetector | None = None
        self._abort_requested = False

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if getattr(cls, "AGENT_NAME", None):
            agent_registry[cls.AGENT_NAME] = cls

    @property
    def id(self) -> str:
        return self._id

    # Prompts -----------------------------------------------------------------

    def system_prompt(self) -> str:
        return self.SYSTEM_PROMPT

    @abstractmethod
    def task_prompt(self, task: Task) -> str:
        """The user message that opens a run for the given task."""
        pass

    # Control -----------------------------------------------------------------

    def abort(self) -> None:
        """Ask the running loop to stop.

        The request is honoured before the next provider call or tool batch;
        tools already running are left to finish (or time out).
        """
        logger.info(f"Abort requested for {self._id}")
        self._abort_requested = True

    def clear_history(self) -> None:
        if self.state.status == AgentStatus.RUNNING:
            raise RuntimeError("Cannot clear the history of a running agent")
        self.state.history = []
        self.state.step = 0
        self.state.status = AgentStatus.IDLE
        if self.summarizer is not None:
            self.summarizer.reset()

    # Helpers -----------------------------------------------------------------

    async def _publish(self, event_type: EventType, content: str, **metadata: Any) -> None:
        await self.event_bus.publish(
            Event(type=event_type, content=content, metadata=metadata), self._id
        )

    def _record(self, kind: EntryKind, payload: dict, step: int | None = None) -> None:
        if self.recorder is not None:
            self.recorder.record_entry(kind, payload, step=step)

    def _finish(self, status: AgentStatus, success: bool = False, summary: str | None = None, reason: str | None = None) -> None:
        self.state.status = status
        self.state.success = success
        self.state.summary = summary
        self.state.reason = reason
        if reason:
            logger.info(f"Agent {self._id} finished with {status.value}: {reason}")
        else:
            logger.info(f"Agent {self._id} finished with {status.value}")

    def _completion_accepted(self, task: Task) -> bool:
        """Whether a completion signal may end the run."""
        if not task.must_patch:
            return True
        if self.patch_detector is None:
            return False
        return self.patch_detector.has_patch()

    def _cancelled_results(self, calls: list[ToolCallContent]) -> list[ToolResult]:
        results = []
        for call in calls:
            result = ToolResult.failure(
                call.tool_name,
                "Tool call cancelled: the agent was aborted before it could run",
                ToolErrorKind.CANCELLED,
                call_id=call.call_id,
            )
            results.append(result)
        return results

    def _assistant_payload(self, completion: Completion, message: Message) -> dict:
        return dict(
            provider=completion.provider,
            model=completion.model,
            content=message.model_dump(mode="json")["content"],
            stop_reason=completion.stop_reason.value,
            usage=completion.usage.model_dump(),
            attempts=completion.attempts,
        )

    async def _summarize_step(self, step: int, message: Message, results: list[ToolResult]) -> None:
        if self.summarizer is None:
            return
        summary = await self.summarizer.summarize_step(step, message, results)
        if summary is None:
            return
        self._record(EntryKind.STEP_SUMMARY, summary.model_dump(), step=step)
        await self._publish(
            EventType.STEP_SUMMARY,
            f"{summary.task} {summary.details}",
            step=step,
            tags=summary.tags,
            tags_emoji=summary.tags_emoji,
        )

    # The loop ----------------------------------------------------------------

    async def run(self, task: Task | str, track_patch: bool = False) -> AgentState:
        """Run the agent on a task until it reaches a terminal state.

        Args:
            task: the task, or just its description
            track_patch: compute the session's patch into `state.patch` even
                when the task does not require one

        Returns:
            The agent state. A non-successful terminal status always carries
            a human-readable `reason`.
        """
        if isinstance(task, str):
            task = Task(description=task)
        if self.state.status == AgentStatus.RUNNING:
            raise RuntimeError(f"Agent {self._id} is already running")

        max_steps = task.max_steps or self.config.max_steps
        working_dir = Path(task.working_dir or Path.cwd()).resolve()
        self.context.working_dir = working_dir
        self._abort_requested = False

        state = self.state
        state.status = AgentStatus.RUNNING
        state.step = 0
        state.success = False
        state.summary = None
        state.reason = None
        state.patch = None
        state.start_time = datetime.now()
        state.end_time = None

        self.patch_detector = None
        self.recorder = None

        executor = ToolExecutor(
            self.registry,
            self.context,
            parallel=self.parallel_tool_calls,
            event_bus=self.event_bus,
            publisher_id=self._id,
        )

        try:
            if task.must_patch or track_patch:
                self.patch_detector = PatchDetector(working_dir, task.base_commit)
                self.patch_detector.start()

            self.recorder = self.recorder_factory() if self.recorder_factory else None
            if self.recorder is not None:
                self.recorder.start_recording(
                    task=task.description,
                    provider=self.provider.provider_name(),
                    model=self.provider.model,
                    max_steps=max_steps,
                    extra=task.recorder_extras(),
                )

            first_run = not state.history
            if first_run:
                state.history.append(Message.system(self.system_prompt()))
            user_message = Message.user(self.task_prompt(task))
            state.history.append(user_message)
            self._record(EntryKind.USER_MESSAGE, dict(content=user_message.text))
            await self._publish(
                EventType.PROBLEM_STATEMENT if first_run else EventType.EXTERNAL_MESSAGE,
                task.description,
            )
            await self._loop(task, max_steps, executor)

        except Exception as e:
            logger.exception(f"Agent {self._id} failed unexpectedly")
            self._finish(AgentStatus.FAILED, reason=f"Unexpected error: {type(e).__name__}: {e}")
            await self._publish(EventType.APPLICATION_ERROR, state.reason or "", step=state.step)

        finally:
            if not state.status.is_terminal:
                # Cancelled from outside (e.g. KeyboardInterrupt)
                self._finish(AgentStatus.FAILED, reason="Run was cancelled")
            state.end_time = datetime.now()
            if self.patch_detector is not None and state.patch is None:
                try:
                    state.patch = self.patch_detector.current_patch()
                except Exception as e:
                    logger.warning(f"Could not compute the final patch: {e}")
            if self.recorder is not None and self.recorder.started:
                self.recorder.finalize_recording(
                    status=state.status.value,
                    success=state.success,
                    total_steps=state.step,
                    final_result=state.summary,
                    reason=state.reason,
                    duration_seconds=state.duration_seconds,
                    token_usage=dict(
                        input_tokens=state.token_usage.input_tokens,
                        output_tokens=state.token_usage.output_tokens,
                    ),
                )

        await self._publish(EventType.AGENT_STATUS, str(state), status=state.status.value, step=state.step)
        return state

    async def _loop(self, task: Task, max_steps: int, executor: ToolExecutor) -> None:
        state = self.state
        patch_rejections = 0

        while True:
            # Checked before every provider request
            if self._abort_requested:
                self._finish(AgentStatus.FAILED, reason="Aborted by user")
                return
            if state.step >= max_steps:
                self._finish(AgentStatus.STEP_LIMIT_EXCEEDED, reason=str(StepLimitExceeded(max_steps)))
                return

            state.step += 1
            step = state.step

            logger.info(f"Awaiting completion for step {step} ({len(state.history)} messages)...")
            try:
                completion = await self.provider.send_turn(state.history, self.registry.list_tools())
            except ProviderError as e:
                self._record(
                    EntryKind.LLM_ERROR,
                    dict(
                        provider=e.provider,
                        error=e.message,
                        retriable=e.retriable,
                        attempts=e.attempts,
                    ),
                    step=step,
                )
                await self._publish(EventType.APPLICATION_ERROR, str(e), step=step)
                self._finish(AgentStatus.FAILED, reason=f"LLM provider error: {e}")
                return

            state.token_usage += completion.usage
            message = completion.to_message()
            state.history.append(message)
            self._record(EntryKind.ASSISTANT_MESSAGE, self._assistant_payload(completion, message), step=step)
            if message.text.strip():
                await self._publish(EventType.ASSISTANT_MESSAGE, message.text.strip(), step=step)

            calls = message.tool_calls
            if not calls:
                nudge = Message.user(NO_TOOL_CALL_MESSAGE)
                state.history.append(nudge)
                self._record(EntryKind.USER_MESSAGE, dict(content=nudge.text), step=step)
                await self._summarize_step(step, message, [])
                continue

            # Checked again before every tool batch
            if self._abort_requested:
                results = self._cancelled_results(calls)
            else:
                results = await executor.execute(calls, step)

            completion_index: int | None = None
            for i, (call, result) in enumerate(zip(calls, results)):
                if call.tool_name != TASK_DONE_TOOL_NAME or not result.success:
                    continue
                if self._completion_accepted(task):
                    completion_index = i
                else:
                    patch_rejections += 1
                    logger.info(f"Completion rejected at step {step}: no patch found")
                    results[i] = ToolResult.failure(
                        call.tool_name,
                        PATCH_REQUIRED_MESSAGE,
                        ToolErrorKind.PATCH_REQUIRED,
                        call_id=call.call_id,
                    )

            # Every call is answered, in request order, before the next turn
            state.history.append(Message(role="user", content=[r.to_content() for r in results]))
            for i, (call, result) in enumerate(zip(calls, results)):
                if i == completion_index:
                    self._record(
                        EntryKind.COMPLETION,
                        dict(
                            call_id=call.call_id,
                            summary=call.tool_args.get("summary"),
                            must_patch=task.must_patch,
                        ),
                        step=step,
                    )
                else:
                    self._record(EntryKind.TOOL_RESULT, result.model_dump(mode="json"), step=step)

            await self._summarize_step(step, message, results)

            if completion_index is not None:
                summary = calls[completion_index].tool_args.get("summary")
                if self.patch_detector is not None:
                    self.state.patch = self.patch_detector.current_patch()
                self._finish(
                    AgentStatus.COMPLETED,
                    success=True,
                    summary=summary if isinstance(summary, str) and summary else message.text.strip() or None,
                )
                return

            max_attempts = self.config.max_patch_attempts
            if max_attempts is not None and patch_rejections >= max_attempts:
                self._finish(AgentStatus.FAILED, reason=str(PatchRequiredButAbsent(patch_rejections)))
                return
