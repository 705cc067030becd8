# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import signal
import asyncio
import logging

from pathlib import Path

from .src.config import AgentConfig
from .src.events import EventBus, log_to_stdout
from .src.llm import create_provider
from .src.llm.providers import BaseProvider
from .src.tools import ToolRegistry
from .src.agents import BaseAgent, InteractiveSession, agent_registry
from .src.oversight import StepSummarizer
from .src.utils.trajectory import TrajectoryRecorder
from .src.types.agent_types import AgentState, Task

logger = logging.getLogger(__name__)

DEFAULT_AGENT = "trae_agent"


class Agent:
    """
    The Agent class acts as the 'root' of the application state: it turns a
    resolved configuration into a provider, a tool registry, an event bus and
    the agent core, and owns process concerns such as signal handling and
    writing the patch file.
    """

    def __init__(
        self,
        config: AgentConfig,
        trajectory_file: Path | None = None,
        agent_name: str = DEFAULT_AGENT,
        provider: BaseProvider | None = None,
        event_bus: EventBus | None = None,
        console: bool = True,
    ):
        self.config = config
        self.trajectory_file = Path(trajectory_file) if trajectory_file else None
        self.event_bus = event_bus or EventBus()
        if console:
            self.event_bus.subscribe_all(log_to_stdout)

        self.provider = provider or create_provider(config)

        summarizer = None
        if config.enable_step_summary:
            summary_provider, summary_params = config.summary_params()
            summarizer = StepSummarizer(create_provider(config, summary_provider, summary_params))

        agent_cls = agent_registry.get(agent_name)
        if agent_cls is None:
            raise ValueError(f"Unknown agent '{agent_name}'. Available agents: {', '.join(agent_registry)}")

        self.agent: BaseAgent = agent_cls(
            config,
            self.provider,
            registry=ToolRegistry.from_names(config.tools),
            event_bus=self.event_bus,
            recorder_factory=self._new_recorder,
            summarizer=summarizer,
        )

        self._runs = 0
        self._interrupted = False
        self._main_task: asyncio.Task | None = None

    def _new_recorder(self) -> TrajectoryRecorder:
        self._runs += 1
        if self.trajectory_file is None:
            return TrajectoryRecorder()
        if self._runs == 1:
            return TrajectoryRecorder(self.trajectory_file)
        # Later runs of an interactive session get their own file
        path = self.trajectory_file
        return TrajectoryRecorder(path.with_name(f"{path.stem}_{self._runs}{path.suffix}"))

    def _register_signal_handlers(self) -> None:
        """Ctrl-C aborts the run; a second Ctrl-C cancels it outright."""
        try:
            loop = asyncio.get_running_loop()
            loop.add_signal_handler(signal.SIGINT, self._signal_handler)
            logger.debug("Agent signal handlers registered successfully")
        except (NotImplementedError, RuntimeError) as e:
            logger.error(f"Error registering agent signal handlers: {e}")

    def _remove_signal_handlers(self) -> None:
        try:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError) as e:
            logger.debug(f"Error removing agent signal handlers: {e}")

    def _signal_handler(self) -> None:
        if self._interrupted:
            # If we get a second signal, force immediate stop
            logger.warning("Forced shutdown requested")
            if self._main_task and not self._main_task.done():
                self._main_task.cancel()
            return
        self._interrupted = True
        print("\nInterrupt received: stopping after the current step (press Ctrl-C again to force).")
        self.agent.abort()

    async def run_task(self, task: Task, patch_path: Path | None = None) -> AgentState:
        """Run a single task to completion and write the patch if asked."""
        self._interrupted = False
        self._main_task = asyncio.current_task()
        self._register_signal_handlers()
        try:
            state = await self.agent.run(task, track_patch=patch_path is not None)
        finally:
            self._remove_signal_handlers()
            self._main_task = None

        if patch_path is not None:
            patch_path = Path(patch_path)
            patch_path.parent.mkdir(parents=True, exist_ok=True)
            patch_path.write_text(state.patch or "")
            logger.info(f"Patch written to {patch_path}")

        if self.agent.recorder is not None:
            print(f"Trajectory saved to {self.agent.recorder.path}")
        return state

    async def interactive(self, working_dir: Path | None = None, max_steps: int | None = None) -> None:
        session = InteractiveSession(self.agent, working_dir=working_dir, max_steps=max_steps)
        await session.run()
