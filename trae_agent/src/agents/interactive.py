# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
A REPL over one agent. Each line the user types is run as a task against the
same conversation; a few commands are handled here without reaching the
agent at all.
"""
import json
import asyncio
import logging

from pathlib import Path
from typing import Callable

from .base_agent import BaseAgent
from ..types.agent_types import AgentState, Task

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

HELP_TEXT = """Commands:
  help          show this message
  status        show the current configuration and agent state
  clear         clear the conversation history
  exit, quit    leave the session
Anything else is sent to the agent as a task."""

EXIT_COMMANDS = {"exit", "quit"}


class InteractiveSession:
    def __init__(
        self,
        agent: BaseAgent,
        working_dir: Path | None = None,
        max_steps: int | None = None,
        input_fn: Callable[[str], str] = input,
    ):
        self.agent = agent
        self.working_dir = working_dir
        self.max_steps = max_steps
        self.input_fn = input_fn
        self.turns = 0

    def status(self) -> str:
        state = self.agent.state
        lines = [
            "Configuration:",
            json.dumps(self.agent.config.masked(), indent=2),
            f"Provider: {self.agent.provider.provider_name()} ({self.agent.provider.model})",
            f"Status: {state.status.value}",
            f"Turns: {self.turns}",
            f"History: {len(state.history)} messages",
            f"Tokens: {state.token_usage}",
        ]
        return "\n".join(lines)

    def handle_command(self, line: str) -> str | None:
        """Run an out-of-band command; None if the line is not a command."""
        command = line.strip().lower()
        if command == "help":
            return HELP_TEXT
        if command == "status":
            return self.status()
        if command == "clear":
            self.agent.clear_history()
            return "Conversation history cleared."
        return None

    async def run_turn(self, text: str) -> AgentState:
        self.turns += 1
        task = Task(
            description=text,
            working_dir=self.working_dir,
            max_steps=self.max_steps,
        )
        return await self.agent.run(task)

    async def handle_line(self, line: str) -> bool:
        """Handle one line of input. Returns False when the session should end."""
        line = line.strip()
        if not line:
            return True
        if line.lower() in EXIT_COMMANDS:
            return False

        output = self.handle_command(line)
        if output is not None:
            print(output)
            return True

        state = await self.run_turn(line)
        print(f"\n{state}\n")
        return True

    async def run(self) -> None:
        print("Interactive session started. Type 'help' for commands.")
        while True:
            try:
                line = await asyncio.to_thread(self.input_fn, "> ")
            except EOFError:
                break
            if not await self.handle_line(line):
                break
        print("Goodbye.")
