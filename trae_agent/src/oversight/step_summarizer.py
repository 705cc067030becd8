# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Short, tagged summaries of each agent step, written by a (usually cheaper)
summary model. These are for human consumption only: a failed summary is
logged and dropped, and never affects the agent loop.
"""

import logging

from pydantic import BaseModel, Field

from ..llm.providers.base_provider import BaseProvider
from ..utils.parsing import extract_tag, split_tags
from ..types.llm_types import Message, TextContent, ToolCallContent
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Number of earlier steps shown to the tagger
TAGGER_HISTORY = 10
ARGS_PREVIEW_LEN = 50

KNOWN_TAGS: dict[str, str] = {
    "WRITE_TEST": "☑️",
    "VERIFY_TEST": "✅",
    "EXAMINE_CODE": "👁️",
    "WRITE_FIX": "📝",
    "VERIFY_FIX": "🔥",
    "REPORT": "📣",
    "THINK": "🧠",
    "OUTLIER": "⁉️",
}
UNKNOWN_TAG_EMOJI = "❓"

EXTRACTOR_PROMPT = """
Given the preceding excerpt, your job is to determine "what task is the agent performing in <this_step>".
Output your answer in two granularities: <task>...</task><details>...</details>.
In the <task> tag, the answer should be concise and general. It should omit ANY bug-specific details, and contain at most 10 words.
In the <details> tag, the answer should complement the <task> tag by adding bug-specific details. It should be informative and contain at most 30 words.

Examples:

<task>The agent is writing a reproduction test script.</task><details>The agent is writing "test_bug.py" to reproduce the bug in XXX-Project's create_foo method not comparing sizes correctly.</details>
<task>The agent is examining source code.</task><details>The agent is searching for "function_name" in the code repository, that is related to the "foo.py:function_name" line in the stack trace.</details>
<task>The agent is fixing the reproduction test script.</task><details>The agent is fixing "test_bug.py" that forgets to import the function "foo", causing a NameError.</details>

Now, answer the question "what task is the agent performing in <this_step>".
Again, provide only the answer with no other commentary. The format should be "<task>...</task><details>...</details>".
"""

TAGGER_PROMPT = """
Given the trajectory, your job is to determine "what task is the agent performing in the current step".
Output your answer by choosing the applicable tags in the below list for the current step.
If it is performing multiple tasks in one step, choose ALL applicable tags, separated by a comma.

<tags>
WRITE_TEST: It writes a test script to reproduce the bug, or modifies a non-working test script to fix problems found in testing.
VERIFY_TEST: It runs the reproduction test script to verify the testing environment is working.
EXAMINE_CODE: It views, searches, or explores the code repository to understand the cause of the bug.
WRITE_FIX: It modifies the source code to fix the identified bug.
VERIFY_FIX: It runs the reproduction test or existing tests to verify the fix indeed solves the bug.
REPORT: It reports to the user that the job is completed or some progress has been made.
THINK: It analyzes the bug through thinking, but does not perform concrete actions right now.
OUTLIER: A major part in this step does not fit into any tag above, such as running a shell command to install dependencies.
</tags>

<examples>
If the agent is opening a file to examine, output <tags>EXAMINE_CODE</tags>.
If the agent is fixing a known problem in the reproduction test script and then running it again, output <tags>WRITE_TEST,VERIFY_TEST</tags>.
If the agent is merely thinking about the root cause of the bug without other actions, output <tags>THINK</tags>.
</examples>

Output only the tags with no other commentary. The format should be <tags>...</tags>
"""

TASK_PREFILL = "Sure. Here is the task the agent is performing: <task>The agent"
TAGS_PREFILL = "Sure. The tags are: <tags>"


class StepSummary(BaseModel):
    step: int
    task: str
    details: str
    tags: list[str] = Field(default_factory=list)

    @property
    def tags_emoji(self) -> str:
        if not self.tags:
            return UNKNOWN_TAG_EMOJI
        return " ".join(KNOWN_TAGS.get(t, UNKNOWN_TAG_EMOJI) for t in self.tags)

    def __str__(self) -> str:
        return f"{self.tags_emoji} {self.task}\n  Details: {self.details}"


def format_step(message: Message, results: list[ToolResult] | None = None) -> str:
    """A compact, plain-text rendering of one step for the summary model."""
    lines = []
    text = message.text.strip()
    lines.append(text or "No textual content for this step.")

    calls = message.tool_calls
    if calls:
        previews = []
        for call in calls:
            args = str(call.tool_args)
            if len(args) > ARGS_PREVIEW_LEN + 3:
                args = args[:ARGS_PREVIEW_LEN] + "..."
            previews.append(f"{call.tool_name} (args: {args})")
        lines.append("Tool calls: " + ", ".join(previews))

    for result in results or []:
        status = "ok" if result.success else f"error ({result.error_kind.value if result.error_kind else 'unknown'})"
        lines.append(f"Result of {result.tool_name}: {status}")
    return "\n".join(lines)


class StepSummarizer:
    """Summarises steps one at a time, keeping the previous steps as context."""

    def __init__(self, provider: BaseProvider, max_retries: int = 3):
        self.provider = provider
        self.max_retries = max_retries
        self._steps: list[str] = []

    def reset(self) -> None:
        self._steps = []

    async def _ask(self, prompt: str, prefill: str) -> str:
        completion = await self.provider.send_turn(
            [
                Message.user(prompt),
                Message(role="assistant", content=[TextContent(text=prefill)]),
            ],
            tools=None,
        )
        return completion.text

    async def extract_task(self, previous_step: str, this_step: str) -> tuple[str, str]:
        prompt = (
            "The following is an excerpt of the steps trying to solve a software bug by an AI agent: "
            f"<previous_step>{previous_step}</previous_step><this_step>{this_step}</this_step>\n\n"
            f"{EXTRACTOR_PROMPT}"
        )
        for attempt in range(self.max_retries):
            reply = await self._ask(prompt, TASK_PREFILL)
            # Models either continue the prefill or restate the whole answer
            full = reply if "<task>" in reply else f"<task>The agent {reply.strip()}"
            task = extract_tag(full, "task")
            details = extract_tag(full, "details")
            if task and details is not None:
                return task, details
            logger.debug(f"Could not parse task from summary reply (attempt {attempt + 1}): {reply}")
        raise ValueError("Failed to extract the step's task after several attempts")

    async def extract_tags(self, history: list[str], this_step: str) -> list[str]:
        trajectory = "".join(
            f'<step id="{i + 1}">\n{step}\n</step>\n\n' for i, step in enumerate(history)
        )
        prompt = (
            "Below is the trajectory of an AI agent solving a software bug until the current step. "
            "Each step is marked within a <step> tag.\n\n"
            f"{trajectory}\n\n<current_step>{this_step}</current_step>\n\n{TAGGER_PROMPT}"
        )
        for attempt in range(self.max_retries):
            reply = await self._ask(prompt, TAGS_PREFILL)
            full = reply if "<tags>" in reply else f"<tags>{reply.strip()}"
            if "</tags>" not in full:
                full += "</tags>"
            inner = extract_tag(full, "tags")
            tags = [t for t in split_tags(inner or "") if t in KNOWN_TAGS]
            if tags:
                return tags
            logger.debug(f"No known tags in summary reply (attempt {attempt + 1}): {reply}")
        return []

    async def summarize_step(
        self, step: int, message: Message, results: list[ToolResult] | None = None
    ) -> StepSummary | None:
        this_step = format_step(message, results)
        history = self._steps[-TAGGER_HISTORY:]
        previous = history[-1] if history else "(none)"
        self._steps.append(this_step)

        try:
            task, details = await self.extract_task(previous, this_step)
            tags = await self.extract_tags(history, this_step)
        except Exception as e:
            logger.warning(f"Step summary for step {step} failed: {e}")
            return None

        return StepSummary(step=step, task=task, details=details, tags=tags)
