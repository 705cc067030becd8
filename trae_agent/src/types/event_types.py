# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from datetime import datetime
from dataclasses import field, dataclass


class EventType(Enum):
    PROBLEM_STATEMENT = "problem_statement"  # initial task text
    EXTERNAL_MESSAGE = "external_message"  # subsequent user messages
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    STEP_SUMMARY = "step_summary"
    AGENT_STATUS = "agent_status"
    APPLICATION_ERROR = "application_error"
    APPLICATION_WARNING = "application_warning"


@dataclass
class Event:
    """Base class for all events in the stream"""

    type: EventType
    content: str
    metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
