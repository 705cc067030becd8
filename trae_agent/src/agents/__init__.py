# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .base_agent import BaseAgent, agent_registry
from .implementations import TraeAgent
from .interactive import InteractiveSession

__all__ = ["BaseAgent", "agent_registry", "TraeAgent", "InteractiveSession"]
