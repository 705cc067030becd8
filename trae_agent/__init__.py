# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
An LLM-based agent for general purpose software engineering tasks.

The agent core lives under `src/`; `agent.py` wires a resolved configuration
into a runnable agent and `__main__.py` is the command line interface.
"""
