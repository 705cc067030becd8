# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Main entrypoint when running the agent with `python -m trae_agent` or the
installed `trae-agent` script.
"""

import os
import sys
import json
import asyncio
import logging
import argparse

from pathlib import Path

from .agent import Agent
from .src.config import DEFAULT_CONFIG_FILE, resolve_config
from .src.tools import tool_registry
from .src.types.agent_types import AgentStatus, Task
from .src.types.error_types import ConfigError

logging.captureWarnings(True)
logger = logging.getLogger(__name__)


def setup_logging(level: str | None = None) -> None:
    level = (level or os.environ.get("TRAE_LOG_LEVEL") or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # The HTTP clients are very chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config-file",
        type=str,
        default=DEFAULT_CONFIG_FILE,
        help="Path to a JSON or YAML configuration file",
    )
    parser.add_argument("--provider", type=str, default=None, help="LLM provider to use")
    parser.add_argument("--model", type=str, default=None, help="Model name for the provider")
    parser.add_argument("--api-key", type=str, default=None, help="API key for the provider")
    parser.add_argument("--base-url", type=str, default=None, help="Base URL of the provider API")
    parser.add_argument(
        "--max-steps", type=int, default=None, help="Maximum number of agent steps per task"
    )


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trae-agent",
        description="An LLM-based agent for general purpose software engineering tasks",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ...); defaults to $TRAE_LOG_LEVEL or WARNING",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Run a single task
    run_parser = subparsers.add_parser("run", help="Run the agent on one task")
    run_parser.add_argument("task", type=str, nargs="?", default=None, help="The task description")
    run_parser.add_argument(
        "--file", type=str, default=None, help="Read the task description from this file instead"
    )
    _add_config_arguments(run_parser)
    run_parser.add_argument(
        "--working-dir",
        type=str,
        default=None,
        help="Directory the agent works in; defaults to the current directory",
    )
    run_parser.add_argument(
        "--must-patch",
        action="store_true",
        help="Refuse to complete until the working directory has changed",
    )
    run_parser.add_argument(
        "--patch-path", type=str, default=None, help="Write the final patch to this file"
    )
    run_parser.add_argument(
        "--base-commit",
        type=str,
        default=None,
        help="Git commit the patch is computed against; defaults to HEAD",
    )
    run_parser.add_argument(
        "--trajectory-file",
        type=str,
        default=None,
        help="Where to record the trajectory; defaults to trajectories/trajectory_<timestamp>.json",
    )

    # Interactive session
    interactive_parser = subparsers.add_parser("interactive", help="Start an interactive session")
    _add_config_arguments(interactive_parser)
    interactive_parser.add_argument("--working-dir", type=str, default=None)
    interactive_parser.add_argument("--trajectory-file", type=str, default=None)

    # Show the resolved configuration
    config_parser = subparsers.add_parser("show-config", help="Print the effective configuration")
    _add_config_arguments(config_parser)

    # List the available tools
    subparsers.add_parser("tools", help="List the available tools")

    return parser


def _config_from_args(args: argparse.Namespace, require_api_key: bool = True):
    return resolve_config(
        config_file=args.config_file,
        provider=args.provider,
        model=args.model,
        api_key=args.api_key,
        base_url=args.base_url,
        max_steps=args.max_steps,
        require_api_key=require_api_key,
    )


def _read_task(args: argparse.Namespace) -> str:
    if args.file and args.task:
        raise ValueError("Provide either a task or --file, not both")
    if args.file:
        return Path(args.file).read_text()
    if args.task:
        return args.task
    raise ValueError("A task description (or --file) is required")


def _working_dir(value: str | None) -> Path:
    working_dir = Path(value).resolve() if value else Path.cwd()
    if not working_dir.is_dir():
        raise ValueError(f"Working directory {working_dir} does not exist")
    return working_dir


async def run_task(args: argparse.Namespace) -> int:
    try:
        description = _read_task(args)
        working_dir = _working_dir(args.working_dir)
        config = _config_from_args(args)
    except (ValueError, OSError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    task = Task(
        description=description,
        working_dir=working_dir,
        must_patch=args.must_patch,
        base_commit=args.base_commit,
    )
    agent = Agent(config, trajectory_file=args.trajectory_file)
    patch_path = Path(args.patch_path) if args.patch_path else None

    state = await agent.run_task(task, patch_path=patch_path)
    print(f"\n{state}")
    return 0 if state.status == AgentStatus.COMPLETED else 1


async def run_interactive(args: argparse.Namespace) -> int:
    try:
        working_dir = _working_dir(args.working_dir)
        config = _config_from_args(args)
    except (ValueError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    agent = Agent(config, trajectory_file=args.trajectory_file)
    await agent.interactive(working_dir=working_dir, max_steps=config.max_steps)
    return 0


def show_config(args: argparse.Namespace) -> int:
    try:
        config = _config_from_args(args, require_api_key=False)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(config.masked(), indent=2))
    return 0


def list_tools() -> int:
    for name, tool_cls in sorted(tool_registry.items()):
        description = tool_cls.TOOL_DESCRIPTION.strip().splitlines()[0]
        print(f"{name:<24}{description}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = setup_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "run":
        return asyncio.run(run_task(args))
    elif args.command == "interactive":
        return asyncio.run(run_interactive(args))
    elif args.command == "show-config":
        return show_config(args)
    elif args.command == "tools":
        return list_tools()
    parser.error(f"Unknown command {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
