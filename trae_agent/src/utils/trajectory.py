# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Append-only trajectory logs in JSON Lines.

The first line is a header, each following line is one entry, and a finished
session ends with a summary line. Every record is written and closed on its
own, so a file cut off at any point still loads as a valid prefix.
"""
import logging
import jsonlines

from enum import Enum
from pathlib import Path
from typing import Any, Literal
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

TRAJECTORY_VERSION = "1.0"
DEFAULT_TRAJECTORY_DIR = Path("trajectories")


class EntryKind(str, Enum):
    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_RESULT = "tool_result"
    LLM_ERROR = "llm_error"
    COMPLETION = "completion"
    STEP_SUMMARY = "step_summary"


class TrajectoryHeader(BaseModel):
    # Fields written by newer versions are kept on load
    model_config = ConfigDict(extra="allow")

    record: Literal["header"] = "header"
    version: str = TRAJECTORY_VERSION
    task: str
    provider: str
    model: str
    max_steps: int | None = None
    start_time: datetime = Field(default_factory=datetime.now)
    extra: dict[str, Any] = Field(default_factory=dict)


class TrajectoryEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    record: Literal["entry"] = "entry"
    sequence: int
    timestamp: datetime = Field(default_factory=datetime.now)
    step: int | None = None
    # Plain str so that unknown kinds from newer writers still load
    kind: str
    payload: dict[str, Any] = Field(default_factory=dict)


class TrajectorySummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    record: Literal["summary"] = "summary"
    status: str
    success: bool
    final_result: str | None = None
    reason: str | None = None
    total_steps: int
    duration_seconds: float | None = None
    token_usage: dict[str, int] = Field(default_factory=dict)
    end_time: datetime = Field(default_factory=datetime.now)


class Trajectory(BaseModel):
    """A loaded trajectory: the header, the valid entries, and the summary if
    the session was finalized."""

    header: TrajectoryHeader
    entries: list[TrajectoryEntry] = Field(default_factory=list)
    summary: TrajectorySummary | None = None

    @property
    def complete(self) -> bool:
        return self.summary is not None

    def entries_of(self, kind: EntryKind | str) -> list[TrajectoryEntry]:
        kind = kind.value if isinstance(kind, EntryKind) else kind
        return [e for e in self.entries if e.kind == kind]


def default_trajectory_path(directory: Path = DEFAULT_TRAJECTORY_DIR) -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    path = directory / f"trajectory_{stamp}.jsonl"
    # Several sessions may start within the same second
    n = 1
    while path.exists():
        path = directory / f"trajectory_{stamp}_{n}.jsonl"
        n += 1
    return path


class TrajectoryRecorder:
    """Writes one session's trajectory.

    Lifecycle: start_recording -> record_entry* -> finalize_recording. The
    recorder only ever appends; entries already written are never touched.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else default_trajectory_path()
        self.header: TrajectoryHeader | None = None
        self.sequence = 0
        self.finalized = False

    @property
    def started(self) -> bool:
        return self.header is not None

    def _append(self, record: BaseModel, mode: str = "a") -> None:
        with jsonlines.open(self.path, mode=mode) as writer:
            writer.write(record.model_dump(mode="json"))

    def start_recording(
        self,
        task: str,
        provider: str,
        model: str,
        max_steps: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> TrajectoryHeader:
        if self.started:
            raise RuntimeError(f"Trajectory {self.path} has already been started")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.header = TrajectoryHeader(
            task=task,
            provider=provider,
            model=model,
            max_steps=max_steps,
            extra=extra or {},
        )
        self._append(self.header, mode="w")
        logger.debug(f"Recording trajectory to {self.path}")
        return self.header

    def record_entry(
        self,
        kind: EntryKind | str,
        payload: dict[str, Any],
        step: int | None = None,
    ) -> TrajectoryEntry:
        if not self.started:
            raise RuntimeError("start_recording must be called before record_entry")
        if self.finalized:
            raise RuntimeError(f"Trajectory {self.path} has already been finalized")

        entry = TrajectoryEntry(
            sequence=self.sequence + 1,
            step=step,
            kind=kind.value if isinstance(kind, EntryKind) else kind,
            payload=payload,
        )
        self._append(entry)
        self.sequence = entry.sequence
        return entry

    def finalize_recording(
        self,
        status: str,
        success: bool,
        total_steps: int,
        final_result: str | None = None,
        reason: str | None = None,
        duration_seconds: float | None = None,
        token_usage: dict[str, int] | None = None,
    ) -> TrajectorySummary | None:
        """Write the closing summary. Calling this twice is a no-op."""
        if not self.started:
            raise RuntimeError("start_recording must be called before finalize_recording")
        if self.finalized:
            return None

        summary = TrajectorySummary(
            status=status,
            success=success,
            final_result=final_result,
            reason=reason,
            total_steps=total_steps,
            duration_seconds=duration_seconds,
            token_usage=token_usage or {},
        )
        self._append(summary)
        self.finalized = True
        logger.info(f"Trajectory saved to {self.path}")
        return summary


def load_trajectory(path: str | Path) -> Trajectory:
    """Read a trajectory, stopping at the first record that does not parse.

    Raises:
        ValueError: the file does not start with a valid header
    """
    path = Path(path)
    header: TrajectoryHeader | None = None
    entries: list[TrajectoryEntry] = []
    summary: TrajectorySummary | None = None

    with jsonlines.open(path) as reader:
        try:
            for record in reader:
                if not isinstance(record, dict):
                    break
                kind = record.get("record")
                if header is None:
                    if kind != "header":
                        break
                    header = TrajectoryHeader.model_validate(record)
                elif kind == "entry":
                    entry = TrajectoryEntry.model_validate(record)
                    if entry.sequence != len(entries) + 1:
                        logger.warning(f"Out-of-order entry {entry.sequence} in {path}, stopping")
                        break
                    entries.append(entry)
                elif kind == "summary":
                    summary = TrajectorySummary.model_validate(record)
                    break
                else:
                    break
        except (jsonlines.InvalidLineError, ValidationError, UnicodeDecodeError) as e:
            logger.warning(f"Trajectory {path} is truncated after {len(entries)} entries: {e}")

    if header is None:
        raise ValueError(f"{path} does not start with a trajectory header")

    return Trajectory(header=header, entries=entries, summary=summary)
