# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .trajectory import (
    EntryKind,
    Trajectory,
    TrajectoryEntry,
    TrajectoryRecorder,
    load_trajectory,
)
from .git_utils import PatchDetector, get_git_diff, remove_patches_to_tests

__all__ = [
    "EntryKind",
    "Trajectory",
    "TrajectoryEntry",
    "TrajectoryRecorder",
    "load_trajectory",
    "PatchDetector",
    "get_git_diff",
    "remove_patches_to_tests",
]
