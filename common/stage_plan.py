"""
Stage definitions for the multi-stage throttled download test.
"""

import logging
from typing import Any, Dict, Iterable, List

from configuration import TAG_SEPARATOR

logger = logging.getLogger(__name__)


class Stage:
    """One phase of the test with a fixed bandwidth cap."""

    def __init__(
        self,
        stage_id,
        name: str,
        bandwidth_bytes_per_sec: int,
        vus: int = 1,
        iterations: int = 1,
    ):
        """Declare a stage.

        Args:
            stage_id: Identifier, stored as a string so that recording and
                aggregation agree on its form
            name: Human-readable label (e.g. "Stage 2: 1 MB/s")
            bandwidth_bytes_per_sec: Rate cap applied to every run of the stage
            vus: Number of concurrent virtual users
            iterations: Measurements performed by each virtual user

        Raises:
            ValueError: If the id is empty or contains the tag separator, or a
                numeric parameter is not positive
        """
        stage_id = str(stage_id).strip()
        if not stage_id:
            raise ValueError("Stage id must not be empty")
        if TAG_SEPARATOR in stage_id:
            raise ValueError(f"Stage id {stage_id!r} must not contain {TAG_SEPARATOR!r}")
        if bandwidth_bytes_per_sec <= 0:
            raise ValueError(f"Stage {stage_id}: bandwidth limit must be positive")
        if vus <= 0 or iterations <= 0:
            raise ValueError(f"Stage {stage_id}: vus and iterations must be positive")

        self.stage_id: str = stage_id
        self.name: str = name or f"Stage {stage_id}"
        self.bandwidth_bytes_per_sec: int = int(bandwidth_bytes_per_sec)
        self.vus: int = int(vus)
        self.iterations: int = int(iterations)

    @classmethod
    def from_dict(cls, definition: Dict[str, Any]) -> "Stage":
        return cls(
            stage_id=definition["stage_id"],
            name=definition.get("name", ""),
            bandwidth_bytes_per_sec=definition["bandwidth_bytes_per_sec"],
            vus=definition.get("vus", 1),
            iterations=definition.get("iterations", 1),
        )

    def __repr__(self) -> str:
        return (
            f"Stage(stage_id='{self.stage_id}', limit={self.bandwidth_bytes_per_sec}B/s, "
            f"vus={self.vus}, iterations={self.iterations})"
        )


def load_stages(definitions: Iterable[Dict[str, Any]]) -> List[Stage]:
    """Build the stage plan, rejecting duplicate ids."""
    stages = [Stage.from_dict(d) for d in definitions]
    seen = set()
    for stage in stages:
        if stage.stage_id in seen:
            raise ValueError(f"Duplicate stage id: {stage.stage_id}")
        seen.add(stage.stage_id)
    logger.info(f"Loaded {len(stages)} stages: {', '.join(s.name for s in stages)}")
    return stages


def stage_labels(stages: Iterable[Stage]) -> Dict[str, str]:
    return {stage.stage_id: stage.name for stage in stages}
