"""
Stage runner: executes the virtual users of each stage and their measurements.
"""

import asyncio
import time
import logging
from typing import Dict, List, Optional

from configuration import (
    PAYLOAD_SIZE_BYTES,
    SERIES_CONTROL_CHECK,
    SERIES_CONTROL_LATENCY,
    TAG_BANDWIDTH,
    TAG_STAGE,
)
from algorithms.throttled_download import ThrottledDownload
from persistence.record import Sample

logger = logging.getLogger(__name__)


class StageRunner:
    """Runs every stage of the plan and collects the samples each one produced."""

    def __init__(
        self,
        download: ThrottledDownload,
        metric_store,
        control_client=None,
        payload_size: int = None,
        concurrent_stages: bool = False,
    ):
        """Initialize the runner.

        Args:
            download: Measurement executed once per virtual-user iteration
            metric_store: Shared store for control-path metrics
            control_client: Optional HttpControlClient for the unthrottled baseline
            payload_size: Body size requested on the control path
            concurrent_stages: Start all stages at once instead of one after another
        """
        self.download = download
        self.metric_store = metric_store
        self.control_client = control_client
        self.payload_size = payload_size or PAYLOAD_SIZE_BYTES
        self.concurrent_stages = concurrent_stages

    async def run(self, stages) -> Dict[str, List[Sample]]:
        """Execute all stages.

        Returns:
            Mapping of stage id to the samples it produced (possibly empty)
        """
        if self.concurrent_stages:
            results = await asyncio.gather(*(self.run_stage(stage) for stage in stages))
        else:
            results = []
            for stage in stages:
                results.append(await self.run_stage(stage))

        return {stage.stage_id: samples for stage, samples in zip(stages, results)}

    async def run_stage(self, stage) -> List[Sample]:
        logger.info(f"=== {stage.name} ({stage.vus} VUs x {stage.iterations} iterations) ===")
        start_time = time.time()

        per_vu = await asyncio.gather(
            *(self._virtual_user(stage, vu) for vu in range(stage.vus))
        )
        samples = [sample for vu_samples in per_vu for sample in vu_samples]

        elapsed = time.time() - start_time
        if samples:
            logger.info(f"{stage.name} completed: {len(samples)} samples in {elapsed:.1f}s")
        else:
            logger.warning(f"{stage.name} produced no samples")
        return samples

    async def _virtual_user(self, stage, vu: int) -> List[Sample]:
        samples = []
        for iteration in range(stage.iterations):
            logger.debug(f"Stage {stage.stage_id} VU {vu} iteration {iteration}")
            if self.control_client is not None:
                await self._control_request(stage)

            sample: Optional[Sample] = await self.download.execute(stage)
            if sample is not None:
                samples.append(sample)
        return samples

    async def _control_request(self, stage) -> None:
        result = await self.control_client.fetch_payload(self.payload_size)
        tags = {TAG_STAGE: stage.stage_id, TAG_BANDWIDTH: str(stage.bandwidth_bytes_per_sec)}

        self.metric_store.record(SERIES_CONTROL_LATENCY, result['latency_ms'], tags)
        self.metric_store.record(SERIES_CONTROL_CHECK, 1 if result['ok'] else 0, tags)

        if not result['ok']:
            logger.warning(f"Stage {stage.stage_id}: control request returned status {result['status']}")
