# src/aiorchestrator/backends/simulated.py
"""
Simulated backend adapter.

Returns canned, kind-specific payloads after an artificial delay. It is
used for local development, demos and load testing of the dispatch path
when no real model service is reachable.
"""

import asyncio
import json
import logging
import random
from typing import Any, Optional, Tuple

from ..models import ModelDescriptor, TaskKind
from .base import BackendRequest, BackendResponse, BaseModelBackend

logger = logging.getLogger(__name__)


class SimulatedBackend(BaseModelBackend):
    """
    Backend that fabricates plausible outputs without any network call.

    Args:
        descriptor: The descriptor this adapter serves.
        latency_range: (min, max) seconds of simulated processing time.
        seed: Seed for the random generator, for reproducible outputs.
    """

    def __init__(
        self,
        descriptor: ModelDescriptor,
        latency_range: Tuple[float, float] = (0.5, 1.5),
        seed: Optional[int] = None,
    ):
        super().__init__(descriptor)
        low, high = latency_range
        if low < 0 or high < low:
            raise ValueError(f"Invalid latency range: {latency_range}")
        self.latency_range = (low, high)
        self._random = random.Random(seed)

    async def invoke(self, request: BackendRequest) -> BackendResponse:
        delay = self._random.uniform(*self.latency_range)
        if delay > 0:
            await asyncio.sleep(delay)
        output = self._build_output(request.kind, request.input)
        logger.debug(f"Simulated backend '{self.get_name()}' answered task {request.task_id} in {delay:.3f}s")
        return BackendResponse(output=output, units_used=None)

    def _build_output(self, kind: TaskKind, payload: Any) -> dict:
        rendered = json.dumps(payload, sort_keys=True, default=str)
        if kind == TaskKind.COMPLETION:
            return {"text": f"AI-generated completion for: {rendered}", "confidence": 0.95}
        if kind == TaskKind.ANALYSIS:
            return {
                "insights": [
                    "Pattern detected in data",
                    "Anomaly found at timestamp X",
                    "Recommendation: Optimize process Y",
                ],
                "score": 0.87,
            }
        if kind == TaskKind.PREDICTION:
            return {
                "prediction": round(self._random.random() * 100, 4),
                "confidence": 0.78,
                "factors": ["Factor A", "Factor B", "Factor C"],
            }
        if kind == TaskKind.GENERATION:
            return {"generated": f"Created content based on: {rendered}", "variations": 3}
        if kind == TaskKind.VISION:
            return {"objects": ["Object 1", "Object 2"], "text": "Extracted text from image", "confidence": 0.92}
        if kind == TaskKind.VOICE:
            return {"transcript": "Transcribed audio content", "language": "fr", "confidence": 0.89}
        return {"result": "Processed successfully"}
