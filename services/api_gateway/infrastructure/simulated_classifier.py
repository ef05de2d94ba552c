"""Randomized stand-in for the advertisement detection model."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from uuid import uuid4

from libs.core.domain.entities import (
    STATUS_AUTHORIZED,
    STATUS_UNAUTHORIZED,
    BoundingRegion,
    ClassifierVerdict,
    GeoLocation,
    ImageHandle,
)

logger = logging.getLogger(__name__)

AUTHORIZED_LABEL = "Authorized Advertisement"
UNAUTHORIZED_LABEL = "Potential Unauthorized Advertisement"
SAMPLE_ADDRESS = "123 Test Street, Sample City"


@dataclass
class ClassifierSettings:
    """Simulation parameters."""

    min_delay_sec: float = 0.5
    max_delay_sec: float = 1.5
    authorized_ratio: float = 0.5
    seed: int | None = None


class SimulatedClassifier:
    """Produces random verdicts after a bounded random delay."""

    def __init__(
        self,
        settings: ClassifierSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings or ClassifierSettings()
        if self._settings.min_delay_sec > self._settings.max_delay_sec:
            raise ValueError("min_delay_sec must not exceed max_delay_sec")
        self._rng = rng or random.Random(self._settings.seed)

    async def classify(self, image: ImageHandle) -> ClassifierVerdict:
        delay = self._rng.uniform(
            self._settings.min_delay_sec,
            self._settings.max_delay_sec,
        )
        await asyncio.sleep(delay)

        is_authorized = self._rng.random() < self._settings.authorized_ratio
        status = STATUS_AUTHORIZED if is_authorized else STATUS_UNAUTHORIZED
        label = AUTHORIZED_LABEL if is_authorized else UNAUTHORIZED_LABEL
        confidence_percent = self._rng.randint(75, 94)

        logger.debug(
            f"Simulated verdict for {image.file_name}: {status} {confidence_percent}%"
        )
        return ClassifierVerdict(
            status=status,
            confidence_percent=confidence_percent,
            confidence_fraction=confidence_percent / 100,
            label=label,
            regions=(
                BoundingRegion(
                    region_id=f"bb_{uuid4().hex}",
                    x=self._rng.randint(50, 149),
                    y=self._rng.randint(50, 149),
                    width=self._rng.randint(200, 399),
                    height=self._rng.randint(100, 199),
                    confidence=round(self._rng.uniform(0.7, 1.0), 4),
                    text=label,
                    status=status,
                ),
            ),
            location=GeoLocation(
                lat=round(self._rng.uniform(-90.0, 90.0), 6),
                lng=round(self._rng.uniform(-180.0, 180.0), 6),
                address=SAMPLE_ADDRESS,
            ),
        )
