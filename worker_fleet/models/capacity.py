"""
Capacity profile advertised with every heartbeat.
"""

import random
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


MEMORY_RANGE = (10.0, 64.0)
STORAGE_RANGE = (10.0, 500.0)


def _random_float(low: float, high: float, rng: random.Random, decimals: int = 2) -> float:
    return round(rng.uniform(low, high), decimals)


class CapacityProfile(BaseModel):
    """Randomly generated resource advertisement. Cosmetic to the protocol."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    available_memory: float = Field(alias="AvailableMemory")
    available_storage: float = Field(alias="AvailableStorage")
    available_gpu: str = Field(default="", alias="AvailableGPU")
    available_models: List[str] = Field(default_factory=list, alias="AvailableModels")

    @classmethod
    def generate(cls, rng: Optional[random.Random] = None) -> "CapacityProfile":
        rng = rng or random.Random()
        return cls(
            available_memory=_random_float(*MEMORY_RANGE, rng),
            available_storage=_random_float(*STORAGE_RANGE, rng),
        )
