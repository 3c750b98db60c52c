"""LLM configuration and model definitions.

This module defines task types, the closed set of Gemini models the core may
call, and the routing of tasks to models.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TaskType(Enum):
    """Types of LLM tasks with different cost profiles."""

    EXTRACTION = "extraction"  # Structuring raw input (cheap, fast)
    ANALYSIS = "analysis"  # Comparison, generation, critique (higher quality)


class GeminiModel(Enum):
    """Gemini models known to the orchestration core."""

    FLASH = "gemini-2.0-flash"
    PRO = "gemini-1.5-pro"


@dataclass(frozen=True)
class ModelConfig:
    """Configuration for a specific model."""

    model: GeminiModel

    @property
    def litellm_model(self) -> str:
        """Get the LiteLLM model identifier (Google AI Studio route)."""
        return f"gemini/{self.model.value}"


MODEL_CONFIGS: dict[GeminiModel, ModelConfig] = {
    GeminiModel.FLASH: ModelConfig(model=GeminiModel.FLASH),
    GeminiModel.PRO: ModelConfig(model=GeminiModel.PRO),
}

DEFAULT_ROUTING_TABLE: dict[TaskType, GeminiModel] = {
    TaskType.EXTRACTION: GeminiModel.FLASH,
    TaskType.ANALYSIS: GeminiModel.PRO,
}


@dataclass
class GatewayConfig:
    """Configuration for the model gateway."""

    # Relay (shared credentials, metered)
    relay_function_name: str = "gemini-proxy"

    # Per-call timeout
    timeout_seconds: float = 120.0

    # Custom routing table (overrides defaults)
    routing_table: Optional[dict[TaskType, GeminiModel]] = None

    def get_routing_table(self) -> dict[TaskType, GeminiModel]:
        """Get the effective routing table."""
        if self.routing_table:
            return {**DEFAULT_ROUTING_TABLE, **self.routing_table}
        return DEFAULT_ROUTING_TABLE

    def model_for(self, task: TaskType) -> ModelConfig:
        return MODEL_CONFIGS[self.get_routing_table()[task]]
