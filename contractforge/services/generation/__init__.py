"""Source generation from the contract."""

from .service import (
    GenerationRequest,
    GenerationStamp,
    GenerationTarget,
    GeneratorEngine,
    OpenAPIGeneratorCLI,
)

__all__ = [
    "GenerationRequest",
    "GenerationStamp",
    "GenerationTarget",
    "GeneratorEngine",
    "OpenAPIGeneratorCLI",
]
