"""Aggregated exports for all agent prompts.

Prompt definitions live in smaller files so each one can be debugged
independently; callers import from here.
"""

from .estimate import (
    ESTIMATE_AGENT_SYSTEM,
    get_estimate_prompt,
    population_ceiling,
)

__all__ = [
    "ESTIMATE_AGENT_SYSTEM",
    "get_estimate_prompt",
    "population_ceiling",
]
