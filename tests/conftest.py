from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, List, Optional

import pytest

# Ensure src/ is importable when pytest runs without the ini pythonpath.
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from estimator.config import EstimatorConfig  # noqa: E402
from estimator.types import BaselineEstimate  # noqa: E402
from llm_apis.llm_api import LLMGateway  # noqa: E402


class FakeGateway(LLMGateway):
    """In-memory gateway: returns a canned reply or raises a canned error."""

    def __init__(self, reply: Any = "", error: Optional[Exception] = None) -> None:
        super().__init__("fake")
        self.reply = reply
        self.error = error
        self.calls: List[dict] = []

    def send(self, prompt: str, timeout_s: float, *, max_tokens: Optional[int] = None) -> str:
        self.calls.append({"prompt": prompt, "timeout_s": timeout_s, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.reply


def make_baseline(expected: float, low: float = 0.5, high: float = 2.0) -> BaselineEstimate:
    return BaselineEstimate(
        expected=expected,
        area_km2=1.0,
        base_density=expected,
        time_factor=1.0,
        crowd_factor=1.0,
        nationality_factor=1.0,
        place_type="generic",
        time_slot="unknown",
        band_low=low,
        band_high=high,
    )


@pytest.fixture()
def offline_config() -> EstimatorConfig:
    """Config with no API key: every request takes the heuristic path."""
    return EstimatorConfig()


@pytest.fixture()
def llm_config() -> EstimatorConfig:
    return EstimatorConfig(api_key="test-key", timeout_s=2.0)
