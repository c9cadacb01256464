# crowdscope_backend.py

from __future__ import annotations

import dotenv
dotenv.load_dotenv()

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

from estimator.band_validator import validate_estimate
from estimator.baseline import compute_baseline
from estimator.config import EstimatorConfig
from estimator.context import classify
from estimator.fallback import heuristic_estimate
from estimator.normalizer import normalize_input
from estimator.response_repair import repair_response
from estimator.types import BaselineEstimate, CanonicalInput, Context, EstimateResult
from llm_apis.llm_api import LLMGateway, LLMGatewayError, LLMTimeoutError
from llm_apis.openai_chat import OpenAIChatGateway

# Prompts
from prompts.agent_prompts import get_estimate_prompt

logger = logging.getLogger("crowdscope")


# -----------------------------------------------------------------------------
# Wiring
# -----------------------------------------------------------------------------
def build_gateway(config: EstimatorConfig) -> Optional[LLMGateway]:
    """Construct the process-wide gateway, or None when no API key is configured."""
    if not config.has_llm:
        logger.warning("OPENAI_API_KEY is not set; every request will use the heuristic fallback.")
        return None
    return OpenAIChatGateway(
        config.api_key,
        model=config.model,
        base_url=config.base_url,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        json_mode=config.json_mode,
    )


def _baseline(inp: CanonicalInput, ctx: Context, config: EstimatorConfig) -> BaselineEstimate:
    return compute_baseline(
        inp,
        ctx,
        densities=config.densities,
        band_low=config.band_low,
        band_high=config.band_high,
    )


# -----------------------------------------------------------------------------
# Orchestration
# -----------------------------------------------------------------------------
async def _ask_model(
    gateway: LLMGateway,
    inp: CanonicalInput,
    ctx: Context,
    baseline: BaselineEstimate,
    config: EstimatorConfig,
) -> EstimateResult:
    try:
        prompt = get_estimate_prompt(inp, ctx, baseline)
        raw = await asyncio.to_thread(
            gateway.send, prompt, config.timeout_s, max_tokens=inp.max_output_tokens
        )
    except LLMTimeoutError as exc:
        logger.warning("LLM call timed out, using heuristic fallback: %s", exc)
        return heuristic_estimate(inp, ctx, baseline, reason="timeout")
    except LLMGatewayError as exc:
        logger.warning("LLM call failed, using heuristic fallback: %s", exc)
        return heuristic_estimate(inp, ctx, baseline, reason="upstream_error")
    except Exception:
        logger.exception("Unexpected error from LLM gateway, using heuristic fallback")
        return heuristic_estimate(inp, ctx, baseline, reason="upstream_error")

    repaired = repair_response(raw)
    if repaired is None:
        return heuristic_estimate(inp, ctx, baseline, reason="unparsable_response")
    return repaired


async def run_estimate_session_async(
    payload: Any,
    *,
    gateway: Optional[LLMGateway] = None,
    config: Optional[EstimatorConfig] = None,
    accept_language: Optional[str] = None,
) -> Dict[str, Any]:
    """Estimate how many matching people are in the requested circle.

    Always returns a complete EstimateResult dict; failures of the model path
    are absorbed by the heuristic fallback and disclosed in ``notes``.
    """
    config = config or EstimatorConfig.from_env()
    t0 = time.time()

    inp = normalize_input(payload)
    ctx = classify(inp, accept_language)
    baseline = _baseline(inp, ctx, config)
    logger.info(
        "estimate request: place_type=%s time_slot=%s radius_m=%d crowd=%s expected=%.1f",
        ctx.place_type, ctx.time_slot, inp.radius_m, inp.crowd, baseline.expected,
    )

    if gateway is None:
        candidate = heuristic_estimate(inp, ctx, baseline, reason="missing_api_key")
    else:
        candidate = await _ask_model(gateway, inp, ctx, baseline, config)

    # Validation always runs against a freshly computed baseline.
    result = validate_estimate(candidate, _baseline(inp, ctx, config), ctx.target_lang)

    logger.info(
        "estimate returned: count=%d range=%d-%d confidence=%.2f elapsed=%.1f ms",
        result.count, result.range_min, result.range_max, result.confidence,
        (time.time() - t0) * 1000.0,
    )
    return result.to_dict()


def run_estimate_session(
    payload: Any,
    *,
    gateway: Optional[LLMGateway] = None,
    config: Optional[EstimatorConfig] = None,
    accept_language: Optional[str] = None,
) -> Dict[str, Any]:
    return asyncio.run(
        run_estimate_session_async(
            payload, gateway=gateway, config=config, accept_language=accept_language
        )
    )


def main() -> None:
    """
    Example run for the CrowdScope estimation pipeline.
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s - %(message)s")
    config = EstimatorConfig.from_env()
    gateway = build_gateway(config)
    example = {
        "address": "東京都渋谷区道玄坂2丁目 渋谷駅周辺",
        "crowd": "混雑",
        "feature": "電車待ちの人",
        "radius_m": 500,
        "local_time_iso": "2025-11-28T18:15:00+09:00",
    }
    res = run_estimate_session(example, gateway=gateway, config=config)

    print("\n=== CrowdScope Estimate ===")
    print(json.dumps(res, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
