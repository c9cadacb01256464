# crowdscope_frontend.py
from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
import uvicorn

import crowdscope_backend as backend
from estimator.config import EstimatorConfig
from estimator.normalizer import coerce_payload
from llm_apis.llm_api import LLMGateway
from map_apis.google_maps import GoogleMaps
from map_apis.map_api import MapAPI

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Accept-Language",
}


def _configure_console_logging() -> None:
    """
    Console logging with clear INFO-level events:
    - System start, POST /api/estimate request in, returned summary.
    """
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    level = getattr(logging, (os.getenv("LOG_LEVEL") or "INFO").upper(), logging.INFO)
    root.setLevel(level)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s"))
    root.addHandler(ch)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("crowdscope.frontend").setLevel(level)


logger = logging.getLogger("crowdscope.frontend")


async def _cors_and_request_logging(request: Request, call_next: Callable) -> Response:
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.time()
    response = await call_next(request)
    latency = (time.time() - start) * 1000.0
    for key, value in CORS_HEADERS.items():
        response.headers.setdefault(key, value)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request_id, request.method, request.url.path, response.status_code, latency,
    )
    return response


async def _read_body(req: Request) -> Any:
    raw = await req.body()
    return coerce_payload(raw)


def create_app(
    config: Optional[EstimatorConfig] = None,
    *,
    gateway: Optional[LLMGateway] = None,
    geocoder: Optional[MapAPI] = None,
) -> FastAPI:
    """
    Create the FastAPI app.

    Endpoints:
    - POST    /api/estimate  -> crowd estimate (always 200, fallback on any upstream failure)
    - OPTIONS /api/estimate  -> 204 CORS preflight
    - POST    /api/geocode   -> {lat, lng} for an address
    - GET     /healthz       -> liveness

    The LLM gateway and geocoder are built once here and shared by all requests.
    """
    _configure_console_logging()
    config = config or EstimatorConfig.from_env()
    if gateway is None:
        gateway = backend.build_gateway(config)

    app = FastAPI(title="CrowdScope", version="0.1.0")
    app.state.config = config
    app.state.gateway = gateway
    app.state.geocoder = geocoder
    app.middleware("http")(_cors_and_request_logging)

    @app.on_event("startup")
    async def _on_startup() -> None:
        logger.info(
            "System start: CrowdScope server is up (llm=%s, model=%s, band=%gx-%gx).",
            "on" if gateway is not None else "off", config.model, config.band_low, config.band_high,
        )

    def _geocoder() -> MapAPI:
        if app.state.geocoder is None:
            app.state.geocoder = GoogleMaps()
        return app.state.geocoder

    @app.options("/api/estimate")
    @app.options("/api/geocode")
    async def preflight() -> Response:
        return Response(status_code=204, headers=CORS_HEADERS)

    @app.api_route("/api/estimate", methods=["GET", "PUT", "PATCH", "DELETE"])
    @app.api_route("/api/geocode", methods=["GET", "PUT", "PATCH", "DELETE"])
    async def method_not_allowed() -> JSONResponse:
        return JSONResponse({"ok": False, "error": "Method not allowed"}, status_code=405)

    @app.post("/api/estimate", response_class=JSONResponse)
    async def api_estimate(req: Request) -> JSONResponse:
        """
        Accept JSON (or a JSON-encoded string): {address, crowd, feature, radius_m,
        local_time_iso?, lang?, place_type?, max_completion_tokens?}.
        Malformed fields are replaced by defaults; the answer is always an EstimateResult.
        """
        payload = await _read_body(req)
        accept_language = req.headers.get("accept-language")
        logger.info(
            "POST /api/estimate -> request in: keys=%s, accept_language=%s",
            sorted(payload.keys()), accept_language,
        )
        t0 = time.time()
        result = await backend.run_estimate_session_async(
            payload,
            gateway=app.state.gateway,
            config=app.state.config,
            accept_language=accept_language,
        )
        dt = (time.time() - t0) * 1000.0
        logger.info("POST /api/estimate -> returned: count=%s, elapsed=%.1f ms", result.get("count"), dt)
        return JSONResponse(result)

    @app.post("/api/geocode", response_class=JSONResponse)
    async def api_geocode(req: Request) -> JSONResponse:
        payload = await _read_body(req)
        address = payload.get("address")
        if not isinstance(address, str) or not address.strip():
            return JSONResponse({"error": "address required"}, status_code=400)

        try:
            place = await asyncio.to_thread(_geocoder().getPlaceInfo, address.strip())
        except ValueError:
            logger.info("POST /api/geocode -> not found: %r", address)
            return JSONResponse({"error": "not found"}, status_code=404)
        except Exception:
            logger.exception("POST /api/geocode -> geocoding failed for %r", address)
            return JSONResponse({"error": "server error"}, status_code=500)
        return JSONResponse({"lat": place["lat"], "lng": place["lng"]})

    @app.get("/healthz", response_class=PlainTextResponse)
    async def healthz() -> PlainTextResponse:
        logger.info("GET /healthz")
        return PlainTextResponse("ok")

    return app


def main() -> None:
    """
    Start the API server.
    Run: python -c "import crowdscope_frontend as f; f.main()"
    Then POST to http://127.0.0.1:8000/api/estimate
    """
    app = create_app()
    logger.info("Launching Uvicorn...")
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")


if __name__ == "__main__":
    main()
