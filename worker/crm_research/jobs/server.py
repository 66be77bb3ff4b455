"""HTTP entrypoint for research requests, similar-customer lookups and settings."""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, jsonify, request

from crm_research.core.config import get_settings
from crm_research.core.research_config import get_research_config, save_research_config
from crm_research.jobs.research import (
    CustomerNotFoundError,
    ResearchInputError,
    find_similar_customers,
    run_research,
)
from crm_research.vendors import gemini

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)

# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never touches the DB."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "gemini_configured": gemini.is_available(),
                "search_configured": settings.has_search_provider,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/research")
def research() -> Any:
    """
    Run a research request synchronously.
    Required JSON: companyName or customerId.
    Pipeline failures are reported in aiError with a 200 status.
    """
    payload = request.get_json(silent=True)
    try:
        result = run_research(payload)
    except ResearchInputError as exc:
        return jsonify({"error": str(exc)}), 400
    except CustomerNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except Exception as exc:  # noqa: BLE001
        logger.exception("Research request failed: %s", exc)
        return jsonify({"error": "research failed"}), 500

    return jsonify(result), 200


@app.get("/customers/<customer_id>/similar")
def similar_customers(customer_id: str) -> Any:
    scope = request.args.get("scope", "region")
    try:
        result = find_similar_customers(customer_id, scope)
    except CustomerNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except Exception as exc:  # noqa: BLE001
        logger.exception("Similar customer lookup failed for %s: %s", customer_id, exc)
        return jsonify({"error": "similar customer lookup failed"}), 500

    return jsonify(result), 200


@app.get("/admin/settings")
def read_settings() -> Any:
    return jsonify({"config": get_research_config().to_dict()}), 200


@app.put("/admin/settings")
def update_settings() -> Any:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "settings body must be a JSON object"}), 400

    try:
        config = save_research_config(payload.get("config", payload))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Saving research config failed: %s", exc)
        return jsonify({"error": "could not save settings"}), 500

    return jsonify({"config": config.to_dict()}), 200


def main() -> None:
    """Bind on PORT when the platform injects it, else WORKER_PORT."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
