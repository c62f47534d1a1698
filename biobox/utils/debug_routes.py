# biobox/utils/debug_routes.py
import os
from flask import jsonify

from biobox.services import get_services

SAFE_ENV_KEYS = {"REMOTE_BACKEND", "CACHE_PREFIX", "PYTHON_VERSION"}


def register_debug_routes(app):
    """
    Habilita endpoints de diagnóstico quando DEBUG_ROUTES=1
    (ou ``DEBUG_ROUTES`` na configuração da app).
    """
    if os.getenv("DEBUG_ROUTES") != "1" and not app.config.get("DEBUG_ROUTES"):
        return

    @app.get("/api/_routes")
    def _routes():
        out = []
        for rule in app.url_map.iter_rules():
            methods = sorted(m for m in rule.methods if m in {
                "GET", "POST", "PUT", "DELETE", "PATCH"
            })
            out.append({"rule": str(rule), "endpoint": rule.endpoint, "methods": methods})
        out.sort(key=lambda r: r["rule"])
        return jsonify(out)

    @app.get("/api/health/full")
    def _health_full():
        services = get_services(app)
        store = services.store
        return jsonify({
            "status": "ok",
            "blueprints": sorted(app.blueprints.keys()),
            "store": services.gateway.get_store_info(),
            "remote_online": store.test_connection() if store is not None else False,
            "env": {k: os.getenv(k) for k in SAFE_ENV_KEYS if os.getenv(k)},
        })
