from __future__ import annotations

import os

from flask import Blueprint, current_app, jsonify

health_bp = Blueprint("health_bp", __name__)


def _binary_checks() -> dict:
    provisioner = current_app.extensions.get("tool_provisioner")
    if provisioner is None:
        return {"yt_dlp": "unavailable"}
    binary = provisioner.binary
    return {
        "yt_dlp": "ok" if binary.verified and os.path.exists(binary.path) else "unverified",
        "yt_dlp_version": binary.version,
    }


@health_bp.route("/healthz")
def healthz():
    checks = _binary_checks()
    workspaces = current_app.extensions.get("workspace_manager")
    if workspaces is not None and os.path.isdir(workspaces.base_output_dir):
        checks["download_dir"] = "ok"
    else:
        checks["download_dir"] = "missing"

    healthy = checks["yt_dlp"] == "ok" and checks["download_dir"] == "ok"
    status = 200 if healthy else 503
    return jsonify({"status": "ok" if healthy else "degraded", "checks": checks}), status


@health_bp.route("/readyz")
def readyz():
    checks = _binary_checks()
    ready = checks["yt_dlp"] == "ok"
    payload = {
        "status": "ready" if ready else "blocked",
        "yt_dlp": checks["yt_dlp"],
    }
    return jsonify(payload), 200 if ready else 503
