import logging

from flask import Blueprint, Response, current_app, g, jsonify, request

from tuberelay.errors import RelayError

logger = logging.getLogger(__name__)

media_bp = Blueprint('media_bp', __name__)


# Helper function to get the JobCoordinator instance
def get_job_coordinator():
    return current_app.extensions['job_coordinator']


def _job_id() -> str:
    # One job per request; reuse the request id so logs correlate
    g.job_id = getattr(g, 'request_id', None)
    return g.job_id


def _invalid_url(url: str) -> bool:
    # A leading dash would be read by yt-dlp as an option
    return url.startswith('-')


def _error_response(headline: str, exc: RelayError):
    return jsonify({
        "error": headline,
        "error_code": exc.error_code,
        "message": exc.message,
    }), 500


def _download_params():
    """Return ``(url, format, error)`` from the JSON body; ``error`` is a 400 message."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, None, "Missing required field: url"
    url = data.get('url')
    if url is None or (isinstance(url, str) and not url.strip()):
        return None, None, "Missing required field: url"
    if not isinstance(url, str) or _invalid_url(url.strip()):
        return None, None, "Invalid field: url"
    fmt = data.get('format')
    if fmt is not None and not isinstance(fmt, str):
        return None, None, "Invalid field: format"
    return url.strip(), (fmt.strip() or None) if fmt else None, None


@media_bp.route('/', methods=['GET'])
def service_info():
    return jsonify({
        "status": "ok",
        "service": current_app.config.get('SERVICE_NAME'),
        "version": current_app.config.get('SERVICE_VERSION'),
        "endpoints": {
            "probe": "GET /probe?url=<youtube_url>",
            "download": "POST /download",
            "playlist": "POST /playlist",
        },
    }), 200


@media_bp.route('/probe', methods=['GET'])
def probe_media():
    url = (request.args.get('url') or '').strip()
    if not url:
        return jsonify({"error": "Missing required parameter: url"}), 400
    if _invalid_url(url):
        return jsonify({"error": "Invalid parameter: url"}), 400

    try:
        metadata = get_job_coordinator().probe(url, job_id=_job_id())
    except RelayError as exc:
        logger.error("[PROBE ERROR] %s", exc.message)
        return _error_response("Failed to probe video", exc)
    return jsonify(metadata.to_response()), 200


def _stream(payload):
    # Werkzeug calls payload.close() when the response ends, even if the body never started
    return Response(payload, headers=payload.headers, direct_passthrough=True)


@media_bp.route('/download', methods=['POST'])
def download_media():
    url, fmt, error = _download_params()
    if error:
        return jsonify({"error": error}), 400

    try:
        payload = get_job_coordinator().download(url, fmt, job_id=_job_id())
    except RelayError as exc:
        logger.error("[DOWNLOAD ERROR] %s", exc.message)
        return _error_response("Download failed", exc)
    return _stream(payload)


@media_bp.route('/playlist', methods=['POST'])
def download_playlist():
    url, fmt, error = _download_params()
    if error:
        return jsonify({"error": error}), 400

    try:
        payload = get_job_coordinator().download_playlist(url, fmt, job_id=_job_id())
    except RelayError as exc:
        logger.error("[PLAYLIST ERROR] %s", exc.message)
        return _error_response("Playlist download failed", exc)
    return _stream(payload)
