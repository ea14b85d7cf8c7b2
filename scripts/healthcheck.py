#!/usr/bin/env python
"""Container healthcheck for the relay.

Exits 0 only when ``/readyz`` answers 200 and reports a verified yt-dlp
binary; otherwise prints the reason to stderr and exits 1.
"""

import json
import os
import sys
from urllib import request, error


def readiness_url() -> str:
    host = os.getenv("HEALTHCHECK_HOST", "127.0.0.1")
    port = os.getenv("PORT", "3000")
    return f"http://{host}:{port}/readyz"


def check(url: str, timeout: float = 5.0) -> str:
    """Return an empty string when ready, else a short reason."""
    try:
        with request.urlopen(url, timeout=timeout) as resp:
            body = json.loads(resp.read() or b"{}")
    except error.HTTPError as exc:
        return f"readyz returned HTTP {exc.code}"
    except (error.URLError, OSError) as exc:
        return f"relay unreachable: {exc}"
    except ValueError:
        return "readyz returned invalid JSON"

    if body.get("status") != "ready" or body.get("yt_dlp") != "ok":
        return f"yt-dlp {body.get('yt_dlp') or 'unknown'}"
    return ""


def main() -> int:
    reason = check(readiness_url())
    if reason:
        print(f"unhealthy: {reason}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
