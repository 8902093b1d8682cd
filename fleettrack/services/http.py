"""Small JSON-over-HTTP helpers shared by the geocoding and routing services."""

import json
from typing import Any, Callable, Dict, Optional
from urllib import parse, request

from fleettrack import settings

FetchJson = Callable[[str, float], Any]


def build_url(base: str, path: str, params: Optional[Dict[str, Any]] = None) -> str:
    url = f"{base.rstrip('/')}/{path.lstrip('/')}"
    if params:
        url = f"{url}?{parse.urlencode(params)}"
    return url


def fetch_json(url: str, timeout: float) -> Any:
    """GET ``url`` and decode the JSON body.

    Raises ``urllib.error.HTTPError`` for non-2xx responses, ``URLError`` for
    network failures and ``json.JSONDecodeError`` for malformed bodies. Callers
    decide how to degrade.
    """
    http_request = request.Request(
        url,
        headers={"Accept": "application/json", "User-Agent": settings.user_agent()},
        method="GET",
    )
    with request.urlopen(http_request, timeout=timeout) as response:
        raw = response.read().decode("utf-8")
        return json.loads(raw)


def send_json(method: str, url: str, body: Optional[Dict[str, Any]], timeout: float) -> Any:
    data = None
    headers = {"Accept": "application/json", "User-Agent": settings.user_agent()}
    if body is not None:
        data = json.dumps(body).encode("utf-8")
        headers["Content-Type"] = "application/json"

    http_request = request.Request(url, data=data, headers=headers, method=method)
    with request.urlopen(http_request, timeout=timeout) as response:
        raw = response.read().decode("utf-8")
        if not raw:
            return None
        return json.loads(raw)
