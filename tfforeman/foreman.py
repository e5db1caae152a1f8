import json
import logging
from typing import Any, Dict, Tuple

import httpx

from tfforeman.errors import DecodeError, NotFoundError, StatusError, TransportError
from tfforeman.models import ForemanConfig

# Every Foreman API path has this prefix.
API_URL_PREFIX = "/api"

# Plugins serve their API under their own prefix. Resource paths starting with
# one of these markers, eg "katello/products", are routed to the plugin.
PLUGIN_URL_PREFIXES = {
    "katello": "/katello/api",
    "puppet": "/foreman_puppet/api",
    "foreman_tasks": "/foreman_tasks/api",
}

# Foreman core negotiates the API version via the `Accept` header.
API_VERSION = "2"

VALID_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE")

# Convenience: global logger instance to avoid repetitive code.
logit = logging.getLogger("tfforeman")


def endpoint_url(path: str) -> Tuple[str, str]:
    """Return the URL path and `Accept` header for the resource `path`.

    Examples:
        "smart_proxies/3" -> "/api/smart_proxies/3"
        "katello/products" -> "/katello/api/products"

    """
    path = path.strip("/")
    marker, _, remainder = path.partition("/")
    if marker in PLUGIN_URL_PREFIXES:
        return f"{PLUGIN_URL_PREFIXES[marker]}/{remainder}", "application/json"
    return f"{API_URL_PREFIX}/{path}", f"application/json,version={API_VERSION}"


def wrap_payload(
    fcfg: ForemanConfig, wrap: str | None, item: Dict[str, Any], taxonomy: bool
) -> Dict[str, Any]:
    """Return the request body for `item`.

    Foreman expects most resources wrapped in an object named after the
    resource, eg `{"domain": {...}}`. Taxonomy aware resources also receive
    the configured location and organization unless either is negative.

    """
    data = {wrap: item} if wrap else dict(item)
    if taxonomy and fcfg.location_id >= 0 and fcfg.organization_id >= 0:
        data["location_id"] = fcfg.location_id
        data["organization_id"] = fcfg.organization_id
    return data


async def _call(
    fcfg: ForemanConfig,
    method: str,
    url: str,
    payload: dict | list | None,
    params: dict | None,
    headers: dict,
) -> httpx.Response:
    return await fcfg.client.request(
        method, url, json=payload, params=params, headers=headers
    )


async def request(
    fcfg: ForemanConfig,
    method: str,
    path: str,
    payload: dict | list | None = None,
    params: dict | None = None,
) -> Any:
    """Return the decoded JSON response of a single request to Foreman.

    Inputs:
        fcfg: ForemanConfig
            Connection with the authenticated HttpX client.
        path: str
            Resource path relative to the API prefix, eg `smart_proxies/3`.
        payload: dict
            Anything that can be JSON encoded, usually a wrapped resource.
        params: dict
            Query parameters, eg `{"search": 'name="foo"', "page": 2}`.

    Raises:
        TransportError: the request did not produce a response.
        StatusError: Foreman responded with a non-2xx status (`NotFoundError`
            for 404).
        DecodeError: the response body was not valid JSON.

    """
    method = method.upper()
    if method not in VALID_METHODS:
        logit.error("invalid HTTP method", {"component": "foreman", "method": method})
        raise ValueError(f"Invalid HTTP request method: [{method}]")

    url, accept = endpoint_url(path)
    headers = {"Accept": accept}
    meta_log: Dict[str, Any] = {"component": "foreman", "method": method, "url": url}

    # Make the HTTP request. There are deliberately no retries.
    try:
        ret = await _call(fcfg, method, url, payload, params, headers)
    except httpx.RequestError as err:
        meta_log["reason"] = str(err)
        logit.error("request failed", meta_log)
        raise TransportError(method, url, str(err) or type(err).__name__)

    # Log the entire request in debug mode.
    meta_log.update(
        {
            "status": ret.status_code,
            "params": params,
            "payload": payload,
            "response": ret.text,
        }
    )
    logit.debug("server response", meta_log)

    if not 200 <= ret.status_code <= 299:
        logit.error("unexpected status code", meta_log)
        err_type = NotFoundError if ret.status_code == 404 else StatusError
        raise err_type(str(ret.url), ret.status_code, ret.text)

    # Some endpoints, most notably DELETE, may not return a body at all.
    if ret.text.strip() == "":
        return {}

    # Decode the JSON response and abort if that is impossible.
    try:
        return json.loads(ret.text)
    except json.decoder.JSONDecodeError as err:
        reason = f"{err.msg} in line {err.lineno} column {err.colno}"
        logit.error("JSON error", meta_log | {"reason": reason})
        raise DecodeError(str(ret.url), reason)


async def get(fcfg: ForemanConfig, path: str, params: dict | None = None) -> Any:
    """Make GET requests to Foreman (see `request`)."""
    return await request(fcfg, "GET", path, payload=None, params=params)


async def post(fcfg: ForemanConfig, path: str, payload: dict | None) -> Any:
    """Make POST requests to Foreman (see `request`)."""
    return await request(fcfg, "POST", path, payload)


async def put(fcfg: ForemanConfig, path: str, payload: dict) -> Any:
    """Make PUT requests to Foreman (see `request`)."""
    return await request(fcfg, "PUT", path, payload)


async def delete(fcfg: ForemanConfig, path: str) -> Any:
    """Make DELETE requests to Foreman (see `request`)."""
    return await request(fcfg, "DELETE", path)


def make_client(
    base_url: str,
    username: str,
    password: str,
    insecure: bool = False,
    timeout: float = 60.0,
) -> httpx.AsyncClient:
    """Return an authenticated HttpX client for the Foreman at `base_url`."""
    return httpx.AsyncClient(
        base_url=base_url,
        auth=httpx.BasicAuth(username, password),
        verify=not insecure,
        timeout=httpx.Timeout(timeout),
        headers={
            "User-Agent": "terraform-provider-foreman",
            "Content-Type": "application/json",
        },
    )
