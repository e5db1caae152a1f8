"""Search Foreman collections.

Foreman accepts a scoped search string, eg `name="foo" and url="bar"`, plus
`page`/`per_page` parameters and wraps the matches in an envelope whose
`subtotal` counts all matches across all pages.

"""

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

import tfforeman.foreman
from tfforeman.crud import decode
from tfforeman.errors import CardinalityError, DecodeError
from tfforeman.models import ForemanConfig, M, QueryResponse
from tfforeman.resources import ResourceKind

# Convenience: global logger instance to avoid repetitive code.
logit = logging.getLogger("tfforeman")


def search_value(value: Any) -> str:
    """Return `value` in the notation of the Foreman search language."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    value = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{value}"'


def search_string(kind: ResourceKind[M], item: M) -> str:
    """Return the search string for all predicates the caller set on `item`.

    Only searchable fields that were explicitly assigned count as predicates,
    so `SmartProxy(name="x", url="")` searches for an empty URL whereas
    `SmartProxy(name="x")` ignores the URL altogether.

    """
    terms = []
    for field in kind.search:
        if field not in item.model_fields_set:
            continue
        value = getattr(item, field)
        if value is None:
            continue
        terms.append(f"{field}={search_value(value)}")
    return " and ".join(terms)


def _envelope(kind: ResourceKind[M], path: str, ret: Any) -> QueryResponse[M]:
    """Decode the search response `ret` into a typed envelope."""
    if not isinstance(ret, dict) or not isinstance(ret.get("results", []), list):
        logit.error("invalid search envelope", {"component": "query", "path": path})
        raise DecodeError(path, "search response is not an envelope")

    try:
        meta = QueryResponse.model_validate(ret | {"results": []})
    except ValidationError as err:
        logit.error("invalid search envelope", {"component": "query", "path": path})
        raise DecodeError(path, str(err))

    results = [decode(kind, path, _) for _ in ret.get("results", [])]
    fields = meta.model_dump(exclude={"results"})
    return QueryResponse[kind.model](**fields, results=results)  # type: ignore


async def query(
    fcfg: ForemanConfig,
    kind: ResourceKind[M],
    item: M,
    page: int = 1,
    per_page: int | None = None,
    parent: str = "",
) -> QueryResponse[M]:
    """Return one page of `kind` entities that match the predicates in `item`.

    The `subtotal` of the result counts the matches on all pages.

    """
    path = kind.collection(parent)
    params: Dict[str, Any] = {"page": page, "per_page": per_page or fcfg.per_page}
    search = search_string(kind, item)
    if search:
        params["search"] = search

    ret = await tfforeman.foreman.get(fcfg, path, params=params)
    resp = _envelope(kind, path, ret)
    logit.debug(
        "search",
        {
            "component": "query",
            "kind": kind.name,
            "search": search,
            "page": page,
            "subtotal": resp.subtotal,
        },
    )
    return resp


async def query_all(
    fcfg: ForemanConfig, kind: ResourceKind[M], item: M, parent: str = ""
) -> QueryResponse[M]:
    """Return all `kind` entities that match the predicates in `item`.

    Follows the pages until `subtotal` results arrived or Foreman returns an
    empty page.

    """
    page = 1
    resp = await query(fcfg, kind, item, page=page, parent=parent)
    results: List[M] = list(resp.results)
    while resp.results and len(results) < resp.subtotal:
        page += 1
        resp = await query(fcfg, kind, item, page=page, parent=parent)
        results.extend(resp.results)
    return resp.model_copy(update={"results": results, "page": None})


async def query_one(
    fcfg: ForemanConfig, kind: ResourceKind[M], item: M, parent: str = ""
) -> M:
    """Return the one `kind` entity that matches the predicates in `item`.

    Raises `CardinalityError` unless exactly one entity matches. Since the
    `subtotal` covers all pages, the first page suffices to decide.

    """
    resp = await query(fcfg, kind, item, per_page=2, parent=parent)
    if resp.subtotal != 1:
        logit.error(
            "unexpected number of search results",
            {"component": "query", "kind": kind.name, "subtotal": resp.subtotal},
        )
        raise CardinalityError(kind.name, 1, resp.subtotal)

    if len(resp.results) != 1:
        path = kind.collection(parent)
        raise DecodeError(path, f"subtotal is 1 but got {len(resp.results)} results")
    return resp.results[0]
