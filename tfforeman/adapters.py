"""Translate between Terraform resource data and Foreman domain models.

Terraform hands every resource operation a flat attribute map whose `id` is a
string. The functions here convert that map into the domain model of the
resource kind, run the CRUD or query operation and convert the result back.
The connection is always passed explicitly.

"""

import logging
from typing import Any, Dict

import tfforeman.crud
import tfforeman.query
from tfforeman.errors import NotFoundError
from tfforeman.models import ForemanConfig, M
from tfforeman.resources import ResourceKind

# Convenience: global logger instance to avoid repetitive code.
logit = logging.getLogger("tfforeman")

ResourceData = Dict[str, Any]


def build(kind: ResourceKind[M], data: ResourceData) -> M:
    """Return the `kind` model for the resource `data`.

    Only the attributes present in `data` count as explicitly set, which
    matters for searches. An empty `id` means the resource does not exist yet.

    """
    data = dict(data)
    obj_id = data.pop("id", None)
    obj = kind.model.model_validate(data)
    if obj_id not in (None, ""):
        obj.id = int(obj_id)
    return obj


def flatten(item: M, data: ResourceData | None = None) -> ResourceData:
    """Return the resource data for `item`.

    Foreman does not return the parent of nested resources, which is why
    `PARENT_KEYS` are copied from the original resource `data`.

    """
    ret = item.model_dump(by_alias=True)
    ret["id"] = "" if item.id is None else str(item.id)
    for key in item.PARENT_KEYS:
        if ret.get(key) is None and data and data.get(key) is not None:
            ret[key] = data[key]
    return ret


async def resource_create(
    fcfg: ForemanConfig, kind: ResourceKind[M], data: ResourceData
) -> ResourceData:
    item = build(kind, data)
    obj = await tfforeman.crud.create(fcfg, kind, item, parent=item.parent_path())
    return flatten(obj, data)


async def resource_read(
    fcfg: ForemanConfig, kind: ResourceKind[M], data: ResourceData
) -> ResourceData | None:
    """Return the current state of the resource or `None` if it is gone.

    Terraform must remove the resource from its state if this returns `None`.

    """
    item = build(kind, data)
    if item.id is None:
        raise ValueError(f"cannot read {kind.name} without ID")

    try:
        obj = await tfforeman.crud.read(fcfg, kind, item.id, parent=item.parent_path())
    except NotFoundError:
        logit.warning(
            "resource no longer exists",
            {"component": "adapters", "kind": kind.name, "id": item.id},
        )
        return None
    return flatten(obj, data)


async def resource_update(
    fcfg: ForemanConfig,
    kind: ResourceKind[M],
    data: ResourceData,
    old: ResourceData | None = None,
) -> ResourceData:
    """Update the resource to `data` and return its new state.

    The previous state `old` lets kinds with nested collections compute which
    entries Foreman must remove, eg stale template combinations.

    """
    item = build(kind, data)
    if kind.reconcile is not None and old is not None:
        item = kind.reconcile(build(kind, old), item)

    obj = await tfforeman.crud.update(fcfg, kind, item, parent=item.parent_path())
    return flatten(obj, data)


async def resource_delete(
    fcfg: ForemanConfig, kind: ResourceKind[M], data: ResourceData
) -> None:
    """Delete the resource. Succeeds if it was already gone."""
    item = build(kind, data)
    if item.id is None:
        raise ValueError(f"cannot delete {kind.name} without ID")

    try:
        await tfforeman.crud.delete(fcfg, kind, item.id, parent=item.parent_path())
    except NotFoundError:
        logit.info(
            "resource already deleted",
            {"component": "adapters", "kind": kind.name, "id": item.id},
        )


async def data_source_read(
    fcfg: ForemanConfig, kind: ResourceKind[M], data: ResourceData
) -> ResourceData:
    """Return the one entity that matches the searchable attributes in `data`.

    Raises `CardinalityError` if none or several entities match.

    """
    item = build(kind, data)
    obj = await tfforeman.query.query_one(fcfg, kind, item, parent=item.parent_path())
    return flatten(obj, data)
