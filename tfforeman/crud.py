"""Generic Create/Read/Update/Delete operations for every `ResourceKind`.

Every function performs exactly one request and decodes the response into the
domain model of the resource kind. Errors propagate unchanged from the
transport, except for responses that do not match the model, which raise a
`DecodeError`.

"""

import logging
from typing import Any

from pydantic import ValidationError

import tfforeman.foreman
from tfforeman.errors import DecodeError
from tfforeman.models import ForemanConfig, M
from tfforeman.resources import ResourceKind

# Convenience: global logger instance to avoid repetitive code.
logit = logging.getLogger("tfforeman")


def decode(kind: ResourceKind[M], path: str, data: Any) -> M:
    """Return the `kind` model of the response `data` from `path`."""
    try:
        return kind.decode(data)
    except ValidationError as err:
        meta = {"component": "crud", "kind": kind.name, "path": path}
        logit.error("response does not match model", meta | {"reason": str(err)})
        raise DecodeError(path, str(err))


def payload(fcfg: ForemanConfig, kind: ResourceKind[M], item: M) -> dict:
    """Return the wrapped request body for `item`."""
    data = item.payload()
    return tfforeman.foreman.wrap_payload(fcfg, kind.wrap, data, kind.taxonomy)


async def create(
    fcfg: ForemanConfig, kind: ResourceKind[M], item: M, parent: str = ""
) -> M:
    path = kind.collection(parent)
    ret = await tfforeman.foreman.post(fcfg, path, payload(fcfg, kind, item))
    obj = decode(kind, path, ret)
    logit.info("created", {"component": "crud", "kind": kind.name, "id": obj.id})
    return obj


async def read(
    fcfg: ForemanConfig, kind: ResourceKind[M], id: int, parent: str = ""
) -> M:
    """Return the `kind` entity with `id`.

    Raises `NotFoundError` if the entity does not exist (anymore).

    """
    path = kind.item(id, parent)
    ret = await tfforeman.foreman.get(fcfg, path)
    return decode(kind, path, ret)


async def update(
    fcfg: ForemanConfig, kind: ResourceKind[M], item: M, parent: str = ""
) -> M:
    """Replace the entity with the full payload of `item`."""
    if item.id is None:
        raise ValueError(f"cannot update {kind.name} without ID")

    path = kind.item(item.id, parent)
    ret = await tfforeman.foreman.put(fcfg, path, payload(fcfg, kind, item))
    obj = decode(kind, path, ret)
    logit.info("updated", {"component": "crud", "kind": kind.name, "id": obj.id})
    return obj


async def delete(
    fcfg: ForemanConfig, kind: ResourceKind[M], id: int, parent: str = ""
) -> None:
    await tfforeman.foreman.delete(fcfg, kind.item(id, parent))
    logit.info("deleted", {"component": "crud", "kind": kind.name, "id": id})
