"""In-memory backing store of the Foreman emulator.

Entities are stored in their write shape, ie as the client sends them, and
rendered into Foreman's read shape on every response.

"""

import datetime
import re
import uuid
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict

# Foreman renames these write keys on read and returns nested objects.
NESTED_IDS = {
    "operatingsystem_ids": "operatingsystems",
    "domain_ids": "domains",
    "puppetclass_ids": "puppetclasses",
    "config_group_ids": "config_groups",
}
NESTED_PARAMETERS = ("domain_parameters_attributes", "group_parameters_attributes")

# Keys Foreman accepts next to the wrapped entity.
TAXONOMY_KEYS = ("location_id", "organization_id")

# Foreman's default page size.
DEFAULT_PER_PAGE = 20

# Item actions, eg `POST repositories/5/sync`.
ACTIONS = ("sync",)

# One `field=value` search term and its trailing ` and `. Quoted values may
# contain blanks and backslash escapes.
SEARCH_TERM = re.compile(r'(\w+)=("(?:\\.|[^"\\])*"|[^\s"]*)(?:\s+and\s+|\s*$)')


class Database(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # collections[path][id], eg collections["hostgroups/3/parameters"][7].
    collections: Dict[str, Dict[int, Dict[str, Any]]] = {}

    # Foreman tasks by UUID.
    tasks: Dict[str, Dict[str, Any]] = {}

    # Foreman IDs are unique per type but a global counter suffices.
    next_id: int = 1


class NotFound(Exception):
    pass


def now() -> str:
    return datetime.datetime.now(datetime.UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def split_path(path: str) -> Tuple[str, int | None, str]:
    """Return (collection, item ID, action) of an API `path`.

    Examples:
        "smart_proxies" -> ("smart_proxies", None, "")
        "hostgroups/3/parameters/7" -> ("hostgroups/3/parameters", 7, "")
        "repositories/5/sync" -> ("repositories", 5, "sync")

    """
    parts = path.strip("/").split("/")
    action = parts.pop() if len(parts) >= 3 and parts[-1] in ACTIONS else ""
    if len(parts) >= 2 and parts[-1].isdigit():
        return "/".join(parts[:-1]), int(parts[-1]), action
    return "/".join(parts), None, action


def unwrap(body: Any) -> Dict[str, Any]:
    """Return the entity of a request `body` without wrapper and taxonomy."""
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")

    data = {k: v for k, v in body.items() if k not in TAXONOMY_KEYS}
    if len(data) == 1:
        value = list(data.values())[0]
        if isinstance(value, dict):
            return dict(value)
    return data


def check_parent(db: Database, collection: str):
    """Raise `NotFound` if the parent of a nested `collection` does not exist."""
    parent, _, _ = collection.rpartition("/")
    coll, obj_id, _ = split_path(parent)
    if obj_id is None:
        return
    if obj_id not in db.collections.get(coll, {}):
        raise NotFound(parent)


def get_item(db: Database, collection: str, obj_id: int) -> Dict[str, Any]:
    try:
        return db.collections[collection][obj_id]
    except KeyError:
        raise NotFound(f"{collection}/{obj_id}")


def apply_combinations(
    db: Database, current: List[Dict[str, Any]], changes: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Return the template combinations after applying `changes`.

    Entries with `_destroy` are removed, entries with a known `id` updated and
    all others added. Entries not mentioned in `changes` survive.

    """
    combos = {_["id"]: dict(_) for _ in current}
    for change in changes:
        change = dict(change)
        destroy = bool(change.pop("_destroy", False))
        combo_id = change.get("id")
        if destroy:
            combos.pop(combo_id, None)
        elif combo_id in combos:
            combos[combo_id].update(change)
        else:
            change["id"] = db.next_id
            db.next_id += 1
            combos[change["id"]] = change
    return list(combos.values())


def merge(db: Database, record: Dict[str, Any], data: Dict[str, Any]):
    """Merge the write shape `data` into the stored `record`."""
    data = dict(data)
    for key in ("id", "created_at", "updated_at"):
        data.pop(key, None)

    changes = data.pop("template_combinations_attributes", None)
    if changes is not None:
        current = record.get("template_combinations", [])
        record["template_combinations"] = apply_combinations(db, current, changes)

    # Hostgroups receive their Puppet IDs in a sub-object.
    puppet = data.pop("puppet_attributes", None) or {}
    for key in ("puppetclass_ids", "config_group_ids"):
        if key in puppet:
            record[key] = puppet[key]

    record.update(data)
    record["updated_at"] = now()


def render(collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
    """Return the stored `record` of `collection` in Foreman's read shape."""
    out: Dict[str, Any] = {}
    for key, value in record.items():
        if key in NESTED_IDS:
            out[NESTED_IDS[key]] = [{"id": _, "name": f"{_}"} for _ in value]
        elif key in NESTED_PARAMETERS:
            out["parameters"] = value
        elif key == "product_id":
            out["product"] = {"id": value}
        elif key == "template_kind_id" and isinstance(value, str):
            out[key] = int(value) if value.isdigit() else None
        else:
            out[key] = value

    kind = collection.rpartition("/")[2]
    if kind == "hostgroups":
        out["title"] = record.get("name", "")
    elif kind == "provisioning_templates":
        out.setdefault("template_combinations", [])
    return out


def create(db: Database, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
    check_parent(db, collection)

    ts = now()
    record: Dict[str, Any] = {"id": db.next_id, "created_at": ts}
    db.next_id += 1
    merge(db, record, data)
    record["updated_at"] = ts

    db.collections.setdefault(collection, {})[record["id"]] = record
    return render(collection, record)


def read(db: Database, collection: str, obj_id: int) -> Dict[str, Any]:
    check_parent(db, collection)
    return render(collection, get_item(db, collection, obj_id))


def update(
    db: Database, collection: str, obj_id: int, data: Dict[str, Any]
) -> Dict[str, Any]:
    check_parent(db, collection)
    record = get_item(db, collection, obj_id)
    merge(db, record, data)
    return render(collection, record)


def delete(db: Database, collection: str, obj_id: int) -> Dict[str, Any]:
    check_parent(db, collection)
    get_item(db, collection, obj_id)
    return render(collection, db.collections[collection].pop(obj_id))


# ----------------------------------------------------------------------
# Search.
# ----------------------------------------------------------------------


def parse_search(search: str) -> List[Tuple[str, str]]:
    """Return the (field, value) predicates of a scoped search string.

    Supports the subset the client produces, eg `name="a b" and snippet=true`.

    """
    terms = []
    search = search.strip()
    pos = 0
    while pos < len(search):
        match = SEARCH_TERM.match(search, pos)
        if match is None:
            raise ValueError(f"unsupported search term <{search[pos:]}>")
        field, value = match.groups()
        if value.startswith('"'):
            value = re.sub(r"\\(.)", r"\1", value[1:-1])
        terms.append((field, value))
        pos = match.end()
    return terms


def search_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def matches(
    collection: str, record: Dict[str, Any], terms: List[Tuple[str, str]]
) -> bool:
    # Match the write shape and the computed read keys, eg the hostgroup title.
    rendered = render(collection, record) | record
    for field, value in terms:
        if field not in rendered or search_value(rendered[field]) != value:
            return False
    return True


def query(
    db: Database,
    collection: str,
    search: str | None,
    page: int,
    per_page: int | None,
) -> Dict[str, Any]:
    """Return the search envelope for one page of `collection`."""
    check_parent(db, collection)

    records = list(db.collections.get(collection, {}).values())
    terms = parse_search(search) if search else []
    found = [render(collection, _) for _ in records if matches(collection, _, terms)]

    per_page = per_page or DEFAULT_PER_PAGE
    start = (page - 1) * per_page
    return {
        "total": len(records),
        "subtotal": len(found),
        "page": page,
        "per_page": per_page,
        "search": search,
        "sort": {"by": None, "order": None},
        "results": found[start : start + per_page],
    }


# ----------------------------------------------------------------------
# Tasks.
# ----------------------------------------------------------------------


def sync_repository(db: Database, obj_id: int) -> Dict[str, Any]:
    """Return the task that synchronised the Katello repository `obj_id`."""
    repo = get_item(db, "katello/repositories", obj_id)

    ts = now()
    task = {
        "id": str(uuid.uuid4()),
        "label": "Actions::Katello::Repository::Sync",
        "pending": False,
        "action": f"Synchronize repository '{repo.get('name', '')}'",
        "username": "admin",
        "started_at": ts,
        "ended_at": ts,
        "state": "stopped",
        "result": "success",
        "progress": 1.0,
        "humanized": {"action": "Synchronize", "errors": []},
    }
    db.tasks[task["id"]] = task
    return task


def get_task(db: Database, task_id: str) -> Dict[str, Any]:
    try:
        return db.tasks[task_id]
    except KeyError:
        raise NotFound(f"tasks/{task_id}")
