"""A minimal in-memory Foreman API for tests and local development.

It implements the subset of the Foreman, Katello and Foreman Tasks APIs the
provider uses: wrapped payloads, search with pagination and the read shapes
with nested objects.

"""

import logging
import os
import secrets
from contextlib import asynccontextmanager
from typing import Annotated, Any, Dict, cast

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

import fakeman.store as store
from fakeman.store import Database

# Convenience.
logit = logging.getLogger("fakeman")

security = HTTPBasic(auto_error=False)


def get_db(request: Request) -> Database:
    """FastAPI dependency to extract the database."""
    return cast(Database, request.app.extra["db"])


def is_authenticated(
    request: Request,
    credentials: Annotated[HTTPBasicCredentials | None, Depends(security)],
):
    """FastAPI dependency: verify basic auth if the server has credentials."""
    expected = request.app.extra["credentials"]
    if expected is None:
        return

    if credentials is not None:
        user_ok = secrets.compare_digest(credentials.username, expected[0])
        pass_ok = secrets.compare_digest(credentials.password, expected[1])
        if user_ok and pass_ok:
            return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unable to authenticate user",
        headers={"WWW-Authenticate": "Basic"},
    )


d_db = Annotated[Database, Depends(get_db)]
router = APIRouter()


def not_found(path: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Resource {path} not found",
    )


def unprocessable(reason: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=reason
    )


async def read_body(request: Request) -> Dict[str, Any]:
    try:
        return store.unwrap(await request.json())
    except ValueError as err:
        raise unprocessable(str(err))


# ----------------------------------------------------------------------
# Foreman Tasks.
# ----------------------------------------------------------------------


@router.get("/foreman_tasks/api/tasks/{task_id}")
def get_task(task_id: str, db: d_db) -> Dict[str, Any]:
    try:
        return store.get_task(db, task_id)
    except store.NotFound:
        raise not_found(f"tasks/{task_id}")


# ----------------------------------------------------------------------
# Foreman and Katello resources.
# ----------------------------------------------------------------------


@router.get("/api/{path:path}")
@router.get("/katello/api/{path:path}")
def get_resource(
    path: str,
    request: Request,
    db: d_db,
    search: str | None = None,
    page: int = 1,
    per_page: int | None = None,
) -> Dict[str, Any]:
    """Return a single entity or one page of search results."""
    if request.url.path.startswith("/katello/"):
        path = f"katello/{path}"
    collection, obj_id, _ = store.split_path(path)

    try:
        if obj_id is None:
            return store.query(db, collection, search, page, per_page)
        return store.read(db, collection, obj_id)
    except store.NotFound as err:
        raise not_found(str(err))
    except ValueError as err:
        raise unprocessable(str(err))


@router.post("/api/{path:path}", status_code=status.HTTP_201_CREATED)
@router.post("/katello/api/{path:path}", status_code=status.HTTP_201_CREATED)
async def post_resource(path: str, request: Request, db: d_db) -> Dict[str, Any]:
    if request.url.path.startswith("/katello/"):
        path = f"katello/{path}"
    collection, obj_id, action = store.split_path(path)

    is_repo = collection == "katello/repositories"
    try:
        if is_repo and action == "sync" and obj_id is not None:
            return store.sync_repository(db, obj_id)
        if obj_id is not None or action:
            raise not_found(path)
        ret = store.create(db, collection, await read_body(request))
    except store.NotFound as err:
        raise not_found(str(err))

    logit.info("created", {"collection": collection, "id": ret["id"]})
    return ret


@router.put("/api/{path:path}")
@router.put("/katello/api/{path:path}")
async def put_resource(path: str, request: Request, db: d_db) -> Dict[str, Any]:
    if request.url.path.startswith("/katello/"):
        path = f"katello/{path}"
    collection, obj_id, _ = store.split_path(path)
    if obj_id is None:
        raise not_found(path)

    try:
        ret = store.update(db, collection, obj_id, await read_body(request))
    except store.NotFound as err:
        raise not_found(str(err))

    logit.info("updated", {"collection": collection, "id": obj_id})
    return ret


@router.delete("/api/{path:path}")
@router.delete("/katello/api/{path:path}")
def delete_resource(path: str, request: Request, db: d_db) -> Dict[str, Any]:
    if request.url.path.startswith("/katello/"):
        path = f"katello/{path}"
    collection, obj_id, _ = store.split_path(path)
    if obj_id is None:
        raise not_found(path)

    try:
        ret = store.delete(db, collection, obj_id)
    except store.NotFound as err:
        raise not_found(str(err))

    logit.info("deleted", {"collection": collection, "id": obj_id})
    return ret


# ----------------------------------------------------------------------
# Setup Server.
# ----------------------------------------------------------------------


@asynccontextmanager
async def lifespan(_: FastAPI):
    logit.info("server startup complete")
    yield
    logit.info("server shutdown complete")


async def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Return errors in the `{"error": {"message": ...}}` format of Foreman."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"message": exc.detail}},
        headers=exc.headers,
    )


def make_app() -> FastAPI:
    """Return a fully configured FastAPI instance with an empty database.

    Set `FAKEMAN_USERNAME` and `FAKEMAN_PASSWORD` to require basic auth.

    """
    username = os.getenv("FAKEMAN_USERNAME", "")
    password = os.getenv("FAKEMAN_PASSWORD", "")

    app = FastAPI(
        title="Fake Foreman",
        summary="",
        description="",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.extra["db"] = Database()
    app.extra["credentials"] = (username, password) if username else None

    app.include_router(router, dependencies=[Depends(is_authenticated)])
    app.add_exception_handler(HTTPException, handler=http_error_handler)  # type: ignore
    return app
