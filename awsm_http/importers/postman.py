"""Postman collection (v2.x) import."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from awsm_http.config import (
    ApiKeyAuth,
    ApiKeyLocation,
    BasicAuth,
    BearerAuth,
    BodyType,
    FormDataItem,
    HttpMethod,
    KeyValueItem,
    NodeType,
    NoAuth,
    RequestBody,
    RequestDefinition,
)
from awsm_http.errors import ImportFormatError
from awsm_http.utils import logger
from awsm_http.workspace import Workspace


DEFAULT_COLLECTION_NAME = "Imported Collection"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return _text(value[0]) if value else ""
    return str(value)


def _rows(entries: Optional[List[Dict[str, Any]]]) -> List[KeyValueItem]:
    return [
        KeyValueItem(
            key=_text(e.get("key")),
            value=_text(e.get("value")),
            enabled=not e.get("disabled", False),
            description=_text(e.get("description")) or None,
        )
        for e in entries or []
        if isinstance(e, dict)
    ]


def _lookup(entries: Any, key: str) -> str:
    """Value of ``key`` in Postman's ``[{"key": ..., "value": ...}]`` auth lists."""
    if isinstance(entries, dict):
        return _text(entries.get(key))
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("key") == key:
            return _text(entry.get("value"))
    return ""


def _body(body: Optional[Dict[str, Any]]) -> RequestBody:
    if not body:
        return RequestBody()
    mode = body.get("mode")

    if mode == "raw":
        raw = body.get("raw") or ""
        try:
            json.loads(raw)
            body_type = BodyType.JSON
        except ValueError:
            body_type = BodyType.TEXT
        return RequestBody(type=body_type, content=raw)

    if mode == "formdata":
        items = []
        for field in body.get("formdata") or []:
            field_type = "file" if field.get("type") == "file" else "text"
            value = field.get("src") if field_type == "file" and field.get("value") is None else field.get("value")
            items.append(FormDataItem(
                key=_text(field.get("key")),
                value=_text(value),
                type=field_type,
                enabled=not field.get("disabled", False),
            ))
        return RequestBody(type=BodyType.FORM_DATA, form_data=items)

    if mode == "urlencoded":
        return RequestBody(type=BodyType.URL_ENCODED, form_url_encoded=_rows(body.get("urlencoded")))

    logger.debug(f"Unsupported Postman body mode '{mode}', importing without body")
    return RequestBody()


def _auth(auth: Optional[Dict[str, Any]]):
    if not auth:
        return NoAuth()
    auth_type = auth.get("type")

    if auth_type == "bearer":
        entries = auth.get("bearer")
        token = _lookup(entries, "token")
        if not token and isinstance(entries, list) and entries:
            token = _text(entries[0].get("value"))
        return BearerAuth(token=token)

    if auth_type == "basic":
        entries = auth.get("basic")
        return BasicAuth(username=_lookup(entries, "username"), password=_lookup(entries, "password"))

    if auth_type == "apikey":
        entries = auth.get("apikey")
        location = (_lookup(entries, "in") or ApiKeyLocation.HEADER.value).lower()
        if location not in {loc.value for loc in ApiKeyLocation}:
            logger.warning(f"Unsupported Postman API key location '{location}', sending it as a header")
            location = ApiKeyLocation.HEADER.value
        return ApiKeyAuth(
            key=_lookup(entries, "key"),
            value=_lookup(entries, "value"),
            add_to=location,
        )

    if auth_type not in (None, "noauth", "inherit"):
        logger.debug(f"Unsupported Postman auth type '{auth_type}', importing without auth")
    return NoAuth()


def request_from_postman(request: Union[Dict[str, Any], str]) -> RequestDefinition:
    """Map a Postman request object onto a RequestDefinition.

    Postman scripts are JavaScript and are not carried over.

    Raises:
        ImportFormatError: if the request uses a method outside ``HttpMethod``
    """
    if isinstance(request, str):
        request = {"url": request}
    if not isinstance(request, dict):
        raise ImportFormatError(f"Unsupported Postman request: {type(request).__name__}")

    method = _text(request.get("method") or "GET").upper()
    if method not in {m.value for m in HttpMethod}:
        raise ImportFormatError(f"Unsupported HTTP method '{method}'")

    url = request.get("url")
    if isinstance(url, dict):
        raw_url = url.get("raw") or ""
        params = _rows(url.get("query"))
    else:
        raw_url = url or ""
        params = []

    return RequestDefinition(
        url=raw_url,
        method=method,
        params=params,
        headers=_rows(request.get("header")),
        body=_body(request.get("body")),
        auth=_auth(request.get("auth")),
    )


def _import_items(workspace: Workspace, items: List[Dict[str, Any]], parent_id: str) -> int:
    count = 0
    for item in items:
        if not isinstance(item, dict):
            continue
        if "item" in item:
            folder_id = workspace.add_node(parent_id, NodeType.COLLECTION, item.get("name") or "Folder")
            count += _import_items(workspace, item.get("item") or [], folder_id)
        elif "request" in item:
            name = item.get("name") or "Request"
            try:
                definition = request_from_postman(item["request"])
            except ImportFormatError as e:
                logger.warning(f"Skipping Postman item '{name}': {e}")
                continue
            workspace.add_node(parent_id, NodeType.REQUEST, name, data=definition)
            count += 1
    return count


def import_postman_collection(workspace: Workspace, data: Dict[str, Any]) -> str:
    """Add a Postman collection to ``workspace`` as a new top-level node.

    Returns:
        Id of the created workspace node
    """
    if not isinstance(data, dict):
        raise ImportFormatError("A Postman collection must be a JSON object")
    name = (data.get("info") or {}).get("name") or DEFAULT_COLLECTION_NAME
    root_id = workspace.add_node(None, NodeType.WORKSPACE, name)
    count = _import_items(workspace, data.get("item") or [], root_id)
    logger.info(f"Imported {count} request(s) from Postman collection '{name}'")
    return root_id


def load_postman_collection(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return json.load(f)
