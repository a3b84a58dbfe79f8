"""Turn a templated request definition into a dispatch-ready request."""

import base64
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote

from awsm_http.config import (
    ApiKeyAuth,
    ApiKeyLocation,
    BasicAuth,
    BearerAuth,
    BodyType,
    ConcreteRequest,
    HttpMethod,
    OAuth2Auth,
    RequestDefinition,
)
from awsm_http.dynamic_data import DEFAULT_LOCALE, DataGenerator, get_generator
from awsm_http.variables import resolve


DEFAULT_CONTENT_TYPES: Dict[BodyType, str] = {
    BodyType.JSON: "application/json",
    BodyType.XML: "application/xml",
    BodyType.HTML: "text/html",
    BodyType.TEXT: "text/plain",
    BodyType.BINARY: "application/octet-stream",
    BodyType.URL_ENCODED: "application/x-www-form-urlencoded",
}


def encode_component(value: str) -> str:
    """Percent-encode like JavaScript's ``encodeURIComponent``."""
    return quote(value, safe="!~*'()")


def has_header(headers: Mapping[str, str], name: str) -> bool:
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


def set_header(headers: Dict[str, str], name: str, value: str) -> None:
    """Set ``name``, replacing any existing header that differs only in case."""
    lowered = name.lower()
    for key in [k for k in headers if k.lower() == lowered]:
        del headers[key]
    headers[name] = value


def append_query(url: str, pairs: List[Tuple[str, str]]) -> str:
    """Append already-encoded ``key=value`` pairs to the query of ``url``."""
    if not pairs:
        return url
    base, hash_mark, fragment = url.partition("#")
    separator = "&" if "?" in base else "?"
    if base.endswith(("?", "&")):
        separator = ""
    base += separator + "&".join(f"{k}={v}" for k, v in pairs)
    return base + hash_mark + fragment


def _existing_query(url: str) -> List[Tuple[str, str]]:
    _, _, query = url.partition("#")[0].partition("?")
    return parse_qsl(query, keep_blank_values=True)


class _Resolver:
    """Binds scope and generator so every field resolves the same way."""

    def __init__(self, scope: Mapping[str, str], locale: str, generator: Optional[DataGenerator]):
        self.scope = scope
        self.locale = locale
        self.generator = generator

    def __call__(self, text: str) -> str:
        if self.generator is None and "{{" in (text or ""):
            self.generator = get_generator(self.locale)
        return resolve(text or "", self.scope, self.locale, self.generator)

    def rows(self, items) -> List[Tuple[str, str]]:
        pairs = []
        for item in items:
            if not item.enabled:
                continue
            key = self(item.key)
            if key:
                pairs.append((key, self(item.value)))
        return pairs


def materialize(
    definition: RequestDefinition,
    scope: Mapping[str, str],
    locale: str = DEFAULT_LOCALE,
    generator: Optional[DataGenerator] = None,
) -> ConcreteRequest:
    """Resolve every templated field of ``definition`` against ``scope``.

    Disabled params, headers and form rows are dropped entirely. Auth is
    turned into headers or query parameters, overriding a user-supplied
    ``Authorization`` header.

    Args:
        definition: Stored request definition
        scope: Merged variable scope for this send
        locale: Locale for dynamic data calls
        generator: Generator to use instead of the shared one for ``locale``

    Returns:
        ConcreteRequest ready for dispatch
    """
    r = _Resolver(scope, locale, generator)

    url = r(definition.url).strip()
    existing = set(_existing_query(url))
    query = [
        (encode_component(k), encode_component(v))
        for k, v in r.rows(definition.params)
        if (k, v) not in existing
    ]
    url = append_query(url, query)

    headers: Dict[str, str] = {}
    for key, value in r.rows(definition.headers):
        headers[key] = value

    url = _apply_auth(definition, r, url, headers)

    request = ConcreteRequest(method=definition.method, url=url, headers=headers)
    body = definition.body
    if definition.method == HttpMethod.GET or body.type == BodyType.NONE:
        return request

    request.body_type = body.type
    if body.type == BodyType.FORM_DATA:
        for item in body.form_data:
            if not item.enabled:
                continue
            key = r(item.key)
            if not key:
                continue
            if item.type == "file":
                request.files.append((key, r(item.value)))
            else:
                request.form.append((key, r(item.value)))
        return request

    if body.type == BodyType.URL_ENCODED:
        pairs = r.rows(body.form_url_encoded)
        request.form = pairs
        request.body = "&".join(f"{encode_component(k)}={encode_component(v)}" for k, v in pairs)
    else:
        request.body = r(body.content)

    content_type = DEFAULT_CONTENT_TYPES.get(body.type)
    if content_type and not has_header(request.headers, "Content-Type"):
        request.headers["Content-Type"] = content_type
    return request


def _apply_auth(definition: RequestDefinition, r: _Resolver, url: str, headers: Dict[str, str]) -> str:
    auth = definition.auth

    if isinstance(auth, BasicAuth):
        username, password = r(auth.username), r(auth.password)
        if username or password:
            credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
            set_header(headers, "Authorization", f"Basic {credentials}")

    elif isinstance(auth, (BearerAuth, OAuth2Auth)):
        token = r(auth.token)
        if token:
            set_header(headers, "Authorization", f"Bearer {token}")

    elif isinstance(auth, ApiKeyAuth):
        key, value = r(auth.key), r(auth.value)
        if key and value:
            if auth.add_to == ApiKeyLocation.QUERY:
                url = append_query(url, [(key, encode_component(value))])
            else:
                set_header(headers, key, value)

    return url
