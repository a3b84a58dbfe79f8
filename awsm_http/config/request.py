"""Request definition models.

A request definition is the persisted, user-edited form of a request. Every
string field may contain ``{{...}}`` templates that are only resolved when the
request is materialized for sending.
"""

import uuid
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, model_validator

from awsm_http.config.common import ApiKeyLocation, BodyType, HttpMethod, WebSocketMode


def new_id() -> str:
    return str(uuid.uuid4())


class KeyValueItem(BaseModel):
    """A toggleable key/value row (query param, header, url-encoded field, variable)."""

    id: str = Field(default_factory=new_id)
    key: str = ""
    value: str = ""
    enabled: bool = True
    description: Optional[str] = None

    model_config = {"populate_by_name": True}


class FormDataItem(KeyValueItem):
    """Multipart form row. File rows carry a local path in ``value``."""

    type: Literal["text", "file"] = "text"


class RequestBody(BaseModel):
    type: BodyType = Field(default=BodyType.NONE, validation_alias=AliasChoices("type", "kind"))
    content: str = ""
    form_data: List[FormDataItem] = Field(default_factory=list, alias="formData")
    form_url_encoded: List[KeyValueItem] = Field(default_factory=list, alias="formUrlEncoded")

    model_config = {"populate_by_name": True}


class NoAuth(BaseModel):
    type: Literal["none"] = "none"


class BasicAuth(BaseModel):
    type: Literal["basic"] = "basic"
    username: str = ""
    password: str = ""


class BearerAuth(BaseModel):
    type: Literal["bearer"] = "bearer"
    token: str = ""


class ApiKeyAuth(BaseModel):
    type: Literal["apikey"] = "apikey"
    key: str = ""
    value: str = ""
    add_to: ApiKeyLocation = Field(default=ApiKeyLocation.HEADER, alias="addTo")

    model_config = {"populate_by_name": True}


class OAuth2Auth(BaseModel):
    type: Literal["oauth2"] = "oauth2"
    grant_type: str = Field(default="client_credentials", alias="grantType")
    access_token_url: str = Field(default="", alias="accessTokenUrl")
    client_id: str = Field(default="", alias="clientId")
    client_secret: str = Field(default="", alias="clientSecret")
    scope: str = ""
    token: str = ""

    model_config = {"populate_by_name": True}


AuthConfig = Annotated[
    Union[NoAuth, BasicAuth, BearerAuth, ApiKeyAuth, OAuth2Auth],
    Field(discriminator="type"),
]


def _flatten_auth(auth: Any) -> Any:
    """Accept the nested ``{"type": "basic", "basic": {...}}`` persisted shape."""
    if not isinstance(auth, dict):
        return auth
    auth_type = auth.get("type") or "none"
    nested = auth.get(auth_type)
    flat = {k: v for k, v in auth.items() if k not in ("basic", "bearer", "apikey", "oauth2")}
    if isinstance(nested, dict):
        flat.update(nested)
    flat["type"] = auth_type
    return flat


class RequestDefinition(BaseModel):
    """Persisted HTTP request, templated."""

    url: str = ""
    method: HttpMethod = HttpMethod.GET
    params: List[KeyValueItem] = Field(default_factory=list)
    headers: List[KeyValueItem] = Field(default_factory=list)
    body: RequestBody = Field(default_factory=RequestBody)
    auth: AuthConfig = Field(default_factory=NoAuth)
    pre_request_script: str = Field(default="", alias="preRequestScript")
    test_script: str = Field(default="", alias="testScript")

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def normalize_persisted_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("auth") is None:
            data.pop("auth", None)
        else:
            data["auth"] = _flatten_auth(data["auth"])
        if isinstance(data.get("method"), str):
            data["method"] = data["method"].upper()
        for key in ("params", "headers"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    def enabled_headers(self) -> Dict[str, str]:
        return {h.key: h.value for h in self.headers if h.enabled and h.key}


class WebSocketDefinition(BaseModel):
    """Persisted WebSocket endpoint."""

    url: str = ""
    mode: WebSocketMode = WebSocketMode.RAW
    message: str = ""
