from __future__ import annotations

import json
import logging
import os
from typing import Optional, List, Dict, Any, ClassVar

import httplib2
from attr import define, evolve
from google.auth import default as default_credentials
from google.auth.credentials import Credentials
from google.oauth2 import service_account
from googleapiclient import discovery
from googleapiclient.discovery_cache.base import Cache as GoogleApiClientCache
from googleapiclient.errors import HttpError

from fixreconcile.errors import TransportError, NotFoundError, ValidationError
from fixreconcile.types import Json

log = logging.getLogger("fix.reconcile.client")
logging.getLogger("googleapiclient").setLevel(logging.ERROR)

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]

# Store the discovery function as separate variable.
# This is used in tests to change the builder function.
_discovery_function = discovery.build


class MemoryCache(GoogleApiClientCache):
    _cache: ClassVar[Dict[str, Any]] = {}

    def get(self, url: str) -> Any:
        return MemoryCache._cache.get(url)

    def set(self, url: str, content: Any) -> None:
        MemoryCache._cache[url] = content


def load_credentials(path: Optional[str]) -> Credentials:
    """
    Load the credentials from a service account file.
    Without a file, the application default credentials are used.
    """
    if not path:
        credentials, _ = default_credentials(scopes=SCOPES)
        return credentials
    file = os.path.expanduser(path)
    if os.path.isfile(file):
        return service_account.Credentials.from_service_account_file(file, scopes=SCOPES)
    else:
        raise ValueError(f"No credentials file found at {file}")


@define(eq=False, slots=False)
class GcpApiSpec:
    """
    Describes one collection of the compute API and how a single object of it is addressed.
    request_parameter values are templates, which are rendered with the call parameters.
    """

    service: str
    version: str
    accessors: List[str]
    action: str
    request_parameter: Dict[str, str]
    get_identifier: Optional[str] = None
    delete_identifier: Optional[str] = None
    path: Optional[str] = None

    def for_insert(self) -> GcpApiSpec:
        return evolve(self, action="insert", request_parameter=self.request_parameter.copy())

    def for_get(self) -> GcpApiSpec:
        params = self.request_parameter.copy()
        params[self._get_identifier] = "{name}"
        return evolve(self, action="get", request_parameter=params)

    def for_delete(self) -> GcpApiSpec:
        params = self.request_parameter.copy()
        params[self._delete_identifier] = "{name}"
        return evolve(self, action="delete", request_parameter=params)

    @property
    def _get_identifier(self) -> str:
        return (
            self.get_identifier or self.accessors[-1][:-1]
        )  # Poor persons `singularize(), i.e. ["addresses"] -> "addresse"`: define get_identifier if irregular

    @property
    def _delete_identifier(self) -> str:
        return self.delete_identifier or self._get_identifier

    @property
    def fqn(self) -> str:
        return f"{self.service}.{self.version}.{'.'.join(self.accessors)}.{self.action}"

    def render(self, params: Dict[str, Any]) -> Dict[str, str]:
        try:
            return {k: v.format_map(params) for k, v in self.request_parameter.items()}
        except KeyError as e:
            raise ValidationError(f"Can not call {self.fqn}: parameter {e} is not defined", str(e).strip("'")) from e

    def url(self, **params: Any) -> Optional[str]:
        if self.path is None:
            return None
        return "https://compute.googleapis.com/compute/v1/" + self.path.format_map(
            {k: v for k, v in params.items() if v is not None}
        )


class GcpClient:
    """
    Thin wrapper around the google api client.
    Every call is synchronous: the mutating calls return the operation handle, which is awaited by the poller.
    """

    def __init__(
        self,
        credentials: Optional[Credentials],
        *,
        project_id: Optional[str] = None,
        region: Optional[str] = None,
        zone: Optional[str] = None,
    ) -> None:
        self.credentials = credentials
        self.project_id = project_id
        self.region = region
        self.zone = zone
        self._services: Dict[str, Any] = {}

    def get(self, api_spec: GcpApiSpec, **kwargs: Any) -> Json:
        return self.call_single(api_spec.for_get(), None, **kwargs)

    def insert(self, api_spec: GcpApiSpec, body: Json, **kwargs: Any) -> Json:
        return self.call_single(api_spec.for_insert(), body, **kwargs)

    def delete(self, api_spec: GcpApiSpec, **kwargs: Any) -> Json:
        return self.call_single(api_spec.for_delete(), None, **kwargs)

    def service(self, api_spec: GcpApiSpec) -> Any:
        key = f"{api_spec.service}:{api_spec.version}"
        if key not in self._services:
            self._services[key] = _discovery_function(
                api_spec.service, api_spec.version, credentials=self.credentials, cache=MemoryCache()
            )
        return self._services[key]

    def call_single(self, api_spec: GcpApiSpec, body: Optional[Any] = None, **kwargs: Any) -> Json:
        """
        Call the api method described by the spec.
        :raises NotFoundError: if the api answers with 404.
        :raises TransportError: for all other http and network errors.
        """
        executor = self.service(api_spec)
        for accessor in api_spec.accessors:
            executor = getattr(executor, accessor)()
        defaults = {"project": self.project_id, "region": self.region, "zone": self.zone}
        params_map = {k: v for k, v in {**defaults, **kwargs}.items() if v is not None}
        params: Dict[str, Any] = api_spec.render(params_map)
        if body:
            params.update({"body": body})
        log.debug(f"Calling {api_spec.fqn} with {params}")
        try:
            request = getattr(executor, api_spec.action)(**params)
            result: Json = request.execute()
            return result
        except HttpError as e:
            raise self.translate_http_error(api_spec, e, api_spec.url(**params_map)) from e
        except (httplib2.HttpLib2Error, OSError) as e:
            raise TransportError(f"Can not call {api_spec.fqn}: {e}", url=api_spec.url(**params_map)) from e

    @staticmethod
    def translate_http_error(api_spec: GcpApiSpec, error: HttpError, url: Optional[str]) -> TransportError:
        status = error.resp.status if error.resp is not None else None
        status_code = int(status) if status is not None else None
        message = str(error)
        try:
            content = json.loads(error.content)
            if isinstance(content, dict) and isinstance(err := content.get("error"), dict):
                message = err.get("message", message)
        except (ValueError, TypeError):
            pass
        text = f"{api_spec.fqn} failed with status {status_code}: {message}"
        if status_code == 404:
            return NotFoundError(text, status_code, url)
        return TransportError(text, status_code, url)
