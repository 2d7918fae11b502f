"""REST client for the Octopus Deploy API built on requests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import requests

from ..utils.logging import get_logger
from .errors import ItemNotFoundError, OctopusAPIError
from .models import Account, DeploymentProcess, Feed, Project

if TYPE_CHECKING:
    from ..config import ServerConfig

logger = get_logger(__name__)


class OctopusClient:
    """Session-backed client exposing one service per API collection."""

    def __init__(
        self,
        config: "ServerConfig",
        *,
        session_factory: Callable[[], requests.Session] | None = None,
    ) -> None:
        if not config.address:
            raise ValueError("Octopus server address is required")
        if not config.api_key:
            raise ValueError("Octopus API key is required")

        self.config = config
        self.session = (session_factory or requests.Session)()
        self.session.headers.update(
            {
                "X-Octopus-ApiKey": config.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

        proxy = config.proxy or os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
        if proxy:
            self.session.proxies = {"http": proxy, "https": proxy}
            logger.info("Octopus client using proxy: %s", proxy)

        self.base_url = config.address.rstrip("/")
        self.projects = ProjectService(self)
        self.deployment_processes = DeploymentProcessService(self)
        self.feeds = FeedService(self)
        self.accounts = AccountService(self)

    def url(self, path: str) -> str:
        prefix = f"/api/{self.config.space_id}" if self.config.space_id else "/api"
        return f"{self.base_url}{prefix}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        url = self.url(path)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method,
                url,
                json=body,
                timeout=self.config.timeout,
                verify=self.config.verify_ssl,
            )
        except requests.exceptions.RequestException as exc:
            raise OctopusAPIError(f"{method} {url} failed: {exc}") from exc

        if response.status_code == 404:
            raise ItemNotFoundError(f"{method} {url}: item not found", status_code=404)

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            message, errors = _error_details(response)
            raise OctopusAPIError(
                f"{method} {url} returned {response.status_code}: {message}",
                status_code=response.status_code,
                errors=errors,
            ) from exc

        if not response.content:
            return None
        return response.json()

    def get(self, path: str) -> Dict[str, Any]:
        return self.request("GET", path) or {}

    def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", path, body=body) or {}

    def put(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", path, body=body) or {}

    def delete(self, path: str) -> None:
        self.request("DELETE", path)


def _error_details(response: requests.Response) -> tuple[str, list[str]]:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500] or response.reason or "", []
    if not isinstance(data, dict):
        return str(data)[:500], []
    return data.get("ErrorMessage", "") or "", list(data.get("Errors") or [])


class ProjectService:
    def __init__(self, client: OctopusClient) -> None:
        self.client = client

    def get(self, project_id: str) -> Project:
        return Project.from_dict(self.client.get(f"projects/{project_id}"))


class DeploymentProcessService:
    def __init__(self, client: OctopusClient) -> None:
        self.client = client

    def get(self, process_id: str) -> DeploymentProcess:
        return DeploymentProcess.from_dict(self.client.get(f"deploymentprocesses/{process_id}"))

    def update(self, process: DeploymentProcess) -> DeploymentProcess:
        data = self.client.put(f"deploymentprocesses/{process.id}", process.to_dict())
        return DeploymentProcess.from_dict(data)


class FeedService:
    def __init__(self, client: OctopusClient) -> None:
        self.client = client

    def get(self, feed_id: str) -> Feed:
        return Feed.from_dict(self.client.get(f"feeds/{feed_id}"))

    def add(self, feed: Feed) -> Feed:
        return Feed.from_dict(self.client.post("feeds", feed.to_dict()))

    def update(self, feed: Feed) -> Feed:
        return Feed.from_dict(self.client.put(f"feeds/{feed.id}", feed.to_dict()))

    def delete(self, feed_id: str) -> None:
        self.client.delete(f"feeds/{feed_id}")


class AccountService:
    def __init__(self, client: OctopusClient) -> None:
        self.client = client

    def get(self, account_id: str) -> Account:
        return Account.from_dict(self.client.get(f"accounts/{account_id}"))

    def add(self, account: Account) -> Account:
        return Account.from_dict(self.client.post("accounts", account.to_dict()))

    def update(self, account: Account) -> Account:
        return Account.from_dict(self.client.put(f"accounts/{account.id}", account.to_dict()))

    def delete(self, account_id: str) -> None:
        self.client.delete(f"accounts/{account_id}")
