"""REST client for the node classifier API."""

from __future__ import annotations

import logging
from typing import Any

import requests

from ..config import ClassifierConfig
from ..exceptions import ClassifierAPIError
from . import CREATED, UNCHANGED, UPDATED
from .groups import GroupSpec
from .overlay import merge_overlay, merge_variables

logger = logging.getLogger(__name__)

# Parent id the classifier uses for the "All Nodes" root group
ROOT_GROUP_ID = "00000000-0000-4000-8000-000000000000"


class ClassifierClient:
    """Thin wrapper around the classifier groups endpoints, plus name-keyed upsert."""

    def __init__(self, config: ClassifierConfig):
        self._base = f"{config.base_url.rstrip('/')}/classifier-api/{config.api_version}"
        self._environment = config.environment
        self._session = requests.Session()
        self._session.headers["Content-Type"] = "application/json"
        if config.token:
            self._session.headers["X-Authentication"] = config.token
        if config.cert:
            self._session.cert = (config.cert, config.key)
        self._session.verify = config.cacert or config.verify_ssl
        self._timeout = config.timeout

    # ── Groups ──────────────────────────────────────────────────────

    def list_groups(self) -> list[dict[str, Any]]:
        return self._json(self._get("/groups"))

    def create_group(self, data: dict[str, Any]) -> str:
        """Create a group and return its id (taken from the 303 Location header)."""
        resp = self._post("/groups", json=data, allow_redirects=False)
        location = resp.headers.get("Location", "")
        if location:
            return location.rstrip("/").rsplit("/", 1)[-1]
        return self._json(resp).get("id", "")

    def update_group(self, group_id: str, delta: dict[str, Any]) -> dict[str, Any]:
        """Post a delta; fields not present in ``delta`` are left alone."""
        resp = self._post(f"/groups/{group_id}", json={"id": group_id, **delta})
        return self._json(resp)

    # ── Upsert ──────────────────────────────────────────────────────

    def upsert_group(self, spec: GroupSpec) -> str:
        """Create ``spec`` if no group has its name, otherwise merge it in."""
        by_name = {g["name"]: g for g in self.list_groups()}
        existing = by_name.get(spec.name)

        parent_id = ROOT_GROUP_ID
        if spec.parent_name is not None:
            parent = by_name.get(spec.parent_name)
            if parent is None:
                raise ClassifierAPIError(f"Parent group '{spec.parent_name}' not found")
            parent_id = parent["id"]

        if existing is None:
            logger.info("Creating group %s", spec.name, extra={"group": spec.name})
            self.create_group(self._create_body(spec, parent_id))
            return CREATED

        delta = self._update_delta(spec, existing, parent_id)
        if not delta:
            logger.debug("Group %s already up to date", spec.name)
            return UNCHANGED

        logger.info(
            "Updating group %s (%s)", spec.name, ", ".join(sorted(delta)),
            extra={"group": spec.name},
        )
        self.update_group(existing["id"], delta)
        return UPDATED

    def _create_body(self, spec: GroupSpec, parent_id: str) -> dict[str, Any]:
        body: dict[str, Any] = {
            "name": spec.name,
            "parent": parent_id,
            "environment": self._environment,
            "rule": spec.rule.to_classifier(),
            "classes": merge_overlay(None, spec.class_overlay),
            "variables": merge_variables(None, spec.variables),
        }
        if spec.data_overlay:
            body["config_data"] = merge_overlay(None, spec.data_overlay)
        return body

    @staticmethod
    def _update_delta(spec: GroupSpec, existing: dict[str, Any], parent_id: str) -> dict[str, Any]:
        """Return only the fields whose merged value differs from ``existing``."""
        desired: dict[str, Any] = {"rule": spec.rule.to_classifier()}
        if spec.lifecycle.enforces_parent:
            desired["parent"] = parent_id
        if spec.class_overlay:
            desired["classes"] = merge_overlay(existing.get("classes"), spec.class_overlay)
        if spec.data_overlay:
            desired["config_data"] = merge_overlay(existing.get("config_data"), spec.data_overlay)
        if spec.variables:
            desired["variables"] = merge_variables(existing.get("variables"), spec.variables)

        return {k: v for k, v in desired.items() if existing.get(k) != v}

    # ── Internal HTTP helpers ───────────────────────────────────────

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise ClassifierAPIError(
                f"Invalid JSON in HTTP {resp.status_code} response: {exc}",
                status_code=resp.status_code,
                response_body=resp.text,
            ) from exc

    def _get(self, path: str, params: dict | None = None) -> requests.Response:
        return self._request("GET", path, params=params)

    def _post(self, path: str, json: Any = None, **kwargs) -> requests.Response:
        return self._request("POST", path, json=json, **kwargs)

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self._base}{path}"
        kwargs.setdefault("timeout", self._timeout)
        logger.debug("%s %s", method, path)

        try:
            resp = self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise ClassifierAPIError(f"Request failed: {exc}") from exc

        if resp.status_code >= 400:
            raise ClassifierAPIError(
                f"HTTP {resp.status_code} on {method} {path}: {resp.text}",
                status_code=resp.status_code,
                response_body=resp.text,
            )

        return resp
