"""Tests for the classifier REST client."""

import json

import pytest
import requests
import responses

from ha_classifier.classifier import CREATED, UNCHANGED, UPDATED
from ha_classifier.classifier.client import ROOT_GROUP_ID, ClassifierClient
from ha_classifier.classifier.groups import MUTATE, GroupSpec, ensure_present_if
from ha_classifier.classifier.reconciler import reconcile
from ha_classifier.classifier.rules import Equals, Or, RegexMatch
from ha_classifier.config import ClassifierConfig
from ha_classifier.exceptions import ClassifierAPIError, GroupApplyError

BASE = "https://pe.example:4433/classifier-api/v1"
INFRA_ID = "11111111-1111-4111-8111-111111111111"
MASTER_ID = "22222222-2222-4222-8222-222222222222"


@pytest.fixture
def client():
    return ClassifierClient(ClassifierConfig(base_url="https://pe.example:4433", token="tok"))


def _groups(*extra):
    return [
        {"id": ROOT_GROUP_ID, "name": "All Nodes", "parent": ROOT_GROUP_ID, "rule": None},
        {"id": INFRA_ID, "name": "PE Infrastructure", "parent": ROOT_GROUP_ID,
         "classes": {"puppet_enterprise": {"puppet_master_host": "m1"}}},
        *extra,
    ]


def _master_group(**fields):
    group = {
        "id": MASTER_ID,
        "name": "PE Master",
        "parent": INFRA_ID,
        "rule": ["or", ["=", "name", "m1"]],
        "classes": {"puppet_enterprise::profile::master": {}},
        "variables": {},
    }
    group.update(fields)
    return group


def _master_spec():
    return GroupSpec(
        name="PE Master",
        parent_name="PE Infrastructure",
        rule=Or((Equals("name", "m1"),)),
        data_overlay={"pe_repo": {"compile_master_pool_address": "pool.example"}},
        variables={"pe_master": True},
        lifecycle=MUTATE,
    )


class TestRequests:
    @responses.activate
    def test_list_groups_sends_token(self, client):
        responses.add(responses.GET, f"{BASE}/groups", json=_groups())
        groups = client.list_groups()
        assert len(groups) == 2
        assert responses.calls[0].request.headers["X-Authentication"] == "tok"

    @responses.activate
    def test_non_json_body(self, client):
        responses.add(responses.GET, f"{BASE}/groups", body="<html>login</html>", status=200)
        with pytest.raises(ClassifierAPIError, match="Invalid JSON") as exc_info:
            client.list_groups()
        assert exc_info.value.status_code == 200
        assert exc_info.value.response_body == "<html>login</html>"

    @responses.activate
    def test_non_json_body_fails_reconcile_with_group_name(self, client):
        responses.add(responses.GET, f"{BASE}/groups", body="<html>login</html>", status=200)
        with pytest.raises(GroupApplyError) as exc_info:
            reconcile(client, "m1", "pool.example")
        assert exc_info.value.group_name == "PE Infrastructure Agent"
        assert isinstance(exc_info.value.cause, ClassifierAPIError)
        assert exc_info.value.applied == []

    @responses.activate
    def test_create_group_reads_location(self, client):
        responses.add(
            responses.POST, f"{BASE}/groups", status=303,
            headers={"Location": f"/classifier-api/v1/groups/{MASTER_ID}"},
        )
        assert client.create_group({"name": "x"}) == MASTER_ID

    @responses.activate
    def test_http_error(self, client):
        responses.add(responses.GET, f"{BASE}/groups", body="denied", status=403)
        with pytest.raises(ClassifierAPIError) as exc_info:
            client.list_groups()
        assert exc_info.value.status_code == 403
        assert exc_info.value.response_body == "denied"

    @responses.activate
    def test_connection_error(self, client):
        responses.add(responses.GET, f"{BASE}/groups", body=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(ClassifierAPIError, match="Request failed"):
            client.list_groups()


class TestUpsertGroup:
    @responses.activate
    def test_creates_missing_group(self, client):
        responses.add(responses.GET, f"{BASE}/groups", json=_groups())
        responses.add(
            responses.POST, f"{BASE}/groups", status=303,
            headers={"Location": f"{BASE}/groups/new-id"},
        )
        spec = GroupSpec(
            name="PE HA Replica",
            parent_name="PE Infrastructure",
            rule=Or((Equals("name", "m2"),)),
            class_overlay={"puppet_enterprise::profile::primary_master_replica": {}},
            variables={"peadm_replica": True},
            lifecycle=ensure_present_if("ha"),
        )
        assert client.upsert_group(spec) == CREATED

        body = json.loads(responses.calls[1].request.body)
        assert body == {
            "name": "PE HA Replica",
            "parent": INFRA_ID,
            "environment": "production",
            "rule": ["or", ["=", "name", "m2"]],
            "classes": {"puppet_enterprise::profile::primary_master_replica": {}},
            "variables": {"peadm_replica": True},
        }

    @responses.activate
    def test_merges_into_existing_group(self, client):
        existing = _master_group(config_data={"pe_repo": {"other": 1}})
        responses.add(responses.GET, f"{BASE}/groups", json=_groups(existing))
        responses.add(responses.POST, f"{BASE}/groups/{MASTER_ID}", json=existing)

        assert client.upsert_group(_master_spec()) == UPDATED

        delta = json.loads(responses.calls[1].request.body)
        assert delta == {
            "id": MASTER_ID,
            "config_data": {"pe_repo": {"other": 1, "compile_master_pool_address": "pool.example"}},
            "variables": {"pe_master": True},
        }

    @responses.activate
    def test_mutate_does_not_move_parent(self, client):
        existing = _master_group(
            parent="somewhere-else",
            config_data={"pe_repo": {"compile_master_pool_address": "pool.example"}},
            variables={"pe_master": True},
        )
        responses.add(responses.GET, f"{BASE}/groups", json=_groups(existing))
        assert client.upsert_group(_master_spec()) == UNCHANGED
        assert len(responses.calls) == 1

    @responses.activate
    def test_ensure_present_enforces_parent(self, client):
        existing = {
            "id": "rep-id", "name": "PE HA Replica", "parent": ROOT_GROUP_ID,
            "rule": ["or", ["=", "name", "m2"]], "classes": {}, "variables": {},
        }
        responses.add(responses.GET, f"{BASE}/groups", json=_groups(existing))
        responses.add(responses.POST, f"{BASE}/groups/rep-id", json=existing)
        spec = GroupSpec(
            name="PE HA Replica",
            parent_name="PE Infrastructure",
            rule=Or((Equals("name", "m2"),)),
            lifecycle=ensure_present_if("ha"),
        )
        assert client.upsert_group(spec) == UPDATED
        assert json.loads(responses.calls[1].request.body) == {"id": "rep-id", "parent": INFRA_ID}

    @responses.activate
    def test_rule_replaced(self, client):
        existing = {
            "id": "agent-id", "name": "PE Infrastructure Agent", "parent": INFRA_ID,
            "rule": ["and", ["~", ["fact", "pe_server_version"], ".+"]],
            "classes": {"puppet_enterprise::profile::agent": {}},
        }
        responses.add(responses.GET, f"{BASE}/groups", json=_groups(existing))
        responses.add(responses.POST, f"{BASE}/groups/agent-id", json=existing)
        spec = GroupSpec(
            name="PE Infrastructure Agent",
            parent_name="PE Infrastructure",
            rule=RegexMatch(("trusted", "extensions", "pp_role"), "^puppet/"),
            lifecycle=MUTATE,
        )
        assert client.upsert_group(spec) == UPDATED
        delta = json.loads(responses.calls[1].request.body)
        assert delta == {"id": "agent-id", "rule": ["~", ["trusted", "extensions", "pp_role"], "^puppet/"]}

    @responses.activate
    def test_missing_parent_raises(self, client):
        responses.add(responses.GET, f"{BASE}/groups", json=_groups())
        spec = GroupSpec(name="PE Compiler Group A", parent_name="PE Master", rule=Equals("name", "x"))
        with pytest.raises(ClassifierAPIError, match="Parent group 'PE Master' not found"):
            client.upsert_group(spec)
