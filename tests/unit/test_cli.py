"""Unit tests for the CLI against a scripted mock manager."""

import json

import pytest
from click.testing import CliRunner

from omp_client import cli
from omp_client.protocol.codec import parse
from omp_client.sdk.client import OMPClient
from omp_client.sdk.transport import MockClientTransport

REPLIES = {
    "authenticate": (
        '<authenticate_response status="200" status_text="OK">'
        "<role>Admin</role><timezone>UTC</timezone><severity>nist</severity>"
        "</authenticate_response>"
    ),
    "get_targets": (
        '<get_targets_response status="200" status_text="OK">'
        '<target id="t-1"><name>Localhost</name><hosts>127.0.0.1</hosts></target>'
        "<target_count>1</target_count>"
        "</get_targets_response>"
    ),
    "create_target": '<create_target_response status="400" status_text="Bad hosts"/>',
    "create_port_list": '<create_port_list_response status="201" status_text="OK" id="pl-1"/>',
}


@pytest.fixture
def scripted(monkeypatch):
    """Replace the TLS client with one talking to a scripted mock."""
    written = []

    def responder(text):
        written.append(text)
        return REPLIES[parse(text).name]

    def factory(config, username=None, password=None):
        return OMPClient(
            config,
            transport=MockClientTransport(responder=responder),
            username=username,
            password=password,
        )

    monkeypatch.setattr(cli, "OMPClient", factory)
    return written


def invoke(*args):
    return CliRunner().invoke(cli.main, ["-u", "admin", "-p", "pw", *args])


class TestCli:
    def test_login(self, scripted):
        result = invoke("login")

        assert result.exit_code == 0
        assert "Admin" in result.output
        assert parse(scripted[0]).name == "authenticate"

    def test_targets_table(self, scripted):
        result = invoke("targets")

        assert result.exit_code == 0
        assert "Localhost" in result.output
        assert "Total: 1 target(s)" in result.output

    def test_targets_json(self, scripted):
        result = invoke("targets", "--format", "json")

        data = json.loads(result.output)
        assert data["target_count"] == 1
        assert data["targets"][0]["id"] == "t-1"
        assert "raw" not in data["targets"][0]

    def test_protocol_failure_exit_code(self, scripted):
        result = invoke("create-target", "--name", "T", "--hosts", "bogus")

        assert result.exit_code == 1
        assert "Bad hosts" in result.output

    def test_create_port_list(self, scripted):
        result = invoke("create-port-list", "-n", "web", "-r", "T:80")

        assert result.exit_code == 0
        assert "Created port_list pl-1" in result.output
