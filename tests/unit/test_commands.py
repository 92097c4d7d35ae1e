"""Unit tests for request builders."""

import pytest

from omp_client.errors import InvalidArgumentError
from omp_client.protocol import commands
from omp_client.protocol.codec import encode
from omp_client.protocol.commands import CommandName, SshCredential, TargetOptions


class TestCommandName:
    def test_response_element(self):
        assert CommandName.AUTHENTICATE.response == "authenticate_response"
        assert CommandName.CREATE_PORT_RANGE.response == "create_port_range_response"


class TestAuthenticate:
    def test_builds_credentials(self):
        xml = encode(commands.authenticate("admin", "pw"))

        assert xml == (
            "<authenticate><credentials>"
            "<username>admin</username><password>pw</password>"
            "</credentials></authenticate>"
        )

    @pytest.mark.parametrize("username,password", [(None, "pw"), ("admin", None), ("", "pw"), ("admin", "  ")])
    def test_missing_credentials(self, username, password):
        with pytest.raises(InvalidArgumentError):
            commands.authenticate(username, password)


class TestGetTargets:
    def test_all_targets(self):
        node = commands.get_targets()

        assert node.name == "get_targets"
        assert node.attrs == {}

    def test_single_target(self):
        node = commands.get_targets("t-123")

        assert node.attrs == {"target_id": "t-123"}

    def test_empty_target_id(self):
        with pytest.raises(InvalidArgumentError):
            commands.get_targets("")


class TestCreateTarget:
    """Child order for create_target is fixed."""

    def test_minimal(self):
        node = commands.create_target(TargetOptions(name="T"))

        assert node.child_names() == ["name", "hosts"]
        assert node.find("hosts").text == ""

    def test_full_order(self):
        options = TargetOptions(
            name="T",
            hosts="10.0.0.0/24",
            comment="only a test",
            exclude_hosts="10.0.0.255",
            ssh_credential=SshCredential(id="ssh-1", port="2222"),
            smb_credential="smb-1",
            esxi_credential="esxi-1",
            alive_tests="ICMP Ping",
            reverse_lookup_only=True,
            reverse_lookup_unify=True,
            port_range="1-1024",
            port_list="pl-1",
        )

        node = commands.create_target(options)

        assert node.child_names() == [
            "name",
            "hosts",
            "comment",
            "exclude_hosts",
            "ssh_lsc_credential",
            "smb_lsc_credential",
            "esxi_lsc_credential",
            "alive_tests",
            "reverse_lookup_only",
            "reverse_lookup_unify",
            "port_range",
            "port_list",
        ]
        ssh = node.find("ssh_lsc_credential")
        assert ssh.attrs == {"id": "ssh-1"}
        assert ssh.find("port").text == "2222"
        assert node.find("port_list").attrs == {"id": "pl-1"}
        assert node.find("reverse_lookup_only").text == "1"

    def test_false_flags_omitted(self):
        node = commands.create_target(TargetOptions(name="T", reverse_lookup_only=False))

        assert "reverse_lookup_only" not in node.child_names()

    def test_missing_name(self):
        with pytest.raises(InvalidArgumentError, match="name"):
            commands.create_target(TargetOptions(hosts="10.0.0.1"))


class TestCreateAgent:
    def test_installer_signature_nested(self):
        node = commands.create_agent("agent", "aGVsbG8=", installer_signature="c2ln", comment="c")

        assert node.child_names() == ["name", "installer", "comment"]
        installer = node.find("installer")
        assert installer.text == "aGVsbG8="
        assert installer.find("signature").text == "c2ln"

    def test_installer_required(self):
        with pytest.raises(InvalidArgumentError, match="installer"):
            commands.create_agent("agent", None)


class TestCreateGroup:
    def test_users_and_special(self):
        node = commands.create_group("ops", comment="c", users=["alice", "bob"], full=True)

        assert node.child_names() == ["name", "comment", "users", "special"]
        assert node.find("users").text == "alice,bob"
        assert node.find("special").child_names() == ["full"]

    def test_name_required(self):
        with pytest.raises(InvalidArgumentError):
            commands.create_group("")


class TestCreatePermission:
    def test_subject_and_resource(self):
        node = commands.create_permission(
            "get_targets", "u-1", "User", resource_id="t-1", resource_type="target"
        )

        assert node.child_names() == ["name", "subject", "resource"]
        subject = node.find("subject")
        assert subject.attrs == {"id": "u-1"}
        assert subject.find("type").text == "user"
        assert node.find("resource").find("type").text == "target"

    def test_invalid_subject_type(self):
        with pytest.raises(InvalidArgumentError, match="subject_type"):
            commands.create_permission("get_targets", "u-1", "robot")

    def test_resource_needs_type(self):
        with pytest.raises(InvalidArgumentError, match="resource_type"):
            commands.create_permission("get_targets", "u-1", "user", resource_id="t-1")


class TestPortLists:
    def test_create_port_list(self):
        node = commands.create_port_list("web", "T:80,T:443", comment="web ports")

        assert node.child_names() == ["name", "port_range", "comment"]

    def test_port_list_requires_range(self):
        with pytest.raises(InvalidArgumentError, match="port_range"):
            commands.create_port_list("web", None)

    def test_create_port_range(self):
        node = commands.create_port_range("pl-1", 8000, 8080, "TCP")

        assert node.child_names() == ["port_list", "start", "end", "type"]
        assert node.find("port_list").attrs == {"id": "pl-1"}
        assert node.find("start").text == "8000"
        assert node.find("type").text == "tcp"

    @pytest.mark.parametrize(
        "start,end,port_type",
        [(0, 10, "tcp"), (1, 65536, "tcp"), (100, 10, "tcp"), (1, 10, "sctp"), ("x", 10, "tcp")],
    )
    def test_invalid_port_range(self, start, end, port_type):
        with pytest.raises(InvalidArgumentError):
            commands.create_port_range("pl-1", start, end, port_type)
