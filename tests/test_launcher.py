import pytest
from botocore.exceptions import ClientError

from agent_provisioner.ec2_provisioner import Ec2Provisioner
from agent_provisioner.launcher import KeyPairNotFoundError, cleanup_instances, launch_node, release_nodes
from agent_provisioner.tagging import workspace_tag
from agent_provisioner.types import InstanceInfoWithTag, KeyPairInfo, NodeHandle, SecurityGroupError
from agent_provisioner.utils.wait_until import WaitUntilTimeoutError

from conftest import FakeAuthenticator, make_config


def _node(state: str, addresses=None) -> NodeHandle:
    return NodeHandle(provider_id="i-0123456789", region_id="us-west-2", public_addresses=addresses or [], state=state)


def test_launch_node_waits_for_running_and_tags(fake_client, key_pair):
    config = make_config(security_groups=("sg1",), inbound_ports=(8080, 8090))
    provisioner = Ec2Provisioner(config, fake_client, key_pair, FakeAuthenticator(), working_dir="/home/u/job")
    fake_client.nodes["i-0123456789"] = [_node("pending"), _node("running", ["1.2.3.4"])]

    node = launch_node(provisioner, fake_client, config, retry_interval=0)

    assert node.public_ip == "1.2.3.4"
    template, name, tags = fake_client.launched[0]
    assert template.options.security_groups == ("sg1",)
    assert name.startswith("acceptance-agent-")
    assert tags == {"agent-provisioner": "true"}
    assert fake_client.tag_calls() == [
        ("create_tags", "us-west-2", ["i-0123456789"], {workspace_tag("/home/u/job", ["1.2.3.4"]): ""})
    ]


def test_launch_node_timeout_terminates_instance(fake_client, key_pair):
    config = make_config(launch_timeout=0)
    provisioner = Ec2Provisioner(config, fake_client, key_pair, FakeAuthenticator())
    fake_client.nodes["i-0123456789"] = [_node("pending")]

    with pytest.raises(WaitUntilTimeoutError):
        launch_node(provisioner, fake_client, config, retry_interval=0.01)

    assert fake_client.deleted == [("us-west-2", ["i-0123456789"])]
    assert fake_client.tag_calls() == []


def test_launch_node_requires_existing_key_pair(fake_client, key_pair):
    config = make_config(key_pair_name="agents")
    provisioner = Ec2Provisioner(config, fake_client, key_pair, FakeAuthenticator())

    with pytest.raises(KeyPairNotFoundError):
        launch_node(provisioner, fake_client, config, retry_interval=0)
    assert fake_client.launched == []

    fake_client.key_pairs["agents"] = KeyPairInfo(key_pair_name="agents", finger_print="aa:bb")
    fake_client.nodes["i-0123456789"] = [_node("running", ["1.2.3.4"])]
    assert launch_node(provisioner, fake_client, config, retry_interval=0).provider_id == "i-0123456789"


def test_release_nodes_groups_by_region(fake_client):
    release_nodes(fake_client, [
        NodeHandle(provider_id="i-1", region_id="us-west-2"),
        NodeHandle(provider_id="i-2", region_id="eu-west-1"),
        NodeHandle(provider_id="i-3", region_id="us-west-2"),
    ])

    assert sorted(fake_client.deleted) == [("eu-west-1", ["i-2"]), ("us-west-2", ["i-1", "i-3"])]


def test_cleanup_filters_by_common_and_workspace_tag(fake_client):
    mine = workspace_tag("/home/u/job", ["1.2.3.4"])
    fake_client.instances = [
        InstanceInfoWithTag("i-1", "a", {"agent-provisioner": "true", mine: ""}, public_ip="1.2.3.4"),
        InstanceInfoWithTag("i-2", "b", {"agent-provisioner": "true"}, public_ip="5.6.7.8"),
        InstanceInfoWithTag("i-3", "c", {"other": "true"}, public_ip="9.9.9.9"),
    ]

    assert cleanup_instances(fake_client, "us-west-2", workspace_only=True, working_dir="/home/u/job") == ["i-1"]
    assert cleanup_instances(fake_client, "us-west-2") == ["i-1", "i-2"]
    assert fake_client.deleted == [("us-west-2", ["i-1"]), ("us-west-2", ["i-1", "i-2"])]


def test_cleanup_with_nothing_to_do(fake_client):
    assert cleanup_instances(fake_client, "us-west-2") == []
    assert fake_client.deleted == []


def test_launch_node_describe_failure_terminates_instance(fake_client, key_pair, monkeypatch):
    config = make_config()
    provisioner = Ec2Provisioner(config, fake_client, key_pair, FakeAuthenticator())

    def _describe_fails(region_id, instance_ids):
        raise ClientError({"Error": {"Code": "RequestLimitExceeded", "Message": "slow down"}}, "DescribeInstances")

    monkeypatch.setattr(fake_client, "describe_nodes", _describe_fails)

    with pytest.raises(ClientError):
        launch_node(provisioner, fake_client, config, retry_interval=0)

    assert fake_client.deleted == [("us-west-2", ["i-0123456789"])]


def test_launch_node_tagging_failure_terminates_instance(fake_client, key_pair, monkeypatch):
    config = make_config(security_groups=("sg1",))
    provisioner = Ec2Provisioner(config, fake_client, key_pair, FakeAuthenticator())
    fake_client.nodes["i-0123456789"] = [_node("running", ["1.2.3.4"])]

    def _tagging_fails(region_id, resource_ids, tags):
        raise ClientError({"Error": {"Code": "UnauthorizedOperation", "Message": "no"}}, "CreateTags")

    monkeypatch.setattr(fake_client, "create_tags", _tagging_fails)

    with pytest.raises(ClientError):
        launch_node(provisioner, fake_client, config, retry_interval=0)

    assert fake_client.deleted == [("us-west-2", ["i-0123456789"])]


def test_launch_node_without_groups_opens_inbound_ports(fake_client, key_pair):
    config = make_config(security_groups=(), inbound_ports=(8080, 9000))
    provisioner = Ec2Provisioner(config, fake_client, key_pair, FakeAuthenticator())
    fake_client.nodes["i-0123456789"] = [_node("running", ["1.2.3.4"])]

    launch_node(provisioner, fake_client, config, retry_interval=0)

    group = "acceptance-agent-ports-22-8080-9000"
    assert fake_client.group_calls() == [
        ("create_security_group", "us-west-2", group),
        ("authorize", "us-west-2", group, 22, 22, "0.0.0.0/0"),
        ("authorize", "us-west-2", group, 8080, 8080, "0.0.0.0/0"),
        ("authorize", "us-west-2", group, 9000, 9000, "0.0.0.0/0"),
    ]
    template, _, _ = fake_client.launched[0]
    assert template.options.security_groups == (group,)
    assert fake_client.tag_calls() == []


def test_launch_node_reuses_existing_inbound_port_group(fake_client, key_pair):
    config = make_config(security_groups=(), inbound_ports=(22,))
    provisioner = Ec2Provisioner(config, fake_client, key_pair, FakeAuthenticator())
    fake_client.create_results["acceptance-agent-ports-22"] = SecurityGroupError.Duplicate
    fake_client.authorize_results[("acceptance-agent-ports-22", 22, 22)] = SecurityGroupError.Duplicate
    fake_client.nodes["i-0123456789"] = [_node("running", ["1.2.3.4"])]

    node = launch_node(provisioner, fake_client, config, retry_interval=0)

    assert node.public_ip == "1.2.3.4"
    assert fake_client.launched[0][0].options.security_groups == ("acceptance-agent-ports-22",)
