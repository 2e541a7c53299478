# tests/test_eks.py
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from bmw_saver.providers.base import NoSavedStateError, NodePoolNotFound
from bmw_saver.providers.eks import EKS_NODEGROUP_LABEL, REGION_LABEL, WAITER_CONFIG, EKSProvider


def client_error(code, op="UpdateNodegroupConfig"):
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


def nodegroup(lo, hi, desired):
    return {"nodegroup": {"scalingConfig": {"minSize": lo, "maxSize": hi, "desiredSize": desired},
                          "status": "ACTIVE", "health": {"issues": []}}}


@pytest.fixture
def eks():
    c = MagicMock()
    c.describe_nodegroup.return_value = nodegroup(1, 5, 3)
    return c


@pytest.fixture
def session(eks):
    s = MagicMock()
    s.region_name = "us-east-1"
    s.client.return_value = eks
    return s


@pytest.fixture
def provider(core_api, session):
    return EKSProvider(core_api, "main", "bmw-saver", session=session)


@pytest.fixture
def group_nodes(core_api, node_factory):
    labels = {EKS_NODEGROUP_LABEL: "workers", REGION_LABEL: "eu-west-1"}
    nodes = [node_factory("n1", labels, cordoned=True), node_factory("n2", labels), node_factory("n3", labels)]
    core_api.list_node.return_value = SimpleNamespace(items=nodes)
    return nodes


class TestScaleDown:

    def test_scale_down_flow(self, provider, core_api, session, eks, group_nodes, read_saved):
        provider.scale_down("workers", 0)

        session.client.assert_called_once_with("eks", region_name="eu-west-1")
        core_api.list_node.assert_called_with(label_selector=f"{EKS_NODEGROUP_LABEL}=workers")
        eks.describe_nodegroup.assert_called_with(clusterName="main", nodegroupName="workers")
        core_api.list_pod_for_all_namespaces.assert_called_once_with(field_selector="spec.nodeName=n1")

        assert read_saved("workers") == {
            "desiredSize": 3,
            "autoscaling": {"enabled": True, "minSize": 1, "maxSize": 5},
        }

        eks.get_waiter.assert_called_with("nodegroup_active")
        eks.get_waiter.return_value.wait.assert_called_once_with(
            clusterName="main", nodegroupName="workers", WaiterConfig=WAITER_CONFIG
        )
        eks.update_nodegroup_config.assert_called_once_with(
            clusterName="main",
            nodegroupName="workers",
            scalingConfig={"minSize": 0, "maxSize": 1, "desiredSize": 0},
        )

    def test_scale_to_nonzero_pins_bounds(self, provider, eks, group_nodes):
        provider.scale_down("workers", 2)
        assert eks.update_nodegroup_config.call_args.kwargs["scalingConfig"] == {
            "minSize": 2, "maxSize": 2, "desiredSize": 2,
        }

    def test_already_at_target(self, provider, eks, group_nodes):
        provider.scale_down("workers", 3)
        eks.update_nodegroup_config.assert_not_called()

    def test_missing_group_is_ignored(self, provider, eks, group_nodes):
        eks.describe_nodegroup.side_effect = client_error("ResourceNotFoundException", "DescribeNodegroup")
        provider.scale_down("workers", 0)
        eks.update_nodegroup_config.assert_not_called()

    def test_busy_is_soft(self, provider, eks, group_nodes, read_saved):
        eks.update_nodegroup_config.side_effect = client_error("ResourceInUseException")
        provider.scale_down("workers", 0)
        first = read_saved("workers")

        # повтор на следующем тике: группа уже частично уменьшена, сохранённое состояние прежнее
        eks.update_nodegroup_config.side_effect = None
        eks.describe_nodegroup.return_value = nodegroup(0, 1, 1)
        provider.scale_down("workers", 0)
        assert read_saved("workers") == first == {
            "desiredSize": 3,
            "autoscaling": {"enabled": True, "minSize": 1, "maxSize": 5},
        }
        assert eks.update_nodegroup_config.call_count == 2

    def test_other_errors_propagate(self, provider, eks, group_nodes):
        eks.update_nodegroup_config.side_effect = client_error("AccessDeniedException")
        with pytest.raises(ClientError):
            provider.scale_down("workers", 0)

    def test_empty_group_uses_default_region(self, provider, session, eks):
        provider.scale_down("workers", 0)
        session.client.assert_called_once_with("eks", region_name="us-east-1")

    def test_no_region_at_all(self, core_api, session, eks):
        session.region_name = None
        p = EKSProvider(core_api, "main", "bmw-saver", session=session)
        p.scale_down("workers", 0)
        session.client.assert_not_called()
        eks.update_nodegroup_config.assert_not_called()
        core_api.create_namespaced_config_map.assert_not_called()

    def test_no_region_on_restore_raises(self, core_api, session, saved_state):
        session.region_name = None
        saved_state("workers", {"desiredSize": 3})
        p = EKSProvider(core_api, "main", "bmw-saver", session=session)
        with pytest.raises(NodePoolNotFound):
            p.restore("workers")


class TestRestore:

    def test_no_saved_state(self, provider):
        with pytest.raises(NoSavedStateError):
            provider.restore("workers")

    def test_restore_after_scale_to_zero(self, provider, core_api, session, eks, group_nodes):
        provider.scale_down("workers", 0)
        eks.update_nodegroup_config.reset_mock()

        # группа пустая, нод больше нет: регион берётся из запомненного
        core_api.list_node.return_value = SimpleNamespace(items=[])
        eks.describe_nodegroup.return_value = nodegroup(0, 1, 0)
        provider.restore("workers")

        session.client.assert_called_once_with("eks", region_name="eu-west-1")
        eks.update_nodegroup_config.assert_called_once_with(
            clusterName="main",
            nodegroupName="workers",
            scalingConfig={"minSize": 1, "maxSize": 5, "desiredSize": 3},
        )

    def test_restore_fixed_size_group(self, provider, eks, saved_state):
        saved_state("workers", {"desiredSize": 3, "autoscaling": {"enabled": False, "minSize": 3, "maxSize": 3}})
        eks.describe_nodegroup.return_value = nodegroup(0, 1, 0)
        provider.restore("workers")
        assert eks.update_nodegroup_config.call_args.kwargs["scalingConfig"] == {
            "minSize": 3, "maxSize": 3, "desiredSize": 3,
        }

    def test_already_restored(self, provider, eks, saved_state):
        saved_state("workers", {"desiredSize": 3, "autoscaling": {"enabled": True, "minSize": 1, "maxSize": 5}})
        eks.describe_nodegroup.return_value = nodegroup(1, 5, 4)
        provider.restore("workers")
        eks.update_nodegroup_config.assert_not_called()
        eks.get_waiter.assert_not_called()

    def test_restore_twice_updates_once(self, provider, eks, saved_state):
        saved_state("workers", {"desiredSize": 3, "autoscaling": {"enabled": True, "minSize": 1, "maxSize": 5}})
        eks.describe_nodegroup.return_value = nodegroup(0, 1, 0)
        provider.restore("workers")

        eks.describe_nodegroup.return_value = nodegroup(1, 5, 3)
        provider.restore("workers")
        eks.update_nodegroup_config.assert_called_once()

    def test_missing_group(self, provider, eks, saved_state):
        saved_state("workers", {"desiredSize": 3})
        eks.describe_nodegroup.side_effect = client_error("ResourceNotFoundException", "DescribeNodegroup")
        with pytest.raises(NodePoolNotFound):
            provider.restore("workers")


def test_region_client_created_once(provider, session):
    threads = [threading.Thread(target=provider.client_for, args=("eu-west-1",)) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    provider.client_for("eu-west-1")
    provider.client_for("us-west-2")
    assert session.client.call_count == 2
