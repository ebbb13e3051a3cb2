import json
from unittest.mock import MagicMock

import numpy as np
import pytest

from fixtures import FakeDataServer, _info, demod_sample, fake_server
from zhinst.daqkit.exceptions import (
    NodeNotFoundError,
    TypeMismatchError,
    WildcardAmbiguousError,
)
from zhinst.daqkit.nodetree import Connection, Node, NodeKind, NodeTree
from zhinst.daqkit.sample import DemodulatorSample


@pytest.fixture()
def tree(fake_server):
    yield NodeTree(fake_server, prefix_hide="dev1234", list_nodes=["/dev1234/*"])


class TestNodeTree:
    def test_setup(self, tree):
        assert tree.prefix_hide == "dev1234"
        assert "/dev1234/demods/0/rate" in tree.raw_dict
        assert "demods" in tree
        assert "DEMODS" in tree
        assert "zi" not in tree
        assert "oscs" in dir(tree)

    def test_iter(self, tree):
        nodes = {node.node: info for node, info in tree}
        assert nodes["/dev1234/demods/0/rate"]["Type"] == "Double"
        assert all(isinstance(node, Node) for node, _ in tree)

    def test_access(self, tree):
        assert tree.demods[0].rate.node == "/dev1234/demods/0/rate"
        assert tree["demods/0/rate"] == tree.demods[0].rate
        assert tree.DEMODS["0"].Rate.raw_tree == ("demods", "0", "rate")

    def test_path_conversion(self, tree):
        assert tree.to_raw_path("demods/0/rate") == "/dev1234/demods/0/rate"
        assert tree.to_raw_path("/DEV1234/Demods/0/Rate") == "/dev1234/demods/0/rate"
        assert tree.to_raw_path(tree.demods[0]) == "/dev1234/demods/0"
        with pytest.raises(ValueError):
            tree.to_raw_path("dev1234/demods/0/rate")
        node = tree.raw_path_to_node("/DEV1234/DEMODS/0/RATE")
        assert node.raw_tree == ("demods", "0", "rate")

    def test_node_info(self, tree):
        info = tree.get_node_info("demods/0/rate")
        assert info["Type"] == "Double"
        infos = tree.get_node_info("demods/*/rate")
        assert len(infos) == 2
        assert tree.node_kind("demods/0/enable") is NodeKind.INTEGER
        assert tree.node_kind("features/devtype") is NodeKind.STRING
        assert tree.node_kind("demods/0/sample") is NodeKind.DEMOD_SAMPLE
        assert tree.node_kind("awgs/0/waveform/waves/0") is NodeKind.VECTOR
        assert tree.node_kind("scopes/0/wave") is NodeKind.STREAM

    def test_node_info_unknown(self, tree, fake_server):
        with pytest.raises(NodeNotFoundError) as error:
            tree.get_node_info("demods/5/rate")
        assert str(error.value) == "/dev1234/demods/5/rate"
        # KeyError handlers keep working
        with pytest.raises(KeyError):
            tree.get_node_info("demods/5/rate", refresh=False)

    def test_node_info_refresh(self, tree, fake_server):
        fake_server.node_info["/dev1234/pids/0/enable"] = {
            "Node": "/DEV1234/PIDS/0/ENABLE",
            "Type": "Integer (64 bit)",
            "Properties": "Read, Write, Setting",
        }
        fake_server.values["/dev1234/pids/0/enable"] = 1
        assert tree.get_int("pids/0/enable") == 1
        assert "pids" in tree

    def test_typed_get(self, tree):
        assert tree.get_double("demods/0/rate") == 1674.0
        assert tree.get_int("demods/0/enable") == 1
        assert tree.get_string("features/devtype") == "MFLI"
        assert tree.get_vector("awgs/0/waveform/waves/0").size == 0
        sample = tree.get_sample("demods/0/sample")
        assert isinstance(sample, DemodulatorSample)
        assert len(sample.x) == 1

    def test_typed_get_mismatch(self, tree):
        with pytest.raises(TypeMismatchError):
            tree.get_int("demods/0/rate")
        with pytest.raises(TypeMismatchError):
            tree.get_double("features/devtype")
        with pytest.raises(TypeError):
            tree.get_vector("demods/0/rate")

    def test_get(self, tree):
        assert tree.get("demods/0/rate") == 1674.0
        assert isinstance(tree.get("demods/0/rate"), float)
        assert tree.get("demods/0/enable") == 1
        assert tree.get("features/devtype") == "MFLI"
        with pytest.raises(RuntimeError):
            tree.get("scopes/0/wave")

    def test_set_get_roundtrip(self, tree, fake_server):
        tree.set_double("demods/0/rate", 250)
        assert fake_server.values["/dev1234/demods/0/rate"] == 250.0
        assert tree.get_double("demods/0/rate") == 250.0
        tree.set_int("demods/0/enable", 0)
        assert tree.get_int("demods/0/enable") == 0
        tree.set_int("demods/0/trigger", 3.0)
        assert fake_server.values["/dev1234/demods/0/trigger"] == 3
        tree.set_string("features/devtype", b"MFIA")
        assert tree.get_string("features/devtype") == "MFIA"
        tree.set("oscs/0/freq", 1e6)
        assert tree.get("oscs/0/freq") == 1e6

    def test_set_mismatch(self, tree, fake_server):
        with pytest.raises(TypeMismatchError):
            tree.set_int("demods/0/enable", 1.5)
        with pytest.raises(TypeMismatchError):
            tree.set_int("demods/0/rate", 1)
        with pytest.raises(TypeMismatchError):
            tree.set_double("demods/0/rate", "fast")
        with pytest.raises(NodeNotFoundError):
            tree.set_double("demods/7/rate", 1.0)
        assert fake_server.values["/dev1234/demods/0/rate"] == 1674.0

    def test_set_vector(self, tree, fake_server):
        tree.set_vector("awgs/0/waveform/waves/0", [1, 2, 3])
        value = fake_server.values["/dev1234/awgs/0/waveform/waves/0"]
        assert isinstance(value, np.ndarray)
        assert value.tolist() == [1, 2, 3]
        np.testing.assert_array_equal(
            tree.get_vector("awgs/0/waveform/waves/0"), [1, 2, 3]
        )

    def test_set_wildcard(self, tree, fake_server):
        tree.set_int("demods/*/enable", 0)
        assert fake_server.set_calls == [
            (
                [
                    ("/dev1234/demods/0/enable", 0),
                    ("/dev1234/demods/1/enable", 0),
                ],
                None,
            )
        ]
        assert tree.get_wildcard("demods/*/enable") == {
            "/dev1234/demods/0/enable": 0,
            "/dev1234/demods/1/enable": 0,
        }

    def test_set_wildcard_no_match(self, tree, fake_server):
        tree.set_int("pids/*/enable", 1)
        tree.set("demods/[5-9]/rate", 1.0)
        assert fake_server.set_calls == []

    def test_set_wildcard_vector(self, tree, fake_server):
        with pytest.raises(WildcardAmbiguousError):
            tree.set_vector("awgs/0/waveform/waves/*", [1, 2])
        with pytest.raises(WildcardAmbiguousError):
            tree.set("awgs/0/waveform/*", 0)
        assert fake_server.set_calls == []

    def test_list_nodes(self, tree):
        assert tree.list_nodes("demods/*/rate") == [
            "/dev1234/demods/0/rate",
            "/dev1234/demods/1/rate",
        ]
        assert tree.list_nodes("pids/*") == []

    def test_set_transaction(self, tree, fake_server):
        with tree.set_transaction():
            tree.demods[0].rate(10)
            tree.set_int("demods/*/enable", 1)
            assert len(tree.set_transaction_queue) == 3
            assert fake_server.set_calls == []
        assert tree.set_transaction_queue is None
        assert fake_server.set_calls == [
            (
                [
                    ("/dev1234/demods/0/rate", 10.0),
                    ("/dev1234/demods/0/enable", 1),
                    ("/dev1234/demods/1/enable", 1),
                ],
                None,
            )
        ]

    def test_set_transaction_vector(self, tree):
        with pytest.raises(AttributeError):
            with tree.set_transaction():
                tree.set_vector("awgs/0/waveform/waves/0", [1])
        assert tree.set_transaction_queue is None

    def test_add_to_set_transaction_outside(self, tree):
        with pytest.raises(AttributeError):
            tree.add_to_set_transaction("demods/0/rate", 1)

    def test_subscribe(self, tree, fake_server):
        tree.subscribe("demods/0/sample")
        assert fake_server.subscribed == ["/dev1234/demods/0/sample"]
        tree.unsubscribe(tree.demods[0].sample)
        assert fake_server.subscribed == []

    def test_without_json(self):
        class HF2Server(FakeDataServer):
            def listNodesJSON(self, path, *args, **kwargs):
                raise RuntimeError("listNodesJSON is not supported")

        server = HF2Server(device_type="HF2LI")
        tree = NodeTree(server, prefix_hide="dev1234", list_nodes=["/dev1234/*"])
        assert tree.node_kind("demods/0/rate") is NodeKind.UNKNOWN
        # untyped nodes are written with the type of the value
        tree.set("demods/0/rate", 250.0)
        tree.set("demods/0/enable", 1)
        assert server.values["/dev1234/demods/0/rate"] == 250.0
        assert server.values["/dev1234/demods/0/enable"] == 1
        assert tree.get_int("demods/0/enable") == 1


class TestConnectionProtocol:
    def test_tree_on_protocol(self):
        connection = MagicMock(spec=Connection)
        connection.listNodesJSON.return_value = json.dumps(
            {
                "/dev1234/demods/0/sample": _info(
                    "/dev1234/demods/0/sample", "ZIDemodSample", "Read, Stream"
                ),
                "/dev1234/imps/0/z": _info("/dev1234/imps/0/z", "Complex Double"),
            }
        )
        connection.getSample.return_value = demod_sample(count=1)
        connection.getComplex.return_value = 1 + 2j
        tree = NodeTree(connection, prefix_hide="dev1234")

        assert isinstance(tree.get_sample("demods/0/sample"), DemodulatorSample)
        connection.getSample.assert_called_once_with("/dev1234/demods/0/sample")
        assert tree.get("imps/0/z") == 1 + 2j
        connection.getComplex.assert_called_once_with("/dev1234/imps/0/z")
        tree.get_as_event("demods/0/sample")
        connection.getAsEvent.assert_called_once_with("/dev1234/demods/0/sample")


class TestNode:
    def test_call(self, tree, fake_server):
        tree.demods[0].rate(250)
        assert fake_server.values["/dev1234/demods/0/rate"] == 250.0
        assert tree.demods[0].rate() == 250.0

    def test_enum(self, tree, fake_server):
        tree.sigouts[0].on("on")
        assert fake_server.values["/dev1234/sigouts/0/on"] == 1
        assert tree.sigouts[0].on() == "on"
        assert tree.sigouts[0].on(enum=False) == 1
        tree.sigouts[0].on(0)
        assert tree.sigouts[0].on() == "off"

    def test_wildcard(self, tree, fake_server):
        tree.demods["*"].enable(0)
        assert fake_server.values["/dev1234/demods/0/enable"] == 0
        assert fake_server.values["/dev1234/demods/1/enable"] == 0
        assert tree.demods["*"].enable() == {
            "/dev1234/demods/0/enable": 0,
            "/dev1234/demods/1/enable": 0,
        }

    def test_partial_node(self, tree):
        values = tree.demods[0]()
        assert values["/dev1234/demods/0/rate"] == 1674.0
        assert values["/dev1234/demods/0/enable"] == 1
        assert tree.demods[0].is_partial_node
        assert not tree.demods[0].rate.is_partial_node

    def test_read_only(self, tree):
        with pytest.raises(AttributeError):
            tree.system.preset.busy(1)

    def test_information(self, tree):
        node = tree.demods[0].rate
        assert node.type == "Double"
        assert node.description == "/dev1234/demods/0/rate test node"
        assert node.unit == "None"
        assert "Write" in node.properties
        assert tree.demods[0].enable.options["1"] == '"on": On'
        assert repr(node) == "/dev1234/demods/0/rate"

    def test_children(self, tree):
        assert "rate" in tree.demods[0]
        assert set(dir(tree.demods[0])) >= {"rate", "enable", "trigger", "sample"}
        children = [node.node for node, _ in tree.demods[1]]
        assert "/dev1234/demods/1/rate" in children
        assert "/dev1234/demods/0/rate" not in children

    def test_wait_for_state_change(self, tree, fake_server):
        tree.demods[0].enable.wait_for_state_change(1, timeout=0.1)
        tree.sigouts[0].on.wait_for_state_change("off", timeout=0.1)
        tree.demods["*"].enable.wait_for_state_change(1, timeout=0.1)
        with pytest.raises(TimeoutError):
            tree.demods[0].enable.wait_for_state_change(0, timeout=0.05)

    def test_equality(self, tree):
        assert tree.demods[0] == tree["demods/0"]
        assert tree.demods[0] != tree.demods[1]
        assert len({tree.demods[0], tree["demods/0"]}) == 1
