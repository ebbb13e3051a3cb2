# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""High level dynamic nodetree for the zhinst.core package."""

import json
import fnmatch
import logging
import numbers
from enum import Enum, IntFlag
from keyword import iskeyword as is_keyword
from typing import Dict, Union, Any, Optional, List, Tuple, Protocol
from contextlib import contextmanager

import numpy as np

from zhinst.daqkit.exceptions import (
    NodeNotFoundError,
    TypeMismatchError,
    WildcardAmbiguousError,
)
from zhinst.daqkit.nodetree.node import Node
from zhinst.daqkit.nodetree.path import NodePath
from zhinst.daqkit.sample import DemodulatorSample

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Protocol class for the connection object used in the nodetree."""

    # pylint: disable=invalid-name
    def listNodesJSON(self, path: str, *args, **kwargs) -> str:
        """Returns a list of nodes with description found at the specified path."""

    def listNodes(self, path: str, *args, **kwargs) -> List[str]:
        """mirrors the behaviour of zhinst.core listNodes command."""

    def get(self, path: str, *args, **kwargs) -> object:
        """mirrors the behaviour of zhinst.core get command."""

    def getInt(self, path: str) -> int:
        """mirrors the behaviour of zhinst.core getInt command."""

    def getDouble(self, path: str) -> float:
        """mirrors the behaviour of zhinst.core getDouble command."""

    def getString(self, path: str) -> str:
        """mirrors the behaviour of zhinst.core getString command."""

    def getComplex(self, path: str) -> complex:
        """mirrors the behaviour of zhinst.core getComplex command."""

    def getSample(self, path: str) -> dict:
        """mirrors the behaviour of zhinst.core getSample command."""

    def getAsEvent(self, path: str) -> None:
        """mirrors the behaviour of zhinst.core getAsEvent command."""

    def set(self, path: Union[str, List[Tuple[str, Any]]], *args, **kwargs) -> None:
        """mirrors the behaviour of zhinst.core set command."""

    def subscribe(self, path: str) -> None:
        """mirrors the behaviour of zhinst.core subscribe command."""

    def unsubscribe(self, path: str) -> None:
        """mirrors the behaviour of zhinst.core unsubscribe command."""


class ListNodesFlags(IntFlag):
    """Flags of the listNodes command.

    Can be combined with bitwise operations
    >>> ListNodesFlags.RECURSIVE | ListNodesFlags.LEAVES_ONLY
        <ListNodesFlags.LEAVES_ONLY|RECURSIVE: 5>
    """

    ALL = 0
    RECURSIVE = 1
    ABSOLUTE = 2
    LEAVES_ONLY = 4
    SETTINGS_ONLY = 8
    STREAMING_ONLY = 16
    SUBSCRIBED_ONLY = 32
    BASE_CHANNEL = 64
    GET_ONLY = 128
    EXCLUDE_STREAMING = 1 << 20
    EXCLUDE_VECTORS = 1 << 24


DEFAULT_LIST_FLAGS = (
    ListNodesFlags.RECURSIVE | ListNodesFlags.ABSOLUTE | ListNodesFlags.LEAVES_ONLY
)


class NodeKind(Enum):
    """Value kind of a node, derived from the ``Type`` of the node information."""

    INTEGER = "integer"
    DOUBLE = "double"
    COMPLEX = "complex"
    STRING = "string"
    VECTOR = "vector"
    DEMOD_SAMPLE = "demodulator sample"
    STREAM = "stream"
    UNKNOWN = "unknown"

    @classmethod
    def from_type(cls, node_type: str) -> "NodeKind":
        """Map the LabOne node type (e.g. ``Integer (64 bit)``) to a kind."""
        if not node_type:
            return cls.UNKNOWN
        if "Integer" in node_type:
            return cls.INTEGER
        if node_type == "Double":
            return cls.DOUBLE
        if node_type == "Complex Double":
            return cls.COMPLEX
        if node_type == "String":
            return cls.STRING
        if node_type == "ZIVectorData":
            return cls.VECTOR
        if node_type == "ZIDemodSample":
            return cls.DEMOD_SAMPLE
        return cls.STREAM


class NodeTree:
    """High-level generic node tree for the Zurich Instruments Devices.

    It was designed to used with the zhinst.core module. The ``connection``
    can be an instance of the ``zhinst.core.ziDAQServer`` directly or an
    instance of one of its modules, e.g. ``zhinst.core.SweeperModule``.

    The node tree and its nested elements can be accessed both by attribute and
    by item.
    To speed up the initialisation time the node tree is initialised lazy.
    Meaning the dictionary is kept as a flat dictionary and not converted into
    a nested one. The :class:`Node` returned by the :method:`__getattr__`
    method is only a placeholder. Only when using the `Node` it is
    converted into a real element.

    Next to the pythonic access the tree exposes a typed interface
    (``get_int``, ``set_double``, ...) that checks the requested value kind
    against the ``Type`` of the node. A node that is not part of the cached
    node information is looked up once more on the connection before the
    access fails, so that nodes appearing at runtime (e.g. after an option
    was installed) are picked up.

    Args:
        connection: ``zhinst.core.ziDAQServer`` or one of its modules (e.g.
                    ``zhinst.core.SweeperModule``)
        prefix_hide: Prefix, e.g. device id, that should be hidden in the nodetree.
            (Hidden means that users do not need to specify it and it will be added
            automatically to the nodes if necessary)
        list_nodes: list of nodes that should be downloaded from the connection.
            (default = ["*"])
        preloaded_json: node information that should be used instead of the one
            of the connection.
        subscriptions: Subscription set used for subscribe/unsubscribe. If not
            specified the connection is called directly.
    """

    def __init__(
        self,
        connection: Connection,
        prefix_hide: str = None,
        list_nodes: list = None,
        preloaded_json: dict = None,
        subscriptions=None,
    ):
        self._prefix_hide = prefix_hide.lower() if prefix_hide else None
        self._connection = connection
        self._list_nodes = list_nodes if list_nodes else ["*"]
        self._subscriptions = subscriptions
        if preloaded_json:
            self._flat_dict = {
                key.lower(): value for key, value in preloaded_json.items()
            }
        else:
            self._flat_dict = self._load_node_info()
        self._set_transaction_queue = None
        # First Layer must be generate during initialisation to calculate the
        # prefixes to keep
        self._first_layer = None
        self._prefixes_keep = []
        self._generate_first_layer()

    def __getattr__(self, name):
        if not name.startswith("_"):
            return Node(self, (name.lower(),))
        return None

    def __getitem__(self, name):
        name = name.lower()
        if "/" in name:
            name_list = name.split("/")
            if name_list[0]:
                return Node(self, (*name_list,))
            return Node(self, (*name_list[1:],))
        return Node(self, (name,))

    def __contains__(self, k):
        return k.lower() in self._first_layer

    def __dir__(self):
        return self._first_layer

    def __iter__(self):
        for node_raw, info in self._flat_dict.items():
            yield self.raw_path_to_node(node_raw), info

    def _load_node_info(self) -> Dict[str, dict]:
        """Download the node information from the connection.

        HF2 data servers do not support ``listNodesJSON``. In that case the
        node names are listed without any further information and typed
        access to these nodes is not checked.
        """
        flat_dict = {}
        for element in self._list_nodes:
            try:
                nodes_json = self.connection.listNodesJSON(element)
            except RuntimeError:
                logger.debug(f"listNodesJSON not supported for {element}")
                nodes = self.connection.listNodes(
                    element, flags=int(DEFAULT_LIST_FLAGS)
                )
                flat_dict.update({node: {"Node": node.upper()} for node in nodes})
                continue
            flat_dict.update(json.loads(nodes_json))
        return {key.lower(): value for key, value in flat_dict.items()}

    def _generate_first_layer(self) -> None:
        """Generates the internal ``_first_layer`` list.

        The list represents the available first layer of nested nodes.
        Also create the self._prefixes_keep variable.
        """
        self._first_layer = []
        for raw_node in self._flat_dict:
            if not raw_node.startswith("/"):
                raise SyntaxError(f"{raw_node}: Leading slash not found")
            node_split = raw_node.split("/")
            # Since we always have a leading slash we ignore the first element
            # which is empty.
            if node_split[1] == self._prefix_hide:
                if node_split[2] not in self._first_layer:
                    self._first_layer.append(node_split[2])
            else:
                if node_split[1] not in self._prefixes_keep:
                    self._prefixes_keep.append(node_split[1])
        self._first_layer.extend(self._prefixes_keep)

    def refresh(self) -> None:
        """Download the node information from the connection again."""
        self._flat_dict = self._load_node_info()
        self._prefixes_keep = []
        self._generate_first_layer()

    def get_node_info(
        self, node: Union[Node, str], refresh: bool = True
    ) -> Union[Dict, List[Dict]]:
        """Get the element information from the nodetree

        Unix shell-style wildcards are supported.
        If more than one Node matches the wildcard a list is returned.

        Args:
            node(Union[Node, str]): string representing a node or node object
            refresh(bool): Flag if the node information should be downloaded
                again if the node is unknown. (default = True)

        Returns:
            dict/list[dict]: node(s) information

        Raises:
            NodeNotFoundError: if no node matches
        """
        key = self.to_raw_path(node)
        result = self._lookup_info(key)
        if not result and refresh and not NodePath.parse(key).is_wildcard:
            logger.debug(f"{key} is unknown, reloading the node information")
            self.refresh()
            result = self._lookup_info(key)
        if not result:
            raise NodeNotFoundError(key)
        return result

    def _lookup_info(self, key: str) -> Union[Dict, List[Dict]]:
        if key in self._flat_dict:
            return self._flat_dict[key]
        # resolve potential wildcards
        keys = fnmatch.filter(self._flat_dict.keys(), key)
        if len(keys) == 1:
            return self._flat_dict.get(keys[0])
        return [self._flat_dict.get(single_key) for single_key in keys]

    def node_kind(self, node: Union[Node, str]) -> NodeKind:
        """Value kind of a concrete node.

        Raises:
            NodeNotFoundError: if the node does not exist
        """
        return NodeKind.from_type(self.get_node_info(node).get("Type", ""))

    def _check_kind(self, raw_path: str, expected: NodeKind) -> NodeKind:
        kind = self.node_kind(raw_path)
        if kind not in (expected, NodeKind.UNKNOWN):
            raise TypeMismatchError(
                f"{raw_path} is a {kind.value} node and can not be accessed "
                f"as {expected.value}."
            )
        return kind

    #########################
    #### typed node access ####
    #########################

    def get_int(self, node: Union[Node, str]) -> int:
        """Get the value of an integer node.

        Raises:
            NodeNotFoundError: if the node does not exist
            TypeMismatchError: if the node is not an integer node
        """
        raw_path = self.to_raw_path(node)
        self._check_kind(raw_path, NodeKind.INTEGER)
        return int(self.connection.getInt(raw_path))

    def get_double(self, node: Union[Node, str]) -> float:
        """Get the value of a double node."""
        raw_path = self.to_raw_path(node)
        self._check_kind(raw_path, NodeKind.DOUBLE)
        return float(self.connection.getDouble(raw_path))

    def get_string(self, node: Union[Node, str]) -> str:
        """Get the value of a string node."""
        raw_path = self.to_raw_path(node)
        self._check_kind(raw_path, NodeKind.STRING)
        return self.connection.getString(raw_path)

    def get_vector(self, node: Union[Node, str]) -> Union[np.ndarray, str]:
        """Get the value of a vector node.

        Vector nodes have no dedicated getter on the data server, the value is
        read through a deep get.
        """
        raw_path = self.to_raw_path(node)
        self._check_kind(raw_path, NodeKind.VECTOR)
        raw_value = self.connection.get(raw_path, flat=True)
        if not raw_value:
            raise NodeNotFoundError(raw_path)
        value = list(raw_value.values())[0]
        if isinstance(value, dict):
            # zhinst.core < 22.08 returns a dict instead of a list of dicts
            return value["vector"]
        return value[0]["vector"]

    def get_sample(self, node: Union[Node, str]) -> DemodulatorSample:
        """Get a single demodulator sample.

        Returns:
            DemodulatorSample: sample with one entry per field
        """
        raw_path = self.to_raw_path(node)
        self._check_kind(raw_path, NodeKind.DEMOD_SAMPLE)
        return DemodulatorSample.from_raw(self.connection.getSample(raw_path))

    def get(self, node: Union[Node, str]) -> Any:
        """Get the value of a node with the getter matching its type."""
        raw_path = self.to_raw_path(node)
        kind = self.node_kind(raw_path)
        if kind is NodeKind.INTEGER:
            return int(self.connection.getInt(raw_path))
        if kind is NodeKind.DOUBLE:
            return float(self.connection.getDouble(raw_path))
        if kind is NodeKind.STRING:
            return self.connection.getString(raw_path)
        if kind is NodeKind.VECTOR:
            return self.get_vector(raw_path)
        if kind is NodeKind.DEMOD_SAMPLE:
            return self.get_sample(raw_path)
        if kind is NodeKind.COMPLEX:
            return self.connection.getComplex(raw_path)
        if kind is NodeKind.UNKNOWN:
            return self.connection.getDouble(raw_path)
        raise RuntimeError(f"nodes of type {kind.value} can only be polled.")

    def get_wildcard(self, node: Union[Node, str]) -> Dict[str, Any]:
        """Get the values of all nodes matching a wildcard path.

        Returns:
            dict: raw path mapped to the value of the node
        """
        raw_path = self.to_raw_path(node)
        result_raw = self.connection.get(raw_path, flat=True)
        if not result_raw:
            raise NodeNotFoundError(raw_path)
        result = {}
        for node_raw, node_value in result_raw.items():
            if isinstance(node_value, dict) and "value" in node_value:
                result[node_raw.lower()] = node_value["value"][0]
            elif isinstance(node_value, list) and node_value:
                result[node_raw.lower()] = node_value[0].get("vector")
            else:
                # HF2 has no timestamp
                result[node_raw.lower()] = node_value[0]
        return result

    def set_int(self, node: Union[Node, str], value: int) -> None:
        """Set the value of an integer node.

        Wildcard paths are resolved on the connection and written in a single
        transaction.

        Raises:
            NodeNotFoundError: if the node does not exist
            TypeMismatchError: if the node is not an integer node or the value
                is not integral
        """
        self._set_typed(node, value, NodeKind.INTEGER)

    def set_double(self, node: Union[Node, str], value: float) -> None:
        """Set the value of a double node."""
        self._set_typed(node, value, NodeKind.DOUBLE)

    def set_string(self, node: Union[Node, str], value: str) -> None:
        """Set the value of a string node."""
        self._set_typed(node, value, NodeKind.STRING)

    def set_vector(
        self, node: Union[Node, str], value: Union[np.ndarray, list, str]
    ) -> None:
        """Set the value of a vector node.

        Raises:
            WildcardAmbiguousError: if the path contains wildcards and matches
                at least one node.
        """
        self._set_typed(node, value, NodeKind.VECTOR)

    def set(self, node: Union[Node, str], value: Any) -> None:
        """Set the value of a node with the setter matching its type."""
        self._set_typed(node, value, None)

    def _set_typed(
        self, node: Union[Node, str], value: Any, expected: Optional[NodeKind]
    ) -> None:
        raw_path = self.to_raw_path(node)
        if NodePath.parse(raw_path).is_wildcard:
            self._set_wildcard(raw_path, value, expected)
            return
        if expected is None:
            kind = self.node_kind(raw_path)
        else:
            kind = self._check_kind(raw_path, expected)
        if kind is NodeKind.UNKNOWN:
            kind = expected if expected else _kind_of_value(value)
        value = _coerce(raw_path, value, kind)
        if self._set_transaction_queue is not None:
            if kind is NodeKind.VECTOR:
                raise AttributeError("Transactions do not support ZIVectorData")
            self.add_to_set_transaction(raw_path, value)
        elif hasattr(self.connection, _TYPED_SETTERS.get(kind, "set")):
            getattr(self.connection, _TYPED_SETTERS.get(kind, "set"))(raw_path, value)
        else:
            # modules only provide the generic setter
            self.connection.set(raw_path, value)

    def _set_wildcard(
        self, raw_path: str, value: Any, expected: Optional[NodeKind]
    ) -> None:
        """Performs a transactional set on all nodes that match the wildcard.

        The matching nodes are listed on the connection on every call.
        A wildcard that matches no node is a no-op.
        """
        matches = self.list_nodes(raw_path)
        if not matches:
            logger.debug(f"{raw_path} matches no node, nothing is set")
            return
        commands = []
        for match in matches:
            kind = self.node_kind(match)
            if kind is NodeKind.VECTOR:
                raise WildcardAmbiguousError(
                    f"{raw_path} matches the vector node {match}. Vector nodes "
                    "can only be set one by one."
                )
            if expected is not None:
                self._check_kind(match, expected)
            if kind is NodeKind.UNKNOWN:
                kind = expected if expected else _kind_of_value(value)
            commands.append((match, _coerce(match, value, kind)))
        if self._set_transaction_queue is not None:
            self._set_transaction_queue.extend(commands)
        else:
            self.connection.set(commands)

    def list_nodes(
        self, pattern: Union[Node, str] = "*", flags: ListNodesFlags = DEFAULT_LIST_FLAGS
    ) -> List[str]:
        """List the concrete nodes that match a pattern.

        The result is requested from the connection on every call and never
        cached. Can be used to check for optional hardware, e.g. if
        ``list_nodes("demods/*/enable")`` is empty the device has no
        demodulators.

        Args:
            pattern (Union[Node, str]): node path, may contain wildcards
            flags (ListNodesFlags): listNodes flags
                (default = RECURSIVE | ABSOLUTE | LEAVES_ONLY)

        Returns:
            list[str]: lower case paths of the matching nodes
        """
        raw_pattern = self.to_raw_path(pattern)
        nodes = self.connection.listNodes(raw_pattern, flags=int(flags))
        return [node.lower() for node in nodes]

    def get_as_event(self, node: Union[Node, str]) -> None:
        """Request the value of a node as event.

        The value is delivered to the next poll of the subscribed node. Mostly
        used to read vector nodes through the poll interface.
        """
        self.connection.getAsEvent(self.to_raw_path(node))

    def subscribe(self, node: Union[Node, str]) -> None:
        """Subscribe to a node."""
        raw_path = self.to_raw_path(node)
        if self._subscriptions is not None:
            self._subscriptions.add(raw_path)
        else:
            self.connection.subscribe(raw_path)

    def unsubscribe(self, node: Union[Node, str]) -> None:
        """Unsubscribe from a node."""
        raw_path = self.to_raw_path(node)
        if self._subscriptions is not None:
            self._subscriptions.discard(raw_path)
        else:
            self.connection.unsubscribe(raw_path)

    #########################
    #### path conversion ####
    #########################

    def to_raw_path(self, node: Union[Node, NodePath, str]) -> str:
        """Convert a node, a node path or a string into a raw node path."""
        if isinstance(node, Node):
            return self.node_to_raw_path(node)
        return self.string_to_raw_path(str(node))

    def raw_path_to_node(self, raw_path: str) -> Node:
        """Converts a raw node path string into a Node object.

        Args:
            raw_path (str): Raw node path (e.g. /dev1234/relative/path/to/node).

        Returns:
            Node: The corresponding Node object linked to this nodetree.
        """
        node_split = raw_path.lower().split("/")
        # buildin keywords are escaped with a tailing underscore
        # (https://pep8.org/#descriptive-naming-styles)
        node_split = [node + "_" if is_keyword(node) else node for node in node_split]
        # Since we always have a leading slash we ignore the first element
        # which is empty.
        if node_split[1] == self._prefix_hide:
            return Node(self, (*node_split[2:],))
        return Node(self, (*node_split[1:],))

    def node_to_raw_path(self, node: Node) -> str:
        """Converts a node into a raw node path string.

        The conversion adds the ``prefix_hide`` to the node string if necessary.

        Args:
            node (Node): node object

        Returns:
            str: node/key of the tuple in the internal dictionary
        """
        # buildin keywords are escaped with a tailing underscore
        # (https://pep8.org/#descriptive-naming-styles)
        node_list = [
            element[:-1] if is_keyword(element[:-1]) else element
            for element in node.raw_tree
        ]
        if not node_list:
            return "/"
        if node_list[0] in self._prefixes_keep or not self._prefix_hide:
            return str(NodePath(node_list))
        return str(NodePath([self._prefix_hide] + node_list))

    def string_to_raw_path(self, node_string: str) -> str:
        """Converts a string into a raw node path string.

        If the string does not represent a absolute path (leading slash) the
        ``prefix_hide`` will be added to the node string if necessary.

        Args:
            node_string (str):  string representation of the node

        Returns:
            str: node/key of the tuple in the internal dictionary

        Raises:
            ValueError: if the string is no valid node path
        """
        node_string = node_string.lower()
        if not node_string.startswith("/"):
            insert_prefix = bool(self._prefix_hide)
            for keep_prefix in self._prefixes_keep:
                if node_string.split("/")[0] == keep_prefix:
                    insert_prefix = False
                    break
            if insert_prefix and node_string.split("/")[0] == self._prefix_hide:
                raise ValueError(
                    f"{node_string} is a relative path but should be a "
                    "absolute path (leading slash)"
                )
            node_string = (
                f"/{self._prefix_hide}/{node_string}"
                if insert_prefix
                else "/" + node_string
            )
        return str(NodePath.parse(node_string))

    @contextmanager
    def set_transaction(self) -> None:
        """Context manager for a transactional set.

        Can be used as a context in a with statement and bundles all node set
        commands into a single transaction. This reduces the network overhead
        and often increases the speed.

        WARNING: ziVectorData are not supported in a transactional set and will
        cause a AttributeError.

        Within the with block a set commands to a node will be buffered
        and bundled into a single command at the end automatically.
        (All other operations, e.g. getting the value of a node, will not be
        affected)

        Examples:
            >>> with nodetree.set_transaction():
                    nodetree.test[0].a(1)
                    nodetree.test[1].a(2)
        """
        self._set_transaction_queue = []
        try:
            yield
            if self._set_transaction_queue:
                self.connection.set(self._set_transaction_queue)
        finally:
            self._set_transaction_queue = None

    def add_to_set_transaction(self, node: Union[Node, str], value: Any) -> None:
        """Adds a single node set command to the set transaction.

        Args:
            node (Union[Node,str]): node
            value (Any): Value that should be set to the node
        Raises:
            AttributeError: if no transaction is in progress
        """
        try:
            self._set_transaction_queue.append((self.to_raw_path(node), value))
        except AttributeError as exception:
            raise AttributeError("No set transaction is in progress.") from exception

    @property
    def set_transaction_queue(self) -> Optional[List[Tuple]]:
        """Queued set commands for a set transaction

        If no transaction is in progress the queue is of type None.

        Returns:
            List[Tuple]: List of the set commands in the internal queue
        """
        return self._set_transaction_queue

    @property
    def connection(self) -> Connection:
        """Underlying connection to the instrument."""
        return self._connection

    @property
    def prefix_hide(self) -> str:
        """Prefix, e.g. device id, that is hidden in the nodetree.

        Hidden means that users do not need to specify it and it will be added
        automatically to the nodes if necessary.
        """
        return self._prefix_hide

    @property
    def raw_dict(self) -> dict:
        """Flat dictionary with the information of all nodes."""
        return self._flat_dict


_TYPED_SETTERS = {
    NodeKind.INTEGER: "setInt",
    NodeKind.DOUBLE: "setDouble",
    NodeKind.STRING: "setString",
    NodeKind.VECTOR: "setVector",
}


def _kind_of_value(value: Any) -> NodeKind:
    """Guess the node kind from a value (nodes without type information)."""
    if isinstance(value, (bool, numbers.Integral)):
        return NodeKind.INTEGER
    if isinstance(value, numbers.Real):
        return NodeKind.DOUBLE
    if isinstance(value, (str, bytes)):
        return NodeKind.STRING
    return NodeKind.VECTOR


def _coerce(raw_path: str, value: Any, kind: NodeKind) -> Any:
    """Convert a value for a node of the given kind.

    Raises:
        TypeMismatchError: if the value can not be represented without loss
    """
    if kind is NodeKind.INTEGER:
        if isinstance(value, (bool, numbers.Integral)):
            return int(value)
        if isinstance(value, numbers.Real) and float(value).is_integer():
            return int(value)
    elif kind is NodeKind.DOUBLE:
        if isinstance(value, numbers.Real):
            return float(value)
    elif kind is NodeKind.STRING:
        if isinstance(value, bytes):
            return value.decode()
        if isinstance(value, str):
            return value
    elif kind is NodeKind.VECTOR:
        if isinstance(value, (str, bytes)):
            return value
        if isinstance(value, (list, tuple, np.ndarray)):
            return np.asarray(value)
    else:
        return value
    raise TypeMismatchError(
        f"{value!r} ({type(value).__name__}) can not be written to the "
        f"{kind.value} node {raw_path}."
    )
