# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Single lazy node of a :class:'Nodetree'."""

import re
from typing import Any, Set, Dict

from zhinst.daqkit.helper import lazy_property, wait_for
from zhinst.daqkit.nodetree.path import WILDCARD_SYMBOLS


class Node:
    """lazy node of a :class:'Nodetree'.

    The node is implemented in a lazy way. Meaning unless operations are
    performed on the node no checks whether the node is valid or not are
    performed. Every node overwrites the __getattr__ and __getitem__ in the
    same way the root (:class:'Nodetree') does. Meaning nodes can be chained.

    Calling a node without argument reads its value, calling it with an
    argument writes the value. Both operations use the typed access of the
    nodetree, e.g. a call on a double node ends in ``NodeTree.get_double``.

    >>> device.demods[0].rate(250)
    >>> device.demods[0].rate()
        250.0
    >>> device.demods["*"].enable(0)

    Args:
        root (nodetree.NodeTree): root of the nodetree
        tree (tuple): tree (node path as tuple) of the current node
    """

    def __init__(self, root: "NodeTree", tree: tuple):
        self._root = root
        self._tree = tree

    def __getattr__(self, name):
        if not name.startswith("_"):
            return Node(self._root, self._tree + (name.lower(),))
        return None

    def __getitem__(self, name):
        return Node(self._root, self._tree + (str(name).lower(),))

    def __contains__(self, k):
        return k in self._next_layer

    def __iter__(self):
        prefix = self.node.rstrip("/") + "/"
        for node_raw, info in self._root.raw_dict.items():
            if node_raw.startswith(prefix):
                yield self._root.raw_path_to_node(node_raw), info

    def __repr__(self):
        return self.node

    def __call__(self, value: Any = None, enum: bool = True) -> Any:
        """get or set the value of the node.

        If the node is a partial node, meaning it represents a subset of multiple
        other nodes, this function will return a dictionary with the values of
        all child nodes.

        Args:
            value (Any): Value that should be set to the node. If None the value
                of the node will be returned. (default = None)
            enum (bool): Flag if enumerated values should accept/return the enum
                value as string. (default = True)
        """
        if value is None:
            return self._get(enum=enum)
        return self._set(value, enum=enum)

    def __dir__(self):
        dir_info = set(self._next_layer)
        for var, value in vars(self.__class__).items():
            if isinstance(value, property) and not var.startswith("_"):
                dir_info.add(var)
        return sorted(dir_info)

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return self._tree == other.raw_tree and self._root is other.root

    def __hash__(self):
        return hash((self._tree, id(self._root)))

    @lazy_property
    def _next_layer(self) -> Set[str]:
        """List of direct child nodes"""
        next_layer = set()
        for node, _ in self._root:
            if self._is_child_node(node):
                next_layer.add(node.raw_tree[len(self._tree)])
        return next_layer

    @lazy_property
    def _node_information(self) -> dict:
        """detailed information about the node."""
        if self._contains_wildcards():
            raise KeyError(self._root.node_to_raw_path(self))
        return self._root.get_node_info(self, refresh=False)

    @lazy_property
    def _option_map(self) -> dict:
        """Map to map options to the respective values."""
        option_map = {}
        for key, value in self.options.items():
            options = re.findall(r'"(.+?)"[,:]+', value)
            option_map.update({x: int(key) for x in options})
        return option_map

    @lazy_property
    def _option_map_reverse(self) -> dict:
        """Map to map values to the respective option."""
        option_map_reverse = {}
        for key, value in self.options.items():
            options = re.findall(r'"(.+?)"[,:]+', value)
            if len(options) > 0:
                option_map_reverse[int(key)] = options[0]
        return option_map_reverse

    def _contains_wildcards(self) -> bool:
        """Does the node contain any wildcard symbols

        Supported wildcards are *,?,[

        Returns:
            bool: Flag if the node contains wildcards
        """
        return any(wildcard in "".join(self._tree) for wildcard in WILDCARD_SYMBOLS)

    def _get(self, enum: bool = True) -> Any:
        """get the value from the node.

        Args:
            enum (bool): Flag if enumerated values should return the enum value
                as string or return the raw number
        """
        try:
            info = self._node_information
        except KeyError:
            if self._contains_wildcards():
                return self._root.get_wildcard(self)
            # If node is a partial node excecute a wildcard get
            if self.is_partial_node:
                return self._root.get_wildcard(self._root.node_to_raw_path(self) + "/*")
            info = self._root.get_node_info(self)
        if "Read" not in info.get("Properties", "Read"):
            raise AttributeError(f"{str(self)} is not readable!")
        value = self._root.get(self)
        if enum and "Options" in info:
            mapped_value = self._option_map_reverse.get(value)
            value = mapped_value if mapped_value else value
        return value

    def _set(self, value: Any, enum: bool = True) -> None:
        """set the value to the node.

        Args:
            value (Any): value
            enum (bool): Flag if enumerated values should accept the enum value as
                string. (default=True)
        """
        if self._contains_wildcards():
            self._root.set(self, value)
            return
        try:
            info = self._node_information
        except KeyError:
            info = self._root.get_node_info(self)
        if "Write" not in info.get("Properties", "Write"):
            raise AttributeError("This parameter is read-only.")
        if enum and "Options" in info:
            mapped_value = self._option_map.get(value)
            value = mapped_value if mapped_value is not None else value
        self._root.set(self, value)

    def _is_child_node(self, child_node: "Node") -> bool:
        """Checks if a node is child node of this node.

        Args:
            child_node (Node): potential child node

        Returns:
            bool: Flag if passed node is a child_node
        """
        if len(child_node.raw_tree) <= len(self._tree):
            # No need to proceed if potential child node is shorter or equaly
            # long than the node itself
            return False
        return child_node.raw_tree[: len(self._tree)] == self._tree

    def wait_for_state_change(
        self,
        value: Any,
        timeout: float = 2,
        sleep_time: float = 0.005,
    ) -> None:
        """Waits until the node has the expected state/value.

        Args:
            value (Any): expected value of the node. Enumerated nodes accept
                both the number and the option name.
            timeout (float): max wait time. (default = 2)
            sleep_time (float): sleep interval in seconds. (default = 0.005)

        Raises:
            OperationTimeoutError: if the node did not reach the value in time.
        """
        if self._contains_wildcards():
            for node_raw in self._root.list_nodes(self):
                self._root.raw_path_to_node(node_raw).wait_for_state_change(
                    value, timeout=timeout, sleep_time=sleep_time
                )
            return
        if "Options" in self._node_information and isinstance(value, int):
            value = self._option_map_reverse.get(value, value)
        wait_for(
            lambda: self._get() == value,
            timeout,
            sleep_time=sleep_time,
            message=f"{self.node} did not change to {value} within {timeout}s.",
        )

    def subscribe(self) -> None:
        """Subscribe to nodes. Fetch data with the poll command.

        In order to avoid fetching old data that is still in the buffer execute
        a sync command before subscribing to data streams.
        """
        self._root.subscribe(self)

    def unsubscribe(self) -> None:
        """Unsubscribe data stream.

        Use this command after recording to avoid buffer overflows that may
        increase the latency of other command.
        """
        self._root.unsubscribe(self)

    def get_as_event(self) -> None:
        """Trigger an event for the node.

        The node data is returned by the next poll if the node is subscribed.
        """
        self._root.get_as_event(self)

    @property
    def node(self) -> str:
        """LabOne representation of the node."""
        return self._root.node_to_raw_path(self)

    @property
    def description(self) -> str:
        """Description of the node."""
        return self._node_information.get("Description", "")

    @property
    def type(self) -> str:
        """Type of the node."""
        return self._node_information.get("Type", "")

    @property
    def unit(self) -> str:
        """Unit of the node."""
        return self._node_information.get("Unit", "")

    @property
    def options(self) -> Dict[int, str]:
        """Options of the node."""
        return self._node_information.get("Options", {})

    @property
    def properties(self) -> str:
        """Properties of the node."""
        return self._node_information.get("Properties", "")

    @property
    def raw_tree(self) -> tuple:
        """Internal representation of the node."""
        return self._tree

    @property
    def root(self) -> "NodeTree":
        """Root of the nodetree."""
        return self._root

    @lazy_property
    def is_partial_node(self) -> bool:
        """Flag if the node is a partial node"""
        for node, _ in self._root:
            if self._is_child_node(node):
                return True
        return False
