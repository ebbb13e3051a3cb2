"""Pythonic and typed access to the LabOne parameter tree."""
from zhinst.daqkit.nodetree.path import NodePath
from zhinst.daqkit.nodetree.node import Node
from zhinst.daqkit.nodetree.nodetree import (
    Connection,
    ListNodesFlags,
    NodeKind,
    NodeTree,
)

__all__ = ["Connection", "ListNodesFlags", "Node", "NodeKind", "NodePath", "NodeTree"]
