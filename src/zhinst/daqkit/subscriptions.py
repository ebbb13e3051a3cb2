# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Set of subscribed node paths."""
import logging
from collections.abc import Set
from typing import Callable, Iterable, Iterator, List, Optional

from zhinst.daqkit.nodetree.path import NodePath

logger = logging.getLogger(__name__)


class SubscriptionSet(Set):
    """Set of subscribed concrete node paths.

    Every change of the set is forwarded to the connection (the data server
    or a module), the set therefore always reflects what the connection will
    deliver on the next poll or read. Subscribing an already subscribed path
    and unsubscribing a path that is not subscribed are no-ops.

    Wildcard paths are expanded into the concrete paths that exist at the
    time of the call with ``resolver``. Without a resolver, wildcard paths
    are stored as they are (e.g. for modules that resolve them themselves).

    Args:
        connection: object with a ``subscribe`` and ``unsubscribe`` method
            (``zhinst.core.ziDAQServer`` or a module).
        resolver: callable that expands a wildcard path into concrete paths.
    """

    def __init__(
        self,
        connection,
        resolver: Optional[Callable[[str], Iterable[str]]] = None,
    ):
        self._connection = connection
        self._resolver = resolver
        self._paths = set()

    def __contains__(self, path) -> bool:
        return str(path).lower() in self._paths

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def __repr__(self):
        return f"SubscriptionSet({sorted(self._paths)})"

    def _expand(self, path: str) -> List[str]:
        node_path = NodePath.parse(path)
        if node_path.is_wildcard and self._resolver is not None:
            return [str(NodePath.parse(match)) for match in self._resolver(str(node_path))]
        return [str(node_path)]

    def add(self, path: str) -> List[str]:
        """Subscribe to a path.

        Args:
            path (str): absolute node path, may contain wildcards.

        Returns:
            list[str]: newly subscribed concrete paths
        """
        added = []
        for concrete in self._expand(path):
            if concrete in self._paths:
                continue
            self._connection.subscribe(concrete)
            self._paths.add(concrete)
            added.append(concrete)
        if not added:
            logger.debug(f"No new subscription for {path}")
        return added

    def discard(self, path: str) -> List[str]:
        """Unsubscribe from a path.

        Wildcard paths remove all subscribed paths they match.

        Returns:
            list[str]: unsubscribed concrete paths
        """
        node_path = NodePath.parse(path)
        if node_path.is_wildcard:
            removed = [known for known in self._paths if node_path.matches(known)]
        else:
            removed = [str(node_path)] if str(node_path) in self._paths else []
        for concrete in removed:
            self._connection.unsubscribe(concrete)
            self._paths.discard(concrete)
        return removed

    def clear(self) -> None:
        """Unsubscribe from all paths.

        The set is empty afterwards even if the connection fails to
        unsubscribe.
        """
        try:
            for concrete in list(self._paths):
                self._connection.unsubscribe(concrete)
        finally:
            self._paths.clear()
