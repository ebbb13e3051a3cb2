# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Generic asynchronous module of the data server.

A module is a job running on the data server (e.g. a frequency sweep or the
compilation of a sequencer program). All modules share the same lifecycle::

    CREATED --configure()--> CONFIGURED --execute()--> EXECUTING
    EXECUTING --finished() is True--> FINISHED
    (any state) --clear()--> RELEASED

The module holds resources on the data server until it is cleared. Modules
are context managers that clear themselves on exit.
"""
import logging
import numbers
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

import numpy as np

from zhinst.daqkit.exceptions import (
    ConfigTypeError,
    InvalidStateError,
    ModuleReleasedError,
    NodeNotFoundError,
)
from zhinst.daqkit.helper import wait_for
from zhinst.daqkit.nodetree import Node, NodeKind, NodeTree
from zhinst.daqkit.sample import Lookup, SampleKind, SweepVariant
from zhinst.daqkit.subscriptions import SubscriptionSet

logger = logging.getLogger(__name__)


class ModuleKind(Enum):
    """Kind of a module.

    The value is the name of the factory function of ``zhinst.core.ziDAQServer``
    that creates the module.
    """

    SWEEPER = "sweep"
    SPECTRUM = "zoomFFT"
    SCOPE = "scopeModule"
    AWG = "awgModule"
    DAQ = "dataAcquisitionModule"
    PID_ADVISOR = "pidAdvisor"
    IMPEDANCE = "impedanceModule"
    DEVICE_SETTINGS = "deviceSettings"
    MULTI_DEVICE_SYNC = "multiDeviceSyncModule"

    @property
    def factory(self) -> str:
        """Name of the factory function on the data server connection."""
        return self.value


class ModuleState(Enum):
    """Lifecycle state of a module."""

    CREATED = "created"
    CONFIGURED = "configured"
    EXECUTING = "executing"
    FINISHED = "finished"
    RELEASED = "released"


_VALUE_CATEGORIES = {
    NodeKind.INTEGER: {"numeric"},
    NodeKind.DOUBLE: {"numeric"},
    NodeKind.STRING: {"string"},
    NodeKind.VECTOR: {"vector", "string"},
}


def _value_category(value: Any) -> Optional[str]:
    if isinstance(value, (bool, numbers.Number)) and not isinstance(value, complex):
        return "numeric"
    if isinstance(value, (str, bytes)):
        return "string"
    if isinstance(value, (list, tuple, np.ndarray)):
        return "vector"
    return None


def normalize_key(key: Any) -> str:
    """Convert a configuration key into the absolute module path.

    >>> normalize_key("grid/mode")
        '/grid/mode'
    """
    return "/" + str(key).strip().strip("/").lower()


class BaseModule(Node):
    """Generic module of the data server.

    Next to the typed configuration interface the module exposes its nodes
    in the same pythonic way as a device:

    >>> sweeper.start(1e3)
    >>> sweeper.configure("stop", 1e5)

    Args:
        raw_module: Module object of ``zhinst.core``.
        session (Session): Session that created the module.
        kind (ModuleKind): Kind of the module.
    """

    #: variant of the sweep results read from the module
    sweep_variant: Optional[SweepVariant] = None

    def __init__(self, raw_module, session, kind: ModuleKind):
        self._raw_module = raw_module
        self._session = session
        self._kind = kind
        self._state = ModuleState.CREATED
        self._subscriptions = SubscriptionSet(raw_module, resolver=session.list_nodes)
        super().__init__(NodeTree(raw_module), tuple())

    def __repr__(self):
        return f"{self.__class__.__name__}({self._state.value})"

    def __hash__(self):
        return id(self)

    def __eq__(self, other):
        return self is other

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.clear()

    def _check_released(self) -> None:
        if self._state is ModuleState.RELEASED:
            raise ModuleReleasedError(
                f"{self.__class__.__name__} was cleared and can not be used anymore."
            )

    def _chunk_kind(self, path: str) -> Optional[SampleKind]:
        """Kind of the chunks read for a path (None derives it from the data)."""
        return None

    def configure(self, key: str, value: Any) -> None:
        """Set a configuration value of the module.

        Keys the module does not declare are passed to the module as they are.
        For declared keys the value must match the type of the key: numbers
        for integer and double keys, strings for string keys and sequences
        for vector keys.

        Args:
            key (str): Configuration key, e.g. ``"start"`` or ``"grid/mode"``.
            value (Any): Value of the key.

        Raises:
            ConfigTypeError: if the value does not match the type of the key.
            ModuleReleasedError: if the module was cleared.
        """
        self._check_released()
        path = normalize_key(key)
        value = self._checked_value(path, value)
        self._raw_module.set(path, value)
        if self._state is ModuleState.CREATED:
            self._state = ModuleState.CONFIGURED

    def configure_many(self, values: Mapping[str, Any] = None, **kwargs) -> None:
        """Set multiple configuration values.

        >>> daq.configure_many({"grid/mode": 4, "grid/cols": 500}, count=1)
        """
        for key, value in {**(values or {}), **kwargs}.items():
            self.configure(key, value)

    def _checked_value(self, path: str, value: Any) -> Any:
        category = _value_category(value)
        if category is None:
            raise ConfigTypeError(
                f"{type(value).__name__} is no valid configuration value ({path})."
            )
        try:
            info = self.root.get_node_info(path, refresh=False)
        except NodeNotFoundError:
            logger.debug(f"{path} is not declared by the module, passed as is.")
            return value
        if not isinstance(info, dict):
            return value
        kind = NodeKind.from_type(info.get("Type", ""))
        expected = _VALUE_CATEGORIES.get(kind)
        if expected is not None and category not in expected:
            raise ConfigTypeError(
                f"{path} expects a {kind.value} value but got "
                f"{value!r} ({type(value).__name__})."
            )
        if kind is NodeKind.INTEGER and not isinstance(value, numbers.Integral):
            if not float(value).is_integer():
                raise ConfigTypeError(f"{path} expects an integer but got {value!r}.")
            return int(value)
        if isinstance(value, bytes):
            return value.decode()
        return value

    def get_int(self, key: str) -> int:
        """Get an integer value of the module."""
        self._check_released()
        return int(self._raw_module.getInt(normalize_key(key)))

    def get_double(self, key: str) -> float:
        """Get a double value of the module."""
        self._check_released()
        return float(self._raw_module.getDouble(normalize_key(key)))

    def get_string(self, key: str) -> str:
        """Get a string value of the module."""
        self._check_released()
        return self._raw_module.getString(normalize_key(key))

    def get(self, pattern: str = "*") -> Dict[str, Any]:
        """Get the raw values of all module nodes matching a pattern.

        Returns:
            dict: lower case module path mapped to the raw value
        """
        self._check_released()
        raw = self._raw_module.get(pattern, flat=True)
        return {path.lower(): value for path, value in (raw or {}).items()}

    def subscribe(self, path: str) -> None:
        """Subscribe the module to a device node.

        ``read`` only returns data of the nodes subscribed on the module.

        Args:
            path (str): absolute node path, e.g. ``/dev1234/demods/0/sample``.
                Signal suffixes (``sample.r``) are supported for the DAQ module.
        """
        self._check_released()
        self._subscriptions.add(path)

    def unsubscribe(self, path: str = "*") -> None:
        """Unsubscribe the module from a node (default: from all nodes)."""
        self._check_released()
        if path == "*":
            self._subscriptions.clear()
        else:
            self._subscriptions.discard(path)

    def execute(self) -> None:
        """Start the module.

        The call returns immediately, the module runs asynchronously on the
        data server. A finished module can be executed again.

        Raises:
            InvalidStateError: if the module is still executing.
            ModuleReleasedError: if the module was cleared.
        """
        self._check_released()
        if self._state is ModuleState.EXECUTING and not self._raw_module.finished():
            raise InvalidStateError(
                f"{self.__class__.__name__} is still executing. Call finish() or "
                "wait until it finished before executing it again."
            )
        self._raw_module.execute()
        self._state = ModuleState.EXECUTING
        logger.debug(f"{repr(self)} executed")

    def progress(self) -> float:
        """Progress of the current execution in the range [0, 1].

        Some modules restart their progress for every phase of a job, the
        value is therefore not guaranteed to increase monotonically.
        """
        self._check_released()
        return float(np.ravel(self._raw_module.progress())[0])

    def finished(self) -> bool:
        """Check (without blocking) if the module finished its job."""
        self._check_released()
        finished = bool(self._raw_module.finished())
        if finished and self._state is ModuleState.EXECUTING:
            self._state = ModuleState.FINISHED
        return finished

    def wait_done(
        self,
        timeout: float = 20.0,
        sleep_time: float = 0.1,
        cancel: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """Block until the module finished.

        Args:
            timeout (float): max wait time in seconds. (default = 20)
            sleep_time (float): interval between two checks. (default = 0.1)
            cancel (Callable): optional callable, the wait is abandoned if it
                returns True.

        Returns:
            bool: True if the module finished, False if the wait was cancelled.

        Raises:
            OperationTimeoutError: if the module did not finish in time.
        """
        return wait_for(
            self.finished,
            timeout,
            sleep_time=sleep_time,
            cancel=cancel,
            message=f"{repr(self)} did not finish within {timeout}s.",
        )

    def read(self) -> Lookup:
        """Read the data of the subscribed nodes.

        Streaming modules (DAQ, scope) deliver partial results while they are
        executing, batch modules (sweeper, spectrum) only once they finished.
        """
        self._check_released()
        raw = self._raw_module.read(flat=True)
        return Lookup.from_raw(
            raw,
            kind_of=self._chunk_kind,
            variant=self.sweep_variant,
            paths=self._subscriptions,
        )

    def finish(self) -> None:
        """Stop the current execution without releasing the module.

        Best effort, a module that is not executing is left untouched. The
        data recorded so far can still be read afterwards.
        """
        self._check_released()
        if self._state is not ModuleState.EXECUTING:
            return
        self._raw_module.finish()
        self._state = ModuleState.FINISHED

    def clear(self) -> None:
        """Release all resources of the module on the data server.

        Must be called for every module (or use the module as context manager),
        otherwise modules created in a loop exhaust the data server. Calling
        it more than once has no effect. The module is released even if the
        data server reports an error while clearing it.
        """
        if self._state is ModuleState.RELEASED:
            return
        try:
            self._raw_module.clear()
        finally:
            self._state = ModuleState.RELEASED
            self._session.release_module(self)
        logger.debug(f"{self.__class__.__name__} cleared")

    @property
    def kind(self) -> ModuleKind:
        """Kind of the module."""
        return self._kind

    @property
    def state(self) -> ModuleState:
        """Lifecycle state of the module."""
        return self._state

    @property
    def subscriptions(self) -> SubscriptionSet:
        """Nodes subscribed on the module."""
        return self._subscriptions

    @property
    def raw_module(self):
        """Underlying ``zhinst.core`` module."""
        return self._raw_module

    @property
    def session(self):
        """Session that created the module."""
        return self._session


DeviceLike = Union[str, Node]


def device_serial(device: DeviceLike) -> str:
    """Serial of a device object or string."""
    return getattr(device, "serial", str(device)).lower()
