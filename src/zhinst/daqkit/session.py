# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Module for managing a session to a Data Server through zhinst.core."""
import logging
import warnings
from collections.abc import MutableMapping
from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import List, Optional, Tuple, Union

from zhinst import core

from zhinst.daqkit.driver.base import BaseInstrument
from zhinst.daqkit.driver.capabilities import DeviceFamily
from zhinst.daqkit.driver.modules import MODULE_CLASSES
from zhinst.daqkit.driver.modules.base_module import BaseModule, ModuleKind
from zhinst.daqkit.exceptions import (
    ConnectionFailedError,
    DaqkitError,
    SampleLossError,
    VersionMismatchError,
)
from zhinst.daqkit.nodetree import ListNodesFlags, Node, NodeTree
from zhinst.daqkit.nodetree.nodetree import DEFAULT_LIST_FLAGS
from zhinst.daqkit.sample import Lookup, SampleKind
from zhinst.daqkit.subscriptions import SubscriptionSet

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8004
DEFAULT_API_LEVEL = 6
HF2_PORT = 8005
HF2_API_LEVEL = 1


class SessionState(Enum):
    """Connection state of a session."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    ATTACHED = "attached"


class PollFlags(IntFlag):
    """Flags used for polling.

    Can be combinded with bitwise operations
    >>> PollFlags.FILL | PollFlags.DETECT
        <PollFlags.DETECT|FILL: 9>
    """

    DETECT_AND_THROW = 12  # Detect data loss holes and throw SampleLossError
    DETECT = 8  # Detect data loss holes
    FILL = 1  # Fill holes
    DEFAULT = 0  # No Flags


@dataclass(frozen=True)
class DiscoveryInfo:
    """Result of the device discovery.

    Args:
        interfaces: Interfaces through which the device can be attached.
        connected_interface: Interface the device is currently attached
            through (None if it is not attached).
        server_address: Host of the data server the device is visible to.
        server_port: Port of that data server.
        api_level: API level supported by that data server.
        device_type: Type of the device, e.g. ``MFLI``.
    """

    interfaces: Tuple[str, ...]
    connected_interface: Optional[str]
    server_address: str
    server_port: int
    api_level: int
    device_type: str = ""

    @property
    def interface(self) -> Optional[str]:
        """Interface to attach through: the connected one, else the first."""
        if self.connected_interface:
            return self.connected_interface
        return self.interfaces[0] if self.interfaces else None


def discover(serial: str, discovery=None) -> DiscoveryInfo:
    """Discover a device in the network.

    Args:
        serial (str): Serial number of the device, e.g. *'dev12000'*.
        discovery: ``zhinst.core.ziDiscovery`` instance. A new one is
            created if not specified.

    Returns:
        DiscoveryInfo: Information where and how the device can be reached.

    Raises:
        RuntimeError: if the device can not be found.
    """
    discovery = discovery if discovery is not None else core.ziDiscovery()
    device_id = discovery.find(serial)
    properties = discovery.get(device_id)
    interfaces = properties.get("interfaces", [])
    if isinstance(interfaces, str):
        interfaces = interfaces.split("\n")
    connected = properties.get("connected", "")
    if not isinstance(connected, str) or not connected:
        connected = None
    info = DiscoveryInfo(
        interfaces=tuple(interface for interface in interfaces if interface),
        connected_interface=connected,
        server_address=properties.get("serveraddress", DEFAULT_HOST),
        server_port=int(properties.get("serverport", DEFAULT_PORT)),
        api_level=int(properties.get("apilevel", DEFAULT_API_LEVEL)),
        device_type=properties.get("devicetype", ""),
    )
    logger.debug(f"Discovered {serial}: {info}")
    return info


class Devices(MutableMapping):
    """Mapping class for the connected devices.

    Mapps the connected devices from data server to lazy device objects.
    On every access the connected devices are read from the data server. This
    ensures that even if devices get connected/disconnected through another
    session the list will be up to date.

    Args:
        session (Session): active session to the data server.
    """

    def __init__(self, session: "Session"):
        self._session = session
        self._devices = {}

    def connected(self) -> List[str]:
        """Get a list of devices connected to the data server.

        Returns:
            list[str]: List of all connected devices.
        """
        try:
            connected = self._session.daq_server.getString("/zi/devices/connected")
        except RuntimeError:
            # HF2 data servers do not list the connected devices
            return list(self._devices.keys())
        return [serial for serial in connected.lower().split(",") if serial]

    def attach(self, serial: str) -> BaseInstrument:
        """Create the device object of a device attached by this session."""
        if serial not in self._devices:
            self._devices[serial] = self._create_device(serial)
        return self._devices[serial]

    def cached(self, serial: str) -> Optional[BaseInstrument]:
        """Device object if it was already created, without a server request."""
        return self._devices.get(serial.lower())

    def __getitem__(self, key) -> BaseInstrument:
        key = key.lower()
        if key in self._devices or key in self.connected():
            return self.attach(key)
        raise KeyError(key)

    def __setitem__(self, key, value):
        raise LookupError(
            "Illegal operation. Devices must be connected through the session."
        )

    def __delitem__(self, key):
        self._devices.pop(key.lower(), None)

    def __iter__(self):
        return iter(self.connected())

    def __len__(self):
        return len(self.connected())

    def _create_device(self, serial: str) -> BaseInstrument:
        """Creates a new device object.

        WARNING: The device must already be connected to the data server

        Args:
            serial (str): device serial

        Returns:
            BaseInstrument: newly created instrument object

        Raises:
            RuntimeError: If the device is not connected to the data server
        """
        dev_type = self._session.daq_server.getString(f"/{serial}/features/devtype")
        return BaseInstrument(serial, dev_type, self._session)


class Session(Node):
    """Session to a data server.

    The session owns the connection to the data server, the devices attached
    through it, the top level subscriptions and all modules it created.
    Besides that it exposes the ``/zi`` nodes of the data server in the same
    pythonic way as a device exposes its nodes.

    >>> with Session("localhost") as session:
    ...     device = session.connect_device("dev1234")
    ...     session.subscribe("/dev1234/demods/0/sample")
    ...     data = session.poll(0.1)

    Args:
        server_host (str): Host of the data server. (default = "localhost")
        server_port (int): Port of the data server. (default = 8004, 8005 for
            a HF2 data server)
        api_level (int): API level used for the connection. (default = 6,
            1 for a HF2 data server)
        hf2 (bool): Flag if the data server is a HF2 data server. If not
            specified it is detected.
        connection (zhinst.core.ziDAQServer): Existing connection to the data
            server. If specified ``server_host``, ``server_port`` and
            ``api_level`` are ignored.

    Raises:
        ConnectionFailedError: if the data server can not be reached.
    """

    def __init__(
        self,
        server_host: str = DEFAULT_HOST,
        server_port: int = None,
        api_level: int = None,
        *,
        hf2: bool = None,
        connection: core.ziDAQServer = None,
    ):
        self._is_hf2_server = bool(hf2)
        self._modules = []
        if connection is not None:
            self._server_host = None
            self._server_port = None
            self._daq_server = connection
            if hf2 is None:
                self._is_hf2_server = "HF2" in connection.getString(
                    "/zi/about/dataserver"
                )
        else:
            self._server_host = server_host
            self._server_port = (
                server_port
                if server_port
                else (HF2_PORT if self._is_hf2_server else DEFAULT_PORT)
            )
            self._daq_server = self._open_connection(api_level, hf2)
        self._state = SessionState.CONNECTED
        self._devices = Devices(self)
        self._subscriptions = SubscriptionSet(
            self._daq_server, resolver=self.list_nodes
        )
        nodetree = NodeTree(
            self._daq_server,
            prefix_hide="zi",
            list_nodes=["/zi/*"],
        )
        super().__init__(nodetree, tuple())
        logger.info(f"{repr(self)} connected")

    def _open_connection(self, api_level: Optional[int], hf2: Optional[bool]):
        level = api_level if api_level else (
            HF2_API_LEVEL if self._is_hf2_server else DEFAULT_API_LEVEL
        )
        try:
            return core.ziDAQServer(self._server_host, self._server_port, level)
        except RuntimeError as error:
            if "Unsupported API level" in str(error) and hf2 is None and not api_level:
                logger.debug("API level 6 not supported, retrying as HF2 server")
                self._is_hf2_server = True
                try:
                    return core.ziDAQServer(
                        self._server_host, self._server_port, HF2_API_LEVEL
                    )
                except RuntimeError as hf2_error:
                    raise ConnectionFailedError(
                        f"Unable to connect to {self._server_host}:"
                        f"{self._server_port}: {hf2_error}"
                    ) from hf2_error
            raise ConnectionFailedError(
                f"Unable to connect to {self._server_host}:{self._server_port}: "
                f"{error}"
            ) from error

    def __repr__(self):
        return str(
            f"{'HF2' if self._is_hf2_server else ''}Session("
            f"{self._server_host}:{self._server_port})"
        )

    def __hash__(self):
        return id(self)

    def __eq__(self, other):
        return self is other

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.disconnect()

    @classmethod
    def from_existing_connection(
        cls, connection: core.ziDAQServer, hf2: bool = None
    ) -> "Session":
        """Create a session from an existing ``zhinst.core.ziDAQServer``.

        Args:
            connection: Existing connection to the data server.
            hf2 (bool): Flag if the data server is a HF2 data server. If not
                specified it is detected.
        """
        return cls(connection=connection, hf2=hf2)

    @classmethod
    def for_device(
        cls,
        serial: str,
        interface: str = None,
        allow_version_mismatch: bool = False,
    ) -> "Session":
        """Discover a device, connect to its data server and attach it.

        Args:
            serial (str): Serial number of the device, e.g. *'dev12000'*.
            interface (str): Device interface (e.g. = "1GbE"). If not specified
                the interface from the discovery is used.
            allow_version_mismatch (bool): Flag if a version mismatch between
                the data server and the client is only logged as warning.
                (default = False)

        Returns:
            Session: session with the device attached

        Raises:
            VersionMismatchError: if the versions differ and mismatches are not
                allowed.
            ConnectionFailedError: if the data server can not be reached.
        """
        info = discover(serial)
        logger.info(
            f"Connecting to server {info.server_address}:{info.server_port} "
            f"with API level {info.api_level}"
        )
        session = cls(
            info.server_address,
            info.server_port,
            info.api_level,
            hf2=DeviceFamily.from_device_type(info.device_type) is DeviceFamily.HF2,
        )
        try:
            session.verify_compatibility()
        except VersionMismatchError as error:
            if not allow_version_mismatch:
                session.disconnect()
                raise
            logger.warning(str(error))
        session.connect_device(serial, interface if interface else info.interface)
        return session

    def _check_connected(self) -> None:
        if self._state is SessionState.DISCONNECTED:
            raise ConnectionFailedError(f"{repr(self)} is disconnected.")

    def verify_compatibility(self) -> None:
        """Check that the data server and the client use the same version.

        Raises:
            VersionMismatchError: if the versions differ.
        """
        self._check_connected()
        server_version = self._daq_server.getString("/zi/about/version")
        api_version = self._daq_server.version()
        if server_version != api_version:
            raise VersionMismatchError(api_version, server_version)
        logger.debug(f"Data server and client use version {api_version}")

    def connect_device(self, serial: str, interface: str = None) -> BaseInstrument:
        """Establish a connection to a device.

        Connecting an already connected device has no effect.

        Args:
            serial (str): Serial number of the device, e.g. *'dev12000'*.
                The serial number can be found on the back panel of the instrument.
            interface (str): Device interface (e.g. = "1GbE"). If not specified
                the default interface from the discover is used.

        Returns:
            BaseInstrument: Device object

        Raises:
            ConnectionFailedError: if no interface is available for the device.
        """
        self._check_connected()
        serial = serial.lower()
        if serial not in self._devices.connected():
            if not interface:
                if self._is_hf2_server:
                    interface = "USB"
                else:
                    interface = discover(serial).interface
                if not interface:
                    raise ConnectionFailedError(
                        f"No interface available to connect {serial.upper()}."
                    )
            logger.info(f"Connecting to {serial.upper()} on interface {interface}")
            self._daq_server.connectDevice(serial, interface)
        device = self._devices.attach(serial)
        # resolve the capabilities once while attaching
        device.capabilities
        self._state = SessionState.ATTACHED
        return device

    def disconnect_device(self, serial: str) -> None:
        """Disconnect a device.

        This function will return immediately. The disconnection of the device
        may not yet finished.

        Args:
            serial (str): Serial number of the device, e.g. *'dev12000'*.
                The serial number can be found on the back panel of the instrument.
        """
        self._check_connected()
        serial = serial.lower()
        del self._devices[serial]
        self._daq_server.disconnectDevice(serial)
        if self._state is SessionState.ATTACHED and not self._devices.connected():
            self._state = SessionState.CONNECTED

    def disconnect(self) -> None:
        """Close the session.

        Clears all modules still owned by the session, removes all
        subscriptions and closes the connection to the data server. Calling it
        more than once has no effect.

        The connection is closed even if clearing a module or removing the
        subscriptions fails (e.g. because the link already dropped). The first
        of these errors is raised once the connection is closed.

        Raises:
            RuntimeError: if a module or the subscriptions could not be
                released on the data server.
        """
        if self._state is SessionState.DISCONNECTED:
            return
        errors = []
        try:
            for module in list(self._modules):
                name = repr(module)
                logger.warning(
                    f"{name} was not cleared before the session "
                    "disconnected, clearing it now."
                )
                try:
                    module.clear()
                except RuntimeError as error:
                    logger.warning(f"Clearing {name} failed: {error}")
                    errors.append(error)
            try:
                self._subscriptions.clear()
            except RuntimeError as error:
                logger.warning(f"Removing the subscriptions failed: {error}")
                errors.append(error)
        finally:
            self._modules.clear()
            self._daq_server.disconnect()
            self._devices = Devices(self)
            self._state = SessionState.DISCONNECTED
            logger.info(f"{repr(self)} disconnected")
        if errors:
            raise errors[0]

    def has_family(self, serial: str, family: Union[DeviceFamily, str]) -> bool:
        """Check if an attached device belongs to a family."""
        return self._devices[serial].capabilities.has_family(family)

    def has_option(self, serial: str, option: str) -> bool:
        """Check if an attached device has an option installed."""
        return self._devices[serial].capabilities.has_option(option)

    def list_nodes(
        self, pattern: str = "*", flags: ListNodesFlags = DEFAULT_LIST_FLAGS
    ) -> List[str]:
        """List the nodes of the data server that match a pattern.

        Args:
            pattern (str): absolute node path, may contain wildcards.
            flags (ListNodesFlags): listNodes flags
                (default = RECURSIVE | ABSOLUTE | LEAVES_ONLY)

        Returns:
            list[str]: lower case paths of the matching nodes
        """
        self._check_connected()
        nodes = self._daq_server.listNodes(pattern, flags=int(flags))
        return [node.lower() for node in nodes]

    ###########################
    #### streaming engine ####
    ###########################

    def subscribe(self, path: Union[Node, str]) -> List[str]:
        """Subscribe to a node. Fetch its data with :meth:`poll`.

        Args:
            path: absolute node path or node, may contain wildcards.

        Returns:
            list[str]: newly subscribed concrete paths
        """
        self._check_connected()
        return self._subscriptions.add(
            path.node if isinstance(path, Node) else str(path)
        )

    def unsubscribe(self, path: Union[Node, str] = "*") -> List[str]:
        """Unsubscribe from a node (default: from all nodes).

        Returns:
            list[str]: unsubscribed concrete paths
        """
        self._check_connected()
        path = path.node if isinstance(path, Node) else str(path)
        if path == "*":
            removed = list(self._subscriptions)
            self._subscriptions.clear()
            return removed
        return self._subscriptions.discard(path)

    def get_as_event(self, path: Union[Node, str]) -> None:
        """Trigger an event for a node.

        The node data is returned by the next poll if the node is subscribed.
        """
        self._check_connected()
        self._daq_server.getAsEvent(path.node if isinstance(path, Node) else path)

    def sync(self) -> None:
        """Synchronize all connected devices.

        Synchronization in this case means creating a defined state.
        The following steps are performed:
            * Ensures that all set commands have been flushed to the device
            * Ensures that get and poll commands only return data which was
              recorded after the sync command. (ALL poll buffers are cleared!)
            * Blocks until all devices have cleared their busy flag.

        WARNING: The sync is performed for all devices connected to the daq server
        WARNING: This command is a blocking command that can take a substantial
                 amount of time.

        Raises:
            RuntimeError: ZIAPIServerException: Timeout during sync of device
        """
        self._check_connected()
        self._daq_server.sync()

    def _is_subscribed(self, path: str) -> bool:
        path = path.lower()
        return any(
            path == subscribed or path.startswith(subscribed + "/")
            for subscribed in self._subscriptions
        )

    def _chunk_kind(self, path: str) -> Optional[SampleKind]:
        """Kind of the data of a path: node type first, then the path pattern."""
        device = self._devices.cached(path.split("/")[1])
        if device is not None:
            info = device.root.raw_dict.get(path.split(".")[0])
            if isinstance(info, dict):
                kind = SampleKind.from_node_type(info.get("Type", ""))
                if kind is not None:
                    return kind
        return SampleKind.from_path(path)

    def poll(
        self,
        recording_time: float = 0.1,
        *,
        timeout: float = 0.1,
        flags: PollFlags = PollFlags.DEFAULT,
        buffer_size: int = 1,
    ) -> Lookup:
        """Polls all subscribed data

        Poll the value changes in all subscribed nodes since either subscribing
        or the last poll (assuming no buffer overflow has occurred on the Data
        Server). Polling without any subscription returns an empty lookup
        immediately.

        Args:
            recording_time (float): defines the duration of the poll in
                seconds. (Note that not only the newly recorded values are
                polled but all values since either subscribing or the last
                poll). Needs to be larger than zero. (default = 0.1)
            timeout (float): Timeout in seconds of a single read from the
                data server. Only relevant when communicating in a slow
                network. (default = 0.1)
            flags (PollFlags): Loss policy of the poll. With
                ``DETECT_AND_THROW`` lost samples raise an error, with
                ``DETECT`` they are logged. (default = DEFAULT)
            buffer_size (int): Only 1 is supported. (default = 1)

        Returns:
            Lookup: chunks of every subscribed path that delivered data

        Raises:
            SampleLossError: if samples were lost and ``DETECT_AND_THROW`` is
                set.
        """
        self._check_connected()
        if buffer_size != 1:
            warnings.warn(
                f"buffer_size={buffer_size} is not supported, 1 is used instead.",
                UserWarning,
                stacklevel=2,
            )
        if not self._subscriptions:
            return Lookup()
        throw = (flags & PollFlags.DETECT_AND_THROW) == PollFlags.DETECT_AND_THROW
        try:
            raw = self._daq_server.poll(
                recording_time, int(timeout * 1000), flags=int(flags), flat=True
            )
        except EOFError as error:
            raise SampleLossError(f"Samples lost during poll: {error}") from error
        raw = {
            path: value for path, value in (raw or {}).items() if self._is_subscribed(path)
        }
        lookup = Lookup.from_raw(raw, kind_of=self._chunk_kind)
        lossy = [
            path
            for path, chunks in lookup.items()
            if any(chunk.header.has_loss for chunk in chunks)
        ]
        if lossy:
            if throw:
                raise SampleLossError(f"Samples lost for {', '.join(lossy)}.")
            if flags & PollFlags.DETECT:
                logger.warning(f"Samples lost for {', '.join(lossy)}.")
        return lookup

    ####################
    #### modules ####
    ####################

    def create_module(self, kind: ModuleKind) -> BaseModule:
        """Create a new module on the data server.

        Every module holds resources on the data server until it is cleared.
        Use the module as context manager or call ``clear`` explicitly.

        Args:
            kind (ModuleKind): kind of the module

        Returns:
            BaseModule: the module class of the kind (e.g. ``SweeperModule``)

        Raises:
            DaqkitError: if the data server connection does not provide the
                module.
        """
        self._check_connected()
        factory = getattr(self._daq_server, kind.factory, None)
        if factory is None:
            raise DaqkitError(
                f"The data server connection does not provide the {kind.name} "
                f"module ({kind.factory})."
            )
        module = MODULE_CLASSES[kind](factory(), self)
        self._modules.append(module)
        logger.debug(f"{kind.name} module created")
        return module

    def release_module(self, module: BaseModule) -> None:
        """Forget a module after it was cleared."""
        if module in self._modules:
            self._modules.remove(module)

    def create_sweeper_module(self):
        """Create a new :class:`SweeperModule`."""
        return self.create_module(ModuleKind.SWEEPER)

    def create_spectrum_module(self):
        """Create a new :class:`SpectrumModule` (zoom FFT)."""
        return self.create_module(ModuleKind.SPECTRUM)

    def create_scope_module(self):
        """Create a new :class:`ScopeModule`."""
        return self.create_module(ModuleKind.SCOPE)

    def create_awg_module(self):
        """Create a new :class:`AWGModule`."""
        return self.create_module(ModuleKind.AWG)

    def create_daq_module(self):
        """Create a new :class:`DAQModule`."""
        return self.create_module(ModuleKind.DAQ)

    def create_pid_advisor_module(self):
        """Create a new :class:`PIDAdvisorModule`."""
        return self.create_module(ModuleKind.PID_ADVISOR)

    def create_impedance_module(self):
        """Create a new :class:`ImpedanceModule`."""
        return self.create_module(ModuleKind.IMPEDANCE)

    def create_device_settings_module(self):
        """Create a new :class:`DeviceSettingsModule`."""
        return self.create_module(ModuleKind.DEVICE_SETTINGS)

    def create_mds_module(self):
        """Create a new :class:`MultiDeviceSyncModule`."""
        return self.create_module(ModuleKind.MULTI_DEVICE_SYNC)

    @property
    def modules(self) -> Tuple[BaseModule, ...]:
        """Modules created by the session that are not cleared yet."""
        return tuple(self._modules)

    @property
    def state(self) -> SessionState:
        """Connection state of the session."""
        return self._state

    @property
    def subscriptions(self) -> SubscriptionSet:
        """Nodes subscribed on the session."""
        return self._subscriptions

    @property
    def devices(self) -> Devices:
        """Mapping for the connected devices."""
        return self._devices

    @property
    def is_hf2_server(self) -> bool:
        """Flag if the data server is a HF2 Data Server"""
        return self._is_hf2_server

    @property
    def daq_server(self) -> core.ziDAQServer:
        """Managed instance of the zhinst.core.ziDAQServer."""
        return self._daq_server

    @property
    def server_host(self) -> Optional[str]:
        """Host of the data server (None for an existing connection)."""
        return self._server_host

    @property
    def server_port(self) -> Optional[int]:
        """Port of the data server (None for an existing connection)."""
        return self._server_port
