# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Exceptions raised by zhinst-daqkit.

All exceptions derive from :class:`DaqkitError`, which itself is a
``RuntimeError`` (the error type the LabOne Python API raises). Where a
builtin exception describes the condition as well, it is used as a second
base class so that generic handlers (e.g. ``except TimeoutError``) keep
working.
"""


class DaqkitError(RuntimeError):
    """Base class for all errors raised by zhinst-daqkit."""


class ConnectionFailedError(DaqkitError, ConnectionError):
    """The connection to the data server could not be established or is closed."""


class VersionMismatchError(DaqkitError):
    """The data server runs a different LabOne version than the client API.

    Args:
        api_version: Version of the client API.
        server_version: Version reported by the data server.
    """

    def __init__(self, api_version: str, server_version: str):
        self.api_version = api_version
        self.server_version = server_version
        super().__init__(
            f"The data server runs LabOne {server_version} but the client API is "
            f"{api_version}. Update the client or the server so that both use "
            "the same version."
        )


class NodeNotFoundError(DaqkitError, KeyError):
    """The node does not exist on the device or module."""

    def __str__(self):
        # KeyError quotes its argument, keep the message readable instead.
        return str(self.args[0]) if self.args else ""


class TypeMismatchError(DaqkitError, TypeError):
    """The requested value kind does not match the declared type of the node."""


class WildcardAmbiguousError(DaqkitError, ValueError):
    """A wildcard write was requested for nodes that only accept concrete writes."""


class UnsupportedByDeviceError(DaqkitError):
    """The device does not belong to the required family or lacks an option."""


class ConfigTypeError(DaqkitError, TypeError):
    """A module configuration value does not match the type of its key."""


class InvalidStateError(DaqkitError):
    """The module is in a state that does not allow the requested operation."""


class ModuleReleasedError(DaqkitError):
    """The module was cleared and can not be used anymore."""


class OperationTimeoutError(DaqkitError, TimeoutError):
    """A wait loop exceeded its deadline."""


class SampleLossError(DaqkitError, EOFError):
    """Samples were lost during a poll that was asked to detect data loss."""
