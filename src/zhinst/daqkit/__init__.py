# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.
"""Zurich Instruments daqkit (zhinst-daqkit)

Client side session, parameter tree and asynchronous module framework for
the Zurich Instruments lock-in amplifiers and impedance analyzers. Based on
the native interface to Zurich Instruments LabOne (``zhinst.core``), it offers
typed access to the parameter tree of the devices, polling of streaming
nodes into typed samples and a uniform lifecycle for the LabOne modules
(sweeper, scope, data acquisition, AWG, ...).
"""

from zhinst.daqkit.driver import BaseInstrument, Capabilities, DeviceFamily
from zhinst.daqkit.driver.modules import *  # noqa: F401,F403
from zhinst.daqkit.exceptions import *  # noqa: F401,F403
from zhinst.daqkit.helper import wait_for, wait_for_node_data
from zhinst.daqkit.nodetree import ListNodesFlags, Node, NodePath, NodeTree
from zhinst.daqkit.sample import (
    Chunk,
    ChunkHeader,
    DemodulatorSample,
    GridHeader,
    ImpedanceSample,
    Lookup,
    PWAWave,
    SampleKind,
    ScalarEvent,
    ScopeWave,
    StreamSample,
    SweepResult,
    SweepVariant,
    VectorData,
)
from zhinst.daqkit.session import (
    Devices,
    DiscoveryInfo,
    PollFlags,
    Session,
    SessionState,
    discover,
)
from zhinst.daqkit.subscriptions import SubscriptionSet
