import copy
import fnmatch
import json

import numpy as np
import pytest
from unittest.mock import patch

from zhinst.daqkit import Session

ENUM_ON_OFF = {"0": '"off": Off', "1": '"on": On'}


def _info(path, node_type, properties="Read, Write, Setting", **kwargs):
    info = {
        "Node": path.upper(),
        "Description": f"{path} test node",
        "Properties": properties,
        "Type": node_type,
        "Unit": "None",
    }
    info.update(kwargs)
    return info


def zi_nodes():
    return {
        "/zi/about/version": (_info("/zi/about/version", "String", "Read"), "21.08"),
        "/zi/about/dataserver": (
            _info("/zi/about/dataserver", "String", "Read"),
            "DataServer",
        ),
        "/zi/config/port": (_info("/zi/config/port", "Integer (64 bit)"), 8004),
        "/zi/debug/level": (_info("/zi/debug/level", "Integer (64 bit)"), 1),
    }


def device_nodes(serial, device_type, options):
    prefix = f"/{serial}"
    nodes = {
        f"{prefix}/features/devtype": (
            _info(f"{prefix}/features/devtype", "String", "Read"),
            device_type,
        ),
        f"{prefix}/features/options": (
            _info(f"{prefix}/features/options", "String", "Read"),
            options,
        ),
        f"{prefix}/oscs/0/freq": (_info(f"{prefix}/oscs/0/freq", "Double"), 10e3),
        f"{prefix}/sigouts/0/on": (
            _info(f"{prefix}/sigouts/0/on", "Integer (64 bit)", Options=ENUM_ON_OFF),
            0,
        ),
        f"{prefix}/system/preset/index": (
            _info(f"{prefix}/system/preset/index", "Integer (64 bit)"),
            0,
        ),
        f"{prefix}/system/preset/load": (
            _info(f"{prefix}/system/preset/load", "Integer (64 bit)"),
            0,
        ),
        f"{prefix}/system/preset/busy": (
            _info(f"{prefix}/system/preset/busy", "Integer (64 bit)", "Read"),
            0,
        ),
        f"{prefix}/awgs/0/waveform/waves/0": (
            _info(f"{prefix}/awgs/0/waveform/waves/0", "ZIVectorData"),
            np.zeros(0, dtype=np.uint16),
        ),
        f"{prefix}/scopes/0/enable": (
            _info(f"{prefix}/scopes/0/enable", "Integer (64 bit)"),
            0,
        ),
        f"{prefix}/scopes/0/wave": (
            _info(f"{prefix}/scopes/0/wave", "ZIScopeWave", "Read, Stream"),
            None,
        ),
        f"{prefix}/imps/0/enable": (
            _info(f"{prefix}/imps/0/enable", "Integer (64 bit)"),
            0,
        ),
    }
    for index in range(2):
        demod = f"{prefix}/demods/{index}"
        nodes[f"{demod}/rate"] = (_info(f"{demod}/rate", "Double"), 1674.0)
        nodes[f"{demod}/enable"] = (
            _info(f"{demod}/enable", "Integer (64 bit)", Options=ENUM_ON_OFF),
            1,
        )
        nodes[f"{demod}/trigger"] = (_info(f"{demod}/trigger", "Integer (64 bit)"), 0)
        nodes[f"{demod}/sample"] = (
            _info(f"{demod}/sample", "ZIDemodSample", "Read, Stream"),
            None,
        )
        nodes[f"{prefix}/sigouts/0/enables/{index}"] = (
            _info(f"{prefix}/sigouts/0/enables/{index}", "Integer (64 bit)"),
            1,
        )
    return nodes


def demod_sample(count=10, start=1000, loss=False):
    timestamps = np.arange(start, start + count, dtype=np.uint64)
    return {
        "timestamp": timestamps,
        "x": np.full(count, 0.3),
        "y": np.full(count, 0.4),
        "frequency": np.full(count, 10e3),
        "phase": np.zeros(count),
        "dio": np.zeros(count, dtype=np.uint32),
        "trigger": np.zeros(count, dtype=np.uint32),
        "auxin0": np.zeros(count),
        "auxin1": np.zeros(count),
        "time": {
            "trigger": 0,
            "dataloss": int(loss),
            "blockloss": 0,
            "ratechange": 0,
            "invalidtimestamp": 0,
            "mindelta": 0,
        },
    }


MODULE_NODES = {
    "sweep": {
        "/device": ("String", ""),
        "/gridnode": ("String", "oscs/0/freq"),
        "/start": ("Double", 1e3),
        "/stop": ("Double", 1e6),
        "/samplecount": ("Integer (64 bit)", 100),
        "/xmapping": ("Integer (64 bit)", 0),
        "/bandwidthcontrol": ("Integer (64 bit)", 2),
        "/order": ("Integer (64 bit)", 4),
        "/settling/inaccuracy": ("Double", 1e-3),
        "/averaging/sample": ("Integer (64 bit)", 1),
    },
    "zoomFFT": {
        "/device": ("String", ""),
        "/bit": ("Integer (64 bit)", 16),
        "/mode": ("Integer (64 bit)", 0),
    },
    "scopeModule": {
        "/mode": ("Integer (64 bit)", 1),
        "/historylength": ("Integer (64 bit)", 20),
        "/averager/weight": ("Integer (64 bit)", 1),
    },
    "awgModule": {
        "/device": ("String", ""),
        "/index": ("Integer (64 bit)", 0),
        "/directory": ("String", ""),
        "/progress": ("Double", 0.0),
        "/compiler/sourcestring": ("String", ""),
        "/compiler/status": ("Integer (64 bit)", -1),
        "/compiler/statusstring": ("String", ""),
        "/elf/status": ("Integer (64 bit)", 0),
    },
    "dataAcquisitionModule": {
        "/device": ("String", ""),
        "/type": ("Integer (64 bit)", 0),
        "/triggernode": ("String", ""),
        "/level": ("Double", 0.0),
        "/hysteresis": ("Double", 0.0),
        "/edge": ("Integer (64 bit)", 1),
        "/bandwidth": ("Double", 0.0),
        "/duration": ("Double", 0.0),
        "/count": ("Integer (64 bit)", 1),
        "/endless": ("Integer (64 bit)", 0),
        "/grid/mode": ("Integer (64 bit)", 4),
        "/grid/cols": ("Integer (64 bit)", 100),
        "/holdoff/time": ("Double", 0.0),
        "/holdoff/count": ("Integer (64 bit)", 0),
    },
    "pidAdvisor": {
        "/device": ("String", ""),
        "/auto": ("Integer (64 bit)", 1),
        "/index": ("Integer (64 bit)", 0),
        "/calculate": ("Integer (64 bit)", 0),
        "/todevice": ("Integer (64 bit)", 0),
        "/bw": ("Double", 0.0),
        "/pid/targetbw": ("Double", 1e3),
        "/pid/mode": ("Integer (64 bit)", 3),
        "/pid/type": ("String", "pid"),
        "/pid/p": ("Double", 0.0),
        "/pid/i": ("Double", 0.0),
        "/pid/d": ("Double", 0.0),
        "/pid/rate": ("Double", 0.0),
        "/pid/dlimittimeconstant": ("Double", 0.0),
        "/dut/source": ("Integer (64 bit)", 1),
        "/dut/delay": ("Double", 0.0),
    },
    "impedanceModule": {
        "/device": ("String", ""),
        "/mode": ("Integer (64 bit)", 4),
        "/step": ("Integer (64 bit)", 0),
        "/calibrate": ("Integer (64 bit)", 0),
        "/message": ("String", ""),
        "/loads/2/r": ("Double", 100.0),
        "/loads/2/c": ("Double", 0.0),
        "/freq/start": ("Double", 1e3),
        "/freq/stop": ("Double", 1e6),
        "/freq/samplecount": ("Integer (64 bit)", 21),
    },
    "deviceSettings": {
        "/device": ("String", ""),
        "/command": ("String", ""),
        "/filename": ("String", ""),
        "/path": ("String", ""),
    },
    "multiDeviceSyncModule": {
        "/start": ("Integer (64 bit)", 0),
        "/group": ("Integer (64 bit)", 0),
        "/devices": ("String", ""),
        "/status": ("Integer (64 bit)", 0),
        "/message": ("String", ""),
    },
}


class FakeModule:
    """In-memory stand-in for a ``zhinst.core`` module."""

    def __init__(self, factory, server):
        self.factory = factory
        self.server = server
        self.nodes = {
            path: node_type for path, (node_type, _) in MODULE_NODES[factory].items()
        }
        self.values = {
            path: value for path, (_, value) in MODULE_NODES[factory].items()
        }
        self.subscribed = []
        self.executed = 0
        self.cleared = 0
        self.finish_called = 0
        self.reads = 0
        self.running = False
        self._progress = 0.0

    def listNodesJSON(self, path, *args, **kwargs):
        return json.dumps(
            {
                node: _info(node, node_type)
                for node, node_type in self.nodes.items()
                if fnmatch.fnmatch(node, "/" + path.strip("/"))
            }
        )

    def set(self, path, value):
        path = "/" + path.strip("/").lower()
        self.values[path] = value
        self._on_set(path, value)

    def _on_set(self, path, value):
        if self.factory == "awgModule" and path == "/compiler/sourcestring":
            if "error" in value:
                self.values["/compiler/status"] = 1
                self.values["/compiler/statusstring"] = "syntax error"
                return
            self.values["/compiler/status"] = 2 if "warning" in value else 0
            self.values["/compiler/statusstring"] = "compiled"
            self.values["/progress"] = 1.0
            self.values["/elf/status"] = 1 if "badelf" in value else 0
        elif self.factory == "pidAdvisor" and path == "/calculate" and value == 1:
            target = self.values["/pid/targetbw"]
            self.values.update(
                {
                    "/pid/p": 1.5,
                    "/pid/i": 2 * target,
                    "/pid/d": 0.0,
                    "/pid/rate": 1.0e6,
                    "/pid/dlimittimeconstant": 1e-6,
                    "/bw": 0.9 * target,
                    "/calculate": 0,
                }
            )
        elif self.factory == "pidAdvisor" and path == "/todevice" and value == 1:
            self.server.values[f"/{self.values['/device']}/pids/0/p"] = self.values[
                "/pid/p"
            ]
        elif self.factory == "impedanceModule" and path == "/calibrate" and value == 1:
            self.values["/calibrate"] = 0
            self.values["/message"] = f"Step {self.values['/step']} done"
        elif self.factory == "multiDeviceSyncModule" and path == "/start":
            self.values["/status"] = 2 if value == 1 else 0

    def _get(self, path):
        path = "/" + path.strip("/").lower()
        if path not in self.values:
            raise RuntimeError(f"ZIAPINotFoundException: {path}")
        return self.values[path]

    def getInt(self, path):
        return int(self._get(path))

    def getDouble(self, path):
        return float(self._get(path))

    def getString(self, path):
        return str(self._get(path))

    def get(self, path, flat=True):
        result = {
            node: np.array([value]) if not isinstance(value, str) else value
            for node, value in self.values.items()
            if fnmatch.fnmatch(node, "/" + path.strip("/"))
        }
        if self.factory == "pidAdvisor" and self.values["/bw"]:
            grid = np.logspace(2, 6, 50)
            response = {"grid": grid, "x": np.ones(50), "y": np.zeros(50)}
            result["/bode"] = [response]
            result["/step"] = [{"grid": np.linspace(0, 1e-3, 50), "x": np.ones(50)}]
        return result

    def subscribe(self, path):
        self.subscribed.append(path.lower())

    def unsubscribe(self, path):
        self.subscribed.remove(path.lower())

    def execute(self):
        self.executed += 1
        self.running = True
        self._progress = 0.0
        if self.factory == "deviceSettings":
            filename = self.values["/filename"]
            if self.values["/command"] == "save":
                self.server.saved[filename] = copy.deepcopy(self.server.values)
            else:
                self.server.values.update(copy.deepcopy(self.server.saved[filename]))
            self._progress = 1.0

    def progress(self):
        return np.array([self._progress])

    def finished(self):
        if self.running and self._progress < 1.0:
            self._progress = min(self._progress + 0.5, 1.0)
        finished = self._progress >= 1.0
        if finished:
            self.running = False
        return finished

    def read(self, flat=True):
        result = {}
        for path in self.subscribed:
            if self.factory == "sweep":
                grid = np.linspace(
                    self.values["/start"],
                    self.values["/stop"],
                    int(self.values["/samplecount"]),
                )
                result[path] = [
                    [
                        {
                            "header": {"systemtime": np.array([1]), "flags": 0},
                            "grid": grid,
                            "x": np.ones(len(grid)),
                            "y": np.zeros(len(grid)),
                            "r": np.ones(len(grid)),
                        }
                    ]
                ]
            elif self.factory == "dataAcquisitionModule":
                cols = int(self.values["/grid/cols"])
                result[path] = [
                    {
                        "header": {"gridrows": 1, "gridcols": cols, "triggernumber": 1},
                        "timestamp": np.arange(cols, dtype=np.uint64).reshape(1, cols),
                        "value": np.ones((1, cols)),
                    }
                ]
            elif self.factory == "scopeModule":
                # one segment per read, the recording has two
                result[path] = [
                    {
                        "timestamp": 100,
                        "dt": 1e-9,
                        "totalsamples": 16,
                        "segmentnumber": min(self.reads, 1),
                        "totalsegments": 2,
                        "channelenable": [1, 0],
                        "wave": np.zeros((16, 1)),
                    }
                ]
        self.reads += 1
        return result

    def finish(self):
        self.finish_called += 1
        self.running = False

    def clear(self):
        self.cleared += 1


class FakeDataServer:
    """In-memory data server with a single attached lock-in amplifier."""

    def __init__(self, serial="dev1234", device_type="MFLI", options="MD\nPID\n"):
        self.serial = serial
        nodes = zi_nodes()
        nodes.update(device_nodes(serial, device_type, options))
        self.node_info = {path: info for path, (info, _) in nodes.items()}
        self.values = {path: value for path, (_, value) in nodes.items()}
        self.version_string = "21.08"
        self.connected = []
        self.subscribed = []
        self.set_calls = []
        self.events = {}
        self.pending = {}
        self.saved = {}
        self.modules = []
        self.disconnected = 0
        self.synced = 0
        self.data_loss = False

    def _matches(self, pattern):
        pattern = pattern.lower()
        return sorted(
            path
            for path in self.node_info
            if path == pattern or fnmatch.fnmatch(path, pattern)
        )

    def listNodesJSON(self, path, *args, **kwargs):
        return json.dumps({node: self.node_info[node] for node in self._matches(path)})

    def listNodes(self, path, flags=0):
        return [node.upper() for node in self._matches(path)]

    def _get(self, path):
        path = path.lower()
        if path == "/zi/devices/connected":
            return ",".join(self.connected)
        if path not in self.values:
            raise RuntimeError(f"ZIAPINotFoundException: {path}")
        return self.values[path]

    def getInt(self, path):
        return int(self._get(path))

    def getDouble(self, path):
        return float(self._get(path))

    def getString(self, path):
        return str(self._get(path))

    def getSample(self, path):
        sample = demod_sample(count=1)
        sample.pop("time")
        return sample

    def get(self, path, flat=True):
        result = {}
        for node in self._matches(path):
            value = self.values[node]
            if self.node_info[node]["Type"] == "ZIVectorData":
                result[node] = [{"timestamp": 1, "flags": 0, "vector": value}]
            elif value is not None:
                result[node] = {
                    "timestamp": np.array([1], dtype=np.uint64),
                    "value": np.array([value]),
                }
        return result

    def _store(self, path, value):
        path = path.lower()
        self.values[path] = value
        if path == f"/{self.serial}/system/preset/load" and value == 1:
            defaults = device_nodes(
                self.serial,
                self.values[f"/{self.serial}/features/devtype"],
                self.values[f"/{self.serial}/features/options"],
            )
            self.values.update(
                {
                    node: value
                    for node, (_, value) in defaults.items()
                    if not node.endswith("/busy")
                }
            )

    def set(self, path, value=None):
        self.set_calls.append((path, value))
        if isinstance(path, list):
            for node, node_value in path:
                self._store(node, node_value)
        else:
            self._store(path, value)

    def setInt(self, path, value):
        self._store(path, int(value))

    def setDouble(self, path, value):
        self._store(path, float(value))

    def setString(self, path, value):
        self._store(path, str(value))

    def setVector(self, path, value):
        self._store(path, value)

    def subscribe(self, path):
        self.subscribed.append(path.lower())

    def unsubscribe(self, path):
        self.subscribed.remove(path.lower())

    def getAsEvent(self, path):
        path = path.lower()
        self.events[path] = {
            "timestamp": np.array([5], dtype=np.uint64),
            "value": np.array([self.values[path]]),
        }

    def poll(self, recording_time, timeout, flags=0, flat=True):
        result = {}
        for path in self.subscribed:
            if path.endswith("/sample"):
                result[path.upper()] = demod_sample(loss=self.data_loss)
            if path in self.events:
                result[path] = self.events.pop(path)
            if path in self.pending:
                result[path] = self.pending.pop(path)
        return result

    def sync(self):
        self.synced += 1

    def connectDevice(self, serial, interface, params=""):
        if serial.lower() not in self.connected:
            self.connected.append(serial.lower())

    def disconnectDevice(self, serial):
        if serial.lower() in self.connected:
            self.connected.remove(serial.lower())

    def disconnect(self):
        self.disconnected += 1

    def version(self):
        return self.version_string

    def _module(self, factory):
        module = FakeModule(factory, self)
        self.modules.append(module)
        return module

    def sweep(self):
        return self._module("sweep")

    def zoomFFT(self):
        return self._module("zoomFFT")

    def scopeModule(self):
        return self._module("scopeModule")

    def awgModule(self):
        return self._module("awgModule")

    def dataAcquisitionModule(self):
        return self._module("dataAcquisitionModule")

    def pidAdvisor(self):
        return self._module("pidAdvisor")

    def impedanceModule(self):
        return self._module("impedanceModule")

    def deviceSettings(self):
        return self._module("deviceSettings")

    def multiDeviceSyncModule(self):
        return self._module("multiDeviceSyncModule")


@pytest.fixture()
def mock_connection():
    with patch("zhinst.daqkit.session.core.ziDAQServer", autospec=True) as connection:
        connection.return_value.listNodesJSON.return_value = json.dumps(
            {"/zi/about/version": _info("/zi/about/version", "String", "Read")}
        )
        yield connection


@pytest.fixture()
def fake_server():
    yield FakeDataServer()


@pytest.fixture()
def session(fake_server):
    yield Session(connection=fake_server)


@pytest.fixture()
def device(fake_server, session):
    yield session.connect_device("dev1234", "1GbE")
