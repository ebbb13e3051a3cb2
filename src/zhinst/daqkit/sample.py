# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Sample and chunk data model.

The data server delivers the data of a node as plain dictionaries of numpy
arrays whose layout depends on the type of the node. This module converts
these dictionaries into typed payloads. Every delivered unit of data is a
:class:`Chunk`, consisting of a :class:`ChunkHeader` and exactly one payload
of a single :class:`SampleKind`. The result of a poll or a module read is a
:class:`Lookup` that maps every node path to the ordered chunks received for
it.
"""
import re
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)


class SampleKind(Enum):
    """Kind of the payload of a chunk."""

    SCALAR_EVENT = "scalar event"
    VECTOR = "vector"
    DEMOD = "demodulator sample"
    IMPEDANCE = "impedance sample"
    SCOPE_WAVE = "scope wave"
    PWA_WAVE = "pwa wave"
    SWEEP_RESULT = "sweep result"
    STREAM = "stream sample"

    @classmethod
    def from_node_type(cls, node_type: str) -> Optional["SampleKind"]:
        """Kind of the data delivered by a node of the given LabOne type.

        Returns:
            SampleKind: kind or None if the type is unknown (empty).
        """
        if not node_type:
            return None
        if node_type in _NODE_TYPE_KINDS:
            return _NODE_TYPE_KINDS[node_type]
        if "Integer" in node_type or "Double" in node_type:
            return cls.SCALAR_EVENT
        return cls.STREAM

    @classmethod
    def from_path(cls, path: str) -> Optional["SampleKind"]:
        """Kind of the data delivered by well known streaming nodes."""
        for pattern, kind in _PATH_KINDS:
            if pattern.search(path.lower()):
                return kind
        return None

    @classmethod
    def from_raw(cls, raw: Any) -> "SampleKind":
        """Kind derived from the structure of the raw data."""
        if not isinstance(raw, dict):
            return cls.SCALAR_EVENT
        if "header" in raw and "grid" in raw:
            return cls.SWEEP_RESULT
        if "realz" in raw:
            return cls.IMPEDANCE
        if "wave" in raw:
            return cls.SCOPE_WAVE
        if "binphase" in raw:
            return cls.PWA_WAVE
        if "vector" in raw:
            return cls.VECTOR
        if {"x", "y", "frequency"} <= raw.keys():
            return cls.DEMOD
        if "value" in raw:
            return cls.SCALAR_EVENT
        return cls.STREAM


_NODE_TYPE_KINDS = {
    "ZIDemodSample": SampleKind.DEMOD,
    "ZIImpedanceSample": SampleKind.IMPEDANCE,
    "ZIScopeWave": SampleKind.SCOPE_WAVE,
    "ZIPWAWave": SampleKind.PWA_WAVE,
    "ZIVectorData": SampleKind.VECTOR,
    "String": SampleKind.VECTOR,
    "ZIAdvisorWave": SampleKind.SWEEP_RESULT,
    "ZISweeperWave": SampleKind.SWEEP_RESULT,
    "ZISpectrumWave": SampleKind.SWEEP_RESULT,
}

_PATH_KINDS = (
    (re.compile(r"/demods/\d+/sample$"), SampleKind.DEMOD),
    (re.compile(r"/imps/\d+/sample$"), SampleKind.IMPEDANCE),
    (re.compile(r"/scopes/\d+/wave$"), SampleKind.SCOPE_WAVE),
    (re.compile(r"/pwas/\d+/wave$"), SampleKind.PWA_WAVE),
)


class SweepVariant(Enum):
    """Measurement that produced a sweep result."""

    DEMOD = "demod"
    IMPEDANCE = "impedance"
    SPECTRUM = "spectrum"
    ADVISOR = "advisor"


def _scalar(value: Any, default: Any = None) -> Any:
    """Unwrap single element arrays as they are used in the chunk headers."""
    if value is None:
        return default
    array = np.asarray(value)
    if array.size == 0:
        return default
    return array.ravel()[0].item()


def _array(value: Any) -> np.ndarray:
    if value is None:
        return np.empty(0)
    return np.asarray(value)


@dataclass(frozen=True)
class GridHeader:
    """Grid geometry of a chunk read from a module (e.g. the DAQ module)."""

    rows: int
    cols: int
    mode: int = 0
    operation: int = 0
    direction: int = 0
    repetitions: int = 0
    col_delta: float = 0.0
    col_offset: float = 0.0

    @classmethod
    def from_raw(cls, header: dict) -> Optional["GridHeader"]:
        if "gridrows" not in header and "gridcols" not in header:
            return None
        return cls(
            rows=_scalar(header.get("gridrows"), 0),
            cols=_scalar(header.get("gridcols"), 0),
            mode=_scalar(header.get("gridmode"), 0),
            operation=_scalar(header.get("gridoperation"), 0),
            direction=_scalar(header.get("griddirection"), 0),
            repetitions=_scalar(header.get("gridrepetitions"), 0),
            col_delta=_scalar(header.get("gridcoldelta"), 0.0),
            col_offset=_scalar(header.get("gridcoloffset"), 0.0),
        )


@dataclass(frozen=True)
class ChunkHeader:
    """Metadata of a single chunk.

    Chunks read from a module carry a full header. Chunks received through a
    poll only carry the timestamp of the first sample, the flags and the
    data loss indicators.
    """

    system_time: int = 0
    created_timestamp: int = 0
    changed_timestamp: int = 0
    flags: int = 0
    status: int = 0
    name: str = ""
    trigger_number: int = 0
    grid: Optional[GridHeader] = None
    bandwidth: Optional[float] = None
    center: Optional[float] = None
    nenbw: Optional[float] = None
    data_loss: bool = False
    block_loss: bool = False
    invalid_timestamp: bool = False

    @property
    def has_loss(self) -> bool:
        """Flag if samples were lost before or within this chunk."""
        return self.data_loss or self.block_loss

    @classmethod
    def from_raw(cls, raw: Any) -> "ChunkHeader":
        """Create the header from the raw data of a single chunk."""
        if not isinstance(raw, dict):
            return cls()
        header = raw.get("header", {})
        time_info = raw.get("time", {})
        timestamp = raw.get("timestamp")
        return cls(
            system_time=_scalar(header.get("systemtime"), 0),
            created_timestamp=_scalar(
                header.get("createdtimestamp"), _scalar(timestamp, 0)
            ),
            changed_timestamp=_scalar(header.get("changedtimestamp"), 0),
            flags=_scalar(header.get("flags", raw.get("flags")), 0),
            status=_scalar(header.get("status"), 0),
            name=str(_scalar(header.get("name"), "")),
            trigger_number=_scalar(header.get("triggernumber"), 0),
            grid=GridHeader.from_raw(header),
            bandwidth=_scalar(header.get("bandwidth")),
            center=_scalar(header.get("center")),
            nenbw=_scalar(header.get("nenbw")),
            data_loss=bool(_scalar(time_info.get("dataloss"), False)),
            block_loss=bool(_scalar(time_info.get("blockloss"), False)),
            invalid_timestamp=bool(_scalar(time_info.get("invalidtimestamp"), False)),
        )


@dataclass(frozen=True, eq=False)
class ScalarEvent:
    """Value changes of an integer or double node.

    For chunks read from the DAQ module ``value`` is two dimensional
    (grid rows x grid columns).
    """

    timestamp: np.ndarray
    value: np.ndarray

    @classmethod
    def from_raw(cls, raw: Any, variant=None) -> "ScalarEvent":
        if not isinstance(raw, dict):
            value = _array(raw)
            return cls(timestamp=np.zeros(value.shape, dtype=np.uint64), value=value)
        value = _array(raw.get("value"))
        timestamp = raw.get("timestamp")
        if timestamp is None:
            # HF2 devices do not deliver timestamps for settings
            timestamp = np.zeros(value.shape, dtype=np.uint64)
        return cls(timestamp=_array(timestamp), value=value)


@dataclass(frozen=True, eq=False)
class VectorData:
    """Value of a vector or string node."""

    timestamp: int
    flags: int
    vector: Union[np.ndarray, str]

    @classmethod
    def from_raw(cls, raw: dict, variant=None) -> "VectorData":
        vector = raw.get("vector")
        return cls(
            timestamp=_scalar(raw.get("timestamp"), 0),
            flags=_scalar(raw.get("flags"), 0),
            vector=vector if isinstance(vector, str) else _array(vector),
        )


@dataclass(frozen=True, eq=False)
class DemodulatorSample:
    """Demodulator samples, one array entry per sample."""

    timestamp: np.ndarray
    x: np.ndarray
    y: np.ndarray
    frequency: np.ndarray
    phase: np.ndarray
    dio: np.ndarray
    trigger: np.ndarray
    auxin0: np.ndarray
    auxin1: np.ndarray

    @property
    def r(self) -> np.ndarray:
        """Amplitude of the demodulated signal."""
        return np.abs(self.x + 1j * self.y)

    @property
    def theta(self) -> np.ndarray:
        """Phase of the demodulated signal in radians."""
        return np.angle(self.x + 1j * self.y)

    @classmethod
    def from_raw(cls, raw: dict, variant=None) -> "DemodulatorSample":
        return cls(
            **{name: _array(raw.get(name)) for name in cls.__dataclass_fields__}
        )


@dataclass(frozen=True, eq=False)
class ImpedanceSample:
    """Impedance analyzer samples, one array entry per sample."""

    timestamp: np.ndarray
    realz: np.ndarray
    imagz: np.ndarray
    frequency: np.ndarray
    phase: np.ndarray
    flags: np.ndarray
    trigger: np.ndarray
    param0: np.ndarray
    param1: np.ndarray
    drive: np.ndarray
    bias: np.ndarray

    @property
    def z(self) -> np.ndarray:
        """Complex impedance."""
        return self.realz + 1j * self.imagz

    @classmethod
    def from_raw(cls, raw: dict, variant=None) -> "ImpedanceSample":
        return cls(
            **{name: _array(raw.get(name)) for name in cls.__dataclass_fields__}
        )


@dataclass(frozen=True, eq=False)
class ScopeWave:
    """Single scope shot or segment."""

    timestamp: int
    trigger_timestamp: int
    dt: float
    total_samples: int
    segment_number: int
    total_segments: int
    block_number: int
    sequence_number: int
    channel_enable: Tuple[int, ...]
    wave: np.ndarray

    @classmethod
    def from_raw(cls, raw: dict, variant=None) -> "ScopeWave":
        return cls(
            timestamp=_scalar(raw.get("timestamp"), 0),
            trigger_timestamp=_scalar(raw.get("triggertimestamp"), 0),
            dt=_scalar(raw.get("dt"), 0.0),
            total_samples=_scalar(raw.get("totalsamples"), 0),
            segment_number=_scalar(raw.get("segmentnumber"), 0),
            total_segments=_scalar(raw.get("totalsegments"), 0),
            block_number=_scalar(raw.get("blocknumber"), 0),
            sequence_number=_scalar(raw.get("sequencenumber"), 0),
            channel_enable=tuple(np.ravel(raw.get("channelenable", ())).tolist()),
            wave=_array(raw.get("wave")),
        )


@dataclass(frozen=True, eq=False)
class PWAWave:
    """Periodic waveform analyzer result."""

    timestamp: int
    sample_count: int
    input_select: int
    osc_select: int
    harmonic: int
    frequency: float
    pwa_type: int
    mode: int
    overflow: int
    commensurable: int
    bin_phase: np.ndarray
    x: np.ndarray
    y: np.ndarray

    @classmethod
    def from_raw(cls, raw: dict, variant=None) -> "PWAWave":
        return cls(
            timestamp=_scalar(raw.get("timestamp"), 0),
            sample_count=_scalar(raw.get("samplecount"), 0),
            input_select=_scalar(raw.get("inputselect"), 0),
            osc_select=_scalar(raw.get("oscselect"), 0),
            harmonic=_scalar(raw.get("harmonic"), 0),
            frequency=_scalar(raw.get("frequency"), 0.0),
            pwa_type=_scalar(raw.get("type"), 0),
            mode=_scalar(raw.get("mode"), 0),
            overflow=_scalar(raw.get("overflow"), 0),
            commensurable=_scalar(raw.get("commensurable"), 0),
            bin_phase=_array(raw.get("binphase")),
            x=_array(raw.get("x")),
            y=_array(raw.get("y")),
        )


@dataclass(frozen=True, eq=False)
class SweepResult:
    """Result of a sweeper, spectrum or advisor module.

    ``grid`` holds the swept values (e.g. the frequencies), ``x`` and ``y``
    the measured components if the measurement has them. All other arrays
    of the result (e.g. ``r``, ``phase``, ``realz``) are kept in ``fields``.
    """

    variant: SweepVariant
    grid: np.ndarray
    x: Optional[np.ndarray] = None
    y: Optional[np.ndarray] = None
    fields: Dict[str, np.ndarray] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict, variant: SweepVariant = None) -> "SweepResult":
        if variant is None:
            variant = (
                SweepVariant.IMPEDANCE if "realz" in raw else SweepVariant.DEMOD
            )
        return cls(
            variant=variant,
            grid=_array(raw.get("grid")),
            x=_array(raw["x"]) if "x" in raw else None,
            y=_array(raw["y"]) if "y" in raw else None,
            fields={
                key: _array(value)
                for key, value in raw.items()
                if key not in ("header", "grid", "x", "y")
            },
        )


@dataclass(frozen=True, eq=False)
class StreamSample:
    """Samples of streaming nodes without a dedicated payload (e.g. DIO)."""

    timestamp: np.ndarray
    fields: Dict[str, Any]

    @classmethod
    def from_raw(cls, raw: dict, variant=None) -> "StreamSample":
        if not isinstance(raw, dict):
            return cls(timestamp=np.empty(0), fields={"value": raw})
        return cls(
            timestamp=_array(raw.get("timestamp")),
            fields={key: value for key, value in raw.items() if key != "timestamp"},
        )


Payload = Union[
    ScalarEvent,
    VectorData,
    DemodulatorSample,
    ImpedanceSample,
    ScopeWave,
    PWAWave,
    SweepResult,
    StreamSample,
]

PAYLOAD_TYPES = {
    SampleKind.SCALAR_EVENT: ScalarEvent,
    SampleKind.VECTOR: VectorData,
    SampleKind.DEMOD: DemodulatorSample,
    SampleKind.IMPEDANCE: ImpedanceSample,
    SampleKind.SCOPE_WAVE: ScopeWave,
    SampleKind.PWA_WAVE: PWAWave,
    SampleKind.SWEEP_RESULT: SweepResult,
    SampleKind.STREAM: StreamSample,
}


@dataclass(frozen=True, eq=False)
class Chunk:
    """Single unit of data of a node.

    Args:
        header: metadata of the chunk.
        kind: kind of the payload.
        payload: payload, must be the type associated with ``kind``.

    Raises:
        TypeError: if the payload does not match the kind.
    """

    header: ChunkHeader
    kind: SampleKind
    payload: Payload

    def __post_init__(self):
        if not isinstance(self.payload, PAYLOAD_TYPES[self.kind]):
            raise TypeError(
                f"A {self.kind.value} chunk can not carry a "
                f"{type(self.payload).__name__} payload."
            )


def _flatten(raw: Any) -> List[Any]:
    """Flatten the (nested) lists the data server uses for multiple chunks."""
    if isinstance(raw, (list, tuple)):
        items = []
        for element in raw:
            items.extend(_flatten(element))
        return items
    return [raw]


def parse_chunks(
    raw: Any,
    kind: Optional[SampleKind] = None,
    variant: Optional[SweepVariant] = None,
) -> List[Chunk]:
    """Convert the raw data of a single node into chunks.

    A dictionary of arrays (e.g. demodulator samples) forms a single chunk,
    every element of a list (e.g. scope shots or module results) forms its
    own chunk.

    Args:
        raw: raw data of the node as delivered by the data server.
        kind: kind of the payload. If not specified it is derived from the
            structure of the data.
        variant: variant for sweep results.

    Returns:
        list[Chunk]: chunks in arrival order
    """
    items = [item for item in _flatten(raw) if item is not None]
    if not items:
        return []
    kind = kind if kind else SampleKind.from_raw(items[0])
    parser = PAYLOAD_TYPES[kind].from_raw
    return [
        Chunk(ChunkHeader.from_raw(item), kind, parser(item, variant))
        for item in items
    ]


class Lookup(Mapping):
    """Read only mapping of node paths to the chunks received for them.

    The chunks of a path are kept in arrival order and are all of the same
    kind. Paths without chunks are not part of the lookup.

    Args:
        data: mapping of node paths to chunks.

    Raises:
        ValueError: if the chunks of a path are of different kinds.
    """

    def __init__(self, data: Mapping = None):
        self._data = {}
        for path, chunks in (data or {}).items():
            chunks = tuple(chunks)
            if not chunks:
                continue
            kinds = {chunk.kind for chunk in chunks}
            if len(kinds) > 1:
                raise ValueError(
                    f"{path} mixes chunks of the kinds "
                    f"{sorted(kind.value for kind in kinds)}."
                )
            self._data[str(path).lower()] = chunks

    def __getitem__(self, key) -> Tuple[Chunk, ...]:
        return self._data[str(key).lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        content = ", ".join(
            f"{path}: {len(chunks)} x {chunks[0].kind.value}"
            for path, chunks in self._data.items()
        )
        return f"Lookup({{{content}}})"

    def kind(self, path: str) -> SampleKind:
        """Payload kind of a path."""
        return self[path][0].kind

    def payloads(self, path: str) -> List[Payload]:
        """Payloads of all chunks of a path in arrival order."""
        return [chunk.payload for chunk in self[path]]

    def merge(self, other: "Lookup") -> "Lookup":
        """New lookup with the chunks of ``other`` appended."""
        merged = {path: list(chunks) for path, chunks in self.items()}
        for path, chunks in other.items():
            merged.setdefault(path, []).extend(chunks)
        return Lookup(merged)

    @classmethod
    def from_raw(
        cls,
        raw: Mapping,
        kind_of: Any = None,
        variant: Optional[SweepVariant] = None,
        paths: Optional[Iterable[str]] = None,
    ) -> "Lookup":
        """Create a lookup from a raw flat dictionary of the data server.

        Args:
            raw: flat dictionary as returned by ``poll`` or ``read``.
            kind_of: callable mapping a path to its sample kind (or None if
                the kind should be derived from the data).
            variant: variant for sweep results.
            paths: if specified only these paths are kept.
        """
        keep = {path.lower() for path in paths} if paths is not None else None
        data = {}
        for path, value in (raw or {}).items():
            path = path.lower()
            if keep is not None and path not in keep:
                continue
            kind = kind_of(path) if kind_of else None
            data[path] = parse_chunks(value, kind=kind, variant=variant)
        return cls(data)
