import numpy as np
import pytest

from fixtures import device, fake_server, session
from zhinst.daqkit import ModuleState, SampleKind, SweepResult, SweepVariant
from zhinst.daqkit.exceptions import OperationTimeoutError


class TestSweeperModule:
    def test_sweep(self, session, device, fake_server):
        with session.create_sweeper_module() as sweeper:
            result = sweeper.sweep(
                device,
                "/dev1234/demods/0/sample",
                1e3,
                1e5,
                50,
                gridnode="oscs/0/freq",
                xmapping=1,
            )
            raw = fake_server.modules[0]
            assert raw.values["/device"] == "dev1234"
            assert raw.values["/gridnode"] == "oscs/0/freq"
            assert raw.values["/xmapping"] == 1
            assert raw.subscribed == ["/dev1234/demods/0/sample"]
            assert sweeper.state is ModuleState.FINISHED
            assert sweeper.finished()
            assert sweeper.progress() == 1.0

        assert list(result) == ["/dev1234/demods/0/sample"]
        assert result.kind("/dev1234/demods/0/sample") is SampleKind.SWEEP_RESULT
        payload = result.payloads("/dev1234/demods/0/sample")[0]
        assert isinstance(payload, SweepResult)
        assert payload.variant is SweepVariant.DEMOD
        assert len(payload.grid) == 50
        assert payload.grid[0] == 1e3
        assert payload.grid[-1] == 1e5
        assert np.all(np.diff(payload.grid) > 0)
        assert "r" in payload.fields

    def test_sweep_by_serial(self, session, device, fake_server):
        with session.create_sweeper_module() as sweeper:
            sweeper.sweep("DEV1234", "/dev1234/demods/1/sample", 10, 20, 3)
            assert fake_server.modules[0].values["/device"] == "dev1234"
            # default grid node is kept
            assert fake_server.modules[0].values["/gridnode"] == "oscs/0/freq"

    def test_sweep_timeout(self, session, device, fake_server):
        with session.create_sweeper_module() as sweeper:
            fake_server.modules[0].finished = lambda: False
            with pytest.raises(OperationTimeoutError):
                sweeper.sweep(
                    device, "/dev1234/demods/0/sample", 1e3, 1e5, 10, timeout=0.05
                )

    def test_read_partial_subscription(self, session, device, fake_server):
        with session.create_sweeper_module() as sweeper:
            sweeper.subscribe("/dev1234/demods/0/sample")
            fake_server.modules[0].subscribed.append("/dev1234/demods/1/sample")
            sweeper.execute()
            sweeper.wait_done(sleep_time=0.01)
            assert list(sweeper.read()) == ["/dev1234/demods/0/sample"]


class TestSpectrumModule:
    def test_setup(self, session, fake_server):
        with session.create_spectrum_module() as spectrum:
            assert spectrum.sweep_variant is SweepVariant.SPECTRUM
            assert spectrum.kind.factory == "zoomFFT"
            spectrum.configure("bit", 10)
            assert fake_server.modules[0].values["/bit"] == 10
            assert spectrum.bit() == 10
