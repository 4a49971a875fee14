"""Tests for the session-scoped BLE fingerprint collector."""

from __future__ import annotations

import threading

from floorprint.fingerprint_collector import Advertisement, CollectorState, FingerprintCollector
from floorprint.util import device_key

from .helpers import IBEACON_UUID, FakeBackend, FakeClock, ibeacon_payload


def _collector(backend: FakeBackend, clock: FakeClock) -> FingerprintCollector:
    return FingerprintCollector(backend, clock=clock)


class TestCollectorLifecycle:
    """IDLE -> PENDING_START -> ACTIVE transitions."""

    def test_start_when_ready_activates_immediately(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        assert collector.state is CollectorState.IDLE

        collector.start("session-1")

        assert collector.state is CollectorState.ACTIVE
        assert collector.session_id == "session-1"
        assert fake_backend.start_calls == 1

    def test_start_before_ready_is_pending_until_ready(self, fake_clock: FakeClock) -> None:
        backend = FakeBackend(ready=False)
        collector = _collector(backend, fake_clock)

        collector.start("session-1")

        assert collector.state is CollectorState.PENDING_START
        assert backend.start_calls == 0, "Scanning must not start before the radio is ready"

        backend.ready = True
        collector.handle_ready()

        assert collector.state is CollectorState.ACTIVE
        assert backend.start_calls == 1

    def test_pending_start_applies_exactly_once(self, fake_clock: FakeClock) -> None:
        backend = FakeBackend(ready=False)
        collector = _collector(backend, fake_clock)
        collector.start("session-1")

        backend.ready = True
        collector.handle_ready()
        collector.handle_ready()

        assert backend.start_calls == 1, (
            f"start_scan called {backend.start_calls} times; a repeated readiness signal "
            f"must not restart an already active session."
        )

    def test_later_start_replaces_pending_start(self, fake_clock: FakeClock) -> None:
        backend = FakeBackend(ready=False)
        collector = _collector(backend, fake_clock)

        collector.start("first")
        collector.start("second")
        backend.ready = True
        collector.handle_ready()

        assert collector.session_id == "second"
        assert backend.start_calls == 1

    def test_ready_without_pending_start_does_nothing(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        collector.handle_ready()
        assert collector.state is CollectorState.IDLE
        assert fake_backend.start_calls == 0

    def test_unavailable_is_recorded(self, fake_clock: FakeClock) -> None:
        collector = _collector(FakeBackend(ready=False), fake_clock)
        collector.handle_unavailable("poweredOff")
        assert collector.state_description == "poweredOff"

    def test_stop_when_idle_is_safe(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        assert collector.stop() == []
        assert fake_backend.stop_calls == 0, "stop_scan must only be called while scanning"

    def test_stop_while_pending_clears_pending(self, fake_clock: FakeClock) -> None:
        backend = FakeBackend(ready=False)
        collector = _collector(backend, fake_clock)
        collector.start("session-1")

        assert collector.stop() == []
        backend.ready = True
        collector.handle_ready()

        assert collector.state is CollectorState.IDLE
        assert backend.start_calls == 0


class TestCollectorSamples:
    """Advertisement handling while a session is recording."""

    def test_advert_while_idle_is_dropped(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        collector.handle_advertisement(Advertisement(identifier="dev", rssi=-60))
        assert collector.snapshot_summary() == (0, 0)

    def test_sample_fields(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        collector.start("session-1")
        fake_clock.advance(1.2345)

        collector.handle_advertisement(Advertisement(identifier="dev-A", rssi=-61, local_name="Thermo\x00\x00"))
        samples = collector.stop()

        assert len(samples) == 1
        sample = samples[0]
        assert sample.session_id == "session-1"
        assert sample.t_offset_ms == 1234
        assert sample.device_key == device_key("dev-A")
        assert sample.raw_id == "dev-A"
        assert sample.rssi == -61
        assert sample.local_name == "Thermo"
        assert sample.is_ibeacon is False
        assert sample.ibeacon_uuid is None

    def test_duplicates_are_all_kept(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        collector.start("session-1")
        for rssi in (-60, -61, -62):
            collector.handle_advertisement(Advertisement(identifier="dev-A", rssi=rssi))
        collector.handle_advertisement(Advertisement(identifier="dev-B", rssi=-80))

        assert collector.snapshot_summary() == (2, 4), (
            "Expected 2 unique devices and 4 samples; repeated adverts must not be de-duplicated."
        )
        assert [s.rssi for s in collector.stop()] == [-60, -61, -62, -80]

    def test_ibeacon_advert_is_decoded(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        collector.start("session-1")
        collector.handle_advertisement(
            Advertisement(identifier="beacon", rssi=-70, manufacturer_data=ibeacon_payload(major=10, minor=20))
        )
        collector.handle_advertisement(
            Advertisement(identifier="junk", rssi=-70, manufacturer_data=ibeacon_payload()[:20])
        )

        beacon, junk = collector.stop()

        assert beacon.is_ibeacon
        assert (beacon.ibeacon_uuid, beacon.ibeacon_major, beacon.ibeacon_minor) == (IBEACON_UUID, 10, 20)
        assert not junk.is_ibeacon, "A truncated frame is classified as not-iBeacon, never an error"
        assert junk.ibeacon_major is None

    def test_stop_resets_and_new_session_starts_empty(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        collector.start("one")
        collector.handle_advertisement(Advertisement(identifier="dev", rssi=-60))
        assert len(collector.stop()) == 1
        assert fake_backend.stop_calls == 1
        assert collector.state is CollectorState.IDLE
        assert collector.session_id is None

        collector.start("two")
        assert collector.snapshot_summary() == (0, 0)
        collector.handle_advertisement(Advertisement(identifier="dev", rssi=-60))
        assert collector.stop()[0].session_id == "two"

    def test_start_resets_previous_samples(self, fake_backend: FakeBackend, fake_clock: FakeClock) -> None:
        collector = _collector(fake_backend, fake_clock)
        collector.start("one")
        collector.handle_advertisement(Advertisement(identifier="dev", rssi=-60))
        collector.start("two")
        assert collector.snapshot_summary() == (0, 0)
        assert fake_backend.start_calls == 1, "Already scanning, so no second start_scan"


def test_concurrent_adverts_and_stop_lose_nothing(fake_backend: FakeBackend, fake_clock: FakeClock):
    """Adverts delivered concurrently from several threads are all recorded."""
    collector = _collector(fake_backend, fake_clock)
    collector.start("session-1")
    delivered = 2000
    barrier = threading.Barrier(3)

    def feed(prefix: str) -> None:
        barrier.wait()
        for i in range(delivered // 2):
            collector.handle_advertisement(Advertisement(identifier=f"{prefix}{i % 5}", rssi=-60))

    threads = [threading.Thread(target=feed, args=(p,)) for p in ("a", "b")]
    for thread in threads:
        thread.start()
    barrier.wait()
    for thread in threads:
        thread.join()
    samples = collector.stop()

    assert len(samples) == delivered
    assert len({s.device_key for s in samples}) == 10
