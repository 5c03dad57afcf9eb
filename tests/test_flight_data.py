import asyncio
import random

from skytour.core.mock_flight import MockFlightGenerator
from skytour.core.telemetry_source import TelemetrySource
from skytour.models.telemetry import normalize
from skytour.providers.agent_flow import UpstreamUnavailable


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _generator(clock):
    return MockFlightGenerator(clock=clock, rng=random.Random(7))


def test_mock_starts_in_cruise_and_evolves_slowly() -> None:
    clock = FakeClock()
    generator = _generator(clock)

    first = generator.step()
    clock.now += 1.0
    second = generator.step()

    assert first.altitude == 2000.0 and first.on_ground is False
    assert abs(second.altitude - first.altitude) < 5
    assert abs(second.airspeed - first.airspeed) <= 1.0
    assert 0 <= second.heading < 360
    assert second.latitude != first.latitude or second.longitude != first.longitude
    assert second.speed == second.airspeed


def test_mock_lands_below_threshold_and_decelerates() -> None:
    clock = FakeClock()
    generator = _generator(clock)
    generator.seed_from(normalize({"altitude": 150, "verticalSpeed": -1200, "airspeed": 90}))

    clock.now += 5.0
    landed = generator.step()
    clock.now += 2.0
    rolling = generator.step()

    assert landed.on_ground is True and landed.gear is True
    assert landed.vertical_speed == 0.0
    assert rolling.altitude == 0.0
    assert rolling.airspeed == landed.airspeed - 10.0


def test_mock_fuel_never_increases() -> None:
    clock = FakeClock()
    generator = _generator(clock)
    fuel = [generator.step().fuel_percentage]
    for _ in range(20):
        clock.now += 30.0
        fuel.append(generator.step().fuel_percentage)

    assert all(later <= earlier for earlier, later in zip(fuel, fuel[1:]))
    assert fuel[-1] < fuel[0]


def test_land_puts_aircraft_on_ground() -> None:
    generator = _generator(FakeClock())
    telemetry = generator.land()
    assert telemetry.altitude == 0.0 and telemetry.on_ground is True


class ScriptedClient:
    """Stands in for AgentFlowClient.fetch_flight_info."""

    def __init__(self, settings, results):
        self.settings = settings
        self.results = list(results)
        self.calls = 0

    async def fetch_flight_info(self):
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def test_source_without_flow_uses_mock(make_settings) -> None:
    client = ScriptedClient(make_settings(), [])
    source = TelemetrySource(client, _generator(FakeClock()))

    telemetry, label = asyncio.run(source.read())
    assert label == "mock"
    assert telemetry.altitude == 2000.0
    assert client.calls == 0


def test_source_reseeds_mock_from_last_real_snapshot(make_settings) -> None:
    live = {"altitude": 3000, "airspeed": 120, "heading": 90, "latitude": 37.9, "longitude": 23.7}
    client = ScriptedClient(
        make_settings(flight_info_flow_id="info"),
        [live, UpstreamUnavailable("gone")],
    )
    source = TelemetrySource(client, _generator(FakeClock()))

    async def scenario():
        return [await source.read(), await source.read()]

    (real, real_label), (mock, mock_label) = asyncio.run(scenario())
    assert (real_label, mock_label) == ("real", "mock")
    assert real.altitude == 3000.0
    assert mock.altitude == 3000.0
    assert mock.latitude == 37.9 and mock.longitude == 23.7


def test_source_reset_restarts_mock_flight(make_settings) -> None:
    clock = FakeClock()
    source = TelemetrySource(ScriptedClient(make_settings(), []), _generator(clock))

    async def scenario():
        await source.read()
        clock.now += 600.0
        await source.read()
        source.reset()
        return await source.read()

    telemetry, label = asyncio.run(scenario())
    assert label == "mock"
    assert telemetry.altitude == 2000.0
    assert telemetry.fuel_percentage == 85.0
