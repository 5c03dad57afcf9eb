import math

from skytour.models.telemetry import Telemetry, normalize, telemetry_pair


def test_normalize_is_total_for_garbage_input() -> None:
    for raw in (None, {}, [], "5000", 42, {"altitude": {"nested": True}}):
        telemetry = normalize(raw)
        assert telemetry.altitude == 0.0
        assert telemetry.fuel_percentage == 85.0
        assert telemetry.aircraft == "Cessna 172"
        assert telemetry.on_ground is False


def test_normalize_coerces_strings_and_non_finite_numbers() -> None:
    telemetry = normalize(
        {"altitude": " 5000 ", "heading": float("nan"), "pitch": float("inf"), "onGround": "TRUE"}
    )
    assert telemetry.altitude == 5000.0
    assert telemetry.heading == 0.0
    assert telemetry.pitch == 0.0
    assert telemetry.on_ground is True
    assert all(math.isfinite(v) for v in telemetry.model_dump().values() if isinstance(v, float))


def test_speed_prefers_ground_speed_then_airspeed() -> None:
    assert normalize({"groundSpeed": 140, "airspeed": 120}).speed == 140.0
    assert normalize({"groundSpeed": 0, "airspeed": 120}).speed == 120.0
    assert normalize({"speed": 99}).speed == 99.0


def test_normalize_accepts_alternate_field_names() -> None:
    telemetry = normalize(
        {
            "lat": 37.97,
            "lon": 23.72,
            "roll": -12,
            "fuel": {"percentage": 40},
            "engine": {"rpm": 2350},
        }
    )
    assert telemetry.latitude == 37.97
    assert telemetry.longitude == 23.72
    assert telemetry.bank == -12.0
    assert telemetry.fuel_percentage == 40.0
    assert telemetry.engine_rpm == 2350.0


def test_wire_format_is_camel_case() -> None:
    wire = normalize({"altitude": 1200, "verticalSpeed": 500, "onGround": False}).to_wire()
    assert wire["altitude"] == 1200.0
    assert wire["verticalSpeed"] == 500.0
    assert wire["onGround"] is False
    assert "altitudeAGL" in wire and "fuelPercentage" in wire and "engineRPM" in wire


def test_flight_context_subset() -> None:
    context = normalize({"altitude": 3000, "airspeed": 110, "onGround": False}).flight_context()
    assert set(context) == {"altitude", "latitude", "longitude", "heading", "speed", "aircraft", "onGround"}
    assert context["speed"] == 110.0


def test_telemetry_pair_uses_fallback_only_when_nothing_sent() -> None:
    last = normalize({"altitude": 4000})

    telemetry, provided = telemetry_pair(None, last)
    assert telemetry is last and provided is False

    telemetry, provided = telemetry_pair({"altitude": 10}, last)
    assert telemetry.altitude == 10.0 and provided is True

    telemetry, provided = telemetry_pair(None, None)
    assert telemetry == Telemetry() and provided is False


def test_telemetry_pair_ignores_non_object_payloads() -> None:
    last = normalize({"altitude": 4000})
    for raw in ("x", ["altitude", 5], 12, True):
        telemetry, provided = telemetry_pair(raw, last)
        assert telemetry is last and provided is False
