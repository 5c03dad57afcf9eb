from skytour.models.telemetry import normalize
from skytour.providers.fallback import fallback_reply


def test_altitude_question_in_flight() -> None:
    reply = fallback_reply("How high are we?", normalize({"altitude": 5000, "onGround": False}))
    assert reply == "We're currently cruising at 5,000 feet. Perfect altitude for sightseeing!"


def test_ready_on_the_ground() -> None:
    reply = fallback_reply("Are we ready?", normalize({"onGround": True}))
    assert reply == (
        "We're all set for takeoff! Just waiting for clearance from the tower. "
        "It's going to be a beautiful flight today!"
    )


def test_ground_phase_wins_over_topic_keywords() -> None:
    reply = fallback_reply("how high will we go?", normalize({"onGround": True, "altitude": 0}))
    assert reply.startswith("We're currently on the ground")


def test_topic_branches_in_flight() -> None:
    airborne = normalize({"altitude": 3500, "groundSpeed": 112})
    assert "112 knots" in fallback_reply("How FAST are we going", airborne)
    assert "Cessna 172" in fallback_reply("speed?", airborne)
    assert "safety" in fallback_reply("I'm a bit scared", airborne)
    assert "20 more minutes" in fallback_reply("when do we land", airborne)
    assert fallback_reply("look at that lake", airborne).startswith("That's a great observation!")


def test_reply_is_deterministic_and_never_empty() -> None:
    telemetry = normalize({"altitude": 2000})
    for text in ("", "   ", "hello", None):
        first = fallback_reply(text, telemetry)
        assert first
        assert first == fallback_reply(text, telemetry)
