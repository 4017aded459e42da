import dataclasses
import json

import pytest

from leap_driver.errors import DecodeError
from leap_driver.frame import (
    ZERO_VECTOR,
    Frame,
    Gesture,
    Hand,
    InteractionBox,
    decode_frame,
)

from conftest import frame_payload, gesture_json, hand_json

SAMPLE = {
    "currentFrameRate": 115.9,
    "id": 99943,
    "timestamp": 4729292670,
    "r": [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
    "s": 1,
    "t": [0, 0, 0],
    "interactionBox": {"center": [0, 200, 0], "size": [235.2, 235.2, 147.7]},
    "hands": [
        {
            "id": 118,
            "type": "left",
            "direction": [-0.2, 0.4, -0.8],
            "palmNormal": [-0.1, -0.9, -0.3],
            "palmPosition": [-62.5, 164.2, 39.7],
            "palmVelocity": [1.1, 2.2, 3.3],
            "stabilizedPalmPosition": [-61.0, 163.0, 40.0],
            "sphereCenter": [-60.0, 180.0, 10.0],
            "sphereRadius": 92.3,
            "grabStrength": 0.25,
            "pinchStrength": 0.5,
            "confidence": 0.9,
            "timeVisible": 12.7,
            "armBasis": [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
            "armWidth": 61.2,
            "elbow": [-100.0, 50.0, 200.0],
            "wrist": [-70.0, 150.0, 80.0],
        }
    ],
    "gestures": [
        {
            "id": 72,
            "type": "circle",
            "state": "update",
            "duration": 341019,
            "handIds": [118],
            "pointableIds": [1181],
            "center": [-30.1, 182.4, 10.9],
            "normal": [0.1, -0.2, -0.9],
            "progress": 1.6,
            "radius": 25.6,
        }
    ],
    "pointables": [
        {
            "id": 1181,
            "handId": 118,
            "type": 1,
            "length": 48.2,
            "width": 17.1,
            "direction": [0.1, 0.2, -0.9],
            "tipPosition": [-30.0, 190.0, 0.0],
            "extended": True,
            "tool": False,
            "touchZone": "hovering",
            "touchDistance": 0.3,
            "bases": [
                [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
                [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
            ],
        }
    ],
}


def test_decode_full_frame():
    frame = decode_frame(json.dumps(SAMPLE).encode("utf-8"))

    assert frame.id == 99943
    assert frame.timestamp == 4729292670
    assert frame.current_frame_rate == pytest.approx(115.9)
    assert frame.interaction_box == InteractionBox(center=(0.0, 200.0, 0.0), size=(235.2, 235.2, 147.7))
    assert frame.s == 1.0

    (hand,) = frame.hands
    assert hand.id == 118
    assert hand.type == "left"
    assert (hand.x, hand.y, hand.z) == (-62.5, 164.2, 39.7)
    assert hand.grab_strength == 0.25
    assert hand.arm_basis[2] == (0.0, 0.0, 1.0)

    (gesture,) = frame.gestures
    assert gesture.type == "circle"
    assert gesture.state == "update"
    assert gesture.hand_ids == (118,)
    assert gesture.pointable_ids == (1181,)
    assert gesture.radius == 25.6
    assert gesture.direction == ZERO_VECTOR

    (pointable,) = frame.pointables
    assert pointable.hand_id == 118
    assert pointable.extended is True
    assert pointable.touch_zone == "hovering"
    assert len(pointable.bases) == 2


def test_decode_accepts_text_payload():
    frame = decode_frame(json.dumps(SAMPLE))
    assert frame.id == 99943


def test_empty_object_decodes_to_empty_frame():
    frame = decode_frame(b"{}")
    assert frame == Frame()
    assert frame.hands == ()
    assert frame.gestures == ()


def test_service_version_message_decodes_to_empty_frame():
    frame = decode_frame(b'{"serviceVersion": "2.3.1+31549", "version": 6}')
    assert frame.hands == ()
    assert frame.gestures == ()


def test_missing_and_null_fields_take_zero_values():
    frame = decode_frame(json.dumps({"hands": [{"id": 3, "palmPosition": None}], "gestures": None}))
    assert frame.hands == (Hand(id=3),)
    assert frame.gestures == ()


def test_collections_keep_payload_order():
    payload = frame_payload(
        1,
        hands=[hand_json(5), hand_json(2), hand_json(9)],
        gestures=[gesture_json(30), gesture_json(10)],
    )
    frame = decode_frame(payload)
    assert [h.id for h in frame.hands] == [5, 2, 9]
    assert [g.id for g in frame.gestures] == [30, 10]


@pytest.mark.parametrize("payload", [
    b"not json",
    b"",
    b"[1, 2, 3]",
    b'"frame"',
    b'{"hands": {"id": 1}}',
    b'{"hands": [42]}',
    b'{"hands": [{"palmPosition": [1, 2]}]}',
    b'{"hands": [{"grabStrength": "strong"}]}',
    b'{"hands": [{"confidence": true}]}',
    b'{"gestures": [{"handIds": [1.5]}]}',
    b'{"id": "abc"}',
    b'{"interactionBox": [1, 2, 3]}',
    b'{"pointables": [{"extended": 1}]}',
    b"\xff\xfe{}",
    b"[" * 200000,
])
def test_malformed_payload_raises_decode_error(payload):
    with pytest.raises(DecodeError) as exc_info:
        decode_frame(payload)
    assert exc_info.value.payload == payload
    assert exc_info.value.reason


def test_decoded_values_are_immutable():
    frame = decode_frame(frame_payload(1, hands=[hand_json(1)]))
    with pytest.raises(dataclasses.FrozenInstanceError):
        frame.hands[0].id = 2
    with pytest.raises(dataclasses.FrozenInstanceError):
        frame.id = 5
    assert isinstance(frame.hands, tuple)


def test_gesture_defaults():
    gesture = Gesture()
    assert gesture.hand_ids == ()
    assert gesture.start_position == ZERO_VECTOR
