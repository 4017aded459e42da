"""
Leap Motion frame model and decoder.

The Leap service streams one JSON object per WebSocket message. Each object
is a snapshot of the tracked scene:

    {
        "id": int,                     # Frame id
        "timestamp": int,              # Device time in microseconds
        "currentFrameRate": float,
        "hands": [ {...}, ... ],       # Tracked hands
        "gestures": [ {...}, ... ],    # Recognized gestures
        "pointables": [ {...}, ... ],  # Fingers and tools
        "interactionBox": {"center": [x, y, z], "size": [w, h, d]},
        "r": [[...], [...], [...]],    # Rotation since the previous frame
        "s": float,                    # Scale since the previous frame
        "t": [x, y, z],                # Translation since the previous frame
    }

Missing keys decode to zero values. Keys with the wrong JSON type make the
whole payload invalid.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Union

from .errors import DecodeError

Vector = Tuple[float, float, float]
Matrix = Tuple[Vector, Vector, Vector]

ZERO_VECTOR: Vector = (0.0, 0.0, 0.0)
ZERO_MATRIX: Matrix = (ZERO_VECTOR, ZERO_VECTOR, ZERO_VECTOR)


@dataclass(frozen=True)
class InteractionBox:
    """Box in which the device tracks reliably, in millimeters."""
    center: Vector = ZERO_VECTOR
    size: Vector = ZERO_VECTOR


@dataclass(frozen=True)
class Hand:
    """One tracked hand."""
    id: int = 0
    type: str = ""
    direction: Vector = ZERO_VECTOR
    palm_normal: Vector = ZERO_VECTOR
    palm_position: Vector = ZERO_VECTOR
    palm_velocity: Vector = ZERO_VECTOR
    stabilized_palm_position: Vector = ZERO_VECTOR
    sphere_center: Vector = ZERO_VECTOR
    sphere_radius: float = 0.0
    grab_strength: float = 0.0
    pinch_strength: float = 0.0
    confidence: float = 0.0
    time_visible: float = 0.0
    arm_basis: Matrix = ZERO_MATRIX
    arm_width: float = 0.0
    elbow: Vector = ZERO_VECTOR
    wrist: Vector = ZERO_VECTOR
    r: Matrix = ZERO_MATRIX
    s: float = 0.0
    t: Vector = ZERO_VECTOR

    @property
    def x(self) -> float:
        """Palm position along the x axis."""
        return self.palm_position[0]

    @property
    def y(self) -> float:
        """Palm position along the y axis."""
        return self.palm_position[1]

    @property
    def z(self) -> float:
        """Palm position along the z axis."""
        return self.palm_position[2]


@dataclass(frozen=True)
class Gesture:
    """
    One recognized gesture.

    ``type`` is one of "circle", "swipe", "keyTap" or "screenTap" and
    ``state`` one of "start", "update" or "stop". Fields that do not apply
    to the gesture type keep their zero value.
    """
    id: int = 0
    type: str = ""
    state: str = ""
    duration: int = 0
    hand_ids: Tuple[int, ...] = ()
    pointable_ids: Tuple[int, ...] = ()
    center: Vector = ZERO_VECTOR
    direction: Vector = ZERO_VECTOR
    normal: Vector = ZERO_VECTOR
    position: Vector = ZERO_VECTOR
    start_position: Vector = ZERO_VECTOR
    progress: float = 0.0
    radius: float = 0.0
    speed: float = 0.0


@dataclass(frozen=True)
class Pointable:
    """One finger or tool."""
    id: int = 0
    hand_id: int = 0
    type: int = 0
    length: float = 0.0
    width: float = 0.0
    direction: Vector = ZERO_VECTOR
    tip_position: Vector = ZERO_VECTOR
    tip_velocity: Vector = ZERO_VECTOR
    stabilized_tip_position: Vector = ZERO_VECTOR
    extended: bool = False
    tool: bool = False
    touch_distance: float = 0.0
    touch_zone: str = ""
    time_visible: float = 0.0
    bases: Tuple[Matrix, ...] = ()
    btip_position: Vector = ZERO_VECTOR
    carp_position: Vector = ZERO_VECTOR
    dip_position: Vector = ZERO_VECTOR
    mcp_position: Vector = ZERO_VECTOR
    pip_position: Vector = ZERO_VECTOR


@dataclass(frozen=True)
class Frame:
    """One decoded snapshot from the device."""
    id: int = 0
    timestamp: int = 0
    current_frame_rate: float = 0.0
    hands: Tuple[Hand, ...] = ()
    gestures: Tuple[Gesture, ...] = ()
    pointables: Tuple[Pointable, ...] = ()
    interaction_box: InteractionBox = InteractionBox()
    r: Matrix = ZERO_MATRIX
    s: float = 0.0
    t: Vector = ZERO_VECTOR


def _is_number(value: Any) -> bool:
    # JSON booleans load as bool, which is a subclass of int
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _float(value: Any, key: str) -> float:
    if not _is_number(value):
        raise ValueError(f"'{key}' must be a number, got {type(value).__name__}")
    return float(value)


def _int(value: Any, key: str) -> int:
    if not _is_number(value) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    return int(value)


def _str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"'{key}' must be a boolean, got {type(value).__name__}")
    return value


def _list(value: Any, key: str) -> list:
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be an array, got {type(value).__name__}")
    return value


def _object(value: Any, key: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be an object, got {type(value).__name__}")
    return value


def _vector(value: Any, key: str) -> Vector:
    items = _list(value, key)
    if len(items) != 3:
        raise ValueError(f"'{key}' must have 3 components, got {len(items)}")
    return tuple(_float(v, key) for v in items)


def _matrix(value: Any, key: str) -> Matrix:
    rows = _list(value, key)
    if len(rows) != 3:
        raise ValueError(f"'{key}' must have 3 rows, got {len(rows)}")
    return tuple(_vector(row, key) for row in rows)


def _ints(value: Any, key: str) -> Tuple[int, ...]:
    return tuple(_int(v, key) for v in _list(value, key))


def _matrices(value: Any, key: str) -> Tuple[Matrix, ...]:
    return tuple(_matrix(v, key) for v in _list(value, key))


def _field(obj: dict, key: str, convert: Callable[[Any, str], Any], default: Any) -> Any:
    """Convert obj[key], or return default when the key is absent or null."""
    value = obj.get(key)
    if value is None:
        return default
    return convert(value, key)


def _decode_hand(obj: Any) -> Hand:
    d = _object(obj, "hands[]")
    return Hand(
        id=_field(d, "id", _int, 0),
        type=_field(d, "type", _str, ""),
        direction=_field(d, "direction", _vector, ZERO_VECTOR),
        palm_normal=_field(d, "palmNormal", _vector, ZERO_VECTOR),
        palm_position=_field(d, "palmPosition", _vector, ZERO_VECTOR),
        palm_velocity=_field(d, "palmVelocity", _vector, ZERO_VECTOR),
        stabilized_palm_position=_field(d, "stabilizedPalmPosition", _vector, ZERO_VECTOR),
        sphere_center=_field(d, "sphereCenter", _vector, ZERO_VECTOR),
        sphere_radius=_field(d, "sphereRadius", _float, 0.0),
        grab_strength=_field(d, "grabStrength", _float, 0.0),
        pinch_strength=_field(d, "pinchStrength", _float, 0.0),
        confidence=_field(d, "confidence", _float, 0.0),
        time_visible=_field(d, "timeVisible", _float, 0.0),
        arm_basis=_field(d, "armBasis", _matrix, ZERO_MATRIX),
        arm_width=_field(d, "armWidth", _float, 0.0),
        elbow=_field(d, "elbow", _vector, ZERO_VECTOR),
        wrist=_field(d, "wrist", _vector, ZERO_VECTOR),
        r=_field(d, "r", _matrix, ZERO_MATRIX),
        s=_field(d, "s", _float, 0.0),
        t=_field(d, "t", _vector, ZERO_VECTOR),
    )


def _decode_gesture(obj: Any) -> Gesture:
    d = _object(obj, "gestures[]")
    return Gesture(
        id=_field(d, "id", _int, 0),
        type=_field(d, "type", _str, ""),
        state=_field(d, "state", _str, ""),
        duration=_field(d, "duration", _int, 0),
        hand_ids=_field(d, "handIds", _ints, ()),
        pointable_ids=_field(d, "pointableIds", _ints, ()),
        center=_field(d, "center", _vector, ZERO_VECTOR),
        direction=_field(d, "direction", _vector, ZERO_VECTOR),
        normal=_field(d, "normal", _vector, ZERO_VECTOR),
        position=_field(d, "position", _vector, ZERO_VECTOR),
        start_position=_field(d, "startPosition", _vector, ZERO_VECTOR),
        progress=_field(d, "progress", _float, 0.0),
        radius=_field(d, "radius", _float, 0.0),
        speed=_field(d, "speed", _float, 0.0),
    )


def _decode_pointable(obj: Any) -> Pointable:
    d = _object(obj, "pointables[]")
    return Pointable(
        id=_field(d, "id", _int, 0),
        hand_id=_field(d, "handId", _int, 0),
        type=_field(d, "type", _int, 0),
        length=_field(d, "length", _float, 0.0),
        width=_field(d, "width", _float, 0.0),
        direction=_field(d, "direction", _vector, ZERO_VECTOR),
        tip_position=_field(d, "tipPosition", _vector, ZERO_VECTOR),
        tip_velocity=_field(d, "tipVelocity", _vector, ZERO_VECTOR),
        stabilized_tip_position=_field(d, "stabilizedTipPosition", _vector, ZERO_VECTOR),
        extended=_field(d, "extended", _bool, False),
        tool=_field(d, "tool", _bool, False),
        touch_distance=_field(d, "touchDistance", _float, 0.0),
        touch_zone=_field(d, "touchZone", _str, ""),
        time_visible=_field(d, "timeVisible", _float, 0.0),
        bases=_field(d, "bases", _matrices, ()),
        btip_position=_field(d, "btipPosition", _vector, ZERO_VECTOR),
        carp_position=_field(d, "carpPosition", _vector, ZERO_VECTOR),
        dip_position=_field(d, "dipPosition", _vector, ZERO_VECTOR),
        mcp_position=_field(d, "mcpPosition", _vector, ZERO_VECTOR),
        pip_position=_field(d, "pipPosition", _vector, ZERO_VECTOR),
    )


def _decode_interaction_box(obj: Any, key: str) -> InteractionBox:
    d = _object(obj, key)
    return InteractionBox(
        center=_field(d, "center", _vector, ZERO_VECTOR),
        size=_field(d, "size", _vector, ZERO_VECTOR),
    )


def decode_frame(payload: Union[bytes, str]) -> Frame:
    """
    Decode one payload received from the Leap service.

    Args:
        payload: One whole WebSocket message (UTF-8 JSON)

    Returns:
        The decoded Frame. An empty object decodes to a Frame without
        hands or gestures.

    Raises:
        DecodeError: If the payload is not JSON or does not match the
            frame schema
    """
    try:
        text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        d = _object(json.loads(text), "frame")
        return Frame(
            id=_field(d, "id", _int, 0),
            timestamp=_field(d, "timestamp", _int, 0),
            current_frame_rate=_field(d, "currentFrameRate", _float, 0.0),
            hands=tuple(_decode_hand(h) for h in _field(d, "hands", _list, [])),
            gestures=tuple(_decode_gesture(g) for g in _field(d, "gestures", _list, [])),
            pointables=tuple(_decode_pointable(p) for p in _field(d, "pointables", _list, [])),
            interaction_box=_field(d, "interactionBox", _decode_interaction_box, InteractionBox()),
            r=_field(d, "r", _matrix, ZERO_MATRIX),
            s=_field(d, "s", _float, 0.0),
            t=_field(d, "t", _vector, ZERO_VECTOR),
        )
    except (ValueError, TypeError, RecursionError) as e:
        # json.JSONDecodeError and UnicodeDecodeError are ValueErrors;
        # deeply nested arrays exhaust the parser's recursion limit
        raise DecodeError(payload, str(e)) from e
