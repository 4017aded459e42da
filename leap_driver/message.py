"""
Control messages sent from the driver to the Leap service.

The service accepts small JSON objects that toggle device features, e.g.
``{"enableGestures": true}`` to turn on gesture recognition.
"""

import json
from dataclasses import dataclass
from typing import Optional


@dataclass
class ControlMessage:
    """
    Control message sent to the Leap service.

    Attributes:
        enable_gestures: Turn gesture recognition on or off
        background: Optional request to keep receiving frames when the
            service's client is not focused
        focused: Optional focus state of this client
    """
    enable_gestures: bool
    background: Optional[bool] = None
    focused: Optional[bool] = None

    def to_dict(self) -> dict:
        """Build the wire mapping, omitting unset options."""
        payload = {"enableGestures": self.enable_gestures}
        if self.background is not None:
            payload["background"] = self.background
        if self.focused is not None:
            payload["focused"] = self.focused
        return payload

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, data: str) -> 'ControlMessage':
        """Deserialize from JSON string."""
        d = json.loads(data)
        background = d.get("background")
        focused = d.get("focused")
        return cls(
            enable_gestures=bool(d['enableGestures']),
            background=bool(background) if background is not None else None,
            focused=bool(focused) if focused is not None else None,
        )

    @classmethod
    def enable_gestures_message(cls) -> 'ControlMessage':
        """Create the command sent once when the driver starts."""
        return cls(enable_gestures=True)
