from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from endless.util.math import exp_smooth, look_at


def _clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


class FlightCamera:
    """Viewer for the terrain streamer.

    Moves on the ground plane from arrow-key input with inertial speed and yaw,
    and glides at `height_offset` above whatever terrain has been generated so
    far. Where no height is known yet it keeps its altitude.

    +Z is forward when yaw == 0.
    """

    def __init__(
        self,
        *,
        max_speed: float,
        accel: float,
        brake: float,
        drag: float,
        max_yaw_rate: float,
        yaw_accel: float,
        yaw_drag: float,
        input_smooth_k: float,
        height_offset: float,
        smooth_k: float,
    ) -> None:
        self.max_speed = float(max_speed)
        self.accel = float(accel)
        self.brake = float(brake)
        self.drag = float(drag)
        self.max_yaw_rate = float(max_yaw_rate)
        self.yaw_accel = float(yaw_accel)
        self.yaw_drag = float(yaw_drag)
        self.input_smooth_k = float(input_smooth_k)
        self.height_offset = float(height_offset)
        self.smooth_k = float(smooth_k)

        self.x = 0.0
        self.z = 0.0
        self.y = float(height_offset)
        self.yaw = 0.0
        self.speed = 0.0
        self.yaw_rate = 0.0

        self._throttle = 0.0
        self._turn = 0.0

        self.look_ahead = 60.0
        self.look_down = 12.0

    def forward(self) -> np.ndarray:
        return np.array([np.sin(self.yaw), 0.0, np.cos(self.yaw)], dtype=np.float32)

    def update(
        self,
        dt: float,
        height_fn: Callable[[float, float], Optional[float]],
        *,
        forward: float,
        turn: float,
        lift: float = 0.0,
    ) -> None:
        """Advance by dt. forward/turn/lift are -1..1 axis inputs."""
        dt = float(dt)
        self._throttle = exp_smooth(self._throttle, _clamp(forward, -1.0, 1.0), self.input_smooth_k, dt)
        self._turn = exp_smooth(self._turn, _clamp(turn, -1.0, 1.0), self.input_smooth_k, dt)

        target = self._throttle * self.max_speed
        limit = self.accel if abs(target) > abs(self.speed) else self.brake
        self.speed += _clamp(target - self.speed, -limit * dt, limit * dt)
        self.speed *= float(np.exp(-self.drag * dt))

        # negated so RIGHT turns right on screen
        yaw_target = -self._turn * self.max_yaw_rate
        self.yaw_rate += _clamp(yaw_target - self.yaw_rate, -self.yaw_accel * dt, self.yaw_accel * dt)
        self.yaw_rate *= float(np.exp(-self.yaw_drag * dt))
        self.yaw += self.yaw_rate * dt

        fwd = self.forward()
        self.x += float(fwd[0]) * self.speed * dt
        self.z += float(fwd[2]) * self.speed * dt

        self.height_offset = max(2.0, self.height_offset + _clamp(lift, -1.0, 1.0) * self.max_speed * 0.5 * dt)
        ground = height_fn(self.x, self.z)
        if ground is not None:
            self.y = exp_smooth(self.y, float(ground) + self.height_offset, self.smooth_k, dt)

    def ground_position(self) -> tuple[float, float]:
        return self.x, self.z

    def eye(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float32)

    def view_matrix(self) -> np.ndarray:
        eye = self.eye()
        target = eye + self.forward() * np.float32(self.look_ahead)
        target[1] -= self.look_down
        up = np.array([0.0, 1.0, 0.0], dtype=np.float32)
        return look_at(eye, target, up)
