"""
Keyboard backlight capability.

Drives the keyboard LED exposed by the Linux LED class
(/sys/class/leds/*kbd_backlight*/brightness). Levels are normalized to 0..1
and scaled to the device's max_brightness on write.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from desk_automation.core.values import ParameterValue

from .base import (
    ActionSpec,
    Capability,
    CompatibilityResult,
    ParameterSpec,
    ParameterType,
    ParameterValidation,
)

logger = logging.getLogger(__name__)

LEDS_ROOT = Path("/sys/class/leds")
DEVICE_PATTERN = "*kbd_backlight*"


class BacklightUnavailable(RuntimeError):
    """No keyboard backlight device is present."""


def _level_parameter(display_name: str) -> ParameterSpec:
    return ParameterSpec(
        id="level",
        display_name=display_name,
        type=ParameterType.FLOAT,
        default=1.0,
        validation=ParameterValidation(min=0.0, max=1.0),
    )


class KeyboardBacklightCapability(Capability):
    """
    Capability for the keyboard backlight.

    Actions:
    - set_brightness(level): jump to a level
    - turn_on / turn_off: full brightness / off
    - toggle: off when above 10%, otherwise full brightness
    - fade_to(level, duration): ramp at FADE_STEPS_PER_SECOND

    Any action started while a fade is running supersedes it; the older fade
    stops at its next step.
    """

    identifier = "keyboard-backlight"
    display_name = "Keyboard Backlight"
    version = "1.0.0"
    description = "Controls the keyboard backlight brightness"
    actions = [
        ActionSpec(
            id="set_brightness",
            display_name="Set Brightness",
            description="Set the keyboard brightness level",
            parameters=[_level_parameter("Level")],
        ),
        ActionSpec(
            id="turn_on",
            display_name="Turn On",
            description="Turn the backlight on at full brightness",
        ),
        ActionSpec(
            id="turn_off",
            display_name="Turn Off",
            description="Turn the backlight off",
        ),
        ActionSpec(
            id="toggle",
            display_name="Toggle",
            description="Invert the current state",
        ),
        ActionSpec(
            id="fade_to",
            display_name="Fade To",
            description="Gradually change to the given brightness",
            parameters=[
                _level_parameter("Target Level"),
                ParameterSpec(
                    id="duration",
                    display_name="Duration (seconds)",
                    type=ParameterType.FLOAT,
                    required=False,
                    default=2.0,
                    validation=ParameterValidation(min=0.1, max=10.0),
                ),
            ],
        ),
    ]

    FADE_STEPS_PER_SECOND = 30
    TOGGLE_THRESHOLD = 0.1

    def __init__(self, leds_root: Optional[Path] = None) -> None:
        self._root = Path(leds_root) if leds_root is not None else LEDS_ROOT
        self._device = self._find_device()
        self._generation = 0

        if self._device is None:
            logger.debug(f"No keyboard backlight found under {self._root}")
        else:
            logger.info(f"Keyboard backlight device: {self._device.name}")

    def _find_device(self) -> Optional[Path]:
        if not self._root.is_dir():
            return None
        for candidate in sorted(self._root.glob(DEVICE_PATTERN)):
            if (candidate / "brightness").exists() and (candidate / "max_brightness").exists():
                return candidate
        return None

    # =========================================================================
    # Device Access
    # =========================================================================

    @property
    def device(self) -> Optional[Path]:
        return self._device

    def _require_device(self) -> Path:
        if self._device is None:
            raise BacklightUnavailable(f"No keyboard backlight under {self._root}")
        return self._device

    @property
    def max_brightness(self) -> int:
        device = self._require_device()
        return int((device / "max_brightness").read_text().strip())

    @property
    def level(self) -> float:
        """Current brightness as a fraction of max_brightness."""
        device = self._require_device()
        maximum = self.max_brightness
        if maximum <= 0:
            return 0.0
        return int((device / "brightness").read_text().strip()) / maximum

    def _write_level(self, level: float) -> None:
        device = self._require_device()
        level = max(0.0, min(1.0, level))
        raw = round(level * self.max_brightness)
        (device / "brightness").write_text(f"{raw}\n")

    # =========================================================================
    # Capability
    # =========================================================================

    async def execute(self, action: str, params: Mapping[str, ParameterValue]) -> None:
        validated = self.validate(action, params)
        self._require_device()

        # Any new action supersedes an in-flight fade
        self._generation += 1

        if action == "set_brightness":
            self._write_level(validated["level"].as_float())
        elif action == "turn_on":
            self._write_level(1.0)
        elif action == "turn_off":
            self._write_level(0.0)
        elif action == "toggle":
            self._write_level(0.0 if self.level > self.TOGGLE_THRESHOLD else 1.0)
        elif action == "fade_to":
            await self._fade(
                validated["level"].as_float(),
                validated["duration"].as_float(),
                self._generation,
            )
        logger.debug(f"Keyboard backlight {action} done")

    async def _fade(self, target: float, duration: float, generation: int) -> None:
        start = self.level
        steps = max(1, int(duration * self.FADE_STEPS_PER_SECOND))
        delay = duration / steps

        logger.info(f"Fading keyboard backlight {start:.2f} -> {target:.2f} over {duration}s")

        for step in range(1, steps + 1):
            if self._generation != generation:
                logger.debug("Fade superseded by a newer action")
                return
            self._write_level(start + (target - start) * step / steps)
            if step < steps:
                await asyncio.sleep(delay)

    def compatibility(self) -> CompatibilityResult:
        if self._device is None:
            return CompatibilityResult.incompatible(
                [f"No keyboard backlight LED found under {self._root}"]
            )
        if not os.access(self._device / "brightness", os.W_OK):
            return CompatibilityResult.ok(
                [f"{self._device / 'brightness'} is not writable by this user"]
            )
        return CompatibilityResult.ok()

    async def cleanup(self) -> None:
        # Stops any running fade at its next step
        self._generation += 1
        logger.debug("Keyboard backlight released")
