"""Camera-change sinks that receive the commands produced by plan application."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Protocol


class CameraSink(Protocol):
    def add_action(self, frame: int, car_number: int | None, camera_group: int) -> None: ...

    def clear_all(self) -> None: ...


@dataclass(frozen=True)
class CameraCommand:
    frame: int
    car_number: int | None
    """``None`` lets the replay choose the car."""
    camera_group: int
    camera_name: str = ""


@dataclass
class CameraTimeline:
    """In-memory sink recording commands in call order."""

    commands: list[CameraCommand] = field(default_factory=list)
    camera_names: dict[int, str] = field(default_factory=dict)
    """Optional group number → name map used to label recorded commands."""

    def add_action(self, frame: int, car_number: int | None, camera_group: int) -> None:
        self.commands.append(
            CameraCommand(
                frame=frame,
                car_number=car_number,
                camera_group=camera_group,
                camera_name=self.camera_names.get(camera_group, ""),
            )
        )

    def clear_all(self) -> None:
        self.commands.clear()

    def __len__(self) -> int:
        return len(self.commands)

    def to_dict(self) -> dict:
        return {"commands": [dataclasses.asdict(c) for c in self.commands]}
