from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Protocol

from pydantic import BaseModel, ConfigDict

from elevator_config import HOME_FLOOR


class ElevatorDirection(Enum):
    """
    Represents the committed travel direction of the car.

    Attributes:
        UP: The car is travelling (or committed to travel) upward
        DOWN: The car is travelling (or committed to travel) downward
        NONE: No committed direction, the car is idle
    """
    UP = 'Up'
    DOWN = 'Down'
    NONE = 'None'

    def opposite(self) -> "ElevatorDirection":
        if self == ElevatorDirection.UP:
            return ElevatorDirection.DOWN
        if self == ElevatorDirection.DOWN:
            return ElevatorDirection.UP
        return ElevatorDirection.NONE

    @property
    def step(self) -> int:
        """Signed floor increment for this direction (0 for NONE)"""
        if self == ElevatorDirection.UP:
            return 1
        if self == ElevatorDirection.DOWN:
            return -1
        return 0


class DoorState(Enum):
    """
    Represents the state of the car doors.

    Attributes:
        CLOSED: Doors are shut, the car may move
        OPENING: Doors are animating open or dwelling fully open
        OPEN: Doors rest open while the car is idle
        CLOSING: Doors are animating shut
    """
    CLOSED = 'Closed'
    OPENING = 'Opening'
    OPEN = 'Open'
    CLOSING = 'Closing'


class MotionState(Enum):
    """
    Represents the state of the motion state machine.

    Attributes:
        STOPPED: The car is standing at a floor
        RUNNING: A motion run is in progress
    """
    STOPPED = 'Stopped'
    RUNNING = 'Running'


class ElevatorContractError(RuntimeError):
    """Raised when a motion or door run is started against the sequencing rules."""


@dataclass
class CarState:
    """
    Mutable physical state of the car, shared by the state machines.

    Attributes:
        absolute_position: Continuous position, 1.0 means exactly at floor 1
        current_floor: Settled floor, or the last floor passed while moving
        is_moving: Whether a motion run is in progress
        direction: Committed travel direction
        door_state: Current door state
        door_progress: 0.0 is fully closed, 1.0 is fully open
    """
    absolute_position: float = float(HOME_FLOOR)
    current_floor: int = HOME_FLOOR
    is_moving: bool = False
    direction: ElevatorDirection = ElevatorDirection.NONE
    door_state: DoorState = DoorState.OPEN
    door_progress: float = 1.0

    def is_idle_with_doors_open_at(self, floor: int) -> bool:
        """Check whether the car stands at ``floor`` with its doors resting open"""
        return (self.current_floor == floor and
                not self.is_moving and
                self.door_state == DoorState.OPEN)


class ElevatorSnapshot(BaseModel):
    """
    Read-only view of the controller state handed to the presentation layer.
    """
    model_config = ConfigDict(frozen=True)

    current_floor: int
    absolute_position: float
    position_progress: float = 0.0
    direction: ElevatorDirection
    door_state: DoorState
    door_progress: float
    is_moving: bool
    internal_queue: FrozenSet[int] = frozenset()
    call_buttons_up: FrozenSet[int] = frozenset()
    call_buttons_down: FrozenSet[int] = frozenset()


class ElevatorObserver(Protocol):
    """
    Protocol for consumers of controller output.

    Observers are notified on the controller timeline, after the event that
    caused the change has been fully reconciled.
    """
    def on_snapshot(self, snapshot: ElevatorSnapshot) -> None:
        """Receive the state after an event has been processed"""
        ...

    def on_arrival(self, floor: int, direction: ElevatorDirection, stopped: bool) -> None:
        """Receive a floor arrival reported by the motion state machine"""
        ...
