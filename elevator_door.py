import logging

from elevator_interface import CarState, DoorState, ElevatorContractError, ElevatorDirection
from elevator_requests import RequestStore

logger = logging.getLogger("ElevatorSystem")


def ease_out(progress: float) -> float:
    return 1.0 - (1.0 - progress) * (1.0 - progress)


def ease_in(progress: float) -> float:
    return progress * progress


class DoorStateMachine:
    """
    Drives the door cycle: opening, dwell, closing.

    The door stays in OPENING for the whole dwell so an arrival cannot retrigger
    the animation. When the dwell ends it closes if there is more work or the car
    is away from home; otherwise it rests OPEN at the home floor.
    """

    def __init__(self, car: CarState, requests: RequestStore, home_floor: int,
                 animation_ms: float, dwell_ms: float) -> None:
        self.car = car
        self.requests = requests
        self.home_floor = home_floor
        self.animation_ms = animation_ms
        self.dwell_ms = dwell_ms

        self._elapsed_ms = 0.0
        self._start_progress = car.door_progress

    @property
    def state(self) -> DoorState:
        return self.car.door_state

    def is_animating(self) -> bool:
        return self.car.door_state in (DoorState.OPENING, DoorState.CLOSING)

    def open(self) -> None:
        """
        Start the opening animation followed by the dwell.

        Raises:
            ElevatorContractError: If the car is moving or the doors are mid-cycle
        """
        if self.car.is_moving:
            raise ElevatorContractError("Cannot open doors while the car is moving")
        if self.is_animating():
            raise ElevatorContractError(f"Door run already active ({self.car.door_state.value})")
        self._begin(DoorState.OPENING)

    def close(self) -> None:
        """
        Start closing doors that rest open.

        Raises:
            ElevatorContractError: If the doors are not resting open
        """
        if self.car.door_state != DoorState.OPEN:
            raise ElevatorContractError(f"Cannot close doors from state {self.car.door_state.value}")
        self._begin(DoorState.CLOSING)

    def tick(self, elapsed_ms: float) -> None:
        state = self.car.door_state
        if state == DoorState.OPENING:
            self._tick_opening(elapsed_ms)
        elif state == DoorState.CLOSING:
            self._tick_closing(elapsed_ms)

    def _begin(self, state: DoorState) -> None:
        self._elapsed_ms = 0.0
        self._start_progress = self.car.door_progress
        self.car.door_state = state
        logger.info(f"Doors {state.value.lower()} at floor {self.car.current_floor}",
                    extra={"floor": self.car.current_floor, "door": state.value, "action": "door"})

    def _tick_opening(self, elapsed_ms: float) -> None:
        self._elapsed_ms += elapsed_ms
        if self._elapsed_ms < self.animation_ms:
            eased = ease_out(self._elapsed_ms / self.animation_ms)
            self.car.door_progress = self._start_progress + (1.0 - self._start_progress) * eased
            return
        self.car.door_progress = 1.0

        if self._elapsed_ms < self.animation_ms + self.dwell_ms:
            return

        if self.requests.has_any_request() or self.car.current_floor != self.home_floor:
            self._begin(DoorState.CLOSING)
        else:
            # Idle at home
            self.car.direction = ElevatorDirection.NONE
            self.car.door_state = DoorState.OPEN
            logger.info(f"Doors resting open at home floor {self.home_floor}",
                        extra={"floor": self.home_floor, "door": DoorState.OPEN.value, "action": "idle"})

    def _tick_closing(self, elapsed_ms: float) -> None:
        self._elapsed_ms += elapsed_ms
        if self._elapsed_ms < self.animation_ms:
            eased = ease_in(self._elapsed_ms / self.animation_ms)
            self.car.door_progress = self._start_progress * (1.0 - eased)
            return
        self.car.door_progress = 0.0
        self.car.door_state = DoorState.CLOSED
        logger.info(f"Doors closed at floor {self.car.current_floor}",
                    extra={"floor": self.car.current_floor, "door": DoorState.CLOSED.value, "action": "door"})
