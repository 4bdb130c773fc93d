import logging
from dataclasses import dataclass
from typing import Optional

from elevator_interface import CarState, DoorState, ElevatorContractError, ElevatorDirection, MotionState
from elevator_requests import RequestStore

logger = logging.getLogger("ElevatorSystem")


def ease_in_out(progress: float) -> float:
    """Quadratic ease-in-out, used for display only"""
    if progress < 0.5:
        return 2.0 * progress * progress
    remaining = -2.0 * progress + 2.0
    return 1.0 - remaining * remaining / 2.0


@dataclass
class Arrival:
    """
    Result of the car reaching a floor during a motion run.

    Attributes:
        floor: Floor reached
        direction: Direction of the car after the arrival decision
        stopped: Whether the motion run ended here
        open_doors: Whether the doors should begin opening
        reason: Short tag naming the rule that decided the arrival
    """
    floor: int
    direction: ElevatorDirection
    stopped: bool
    open_doors: bool
    reason: str


class MotionStateMachine:
    """
    Moves the car through the shaft one tick at a time.

    A run has no fixed length: every time the car reaches a floor the stop,
    continue and reverse rules are evaluated against the current requests.
    """

    def __init__(self, car: CarState, requests: RequestStore, num_floors: int,
                 speed: float, arrival_epsilon: float) -> None:
        self.car = car
        self.requests = requests
        self.min_floor = 1
        self.max_floor = num_floors
        self.speed = speed
        self.arrival_epsilon = arrival_epsilon

        self.state = MotionState.STOPPED
        self.target_floor: Optional[int] = None
        self.homing = False
        # Travel past a floor the car did not stop at, applied on the next tick
        self.carry = 0.0

    def start(self, direction: ElevatorDirection, target_floor: int, homing: bool = False) -> None:
        """
        Begin a motion run.

        Args:
            direction: Initial travel direction (UP or DOWN)
            target_floor: Floor the run was dispatched to
            homing: True when the run returns an idle car to the home floor

        Raises:
            ElevatorContractError: If a run is already active or doors are not closed
        """
        if self.state == MotionState.RUNNING or self.car.is_moving:
            raise ElevatorContractError("Elevator is already running")
        if self.car.door_state != DoorState.CLOSED:
            raise ElevatorContractError(f"Cannot move with doors {self.car.door_state.value.lower()}")
        if direction == ElevatorDirection.NONE:
            raise ElevatorContractError("A motion run needs a direction")

        self.state = MotionState.RUNNING
        self.target_floor = target_floor
        self.homing = homing
        self.car.direction = direction
        self.car.is_moving = True
        logger.info(f"Starting elevator movement from floor {self.car.current_floor}: {direction}",
                    extra={"floor": self.car.current_floor, "direction": str(direction),
                           "target": target_floor, "homing": homing, "action": "move"})

    def tick(self, elapsed_ms: float) -> Optional[Arrival]:
        """
        Advance the car by one tick.

        Args:
            elapsed_ms: Time since the previous tick

        Returns:
            The arrival decision if a floor was reached during this tick
        """
        if self.state != MotionState.RUNNING:
            return None

        direction = self.car.direction
        step = direction.step
        next_floor = self.car.current_floor + step
        if not self.min_floor <= next_floor <= self.max_floor:
            # Only reachable if a run was started towards the shaft end
            logger.warning(f"No floor beyond {self.car.current_floor} going {direction}",
                           extra={"floor": self.car.current_floor, "direction": str(direction)})
            return self._arrive(self.car.current_floor)

        distance = self.speed * elapsed_ms / 1000.0 + self.carry
        self.carry = 0.0
        position = self.car.absolute_position + step * distance
        position = min(max(position, float(self.min_floor)), float(self.max_floor))
        self.car.absolute_position = position

        overshoot = (position - next_floor) * step
        if overshoot >= 0 or abs(position - next_floor) <= self.arrival_epsilon:
            arrival = self._arrive(next_floor)
            if not arrival.stopped:
                self.carry = max(overshoot, 0.0)
            return arrival
        return None

    def position_progress(self) -> float:
        """Eased fraction of the way to the next floor"""
        distance = abs(self.car.absolute_position - self.car.current_floor)
        return ease_in_out(min(distance, 1.0))

    def _arrive(self, floor: int) -> Arrival:
        car = self.car
        requests = self.requests
        car.current_floor = floor
        car.absolute_position = float(floor)

        # Never run off the ends of the shaft
        direction = car.direction
        if floor == self.min_floor and direction == ElevatorDirection.DOWN:
            direction = ElevatorDirection.UP
        elif floor == self.max_floor and direction == ElevatorDirection.UP:
            direction = ElevatorDirection.DOWN
        car.direction = direction

        if requests.should_stop_at(floor, direction):
            requests.clear_at_floor(floor, direction)
            return self._stop(floor, direction, open_doors=True, reason="request")

        if self.homing and floor == self.target_floor:
            requests.clear_at_floor(floor, direction)
            return self._stop(floor, direction, open_doors=True, reason="home")

        if requests.has_request_beyond(floor, direction) or self._home_beyond(floor, direction):
            logger.debug(f"Passing floor {floor} going {direction}",
                         extra={"floor": floor, "direction": str(direction), "action": "pass"})
            return Arrival(floor, direction, stopped=False, open_doors=False, reason="continue")

        opposite = direction.opposite()
        if requests.should_stop_at(floor, opposite):
            car.direction = opposite
            requests.clear_at_floor(floor, ElevatorDirection.NONE)
            return self._stop(floor, opposite, open_doors=True, reason="reverse_service")

        if requests.has_request_beyond(floor, opposite):
            car.direction = opposite
            logger.info(f"Changing direction to {opposite} at floor {floor} as no requests remain ahead",
                        extra={"floor": floor, "direction": str(opposite), "action": "reverse"})
            return Arrival(floor, opposite, stopped=False, open_doors=False, reason="reverse")

        car.direction = ElevatorDirection.NONE
        return self._stop(floor, ElevatorDirection.NONE, open_doors=False, reason="exhausted")

    def _home_beyond(self, floor: int, direction: ElevatorDirection) -> bool:
        if not self.homing or self.target_floor is None:
            return False
        return (self.target_floor - floor) * direction.step > 0

    def _stop(self, floor: int, direction: ElevatorDirection, open_doors: bool, reason: str) -> Arrival:
        self.state = MotionState.STOPPED
        self.target_floor = None
        self.homing = False
        self.carry = 0.0
        self.car.is_moving = False
        if open_doors and not self.requests.internal_queue:
            # No passenger aboard wants to go anywhere: the sweep is over
            self.car.direction = ElevatorDirection.NONE
        logger.info(f"Elevator stopped at floor {floor}, direction {direction}",
                    extra={"floor": floor, "direction": str(direction), "reason": reason,
                           "action": "stopped"})
        return Arrival(floor, direction, stopped=True, open_doors=open_doors, reason=reason)
