import logging
from typing import FrozenSet, Set

from elevator_interface import CarState, ElevatorDirection

logger = logging.getLogger("ElevatorSystem")


class RequestStore:
    """
    Holds the three pending-request sets of the car.

    Internal (car) buttons toggle, call buttons only light. Neither kind can be
    registered for the floor where the car is standing idle with its doors open,
    since that request is already being served.
    """

    def __init__(self, car: CarState, num_floors: int) -> None:
        self.car = car
        self.min_floor = 1
        self.max_floor = num_floors

        self.internal_queue: Set[int] = set()
        self.up_calls: Set[int] = set()
        self.down_calls: Set[int] = set()

        # Bumped on every effective mutation
        self.revision = 0

    def add_internal(self, floor: int) -> None:
        """
        Toggle an internal floor button.

        Args:
            floor: The floor selected inside the car
        """
        if not self._is_floor_in_range(floor):
            logger.warning(f"Invalid floor for internal button: {floor}",
                           extra={"floor": floor, "action": "add_internal"})
            return

        if self.car.is_idle_with_doors_open_at(floor):
            logger.debug(f"Ignoring internal button {floor}, doors already open there")
            return

        if floor in self.internal_queue:
            self.internal_queue.remove(floor)
            logger.info(f"Cancelled internal request for floor: {floor}",
                        extra={"floor": floor, "action": "cancel_internal"})
        else:
            self.internal_queue.add(floor)
            logger.info(f"Added internal request for floor: {floor}",
                        extra={"floor": floor, "action": "add_internal"})
        self.revision += 1

    def add_call(self, floor: int, is_up: bool) -> None:
        """
        Light a call button on a landing.

        Args:
            floor: The floor the call was made from
            is_up: True for the up button, False for the down button
        """
        action = "request_up" if is_up else "request_down"
        if not self._is_floor_in_range(floor):
            logger.warning(f"Invalid floor for call: {floor}",
                           extra={"floor": floor, "action": action})
            return

        # No up button on the top floor, no down button on the bottom floor
        if is_up and floor == self.max_floor:
            logger.warning(f"Cannot request up from top floor {floor}",
                           extra={"floor": floor, "action": action})
            return
        if not is_up and floor == self.min_floor:
            logger.warning(f"Cannot request down from bottom floor {floor}",
                           extra={"floor": floor, "action": action})
            return

        if self.car.is_idle_with_doors_open_at(floor):
            logger.debug(f"Ignoring call at floor {floor}, doors already open there")
            return

        calls = self.up_calls if is_up else self.down_calls
        if floor in calls:
            logger.debug(f"Call at floor {floor} already registered")
            return

        calls.add(floor)
        self.revision += 1
        logger.info(f"Added {'up' if is_up else 'down'} call from floor: {floor}",
                    extra={"floor": floor, "action": action})

    def clear_at_floor(self, floor: int, serviced_direction: ElevatorDirection) -> None:
        """
        Remove the requests served by a stop.

        The internal request is always removed. Only the call matching the
        serviced direction is removed; NONE removes both calls.

        Args:
            floor: Floor where the car is serving
            serviced_direction: Direction the car serves the floor in
        """
        removed = []
        if floor in self.internal_queue:
            self.internal_queue.remove(floor)
            removed.append("internal")
        if serviced_direction != ElevatorDirection.DOWN and floor in self.up_calls:
            self.up_calls.remove(floor)
            removed.append("up")
        if serviced_direction != ElevatorDirection.UP and floor in self.down_calls:
            self.down_calls.remove(floor)
            removed.append("down")

        if removed:
            self.revision += 1
            logger.info(f"Cleared requests at floor {floor}: {removed}",
                        extra={"floor": floor, "direction": str(serviced_direction),
                               "action": "clear"})

    def has_any_request(self) -> bool:
        return bool(self.internal_queue or self.up_calls or self.down_calls)

    def has_request_at(self, floor: int) -> bool:
        return (floor in self.internal_queue or
                floor in self.up_calls or
                floor in self.down_calls)

    def should_stop_at(self, floor: int, direction: ElevatorDirection) -> bool:
        """
        Check whether a car travelling in ``direction`` must stop at ``floor``.

        Internal requests stop the car in either direction, calls only when they
        match the travel direction.
        """
        if floor in self.internal_queue:
            return True
        if direction == ElevatorDirection.UP:
            return floor in self.up_calls
        if direction == ElevatorDirection.DOWN:
            return floor in self.down_calls
        return False

    def has_request_beyond(self, floor: int, direction: ElevatorDirection) -> bool:
        """Check for any request strictly further than ``floor`` in ``direction``"""
        if direction == ElevatorDirection.NONE:
            return False
        step = direction.step
        return any((f - floor) * step > 0 for f in self.all_floors())

    def all_floors(self) -> Set[int]:
        return self.internal_queue | self.up_calls | self.down_calls

    def frozen_internal(self) -> FrozenSet[int]:
        return frozenset(self.internal_queue)

    def frozen_up_calls(self) -> FrozenSet[int]:
        return frozenset(self.up_calls)

    def frozen_down_calls(self) -> FrozenSet[int]:
        return frozenset(self.down_calls)

    def _is_floor_in_range(self, floor: int) -> bool:
        if not isinstance(floor, int) or isinstance(floor, bool):
            return False
        return self.min_floor <= floor <= self.max_floor
