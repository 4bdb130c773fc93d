from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
import asyncio
import logging
from dataclasses import dataclass
from pydantic import BaseModel, field_validator

# Import state types and interfaces
from elevator_interface import (CarState, DoorState, ElevatorContractError, ElevatorDirection,
                                ElevatorObserver, ElevatorSnapshot)

# Import configuration and components
from elevator_config import get_config
from elevator_dispatch import next_target
from elevator_door import DoorStateMachine
from elevator_motion import Arrival, MotionStateMachine
from elevator_requests import RequestStore

logger = logging.getLogger("ElevatorSystem")


class ButtonType(Enum):
    """
    Enum for elevator button types.

    Attributes:
        FLOOR: Internal floor buttons inside the elevator
        UP: External up call buttons on each floor
        DOWN: External down call buttons on each floor
    """
    FLOOR = 'floor'  # Internal floor buttons
    UP = 'up'        # External up buttons
    DOWN = 'down'    # External down buttons


class ButtonPressRequest(BaseModel):
    """
    Model representing a button press request.

    Attributes:
        floor: The floor number of the button
        button_type: Type of button being pressed (default: FLOOR)
    """
    floor: int
    button_type: ButtonType = ButtonType.FLOOR

    @field_validator('floor', mode='before')
    @classmethod
    def validate_floor(cls, v: Any) -> int:
        """
        Validate that floor is an integer.

        Range checks are left to the request store, which ignores presses for
        floors the building does not have.

        Raises:
            ValueError: If floor is not an integer
        """
        if not isinstance(v, int) or isinstance(v, bool):
            raise ValueError("Floor must be an integer")
        return v


@dataclass(frozen=True)
class TickEvent:
    """
    Clock tick driving all time-based state changes.

    Attributes:
        elapsed_ms: Time since the previous tick in milliseconds
    """
    elapsed_ms: float


ControllerEvent = Union[TickEvent, ButtonPressRequest]


class HomingTimer:
    """
    Cancelable deferred action for idle homing.

    Cancelling bumps the generation, so a deadline armed under an older
    generation can never fire.
    """

    def __init__(self) -> None:
        self.generation = 0
        self.fire_at_ms: Optional[float] = None
        self._armed_generation: Optional[int] = None

    @property
    def pending(self) -> bool:
        return self.fire_at_ms is not None and self._armed_generation == self.generation

    def arm(self, now_ms: float, delay_ms: float) -> None:
        self.generation += 1
        self._armed_generation = self.generation
        self.fire_at_ms = now_ms + delay_ms

    def cancel(self) -> None:
        self.generation += 1
        self.fire_at_ms = None
        self._armed_generation = None

    def is_due(self, now_ms: float) -> bool:
        return self.pending and now_ms >= self.fire_at_ms


class ElevatorController:
    """
    Elevator controller class responsible for sequencing the car.

    The controller owns the car state and the request sets. It consumes tick and
    button events one at a time and after each event re-runs ``reconcile`` to
    decide whether the doors should close, the car should move, or a request at
    the current floor can be served in place.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the elevator controller.

        Args:
            config: Configuration dictionary, defaults to ``get_config()``
        """
        self.CONFIG = config if config is not None else get_config()
        self.num_floors = self.CONFIG["elevator"]["num_floors"]
        self.home_floor = self.CONFIG["elevator"]["home_floor"]
        self.tick_interval_ms = self.CONFIG["timing"]["tick_interval"]
        self.homing_delay_ms = self.CONFIG["timing"]["idle_homing_delay"]

        # Car starts at home with its doors open
        self.car = CarState(absolute_position=float(self.home_floor),
                            current_floor=self.home_floor)
        self.requests = RequestStore(self.car, self.num_floors)
        self.motion = MotionStateMachine(self.car, self.requests, self.num_floors,
                                         speed=self.CONFIG["motion"]["speed"],
                                         arrival_epsilon=self.CONFIG["motion"]["arrival_epsilon"])
        self.doors = DoorStateMachine(self.car, self.requests, self.home_floor,
                                      animation_ms=self.CONFIG["timing"]["door_animation"],
                                      dwell_ms=self.CONFIG["timing"]["door_dwell"])

        self.homing_timer = HomingTimer()
        self._homing_key: Optional[Tuple[int, bool, int]] = None
        self.now_ms = 0.0

        self._events: "asyncio.Queue[Optional[ControllerEvent]]" = asyncio.Queue()
        self._running = False
        self._subscribers: List[ElevatorObserver] = []

        logger.info(f"ElevatorController initialized with num_floors={self.num_floors}, "
                    f"home_floor={self.home_floor}")
        self._update_homing_timer()

    # Event intake

    def post(self, event: ControllerEvent) -> None:
        """Queue an event for the controller timeline"""
        self._events.put_nowait(event)

    async def start(self) -> None:
        """
        Consume queued events until ``stop`` is called.

        This is the only consumer of the event queue, so ticks and button
        presses are never applied concurrently.
        """
        logger.info("ElevatorController started")
        self._running = True
        self._notify_snapshot()
        while self._running:
            event = await self._events.get()
            if event is None:
                break
            self.handle_event(event)
        self._running = False
        logger.info("ElevatorController stopped")

    def stop(self) -> None:
        self._running = False
        self._events.put_nowait(None)

    def handle_event(self, event: ControllerEvent) -> None:
        if isinstance(event, TickEvent):
            self.tick(event.elapsed_ms)
        elif isinstance(event, ButtonPressRequest):
            self.on_button_press(event)
        else:
            logger.warning(f"Ignoring unknown event {event!r}")

    def on_button_press(self, request: ButtonPressRequest) -> None:
        """
        Handle button press events from any part of the elevator system.

        Args:
            request: The button press request containing floor and button type
        """
        logger.info(f"Button press event: floor={request.floor}, type={request.button_type}",
                    extra={"floor": request.floor, "button_type": str(request.button_type)})

        if request.button_type == ButtonType.UP:
            self.requests.add_call(request.floor, is_up=True)
        elif request.button_type == ButtonType.DOWN:
            self.requests.add_call(request.floor, is_up=False)
        else:
            self.requests.add_internal(request.floor)

        self.reconcile()
        self._notify_snapshot()

    def press_internal_button(self, floor: int) -> None:
        self.on_button_press(ButtonPressRequest(floor=floor, button_type=ButtonType.FLOOR))

    def press_call_button(self, floor: int, direction: ElevatorDirection) -> None:
        if direction == ElevatorDirection.UP:
            self.request_up(floor)
        elif direction == ElevatorDirection.DOWN:
            self.request_down(floor)
        else:
            logger.warning(f"Call button at floor {floor} needs a direction",
                           extra={"floor": floor, "action": "press_call"})

    def request_up(self, floor: int) -> None:
        self.on_button_press(ButtonPressRequest(floor=floor, button_type=ButtonType.UP))

    def request_down(self, floor: int) -> None:
        self.on_button_press(ButtonPressRequest(floor=floor, button_type=ButtonType.DOWN))

    def tick(self, elapsed_ms: float) -> None:
        """
        Advance motion and door animation by one tick, then reconcile.

        Args:
            elapsed_ms: Time since the previous tick in milliseconds
        """
        if elapsed_ms < 0:
            logger.warning(f"Ignoring tick with negative elapsed time {elapsed_ms}")
            return
        self.now_ms += elapsed_ms

        arrival: Optional[Arrival] = None
        if self.car.is_moving:
            arrival = self.motion.tick(elapsed_ms)
        elif self.doors.is_animating():
            self.doors.tick(elapsed_ms)

        if arrival is not None:
            if arrival.open_doors:
                self._open_doors()
            for subscriber in self._subscribers:
                subscriber.on_arrival(arrival.floor, arrival.direction, arrival.stopped)

        self.reconcile()
        self._notify_snapshot()

    def advance(self, duration_ms: float) -> None:
        """Feed ticks of the configured interval covering ``duration_ms``"""
        remaining = duration_ms
        while remaining > 0:
            step = min(self.tick_interval_ms, remaining)
            self.tick(step)
            remaining -= step

    # Sequencing

    def reconcile(self) -> None:
        """
        Decide the next action after any state change.
        """
        car = self.car
        if car.door_state == DoorState.CLOSING or car.is_moving:
            pass
        elif car.door_state == DoorState.OPEN and self.requests.has_any_request():
            logger.info("Request pending while doors open, closing doors",
                        extra={"floor": car.current_floor, "action": "close_doors"})
            self.doors.close()
        elif car.door_state == DoorState.CLOSED:
            self._dispatch()

        self._update_homing_timer()

    def _dispatch(self) -> None:
        car = self.car
        current_floor = car.current_floor

        # Serve a request at the current floor without moving
        if self.requests.has_request_at(current_floor):
            logger.info(f"Serving request at current floor {current_floor}",
                        extra={"floor": current_floor, "action": "serve_in_place"})
            self.requests.clear_at_floor(current_floor, ElevatorDirection.NONE)
            self._open_doors()
            return

        target = next_target(car.direction, current_floor,
                             self.requests.internal_queue,
                             self.requests.up_calls,
                             self.requests.down_calls)
        if target is None:
            if car.direction != ElevatorDirection.NONE:
                logger.info("No pending requests, elevator remains idle",
                            extra={"floor": current_floor, "action": "idle"})
                car.direction = ElevatorDirection.NONE
            return

        if target != current_floor:
            direction = ElevatorDirection.UP if target > current_floor else ElevatorDirection.DOWN
            self._start_motion(direction, target)

    def _start_motion(self, direction: ElevatorDirection, target: int, homing: bool = False) -> None:
        try:
            self.motion.start(direction, target, homing=homing)
        except ElevatorContractError as e:
            logger.error(f"Failed to start elevator movement: {e}",
                         exc_info=True,
                         extra={"floor": self.car.current_floor, "action": "move_failed"})
            raise

    def _open_doors(self) -> None:
        try:
            self.doors.open()
        except ElevatorContractError as e:
            logger.error(f"Failed to open doors: {e}",
                         exc_info=True,
                         extra={"floor": self.car.current_floor, "action": "open_failed"})
            raise

    def _is_idle_away_from_home(self) -> bool:
        return (not self.requests.has_any_request() and
                not self.car.is_moving and
                self.car.current_floor != self.home_floor)

    def _update_homing_timer(self) -> None:
        # Any request change, motion change or floor change restarts the timer
        key = (self.requests.revision, self.car.is_moving, self.car.current_floor)
        if key != self._homing_key:
            self._homing_key = key
            if self.homing_timer.pending:
                logger.debug("Idle homing timer cancelled")
                self.homing_timer.cancel()
            if self._is_idle_away_from_home():
                self.homing_timer.arm(self.now_ms, self.homing_delay_ms)
                logger.debug(f"Idle homing timer armed, fires at {self.homing_timer.fire_at_ms:.0f} ms",
                             extra={"floor": self.car.current_floor, "action": "arm_homing"})

        # Motion may only start with closed doors
        if self.homing_timer.is_due(self.now_ms) and self.car.door_state == DoorState.CLOSED:
            self.homing_timer.cancel()
            if self._is_idle_away_from_home():
                logger.info(f"Idle for {self.homing_delay_ms} ms, returning to floor {self.home_floor}",
                            extra={"floor": self.car.current_floor, "action": "homing"})
                direction = (ElevatorDirection.DOWN if self.home_floor < self.car.current_floor
                             else ElevatorDirection.UP)
                self._start_motion(direction, self.home_floor, homing=True)

    # Outbound state

    def subscribe(self, observer: ElevatorObserver) -> None:
        self._subscribers.append(observer)

    def snapshot(self) -> ElevatorSnapshot:
        car = self.car
        return ElevatorSnapshot(
            current_floor=car.current_floor,
            absolute_position=car.absolute_position,
            position_progress=self.motion.position_progress() if car.is_moving else 0.0,
            direction=car.direction,
            door_state=car.door_state,
            door_progress=car.door_progress,
            is_moving=car.is_moving,
            internal_queue=self.requests.frozen_internal(),
            call_buttons_up=self.requests.frozen_up_calls(),
            call_buttons_down=self.requests.frozen_down_calls(),
        )

    def _notify_snapshot(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for subscriber in self._subscribers:
            subscriber.on_snapshot(snapshot)
