import asyncio
import unittest
from typing import List

from pydantic import ValidationError

from elevator_clock import Ticker
from elevator_config import (ARRIVAL_EPSILON, CAR_SPEED_FLOORS_PER_SECOND, DOOR_ANIMATION_MS,
                             DOOR_DWELL_MS, NUM_FLOORS, TICK_INTERVAL_MS, get_config)
from elevator_controller import (ButtonPressRequest, ButtonType, ElevatorController, HomingTimer,
                                 TickEvent)
from elevator_dispatch import next_target
from elevator_door import DoorStateMachine
from elevator_interface import (CarState, DoorState, ElevatorContractError, ElevatorDirection,
                                MotionState)
from elevator_motion import MotionStateMachine, ease_in_out
from elevator_requests import RequestStore
from run_realistic_scenario import RealisticScenario

UP = ElevatorDirection.UP
DOWN = ElevatorDirection.DOWN
NONE = ElevatorDirection.NONE


def closed_car(floor: int) -> CarState:
    """Car standing at ``floor`` with doors shut"""
    return CarState(absolute_position=float(floor), current_floor=floor,
                    door_state=DoorState.CLOSED, door_progress=0.0)


def run_until(controller: ElevatorController, predicate, max_ms: float = 60000) -> float:
    """Tick the controller until ``predicate`` holds, return the simulated time spent"""
    elapsed = 0.0
    while not predicate():
        if elapsed >= max_ms:
            raise AssertionError(f"Condition not reached within {max_ms} ms")
        controller.tick(TICK_INTERVAL_MS)
        elapsed += TICK_INTERVAL_MS
    return elapsed


class TestConfig(unittest.TestCase):
    """Unit tests for the configuration module"""

    def test_default_constants(self):
        config = get_config()
        self.assertEqual(config["elevator"]["num_floors"], 6)
        self.assertEqual(config["elevator"]["home_floor"], 1)
        self.assertEqual(config["motion"]["speed"], 0.5)
        self.assertEqual(config["timing"]["door_animation"], 500)
        self.assertEqual(config["timing"]["door_dwell"], 2000)
        self.assertEqual(config["timing"]["idle_homing_delay"], 5000)

    def test_get_config_returns_independent_copy(self):
        config = get_config()
        config["timing"]["door_dwell"] = 1
        self.assertEqual(get_config()["timing"]["door_dwell"], DOOR_DWELL_MS)


class TestRequestStore(unittest.TestCase):
    """Unit tests for the request store"""

    def setUp(self):
        self.car = closed_car(1)
        self.store = RequestStore(self.car, NUM_FLOORS)

    def test_call_button_is_idempotent(self):
        self.store.add_call(3, is_up=True)
        self.store.add_call(3, is_up=True)
        self.assertEqual(self.store.up_calls, {3})
        self.assertEqual(self.store.revision, 1)

    def test_internal_button_toggles(self):
        self.store.add_internal(4)
        self.assertEqual(self.store.internal_queue, {4})
        self.store.add_internal(4)
        self.assertEqual(self.store.internal_queue, set())

    def test_presses_ignored_at_current_floor_with_doors_open(self):
        self.car.door_state = DoorState.OPEN
        self.car.door_progress = 1.0
        self.store.add_internal(1)
        self.store.add_call(1, is_up=True)
        self.assertFalse(self.store.has_any_request())
        self.assertEqual(self.store.revision, 0)

    def test_presses_accepted_at_current_floor_while_doors_opening(self):
        self.car.door_state = DoorState.OPENING
        self.store.add_internal(1)
        self.assertEqual(self.store.internal_queue, {1})

    def test_presses_accepted_at_current_floor_with_doors_closed(self):
        self.store.add_internal(1)
        self.store.add_call(1, is_up=True)
        self.assertEqual(self.store.internal_queue, {1})
        self.assertEqual(self.store.up_calls, {1})

    def test_out_of_range_floors_ignored(self):
        with self.assertLogs("ElevatorSystem", level="WARNING"):
            self.store.add_internal(0)
            self.store.add_internal(NUM_FLOORS + 1)
            self.store.add_call(-2, is_up=True)
        self.assertFalse(self.store.has_any_request())

    def test_no_up_call_on_top_floor_and_no_down_call_on_bottom_floor(self):
        with self.assertLogs("ElevatorSystem", level="WARNING"):
            self.store.add_call(NUM_FLOORS, is_up=True)
            self.store.add_call(1, is_up=False)
        self.store.add_call(NUM_FLOORS, is_up=False)
        self.assertEqual(self.store.up_calls, set())
        self.assertEqual(self.store.down_calls, {NUM_FLOORS})

    def test_clear_at_floor_matching_direction(self):
        self.store.internal_queue.add(3)
        self.store.up_calls.add(3)
        self.store.down_calls.add(3)

        self.store.clear_at_floor(3, UP)
        self.assertEqual(self.store.internal_queue, set())
        self.assertEqual(self.store.up_calls, set())
        self.assertEqual(self.store.down_calls, {3})

    def test_clear_at_floor_down_keeps_up_call(self):
        self.store.up_calls.add(4)
        self.store.down_calls.add(4)
        self.store.clear_at_floor(4, DOWN)
        self.assertEqual(self.store.up_calls, {4})
        self.assertEqual(self.store.down_calls, set())

    def test_clear_at_floor_without_direction_clears_both_calls(self):
        self.store.up_calls.add(2)
        self.store.down_calls.add(2)
        self.store.clear_at_floor(2, NONE)
        self.assertFalse(self.store.has_any_request())

    def test_stop_and_lookahead_queries(self):
        self.store.internal_queue.add(2)
        self.store.up_calls.add(4)
        self.store.down_calls.add(5)

        self.assertTrue(self.store.should_stop_at(2, DOWN))
        self.assertTrue(self.store.should_stop_at(4, UP))
        self.assertFalse(self.store.should_stop_at(4, DOWN))
        self.assertFalse(self.store.should_stop_at(5, UP))

        self.assertTrue(self.store.has_request_beyond(4, UP))
        self.assertFalse(self.store.has_request_beyond(5, UP))
        self.assertTrue(self.store.has_request_beyond(3, DOWN))
        self.assertFalse(self.store.has_request_beyond(2, DOWN))
        self.assertFalse(self.store.has_request_beyond(3, NONE))


class TestDispatchPolicy(unittest.TestCase):
    """Unit tests for the SCAN dispatch policy"""

    def test_no_requests_gives_no_target(self):
        self.assertIsNone(next_target(NONE, 3, set(), set(), set()))
        self.assertIsNone(next_target(UP, 3, set(), set(), set()))

    def test_ascending_car_skips_down_call(self):
        self.assertEqual(next_target(UP, 2, set(), {5}, {3}), 5)

    def test_ascending_car_reverses_when_nothing_ahead(self):
        self.assertEqual(next_target(UP, 5, set(), set(), {2}), 2)

    def test_ascending_car_picks_nearest_floor_ahead(self):
        self.assertEqual(next_target(UP, 1, {5}, {3}, set()), 3)

    def test_ascending_car_reverses_to_highest_floor_below(self):
        self.assertEqual(next_target(UP, 5, {1}, set(), {3}), 3)

    def test_ascending_car_stray_up_call_behind(self):
        with self.assertLogs("ElevatorSystem", level="WARNING"):
            self.assertEqual(next_target(UP, 4, set(), {2}, set()), 2)

    def test_descending_car_skips_up_call(self):
        self.assertEqual(next_target(DOWN, 5, set(), {4}, {2}), 2)

    def test_descending_car_reverses_when_nothing_below(self):
        self.assertEqual(next_target(DOWN, 2, set(), {4}, set()), 4)

    def test_descending_car_stray_down_call_behind(self):
        with self.assertLogs("ElevatorSystem", level="WARNING"):
            self.assertEqual(next_target(DOWN, 3, set(), set(), {5}), 5)

    def test_directional_fallback_to_nearest_request(self):
        # Only a down-call above an ascending car
        self.assertEqual(next_target(UP, 2, set(), set(), {5}), 5)
        self.assertEqual(next_target(DOWN, 5, set(), {2}, set()), 2)

    def test_idle_serves_current_floor_in_place(self):
        self.assertEqual(next_target(NONE, 3, {3}, {5}, set()), 3)
        self.assertEqual(next_target(NONE, 3, set(), set(), {3}), 3)

    def test_idle_tie_goes_up(self):
        self.assertEqual(next_target(NONE, 3, set(), {5}, {1}), 5)

    def test_idle_picks_nearer_direction(self):
        self.assertEqual(next_target(NONE, 4, {1}, {6}, set()), 6)
        self.assertEqual(next_target(NONE, 4, {3}, {6}, set()), 3)

    def test_idle_falls_back_to_nearest_call(self):
        # Down-call above, up-call below: neither is serviceable in its direction
        self.assertEqual(next_target(NONE, 3, set(), {1}, {5}), 5)
        self.assertEqual(next_target(NONE, 3, set(), {2}, {6}), 2)


class TestDoorStateMachine(unittest.TestCase):
    """Unit tests for the door state machine"""

    def setUp(self):
        self.car = closed_car(3)
        self.store = RequestStore(self.car, NUM_FLOORS)
        self.doors = DoorStateMachine(self.car, self.store, home_floor=1,
                                      animation_ms=DOOR_ANIMATION_MS, dwell_ms=DOOR_DWELL_MS)

    def test_open_eases_out_then_dwells_in_opening(self):
        self.doors.open()
        self.assertEqual(self.car.door_state, DoorState.OPENING)

        self.doors.tick(250)
        self.assertAlmostEqual(self.car.door_progress, 0.75)

        self.doors.tick(250)
        self.assertEqual(self.car.door_progress, 1.0)
        self.assertEqual(self.car.door_state, DoorState.OPENING)

        self.doors.tick(DOOR_DWELL_MS - 1)
        self.assertEqual(self.car.door_state, DoorState.OPENING)

    def test_closes_after_dwell_away_from_home(self):
        self.doors.open()
        self.doors.tick(DOOR_ANIMATION_MS + DOOR_DWELL_MS)
        self.assertEqual(self.car.door_state, DoorState.CLOSING)

        self.doors.tick(250)
        self.assertAlmostEqual(self.car.door_progress, 0.75)
        self.doors.tick(250)
        self.assertEqual(self.car.door_state, DoorState.CLOSED)
        self.assertEqual(self.car.door_progress, 0.0)

    def test_rests_open_at_home_without_requests(self):
        self.car.current_floor = 1
        self.car.direction = UP
        self.doors.open()
        self.doors.tick(DOOR_ANIMATION_MS + DOOR_DWELL_MS)
        self.assertEqual(self.car.door_state, DoorState.OPEN)
        self.assertEqual(self.car.direction, NONE)
        self.assertEqual(self.car.door_progress, 1.0)

    def test_closes_at_home_when_requests_pending(self):
        self.car.current_floor = 1
        self.doors.open()
        self.store.add_internal(5)
        self.doors.tick(DOOR_ANIMATION_MS + DOOR_DWELL_MS)
        self.assertEqual(self.car.door_state, DoorState.CLOSING)

    def test_open_while_moving_is_rejected(self):
        self.car.is_moving = True
        with self.assertRaises(ElevatorContractError):
            self.doors.open()

    def test_open_while_animating_is_rejected(self):
        self.doors.open()
        with self.assertRaises(ElevatorContractError):
            self.doors.open()

    def test_close_requires_open_doors(self):
        with self.assertRaises(ElevatorContractError):
            self.doors.close()
        self.car.door_state = DoorState.OPEN
        self.car.door_progress = 1.0
        self.doors.close()
        self.assertEqual(self.car.door_state, DoorState.CLOSING)


class TestMotionStateMachine(unittest.TestCase):
    """Unit tests for the motion state machine"""

    def make_motion(self, floor: int) -> MotionStateMachine:
        self.car = closed_car(floor)
        self.store = RequestStore(self.car, NUM_FLOORS)
        return MotionStateMachine(self.car, self.store, NUM_FLOORS,
                                  speed=CAR_SPEED_FLOORS_PER_SECOND,
                                  arrival_epsilon=ARRIVAL_EPSILON)

    def run_to_stop(self, motion: MotionStateMachine, tick_ms: float = TICK_INTERVAL_MS):
        arrivals = []
        for _ in range(10000):
            arrival = motion.tick(tick_ms)
            if arrival is not None:
                arrivals.append(arrival)
                if arrival.stopped:
                    return arrivals
        self.fail("Car never stopped")

    def test_moves_half_a_floor_per_second(self):
        motion = self.make_motion(2)
        self.store.add_internal(4)
        motion.start(UP, 4)
        self.assertEqual(motion.state, MotionState.RUNNING)

        self.assertIsNone(motion.tick(1000))
        self.assertAlmostEqual(self.car.absolute_position, 2.5)
        self.assertEqual(self.car.current_floor, 2)
        self.assertAlmostEqual(motion.position_progress(), ease_in_out(0.5))

        arrival = motion.tick(1000)
        self.assertEqual(arrival.floor, 3)
        self.assertFalse(arrival.stopped)
        self.assertEqual(self.car.current_floor, 3)

        arrival = motion.tick(1000)
        self.assertTrue(arrival.stopped)
        self.assertTrue(arrival.open_doors)
        self.assertEqual(self.car.absolute_position, 4.0)
        self.assertEqual(self.store.internal_queue, set())
        self.assertFalse(self.car.is_moving)
        self.assertEqual(motion.state, MotionState.STOPPED)

    def test_arrival_snaps_to_exact_floor(self):
        motion = self.make_motion(1)
        self.store.add_internal(3)
        motion.start(UP, 3)
        arrivals = self.run_to_stop(motion)
        self.assertEqual([a.floor for a in arrivals], [2, 3])
        self.assertEqual(self.car.absolute_position, 3.0)
        self.assertEqual(self.car.current_floor, 3)

    def test_ascending_car_passes_down_call(self):
        motion = self.make_motion(2)
        self.store.up_calls.add(5)
        self.store.down_calls.add(3)
        motion.start(UP, 5)
        arrivals = self.run_to_stop(motion)
        self.assertEqual([a.floor for a in arrivals], [3, 4, 5])
        self.assertEqual(self.store.down_calls, {3})
        self.assertEqual(self.store.up_calls, set())

    def test_reverse_service_at_last_call(self):
        motion = self.make_motion(2)
        self.store.down_calls.add(4)
        motion.start(UP, 4)
        arrivals = self.run_to_stop(motion)
        last = arrivals[-1]
        self.assertEqual(last.floor, 4)
        self.assertEqual(last.reason, "reverse_service")
        self.assertTrue(last.open_doors)
        self.assertEqual(last.direction, DOWN)
        # Nobody aboard: the car is left without a direction
        self.assertEqual(self.car.direction, NONE)
        self.assertFalse(self.store.has_any_request())

    def test_direction_kept_while_passengers_aboard(self):
        motion = self.make_motion(1)
        self.store.add_internal(5)
        self.store.up_calls.add(3)
        motion.start(UP, 3)
        arrivals = self.run_to_stop(motion)
        self.assertEqual(arrivals[-1].floor, 3)
        self.assertEqual(self.car.direction, UP)

    def test_direction_cleared_when_last_passenger_served(self):
        motion = self.make_motion(1)
        self.store.add_internal(3)
        self.store.down_calls.add(2)
        motion.start(UP, 3)
        arrivals = self.run_to_stop(motion)
        self.assertEqual(arrivals[-1].floor, 3)
        self.assertEqual(arrivals[-1].direction, UP)
        self.assertEqual(self.car.direction, NONE)
        self.assertEqual(self.store.down_calls, {2})

    def test_long_tick_travel_carries_past_floor(self):
        motion = self.make_motion(2)
        self.store.add_internal(5)
        motion.start(UP, 5)

        arrival = motion.tick(3000)
        self.assertEqual(arrival.floor, 3)
        self.assertFalse(arrival.stopped)
        self.assertEqual(self.car.absolute_position, 3.0)
        self.assertAlmostEqual(motion.carry, 0.5)

        # The half floor cut off at the snap is travelled on the next tick
        arrival = motion.tick(1000)
        self.assertEqual(arrival.floor, 4)
        self.assertAlmostEqual(motion.carry, 0.0)

        arrival = motion.tick(2000)
        self.assertEqual(arrival.floor, 5)
        self.assertTrue(arrival.stopped)
        self.assertEqual(motion.carry, 0.0)

    def test_coarse_ticks_keep_nominal_speed(self):
        motion = self.make_motion(1)
        self.store.add_internal(6)
        motion.start(UP, 6)
        floors = []
        ticks = 0
        while self.car.is_moving:
            arrival = motion.tick(600)
            ticks += 1
            if arrival is not None:
                floors.append(arrival.floor)

        self.assertEqual(floors, [2, 3, 4, 5, 6])
        # Five floors at half a floor per second take ten seconds, to within one tick
        self.assertGreaterEqual(ticks * 600, 10000)
        self.assertLess(ticks * 600, 10000 + 600)

    def test_reverse_and_continue_without_stopping(self):
        motion = self.make_motion(3)
        self.store.add_internal(5)
        motion.start(UP, 5)
        # Passenger cancels 5 and selects 1 instead
        self.store.add_internal(5)
        self.store.add_internal(1)

        arrival = motion.tick(2000)
        self.assertEqual(arrival.floor, 4)
        self.assertEqual(arrival.reason, "reverse")
        self.assertFalse(arrival.stopped)
        self.assertEqual(self.car.direction, DOWN)
        self.assertTrue(self.car.is_moving)

        arrivals = self.run_to_stop(motion, tick_ms=2000)
        self.assertEqual([a.floor for a in arrivals], [3, 2, 1])
        self.assertEqual(self.car.current_floor, 1)
        self.assertEqual(arrivals[-1].direction, UP)
        self.assertEqual(self.car.direction, NONE)

    def test_exhausted_run_stops_without_opening_doors(self):
        motion = self.make_motion(2)
        self.store.add_internal(3)
        motion.start(UP, 3)
        self.store.add_internal(3)

        arrival = motion.tick(2000)
        self.assertTrue(arrival.stopped)
        self.assertFalse(arrival.open_doors)
        self.assertEqual(arrival.reason, "exhausted")
        self.assertEqual(self.car.direction, NONE)
        self.assertEqual(self.car.door_state, DoorState.CLOSED)

    def test_top_floor_forces_direction_down(self):
        motion = self.make_motion(5)
        self.store.down_calls.add(6)
        motion.start(UP, 6)
        arrival = motion.tick(5000)
        self.assertEqual(arrival.floor, 6)
        self.assertEqual(arrival.reason, "request")
        self.assertEqual(arrival.direction, DOWN)
        self.assertEqual(self.car.absolute_position, 6.0)

    def test_stray_up_call_on_top_floor(self):
        motion = self.make_motion(5)
        self.store.up_calls.add(6)
        motion.start(UP, 6)
        arrival = motion.tick(2000)
        self.assertTrue(arrival.stopped)
        self.assertTrue(arrival.open_doors)
        self.assertFalse(self.store.has_any_request())
        self.assertLessEqual(self.car.absolute_position, NUM_FLOORS)

    def test_homing_run_stops_at_home_floor(self):
        motion = self.make_motion(3)
        motion.start(DOWN, 1, homing=True)
        arrivals = self.run_to_stop(motion)
        self.assertEqual([a.floor for a in arrivals], [2, 1])
        self.assertEqual(arrivals[-1].reason, "home")
        self.assertTrue(arrivals[-1].open_doors)
        self.assertFalse(motion.homing)

    def test_start_while_running_is_rejected(self):
        motion = self.make_motion(2)
        motion.start(UP, 4)
        with self.assertRaises(ElevatorContractError):
            motion.start(UP, 4)

    def test_start_with_doors_open_is_rejected(self):
        motion = self.make_motion(2)
        self.car.door_state = DoorState.OPEN
        with self.assertRaises(ElevatorContractError):
            motion.start(UP, 4)
        self.assertFalse(self.car.is_moving)


class TestHomingTimer(unittest.TestCase):
    """Unit tests for the homing timer handle"""

    def test_fires_after_delay(self):
        timer = HomingTimer()
        self.assertFalse(timer.pending)
        timer.arm(1000, 5000)
        self.assertTrue(timer.pending)
        self.assertFalse(timer.is_due(5999))
        self.assertTrue(timer.is_due(6000))

    def test_cancel_invalidates_deadline(self):
        timer = HomingTimer()
        timer.arm(0, 5000)
        generation = timer.generation
        timer.cancel()
        self.assertGreater(timer.generation, generation)
        self.assertFalse(timer.pending)
        self.assertFalse(timer.is_due(10000))


class RecordingObserver:
    def __init__(self):
        self.snapshots = []
        self.arrivals = []

    def on_snapshot(self, snapshot):
        self.snapshots.append(snapshot)

    def on_arrival(self, floor, direction, stopped):
        self.arrivals.append((floor, direction, stopped))


class TestElevatorController(unittest.TestCase):
    """Unit tests for the elevator controller"""

    def setUp(self):
        self.controller = ElevatorController()

    def test_initial_state(self):
        snapshot = self.controller.snapshot()
        self.assertEqual(snapshot.current_floor, 1)
        self.assertEqual(snapshot.absolute_position, 1.0)
        self.assertEqual(snapshot.door_state, DoorState.OPEN)
        self.assertEqual(snapshot.door_progress, 1.0)
        self.assertEqual(snapshot.direction, NONE)
        self.assertFalse(snapshot.is_moving)
        self.assertEqual(snapshot.internal_queue, frozenset())

    def test_button_press_request_validation(self):
        self.assertEqual(ButtonPressRequest(floor=3).button_type, ButtonType.FLOOR)
        with self.assertRaises(ValidationError):
            ButtonPressRequest(floor="3", button_type=ButtonType.UP)
        with self.assertRaises(ValidationError):
            ButtonPressRequest(floor=True)

    def test_press_at_current_floor_with_doors_open_is_ignored(self):
        self.controller.press_internal_button(1)
        self.controller.request_up(1)
        self.assertEqual(self.controller.car.door_state, DoorState.OPEN)
        self.assertFalse(self.controller.requests.has_any_request())

    def test_press_closes_open_doors(self):
        self.controller.press_internal_button(4)
        self.assertEqual(self.controller.car.door_state, DoorState.CLOSING)
        self.assertEqual(self.controller.snapshot().internal_queue, frozenset({4}))

    def test_out_of_range_press_is_ignored(self):
        with self.assertLogs("ElevatorSystem", level="WARNING"):
            self.controller.press_internal_button(NUM_FLOORS + 3)
        self.assertEqual(self.controller.car.door_state, DoorState.OPEN)
        self.assertFalse(self.controller.requests.has_any_request())

    def test_call_button_press_is_idempotent(self):
        self.controller.press_call_button(3, UP)
        self.controller.press_call_button(3, UP)
        self.assertEqual(self.controller.snapshot().call_buttons_up, frozenset({3}))

    def test_call_button_needs_direction(self):
        with self.assertLogs("ElevatorSystem", level="WARNING"):
            self.controller.press_call_button(3, NONE)
        self.assertFalse(self.controller.requests.has_any_request())

    def test_internal_toggle_is_net_no_op(self):
        self.controller.press_internal_button(4)
        self.controller.press_internal_button(4)
        self.assertEqual(self.controller.requests.internal_queue, set())

        run_until(self.controller, lambda: self.controller.car.door_state == DoorState.CLOSED)
        self.controller.advance(500)
        self.assertFalse(self.controller.car.is_moving)
        self.assertEqual(self.controller.car.direction, NONE)

    def test_request_at_current_floor_reopens_closed_doors(self):
        self.controller.press_internal_button(4)
        self.controller.press_internal_button(4)
        run_until(self.controller, lambda: self.controller.car.door_state == DoorState.CLOSED)

        self.controller.press_internal_button(1)
        self.assertEqual(self.controller.car.door_state, DoorState.OPENING)
        self.assertFalse(self.controller.requests.has_any_request())
        self.assertFalse(self.controller.car.is_moving)

    def test_doors_close_before_motion_starts(self):
        self.controller.press_internal_button(3)
        run_until(self.controller, lambda: self.controller.car.is_moving)
        self.assertEqual(self.controller.car.door_state, DoorState.CLOSED)
        self.assertEqual(self.controller.car.door_progress, 0.0)
        self.assertEqual(self.controller.car.direction, UP)

    def test_idle_dispatch_tie_goes_up(self):
        controller = self.controller
        controller.press_internal_button(3)
        run_until(controller, lambda: controller.car.door_state == DoorState.CLOSED
                  and not controller.car.is_moving and controller.car.current_floor == 3)
        self.assertEqual(controller.car.direction, NONE)

        # Both calls registered before the controller re-evaluates
        controller.requests.down_calls.add(1)
        controller.requests.up_calls.add(5)
        controller.reconcile()
        self.assertTrue(controller.car.is_moving)
        self.assertEqual(controller.car.direction, UP)
        self.assertEqual(controller.motion.target_floor, 5)

    def test_new_request_cancels_homing_timer(self):
        controller = self.controller
        controller.press_internal_button(3)
        run_until(controller, lambda: controller.car.current_floor == 3 and not controller.car.is_moving)
        self.assertTrue(controller.homing_timer.pending)

        controller.advance(1000)
        controller.request_up(5)
        self.assertFalse(controller.homing_timer.pending)

    def test_observer_receives_snapshots_and_arrivals(self):
        observer = RecordingObserver()
        self.controller.subscribe(observer)
        self.controller.press_internal_button(2)
        run_until(self.controller, lambda: self.controller.car.current_floor == 2
                  and not self.controller.car.is_moving)

        self.assertEqual(observer.arrivals[-1], (2, UP, True))
        self.assertEqual(observer.snapshots[0].internal_queue, frozenset({2}))
        self.assertEqual(observer.snapshots[-1].door_state, DoorState.OPENING)

    def test_negative_tick_is_ignored(self):
        with self.assertLogs("ElevatorSystem", level="WARNING"):
            self.controller.tick(-16)
        self.assertEqual(self.controller.now_ms, 0.0)


class TestElevatorControllerAsync(unittest.IsolatedAsyncioTestCase):
    """Tests for the queued controller timeline and the ticker"""

    async def test_events_are_consumed_in_order(self):
        controller = ElevatorController()
        task = asyncio.create_task(controller.start())

        controller.post(ButtonPressRequest(floor=2, button_type=ButtonType.FLOOR))
        for _ in range(40):
            controller.post(TickEvent(elapsed_ms=TICK_INTERVAL_MS))
        controller.stop()
        await asyncio.wait_for(task, timeout=5)

        self.assertEqual(controller.requests.internal_queue, {2})
        self.assertTrue(controller.car.is_moving)
        self.assertEqual(controller.car.door_state, DoorState.CLOSED)

    async def test_ticker_posts_scaled_ticks(self):
        ticks: List[TickEvent] = []
        ticker = Ticker(ticks.append, interval_ms=TICK_INTERVAL_MS, time_scale=10.0)
        await asyncio.wait_for(ticker.run(duration_ms=200), timeout=5)

        self.assertGreater(len(ticks), 0)
        self.assertEqual(ticker.ticks, len(ticks))
        self.assertGreaterEqual(sum(t.elapsed_ms for t in ticks), 200)

    async def test_scenario_ends_when_controller_fails(self):
        scenario = RealisticScenario(time_scale=50.0)

        def jammed(event):
            raise ElevatorContractError("Cannot move with doors opening")

        scenario.controller.handle_event = jammed
        # The script is still waiting for its first stop when the controller dies
        with self.assertRaises(ElevatorContractError):
            await asyncio.wait_for(scenario.run_scenario(timeout_s=600), timeout=5)
        self.assertEqual(scenario.monitor.stops, [])

    def test_ticker_rejects_bad_interval(self):
        with self.assertRaises(ValueError):
            Ticker(lambda event: None, interval_ms=0)


if __name__ == "__main__":
    unittest.main()
