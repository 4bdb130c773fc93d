"""
Elevator Dispatch Realistic Scenario

This script runs the controller in real time, driven by the ticker, and sends
user requests in chronological order the way passengers would. It logs every
stop and checks that the car served the floors in SCAN order before returning
home.

Usage:
    python run_realistic_scenario.py [--time-scale 4]
"""
import argparse
import asyncio
import logging
from typing import List, Optional, Tuple

from elevator_clock import Ticker, wait
from elevator_config import get_config
from elevator_controller import ButtonPressRequest, ButtonType, ElevatorController
from elevator_interface import DoorState, ElevatorDirection, ElevatorSnapshot

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("RealisticScenario")


class ScenarioMonitor:
    """Observer recording stops and logging visible state changes"""

    def __init__(self) -> None:
        self.stops: List[int] = []
        self.floors_passed: List[int] = []
        self.last: Optional[ElevatorSnapshot] = None

    def on_arrival(self, floor: int, direction: ElevatorDirection, stopped: bool) -> None:
        if stopped:
            self.stops.append(floor)
            logger.info(f"Elevator stopped: Floor {floor}, Direction: {direction}, "
                        f"Current stop sequence: {self.stops}")
        else:
            self.floors_passed.append(floor)
            logger.info(f"Elevator passing floor {floor}, Direction: {direction}")

    def on_snapshot(self, snapshot: ElevatorSnapshot) -> None:
        previous = self.last
        self.last = snapshot
        if previous is None:
            return
        if (previous.door_state != snapshot.door_state or
                previous.direction != snapshot.direction or
                previous.internal_queue != snapshot.internal_queue or
                previous.call_buttons_up != snapshot.call_buttons_up or
                previous.call_buttons_down != snapshot.call_buttons_down):
            logger.info(f"Floor {snapshot.current_floor} ({snapshot.absolute_position:.2f}), "
                        f"doors {snapshot.door_state.value}, direction {snapshot.direction.value}, "
                        f"internal {sorted(snapshot.internal_queue)}, "
                        f"up {sorted(snapshot.call_buttons_up)}, down {sorted(snapshot.call_buttons_down)}")


class RealisticScenario:
    """Realistic scenario driver for the elevator controller"""

    def __init__(self, time_scale: float = 1.0) -> None:
        self.config = get_config()
        self.controller = ElevatorController(self.config)
        self.ticker = Ticker(self.controller.post,
                             interval_ms=self.config["timing"]["tick_interval"],
                             time_scale=time_scale)
        self.time_scale = time_scale

        self.monitor = ScenarioMonitor()
        self.controller.subscribe(self.monitor)

        self.button_presses: List[Tuple[int, ButtonType]] = []
        self.expected_stops = [3, 6, 5, 1, 2, 4, 1]
        self._stop_cursor = 0

    def press_button(self, floor: int, button_type: ButtonType) -> None:
        """Press an elevator button through the controller event queue"""
        self.button_presses.append((floor, button_type))
        logger.info(f"Button pressed: Floor {floor}, Type: {button_type}")
        self.controller.post(ButtonPressRequest(floor=floor, button_type=button_type))

    async def sleep(self, simulated_ms: float) -> None:
        await wait(simulated_ms / self.time_scale)

    async def wait_for_stop(self, floor: int) -> None:
        """Wait until the car's next stops include ``floor``"""
        while True:
            stops = self.monitor.stops
            if floor in stops[self._stop_cursor:]:
                self._stop_cursor = stops.index(floor, self._stop_cursor) + 1
                logger.info(f"Elevator has reached floor {floor} and stopped")
                return
            await wait(50)

    async def wait_for_home(self) -> None:
        """Wait until the car rests at home with doors open and no requests"""
        home = self.config["elevator"]["home_floor"]
        while True:
            snapshot = self.monitor.last
            if (snapshot is not None and
                    snapshot.current_floor == home and
                    snapshot.door_state == DoorState.OPEN and
                    not snapshot.internal_queue and
                    not snapshot.call_buttons_up and
                    not snapshot.call_buttons_down):
                logger.info("Elevator is idle at home with doors open")
                return
            await wait(100)

    async def run_scenario(self, timeout_s: float = 300.0) -> None:
        """Run the scenario"""
        logger.info("=== Starting Realistic Elevator Scenario ===")
        controller_task = asyncio.create_task(self.controller.start())
        ticker_task = asyncio.create_task(self.ticker.run())
        script_task = asyncio.create_task(self._script())

        try:
            # A failing controller ends the run instead of leaving the script waiting
            done, _ = await asyncio.wait({script_task, controller_task},
                                         timeout=timeout_s / self.time_scale,
                                         return_when=asyncio.FIRST_COMPLETED)
            if script_task in done:
                script_task.result()
                self.verify_results()
            elif controller_task in done:
                logger.error(f"Controller stopped before the scenario finished, "
                             f"stops so far: {self.monitor.stops}")
            else:
                logger.error(f"Scenario did not finish, stops so far: {self.monitor.stops}")
        finally:
            if not script_task.done():
                script_task.cancel()
                await asyncio.gather(script_task, return_exceptions=True)
            self.ticker.stop()
            await ticker_task
            if not controller_task.done():
                self.controller.stop()
            # Re-raises the controller's error, if any
            await controller_task

        logger.info("=== Realistic Elevator Scenario Completed ===")

    async def _script(self) -> None:
        # Scenario 1: Car idle at floor 1 with doors open, User A calls DOWN from floor 5
        logger.info("Scenario 1: User A presses DOWN button at Floor 5")
        self.press_button(5, ButtonType.DOWN)

        # Doors close, car sets off upward
        await self.sleep(1500)

        # Scenario 2: User B calls UP from floor 3 while the car is climbing
        logger.info("Scenario 2: User B presses UP button at Floor 3")
        self.press_button(3, ButtonType.UP)
        await self.wait_for_stop(3)

        # Scenario 3: User B selects floor 6, User C calls UP from floor 2 behind the car
        logger.info("Scenario 3: User B presses Floor 6, User C presses UP button at Floor 2")
        self.press_button(6, ButtonType.FLOOR)
        self.press_button(2, ButtonType.UP)

        # The down-call at floor 5 is skipped on the way up
        await self.wait_for_stop(6)

        # Scenario 4: Car turns around and picks up User A at floor 5
        await self.wait_for_stop(5)
        logger.info("Scenario 4: User A enters elevator, presses Floor 1")
        self.press_button(1, ButtonType.FLOOR)
        await self.wait_for_stop(1)

        # Scenario 5: Car comes back up for User C, who selects floor 4
        await self.wait_for_stop(2)
        logger.info("Scenario 5: User C enters elevator, presses Floor 4")
        self.press_button(4, ButtonType.FLOOR)
        await self.wait_for_stop(4)

        # Idle homing brings the car back to floor 1
        await self.wait_for_home()

    def verify_results(self) -> None:
        """Verify scenario results"""
        logger.info("===== Scenario Results Analysis =====")
        logger.info(f"Button press sequence: {self.button_presses}")
        logger.info(f"Elevator stop sequence: {self.monitor.stops}")

        if self.monitor.stops == self.expected_stops:
            logger.info("✅ Elevator stopped at the expected floors in SCAN order")
        else:
            logger.warning(f"❌ Expected stops {self.expected_stops}, got {self.monitor.stops}")

        if 5 in self.monitor.floors_passed:
            logger.info("✅ Down-call at floor 5 was skipped while ascending")

        total_distance = sum(abs(b - a) for a, b in zip(self.monitor.stops, self.monitor.stops[1:]))
        logger.info(f"Total elevator travel distance between stops: {total_distance} floors")


async def main() -> None:
    """Main function"""
    parser = argparse.ArgumentParser(description="Run a realistic elevator scenario in real time")
    parser.add_argument("--time-scale", type=float, default=4.0,
                        help="simulated milliseconds per wall-clock millisecond")
    args = parser.parse_args()

    scenario = RealisticScenario(time_scale=args.time_scale)
    await scenario.run_scenario()


if __name__ == "__main__":
    asyncio.run(main())
