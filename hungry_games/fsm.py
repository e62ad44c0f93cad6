from __future__ import annotations

from statemachine import State, StateMachine

from hungry_games.api.models import Day

DAY_IDLE = 0
DAY_SIMULATING = 1
DAY_REVEAL_START = 2


def _phase_for(state: int) -> str:
    if state <= DAY_IDLE:
        return "idle"
    if state == DAY_SIMULATING:
        return "simulating"
    return "revealing"


class DayFSM(StateMachine):
    """FSM wrapper around Day.state.

    - idle (0) -> simulating (1) -> revealing (2..) -> idle
    - simulating/revealing -> idle on abort (selector exhausted, game ended)

    The simulator mutates the day; the FSM only guards transitions. The reveal
    cursor inside `revealing` is the integer `Day.state` itself.
    """

    idle = State("idle", value="idle", initial=True)
    simulating = State("simulating", value="simulating")
    revealing = State("revealing", value="revealing")

    begin = idle.to(simulating)
    simulated = simulating.to(revealing)
    finish = revealing.to(idle)
    abort = simulating.to(idle) | revealing.to(idle)

    def __init__(self, day: Day):
        self.day = day
        super().__init__(start_value=_phase_for(day.state))

    def sync_state_to_model(self) -> None:
        phase = str(self.current_state.value)
        if phase == "idle":
            self.day.state = DAY_IDLE
        elif phase == "simulating":
            self.day.state = DAY_SIMULATING
        elif self.day.state < DAY_REVEAL_START:
            self.day.state = DAY_REVEAL_START
