"""
Menu definitions for the simulated phone tree.

Each menu names its prompt, its response window and the keys it accepts.
Department tags resolved here decide which queue the live agent serves.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from callsim.config.constants import LANGUAGE_SELECT_TIMEOUT_MS, MAIN_MENU_TIMEOUT_MS
from callsim.errors import InvalidInputError
from callsim.models.call import Department, IvrState

INVALID_OPTION_PROMPT = "I'm sorry, that's not a valid option. Please try again."
NO_RESPONSE_PROMPT = "I didn't receive a response. Goodbye."


@dataclass(frozen=True)
class MenuChoice:
    next_state: IvrState
    department: Optional[Department] = None


@dataclass(frozen=True)
class Menu:
    state: IvrState
    timeout_ms: int
    prompt: Callable[[str], str]
    choices: Dict[str, MenuChoice] = field(default_factory=dict)

    def prompt_for(self, agent_name: str) -> str:
        return self.prompt(agent_name)

    def resolve(self, key: str) -> MenuChoice:
        choice = self.choices.get(key)
        if choice is None:
            raise InvalidInputError(key, self.state)
        return choice


def language_prompt(agent_name: str) -> str:
    first_name = (agent_name or "Customer Service").split(" ")[0]
    return (
        f"Thank you for calling {first_name}. For English, press 1. "
        "Para Español, oprima el número dos."
    )


def main_menu_prompt(agent_name: str) -> str:
    return (
        "For new bookings, press 1. For cancellations or refunds, press 2. "
        "For complaints, press 3. For special assistance, press 4. "
        "For all other inquiries, press 5. To speak with a representative, press 0."
    )


def routing_prompt(department: Department) -> str:
    return f"Connecting you to the {department.value} department. Please hold."


DEPARTMENT_KEYS = {
    "1": Department.BOOKING,
    "2": Department.REFUNDS,
    "3": Department.COMPLAINTS,
    "4": Department.SPECIAL_NEEDS,
    "5": Department.OTHER,
    "0": Department.GENERAL,
}

LANGUAGE_SELECT = Menu(
    state=IvrState.LANGUAGE_SELECT,
    timeout_ms=LANGUAGE_SELECT_TIMEOUT_MS,
    prompt=language_prompt,
    # English and Spanish both continue to the same menu
    choices={key: MenuChoice(IvrState.MAIN_MENU) for key in ("1", "2")},
)

MAIN_MENU = Menu(
    state=IvrState.MAIN_MENU,
    timeout_ms=MAIN_MENU_TIMEOUT_MS,
    prompt=main_menu_prompt,
    choices={key: MenuChoice(IvrState.ROUTING, department) for key, department in DEPARTMENT_KEYS.items()},
)

MENUS: Dict[IvrState, Menu] = {
    IvrState.LANGUAGE_SELECT: LANGUAGE_SELECT,
    IvrState.MAIN_MENU: MAIN_MENU,
}
