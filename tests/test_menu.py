import unittest

from callsim.errors import InvalidInputError
from callsim.ivr.menu import (
    LANGUAGE_SELECT,
    MAIN_MENU,
    MENUS,
    language_prompt,
    routing_prompt,
)
from callsim.models.call import Department, IvrState


class TestMenus(unittest.TestCase):
    def test_language_prompt_uses_first_name(self):
        self.assertEqual(
            language_prompt("Ava Customer Care"),
            "Thank you for calling Ava. For English, press 1. "
            "Para Español, oprima el número dos.",
        )

    def test_language_keys(self):
        for key in ("1", "2"):
            self.assertEqual(LANGUAGE_SELECT.resolve(key).next_state, IvrState.MAIN_MENU)
        self.assertEqual(LANGUAGE_SELECT.timeout_ms, 7000)

    def test_main_menu_departments(self):
        expected = {
            "1": Department.BOOKING,
            "2": Department.REFUNDS,
            "3": Department.COMPLAINTS,
            "4": Department.SPECIAL_NEEDS,
            "5": Department.OTHER,
            "0": Department.GENERAL,
        }
        for key, department in expected.items():
            choice = MAIN_MENU.resolve(key)
            self.assertEqual(choice.next_state, IvrState.ROUTING)
            self.assertEqual(choice.department, department)
        self.assertEqual(MAIN_MENU.timeout_ms, 10000)

    def test_unmapped_key_raises(self):
        with self.assertRaises(InvalidInputError) as ctx:
            MAIN_MENU.resolve("9")
        self.assertEqual(ctx.exception.key, "9")
        self.assertEqual(ctx.exception.state, IvrState.MAIN_MENU)

    def test_routing_prompt(self):
        self.assertEqual(
            routing_prompt(Department.SPECIAL_NEEDS),
            "Connecting you to the Special Needs department. Please hold.",
        )

    def test_only_menu_states_accept_keys(self):
        self.assertEqual(set(MENUS), {IvrState.LANGUAGE_SELECT, IvrState.MAIN_MENU})


if __name__ == "__main__":
    unittest.main()
