"""
Phone-tree (IVR) layer of the call simulator.

Example usage:
    ```python
    from callsim.ivr import IvrStateMachine, LoopTimers, PromptSynthesizer, SpeechPromptPlayer

    prompts = SpeechPromptPlayer(feedback_output, PromptSynthesizer(api_key))
    ivr = IvrStateMachine(session, prompts, tone_engine, LoopTimers(),
                          on_route=open_agent, on_end=end_call)
    ivr.start()
    ivr.press_key("1")
    ```
"""

from callsim.ivr.menu import MENUS, Menu, MenuChoice
from callsim.ivr.prompts import PromptSynthesizer, SpeechPromptPlayer
from callsim.ivr.state_machine import IvrStateMachine
from callsim.ivr.timers import LoopTimers
