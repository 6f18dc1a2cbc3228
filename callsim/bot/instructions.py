"""
System instructions for the live agent.

The agent's own persona text is kept verbatim and followed by a short brief
for the department the caller chose in the phone menu.
"""

from callsim.config.constants import DEFAULT_COMPANY_NAME
from callsim.models.call import AgentDescriptor, Department

DEPARTMENT_FOCUS = {
    Department.BOOKING: (
        "You handle new bookings. Help the caller find flights, compare fares and "
        "confirm seats, meals and baggage before you summarise the reservation."
    ),
    Department.REFUNDS: (
        "You handle cancellations and refunds. Confirm the booking reference, explain "
        "the fare rules that apply and state clearly when the funds will be returned."
    ),
    Department.COMPLAINTS: (
        "You handle complaints. Let the caller finish, acknowledge the impact on them "
        "and agree on a concrete next step before the call ends."
    ),
    Department.SPECIAL_NEEDS: (
        "You handle special assistance. Ask about mobility, medical or travel "
        "companion needs with care and confirm every arrangement you make."
    ),
    Department.OTHER: (
        "You handle all other inquiries. Find out what the caller needs and either "
        "resolve it or explain exactly who will."
    ),
    Department.GENERAL: (
        "You are a general customer service representative. Handle any request and "
        "transfer nothing the caller could be helped with right away."
    ),
}


def build_departmental_prompt(agent: AgentDescriptor, department: Department,
                              company_name: str = DEFAULT_COMPANY_NAME) -> str:
    """Compose the system prompt used when the caller reaches ``department``."""
    sections = []
    if agent.systemPromptText:
        sections.append(agent.systemPromptText.strip())
    sections.append(
        f"You are {agent.name}, answering the {department.value} line of {company_name}. "
        f"{DEPARTMENT_FOCUS[department]}"
    )
    sections.append(
        "The caller has just been transferred from the automated phone menu. "
        "Greet them, say which department they reached and ask how you can help."
    )
    if agent.voiceStyleDescription:
        sections.append(f"Speaking style: {agent.voiceStyleDescription.strip()}")
    return "\n\n".join(sections)
