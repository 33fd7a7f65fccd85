"""LLM fallback for attributing a call to an agent.

Used only when the CDR fields carry no internal extension. The model picks
the primary handler from the known agent list; the answer is only accepted
if it names an existing agent. Agents are never created from model output.
"""

import logging
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from callflow.config import Settings
from callflow.repositories import find_agent_by_name, list_agents
from callflow.services.completion import (
    CompletionError,
    CompletionOptions,
    complete,
    parse_json_response,
)

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 3000
NO_AGENT = "NONE"


class AgentIdentificationOutput(BaseModel):
    """Shape of the model's answer."""

    agentName: str
    confidence: Literal["high", "medium", "low"]
    reasoning: str = ""


@dataclass
class AgentIdentification:
    """An agent the model identified in a transcript, matched to a stored agent."""

    agent_id: str
    agent_name: str
    confidence: str
    reasoning: str


def _create_identification_prompt(agent_lines: list[str]) -> str:
    agent_list = "\n".join(agent_lines)
    return f"""You identify which service desk staff member is the PRIMARY HANDLER \
of a phone call from its transcript.

Known staff:
{agent_list}

Rules:
1. Pick the agent who handles the customer's issue, not a receptionist who transfers the call.
2. Agents often introduce themselves by name ("Hi, it's Joel speaking").
3. If the call is voicemail, IVR or automated with no live agent, use "NONE".
4. agentName must exactly match a name from the list above, or be "NONE".

OUTPUT FORMAT:
Return ONLY a JSON object with the keys "agentName", "confidence" \
("high", "medium" or "low") and "reasoning" (one short sentence)."""


def _truncate(transcript: str) -> str:
    if len(transcript) <= MAX_TRANSCRIPT_CHARS:
        return transcript
    return transcript[:MAX_TRANSCRIPT_CHARS] + "\n... [transcript truncated]"


def identify_agent_from_transcript(
    session: Session,
    transcript: str,
    recording_ref: str,
    settings: Settings,
) -> AgentIdentification | None:
    """Ask the completion model which known agent handled a call.

    Args:
        session: SQLAlchemy database session.
        transcript: The call transcript.
        recording_ref: Recording reference, for logging.
        settings: Application settings.

    Returns:
        AgentIdentification | None: The matched agent, or None when there
            are no agents, the model answers "NONE", names an unknown agent
            or fails.
    """
    if not transcript or not transcript.strip():
        return None

    agents = list_agents(session)
    if not agents:
        logger.warning(f"{recording_ref}: no agents stored, cannot identify speaker")
        return None

    agent_lines = [f"- {agent.name} (ext: {agent.extension or 'n/a'})" for agent in agents]
    user_prompt = (
        f"Identify the primary agent in this call transcript:\n\n{_truncate(transcript)}"
    )

    try:
        result = complete(
            _create_identification_prompt(agent_lines),
            user_prompt,
            settings,
            CompletionOptions(temperature=settings.AGENT_IDENTIFICATION_TEMPERATURE),
        )
        output = AgentIdentificationOutput.model_validate(parse_json_response(result.text))
    except (CompletionError, ValidationError) as e:
        logger.error(f"{recording_ref}: agent identification failed: {e}")
        return None

    logger.info(
        f"{recording_ref}: model named agent={output.agentName!r} "
        f"confidence={output.confidence} reason={output.reasoning!r}"
    )

    if output.agentName.strip().upper() == NO_AGENT:
        return None

    agent = find_agent_by_name(session, output.agentName)
    if agent is None:
        logger.warning(f"{recording_ref}: model named {output.agentName!r}, no matching agent")
        return None

    return AgentIdentification(
        agent_id=agent.id,
        agent_name=agent.name,
        confidence=output.confidence,
        reasoning=output.reasoning,
    )
