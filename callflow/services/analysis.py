"""Structured sentiment and quality analysis of call transcripts."""

import logging
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ValidationError

from callflow.config import Settings
from callflow.services.completion import (
    PROVIDER,
    CompletionError,
    CompletionOptions,
    complete,
    parse_json_response,
)

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_TEMPLATE_ID = "call-analysis-default"
COMPANY_NOT_FOUND = "Not found"

Tristate = Literal["yes", "no", "Undetermined"]
Level = Literal["Low", "Medium", "High", "Undetermined"]


class AnalysisError(Exception):
    """Exception raised when the analysis cannot be produced or validated."""

    pass


class CallAnalysisOutput(BaseModel):
    """Fields the completion model must return for a call."""

    sentiment: Literal["Positive", "Neutral", "Negative", "Undetermined"]
    summary: str
    mood: Literal["Calm", "Stressed", "Angry", "Happy", "Anxious", "Undetermined"]
    frustration_level: Level
    issue_clarity: Tristate
    agent_helpfulness: Tristate
    upsell_opportunity: Tristate
    confidence_level: Level
    client_name: str = "undetermined"
    agent_name: str = "undetermined"


@dataclass
class AnalysisOutcome:
    """A validated analysis with details of the model and prompt that produced it."""

    analysis: CallAnalysisOutput
    prompt_template_id: str
    provider: str
    model: str


ANALYSIS_SYSTEM_PROMPT = """You are an expert in call quality analysis for a \
managed service provider. Analyse the telephone call transcript between a \
service desk agent and a client to assess service quality and spot sales \
opportunities.

Return ONLY a JSON object with these keys:
- sentiment: "Positive", "Neutral", "Negative" or "Undetermined"
- summary: a concise summary of the call's main topics and outcome
- mood: "Calm", "Stressed", "Angry", "Happy", "Anxious" or "Undetermined"
- frustration_level: "Low", "Medium", "High" or "Undetermined"
- issue_clarity: "yes", "no" or "Undetermined" (was the issue clearly stated?)
- agent_helpfulness: "yes", "no" or "Undetermined"
- upsell_opportunity: "yes", "no" or "Undetermined"
- confidence_level: "Low", "Medium", "High" or "Undetermined"
- client_name: the client's name, or "undetermined"
- agent_name: the agent's name, or "undetermined"

Rules:
1. If the transcript is incomplete, set confidence_level to "Low".
2. Do not infer tone or sentiment without clear evidence in the transcript.
3. Use British English spelling."""


def build_analysis_prompt(
    company_name: str | None,
    phone_number: str,
    transcript: str,
) -> str:
    """Build the user prompt for the analysis completion.

    The prompt depends only on its arguments.

    Args:
        company_name: Resolved client organisation, None if not found.
        phone_number: The client's phone number.
        transcript: The call transcript.

    Returns:
        str: The prompt text.
    """
    return (
        f"client_name: {company_name or COMPANY_NOT_FOUND}\n"
        f"Phone Number: {phone_number}\n"
        f"Transcript: {transcript}"
    )


def analyze_transcript(prompt: str, settings: Settings) -> AnalysisOutcome:
    """Run the analysis completion and validate its output.

    Args:
        prompt: User prompt from build_analysis_prompt().
        settings: Application settings.

    Returns:
        AnalysisOutcome: The validated analysis and the serving model.

    Raises:
        AnalysisError: If the completion fails or its output does not
            match CallAnalysisOutput.
    """
    prompt_template_id = settings.ANALYSIS_PROMPT_TEMPLATE_ID or DEFAULT_PROMPT_TEMPLATE_ID
    logger.info(
        f"Analyzing transcript with {settings.LLM_ENDPOINT}, prompt {prompt_template_id}"
    )

    try:
        result = complete(
            ANALYSIS_SYSTEM_PROMPT,
            prompt,
            settings,
            CompletionOptions(temperature=settings.ANALYSIS_TEMPERATURE),
        )
        analysis = CallAnalysisOutput.model_validate(parse_json_response(result.text))
    except CompletionError as e:
        raise AnalysisError(f"Analysis completion failed: {e}") from e
    except ValidationError as e:
        raise AnalysisError(f"Analysis output did not match the schema: {e}") from e

    return AnalysisOutcome(
        analysis=analysis,
        prompt_template_id=prompt_template_id,
        provider=PROVIDER,
        model=result.model,
    )
