"""Analysis repository: the current AnalysisResult of a call."""

from typing import Any

from sqlalchemy.orm import Session

from callflow.models import AnalysisResult


def create_analysis(
    session: Session,
    call_id: str,
    analysis: dict[str, Any],
    company_id: str | None = None,
    prompt_template_id: str | None = None,
    model_id: str | None = None,
) -> AnalysisResult:
    """Persist a validated analysis for a call.

    Args:
        session: SQLAlchemy database session.
        call_id: UUID of the analysed call.
        analysis: Validated analysis fields as produced by the completion
            model (see CallAnalysisOutput).
        company_id: Company the call was attributed to, if any.
        prompt_template_id: Identifier of the prompt template used.
        model_id: Completion model that produced the analysis.

    Returns:
        AnalysisResult: The persisted row.
    """
    result = AnalysisResult(
        call_id=call_id,
        company_id=company_id,
        sentiment=analysis["sentiment"],
        mood=analysis["mood"],
        frustration_level=analysis["frustration_level"],
        issue_clarity=analysis["issue_clarity"],
        agent_helpfulness=analysis["agent_helpfulness"],
        upsell_opportunity=analysis["upsell_opportunity"],
        confidence_level=analysis["confidence_level"],
        summary=analysis["summary"],
        participants={
            "client_name": analysis.get("client_name"),
            "agent_name": analysis.get("agent_name"),
        },
        data=analysis,
        prompt_template_id=prompt_template_id,
        model_id=model_id,
    )
    session.add(result)
    session.commit()
    session.refresh(result)
    return result


def get_analysis(session: Session, analysis_id: str) -> AnalysisResult | None:
    """Retrieve an analysis by id."""
    return session.query(AnalysisResult).filter_by(id=analysis_id).first()


def delete_analysis(session: Session, analysis_id: str) -> bool:
    """Delete an analysis.

    Returns:
        bool: True if a row was deleted, False if it did not exist.
    """
    deleted = session.query(AnalysisResult).filter_by(id=analysis_id).delete()
    session.commit()
    return deleted > 0
