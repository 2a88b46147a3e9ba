"""
Decode raw analysis responses into typed views.

The backend returns differently shaped documents per query type. The
branches below are tried in a fixed order and the first match wins:

1. ``agent_response.type == "predictive_advisory"``       -> AdvisoryView
2. ``final_response.message``                              -> MessageView
3. ``agent_response.message`` without ``schemes``          -> MessageView
4. ``agent_response.message`` or ``agent_response.schemes`` -> SchemesView
5. disease analysis in ``final_response.detailed_analysis``,
   ``final_response.analysis`` / ``agent_response.analysis`` (typed
   ``disease_analysis``) or a top-level ``analysis``        -> DiseaseAnalysisView
6. anything else                                           -> RawView
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from farmer_assistant.models.responses import (
    AdvisoryView,
    DiseaseAnalysisView,
    MessageView,
    RawView,
    ResponseView,
    SchemesView,
)

logger = logging.getLogger(__name__)

DISEASE_ANALYSIS_TYPE = "disease_analysis"
PREDICTIVE_ADVISORY_TYPE = "predictive_advisory"


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def _disease_analysis(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    final = _section(raw, "final_response")
    agent = _section(raw, "agent_response")

    if final.get("detailed_analysis"):
        return final["detailed_analysis"]
    if final.get("type") == DISEASE_ANALYSIS_TYPE and final.get("analysis"):
        return final["analysis"]
    if agent.get("type") == DISEASE_ANALYSIS_TYPE and agent.get("analysis"):
        return agent["analysis"]
    if raw.get("analysis"):
        return raw["analysis"]
    return None


def decode_response(raw: Any) -> ResponseView:
    """
    Pick the view for a response document.

    Args:
        raw: Parsed JSON body of a successful analysis call

    Returns:
        The first matching view; RawView when nothing matches or the
        matching branch is malformed
    """
    if not isinstance(raw, dict):
        return RawView(data=raw)

    final = _section(raw, "final_response")
    agent = _section(raw, "agent_response")

    try:
        if agent.get("type") == PREDICTIVE_ADVISORY_TYPE:
            return AdvisoryView.model_validate(agent)

        if final.get("message"):
            return MessageView(message=str(final["message"]))

        if agent.get("message") and not agent.get("schemes"):
            return MessageView(message=str(agent["message"]))

        if agent.get("message") or agent.get("schemes"):
            return SchemesView.model_validate(agent)

        analysis = _disease_analysis(raw)
        if isinstance(analysis, dict):
            return DiseaseAnalysisView.model_validate(analysis)
    except ValidationError as e:
        logger.warning(f"Response matched a known shape but failed to decode: {e}")

    return RawView(data=raw)
