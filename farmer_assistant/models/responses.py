"""
Response view models for the cloud analysis endpoint.

The backend does not enforce one schema; every query type grew its own
shape. Each model below is one variant of the decoded response. Fields are
optional and extra keys are kept so that partially filled payloads still
render.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


class PredictedIssue(_Lenient):
    issue: Optional[str] = Field(None, description="Predicted pest or disease")
    probability: Optional[Union[float, str]] = None
    timeframe: Any = None
    reason: Any = None


class RecommendedAction(_Lenient):
    action: Optional[str] = None
    priority: Any = None
    timing: Any = None
    cost: Any = None
    reason: Any = None


class AdvisoryView(_Lenient):
    """Predictive advisory (``agent_response.type == "predictive_advisory"``)."""

    kind: Literal["advisory"] = "advisory"
    risk_level: Optional[str] = None
    confidence: Optional[Union[float, str]] = None
    current_conditions: Dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = None
    predicted_issues: List[PredictedIssue] = Field(default_factory=list)
    recommended_actions: List[RecommendedAction] = Field(default_factory=list)
    monitoring_checklist: List[Any] = Field(default_factory=list)
    next_check_date: Any = None


class MessageView(_Lenient):
    """Plain formatted message."""

    kind: Literal["message"] = "message"
    message: str


class Scheme(_Lenient):
    name: Optional[str] = None
    description: Any = None
    eligibility: Any = None
    benefits: Any = None
    application_process: Any = None


class SchemesView(_Lenient):
    """Government schemes answer."""

    kind: Literal["schemes"] = "schemes"
    confidence: Optional[Union[float, str]] = None
    message: Optional[str] = None
    schemes: List[Scheme] = Field(default_factory=list)
    sources: List[Any] = Field(default_factory=list)


class OrganicSolution(_Lenient):
    name: Optional[str] = None
    preparation: Any = None
    application: Any = None


class DiseaseAnalysisView(_Lenient):
    """Disease diagnosis for a crop image."""

    kind: Literal["disease_analysis"] = "disease_analysis"
    disease_name: Optional[str] = None
    confidence: Optional[Union[float, str]] = None
    severity: Optional[str] = None
    symptoms_observed: List[Any] = Field(default_factory=list)
    immediate_action: Any = None
    treatment_summary: Any = None
    organic_solutions: List[OrganicSolution] = Field(default_factory=list)
    prevention_tips: List[Any] = Field(default_factory=list)
    cost_estimate: Any = None
    success_timeline: Any = None
    warning_signs: Any = None


class RawView(_Lenient):
    """Fallback when no known shape matches."""

    kind: Literal["raw"] = "raw"
    data: Any = None


ResponseView = Union[AdvisoryView, MessageView, SchemesView, DiseaseAnalysisView, RawView]
