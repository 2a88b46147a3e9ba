"""
HTML fragments for every result view and for the loading and error states.

All values coming from the backend go through escape() or format_message();
nothing is inserted raw.
"""

import json
from typing import Any, Dict, List, Optional

from farmer_assistant.controller.mode_controller import RequestState, SessionSnapshot
from farmer_assistant.models.responses import (
    AdvisoryView,
    DiseaseAnalysisView,
    MessageView,
    RawView,
    ResponseView,
    SchemesView,
)
from farmer_assistant.render.decode import decode_response
from farmer_assistant.render.formatting import escape, format_message

TRY_AGAIN_LABEL = "Try Again"


def _percent(value: Any) -> str:
    """Confidence values arrive as 0..1 floats or preformatted strings."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 0 <= value <= 1:
            return f"{round(value * 100)}%"
        return f"{round(value)}%"
    return escape(value)


def _text(value: Any) -> str:
    """Free-form backend values: lists are joined, everything else stringified."""
    if isinstance(value, (list, tuple)):
        return escape(", ".join(str(item) for item in value))
    return escape(value)


def _field(label: str, value: Any) -> str:
    if value in (None, "", [], {}):
        return ""
    return f"<p><strong>{escape(label)}:</strong> {_text(value)}</p>"


def _list(items: List[Any], css_class: str = "") -> str:
    if not items:
        return ""
    rows = "".join(f"<li>{escape(item)}</li>" for item in items)
    attr = f' class="{css_class}"' if css_class else ""
    return f"<ul{attr}>{rows}</ul>"


def _section(heading: str, body: str) -> str:
    if not body:
        return ""
    return f'<section><h4>{escape(heading)}</h4>{body}</section>'


def render_advisory(view: AdvisoryView) -> str:
    header = (
        f'<div class="risk risk-{escape((view.risk_level or "unknown").lower())}">'
        f"<strong>Risk Level:</strong> {escape(view.risk_level or 'Unknown')}"
        f" &middot; <strong>Confidence:</strong> {_percent(view.confidence)}</div>"
    )

    conditions = "".join(
        f"<li><strong>{escape(key.replace('_', ' ').title())}:</strong> {escape(value)}</li>"
        for key, value in view.current_conditions.items()
    )
    issues = "".join(
        "<li>"
        f"<strong>{escape(issue.issue)}</strong> ({_percent(issue.probability)})"
        f"{_field('Timeframe', issue.timeframe)}{_field('Reason', issue.reason)}"
        "</li>"
        for issue in view.predicted_issues
    )
    actions = "".join(
        "<li>"
        f"<strong>{escape(action.action)}</strong>"
        f"{_field('Priority', action.priority)}{_field('Timing', action.timing)}"
        f"{_field('Cost', action.cost)}{_field('Reason', action.reason)}"
        "</li>"
        for action in view.recommended_actions
    )

    parts = [
        header,
        f"<p>{format_message(view.message)}</p>" if view.message else "",
        _section("Current Conditions", f"<ul>{conditions}</ul>" if conditions else ""),
        _section("Predicted Issues", f"<ol>{issues}</ol>" if issues else ""),
        _section("Recommended Actions", f"<ol>{actions}</ol>" if actions else ""),
        _section("Monitoring Checklist", _list(view.monitoring_checklist, "checklist")),
        _field("Next Check", view.next_check_date),
    ]
    return f'<div class="advisory">{"".join(parts)}</div>'


def render_message(view: MessageView) -> str:
    return f'<div class="message">{format_message(view.message)}</div>'


def render_schemes(view: SchemesView) -> str:
    schemes = "".join(
        '<article class="scheme">'
        f"<h5>{escape(scheme.name)}</h5>"
        f"{f'<p>{_text(scheme.description)}</p>' if scheme.description else ''}"
        f"{_field('Eligibility', scheme.eligibility)}"
        f"{_field('Benefits', scheme.benefits)}"
        f"{_field('How to apply', scheme.application_process)}"
        "</article>"
        for scheme in view.schemes
    )
    parts = [
        (
            f"<p><strong>Confidence:</strong> {_percent(view.confidence)}</p>"
            if view.confidence is not None
            else ""
        ),
        f"<p>{format_message(view.message)}</p>" if view.message else "",
        _section("Relevant Schemes", schemes),
        _section("Sources", _list(view.sources)),
    ]
    return f'<div class="schemes">{"".join(parts)}</div>'


def render_disease(view: DiseaseAnalysisView) -> str:
    solutions = "".join(
        '<div class="solution">'
        f"<h5>{escape(solution.name)}</h5>"
        f"{_field('Preparation', solution.preparation)}"
        f"{_field('Application', solution.application)}"
        "</div>"
        for solution in view.organic_solutions
    )
    severity = ""
    # "none" means the plant is healthy
    if view.severity and view.severity.strip().lower() != "none":
        severity = f" &middot; <strong>Severity:</strong> {escape(view.severity)}"
    header = (
        f"<h3>{escape(view.disease_name or 'Unknown condition')}</h3>"
        f"<p><strong>Confidence:</strong> {_percent(view.confidence)}{severity}</p>"
    )
    parts = [
        header,
        _section("Symptoms Observed", _list(view.symptoms_observed)),
        _section("Immediate Action", _text(view.immediate_action)),
        _section("Treatment Summary", _text(view.treatment_summary)),
        _section("Organic Solutions", solutions),
        _section("Prevention Tips", _list(view.prevention_tips)),
        _field("Estimated Cost", view.cost_estimate),
        _field("Expected Recovery", view.success_timeline),
        _section("Warning Signs", _text(view.warning_signs)),
    ]
    return f'<div class="disease-analysis">{"".join(parts)}</div>'


def render_raw(view: RawView) -> str:
    pretty = json.dumps(view.data, indent=2, ensure_ascii=False, default=str)
    return f'<pre class="raw">{escape(pretty)}</pre>'


_RENDERERS = {
    "advisory": render_advisory,
    "message": render_message,
    "schemes": render_schemes,
    "disease_analysis": render_disease,
    "raw": render_raw,
}


def render_view(view: ResponseView) -> str:
    return _RENDERERS[view.kind](view)


def render_result(raw: Any, title: Optional[str] = None) -> str:
    """Decode a response document and render it under its title."""
    heading = f"<h2>{escape(title)}</h2>" if title else ""
    return f'<div class="results">{heading}{render_view(decode_response(raw))}</div>'


def render_loading(loading_text: Optional[str], thoughts: List[str]) -> str:
    items = "".join(f"<li>{escape(thought)}</li>" for thought in thoughts)
    return (
        '<div class="loading">'
        f"<p>{escape(loading_text or 'Processing...')}</p>"
        f'<ul class="thoughts">{items}</ul>'
        "</div>"
    )


def render_error(message: Optional[str]) -> str:
    return (
        '<div class="error">'
        f"<p>{escape(message or 'Something went wrong.')}</p>"
        f'<button type="button" data-action="retry">{TRY_AGAIN_LABEL}</button>'
        "</div>"
    )


def render_snapshot(snapshot: SessionSnapshot) -> str:
    """Fragment for the current session state; empty when idle."""
    if snapshot.state == RequestState.LOADING:
        return render_loading(snapshot.loading_text, snapshot.thoughts)
    if snapshot.state == RequestState.ERROR:
        return render_error(snapshot.error)
    if snapshot.state == RequestState.SUCCESS:
        return render_result(snapshot.result, snapshot.title)
    return ""


def view_payload(raw: Any) -> Dict[str, Any]:
    """JSON form of the decoded view, tagged by ``kind``."""
    return decode_response(raw).model_dump(mode="json")
