"""
Unit tests for markdown-lite formatting and HTML rendering.
"""

from farmer_assistant.controller.mode_controller import RequestState, SessionSnapshot
from farmer_assistant.models.requests import Mode
from farmer_assistant.render.formatting import escape, format_message
from farmer_assistant.render.views import (
    render_error,
    render_loading,
    render_result,
    render_snapshot,
    view_payload,
)


class TestFormatMessage:
    def test_bold_italic_and_breaks(self):
        assert format_message("**Neem oil**\nspray *weekly*") == (
            "<strong>Neem oil</strong><br>spray <em>weekly</em>"
        )

    def test_markup_is_escaped_first(self):
        formatted = format_message('<script>alert("x")</script> **ok**')

        assert "<script>" not in formatted
        assert "&lt;script&gt;" in formatted
        assert "<strong>ok</strong>" in formatted

    def test_windows_line_endings(self):
        assert format_message("a\r\nb") == "a<br>b"

    def test_none_is_empty(self):
        assert escape(None) == ""
        assert format_message(None) == ""


class TestRenderResult:
    def test_disease_view(self):
        html = render_result(
            {
                "analysis": {
                    "disease_name": "Citrus Canker",
                    "confidence": 0.87,
                    "severity": "Moderate",
                    "organic_solutions": [{"name": "Copper spray", "preparation": "3g/L"}],
                }
            },
            "Disease Analysis Results",
        )

        assert "<h2>Disease Analysis Results</h2>" in html
        assert "Citrus Canker" in html
        assert "87%" in html
        assert "Copper spray" in html

    def test_advisory_view(self):
        html = render_result(
            {
                "agent_response": {
                    "type": "predictive_advisory",
                    "risk_level": "High",
                    "confidence": "80%",
                    "current_conditions": {"soil_moisture": "low"},
                    "monitoring_checklist": ["Check traps"],
                }
            }
        )

        assert 'class="risk risk-high"' in html
        assert "Soil Moisture" in html
        assert "80%" in html
        assert "Check traps" in html

    def test_severity_hidden_when_none(self):
        html = render_result({"analysis": {"disease_name": "Healthy", "severity": "none"}})

        assert "Severity" not in html

    def test_severity_shown_otherwise(self):
        html = render_result({"analysis": {"disease_name": "Canker", "severity": "High"}})

        assert "<strong>Severity:</strong> High" in html

    def test_list_and_numeric_values_render(self):
        html = render_result(
            {
                "agent_response": {
                    "schemes": [{"name": "PM-KISAN", "benefits": ["Rs 6000", "Direct transfer"]}]
                }
            }
        )
        advisory = render_result(
            {
                "agent_response": {
                    "type": "predictive_advisory",
                    "recommended_actions": [{"action": "Spray", "cost": 500}],
                }
            }
        )

        assert "Rs 6000, Direct transfer" in html
        assert "<strong>Cost:</strong> 500" in advisory

    def test_backend_values_are_escaped(self):
        html = render_result({"agent_response": {"schemes": [{"name": "<b>PM</b>"}]}})

        assert "<b>PM</b>" not in html
        assert "&lt;b&gt;PM&lt;/b&gt;" in html

    def test_raw_view_is_pretty_json(self):
        html = render_result({"status": "<ok>"})

        assert html.count("<pre") == 1
        assert "&lt;ok&gt;" in html


def test_loading_lists_thoughts():
    html = render_loading("Searching government schemes...", ["Looking up schemes"])

    assert "Searching government schemes..." in html
    assert "<li>Looking up schemes</li>" in html


def test_error_offers_retry():
    html = render_error("Model overloaded")

    assert "Model overloaded" in html
    assert 'data-action="retry"' in html
    assert "Try Again" in html


def test_idle_snapshot_renders_nothing():
    snapshot = SessionSnapshot(mode=Mode.DISEASE, state=RequestState.IDLE, generation=0)

    assert render_snapshot(snapshot) == ""


def test_view_payload_is_tagged():
    payload = view_payload({"final_response": {"message": "Done"}})

    assert payload["kind"] == "message"
    assert payload["message"] == "Done"
