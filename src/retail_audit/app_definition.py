"""Retail Audit MCP App: pure Python config, no custom JS/CSS."""

from mcpbundles_app_ui import App, Card, LightTheme


class RetailAuditApp(App):
    """Audit dashboard built from the library's tabbed engine and views."""

    name = "Retail Audit"
    subtitle = "Templates, audit scoring & compliance"
    theme = LightTheme(accent="#2563eb")

    layout = [Card(title="")]

    tool_name = "open_audit_app"
    tabs = [
        {"id": "overview", "label": "Overview", "tool": "open_audit_app", "type": "dashboard"},
        {
            "id": "report", "label": "Report", "tool": "audit_report", "type": "dashboard",
            "needsArgs": True,
            "promptTitle": "Score distribution and per-template compliance",
            "promptHint": 'Ask your AI \u2014 e.g., "how did the store safety audits score this month?"',
        },
        {
            "id": "score", "label": "Score", "tool": "audit_compute_score", "type": "dashboard",
            "needsArgs": True,
            "promptTitle": "Score a set of responses against a template",
            "promptHint": 'Ask your AI \u2014 e.g., "score this audit against the merchandising template"',
        },
        {"id": "tools", "label": "Tools", "tool": None, "type": "tools"},
    ]
    footer_text = "Templates \u00b7 Logic \u00b7 Scoring \u00b7 Compliance"

    tool_catalog_intro = (
        "This server provides <strong>12 tools</strong> your AI can call directly. "
        "One opens this interactive app; the rest evaluate template logic, score responses, "
        "validate and publish templates, submit audits, and aggregate results. "
        "All tools are <strong>stateless</strong> \u2014 pass templates and audits in, "
        "store what comes back."
    )
    tool_catalog = [
        {"name": "open_audit_app", "label": "Open Audit App", "icon": "\U0001f4ca", "desc": "Opens this dashboard with audit totals, average score, compliance rate, and score distribution.", "usage": "open_audit_app(templates=[...], audits=[...], users=[...])", "source": "Caller-supplied records"},
        {"name": "audit_evaluate_visibility", "label": "Visibility", "icon": "\U0001f441\ufe0f", "desc": "Whether one question or section is visible for the current responses.", "usage": 'audit_evaluate_visibility(target_id="q2", logic_rules=[...], responses={...})', "source": "Logic engine"},
        {"name": "audit_evaluate_form", "label": "Form State", "icon": "\U0001f9e9", "desc": "Visibility and requiredness of every section and question, plus the wizard path.", "usage": "audit_evaluate_form(template={...}, responses={...})", "source": "Logic engine"},
        {"name": "audit_next_section", "label": "Next Section", "icon": "\u27a1\ufe0f", "desc": "Which section the audit wizard shows next, honoring skip rules.", "usage": 'audit_next_section(template={...}, current_section_id="s1", responses={...})', "source": "Logic engine"},
        {"name": "audit_compute_score", "label": "Compute Score", "icon": "\U0001f3af", "desc": "Percentage score and compliance verdict for a response set.", "usage": "audit_compute_score(template={...}, responses={...})", "source": "Scoring"},
        {"name": "audit_scoring_summary", "label": "Scoring Summary", "icon": "\U0001f9ee", "desc": "Total questions, total weight, and minimum points to pass.", "usage": "audit_scoring_summary(template={...})", "source": "Scoring"},
        {"name": "audit_validate_template", "label": "Validate Template", "icon": "\u2705", "desc": "Dangling logic references, missing options, bad thresholds, and section order problems.", "usage": "audit_validate_template(template={...})", "source": "Validation"},
        {"name": "audit_publish_template", "label": "Publish Template", "icon": "\U0001f4e4", "desc": "Validate a draft and return it marked as published.", "usage": "audit_publish_template(template={...})", "source": "Validation"},
        {"name": "audit_validate_response", "label": "Validate Answer", "icon": "\U0001f50e", "desc": "Check one answer against its question's type, options, and validation rules.", "usage": 'audit_validate_response(template={...}, question_id="q1", value="42")', "source": "Validation"},
        {"name": "audit_submit", "label": "Submit Audit", "icon": "\U0001f4dd", "desc": "Check required answers, score the audit, and mark it completed.", "usage": "audit_submit(audit={...}, template={...})", "source": "Audit lifecycle"},
        {"name": "audit_dashboard", "label": "Dashboard", "icon": "\U0001f4c8", "desc": "Dashboard metrics over a set of templates, audits, and team members.", "usage": "audit_dashboard(templates=[...], audits=[...], users=[...])", "source": "Reports"},
        {"name": "audit_report", "label": "Report", "icon": "\U0001f4cb", "desc": "Status breakdown, score distribution, per-template performance, and users per role.", "usage": 'audit_report(templates=[...], audits=[...], template_id="", users=[...])', "source": "Reports"},
    ]
