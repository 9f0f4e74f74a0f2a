"""Built-in synthetic document templates.

Each template describes a steering-committee style report layout. Section
blocks (``{{#projects}} ... {{/projects}}``) are repeated once per generated
entity when a synthetic document is rendered; scalar placeholders
(``{{date}}``) are filled once.
"""

from typing import Dict, List, Optional

from ocr_eval.core.datamodels import (
    DocumentComplexity,
    DocumentFormat,
    DocumentQuality,
    DocumentTemplate,
)


SIMPLE_STEERCO = DocumentTemplate(
    id="simple-steerco",
    name="Simple Steering Committee Report",
    format=DocumentFormat.PDF,
    quality=DocumentQuality.HIGH,
    complexity=DocumentComplexity.SIMPLE,
    pages=3,
    text_density=0.7,
    template="""
# Steering Committee Report - {{date}}

## Executive Summary
Overall portfolio status: {{portfolioStatus}}

## Project Status Updates

{{#projects}}
### {{name}}
- Status: {{status}}
- RAG Reason: {{ragReason}}

{{/projects}}

## Key Risks

{{#risks}}
- Risk: {{description}}
- Impact: {{impact}}
- Probability: {{probability}}
- Mitigation: {{mitigation}}

{{/risks}}

## Financial Summary

{{#financials}}
### {{projectName}}
- Budget: {{currency}} {{budgetAmount}}
- Actual: {{currency}} {{actualAmount}}
- Forecast: {{currency}} {{forecastAmount}}
- Variance: {{variance}}%

{{/financials}}

## Upcoming Milestones

{{#milestones}}
- {{name}} ({{projectName}}): {{targetDate}} - {{status}}
{{/milestones}}

## Team Utilization

{{#teams}}
- {{name}}: {{utilization}}% utilization
{{/teams}}
""",
)


COMPLEX_STEERCO = DocumentTemplate(
    id="complex-steerco",
    name="Complex Multi-Project Report",
    format=DocumentFormat.PPTX,
    quality=DocumentQuality.MEDIUM,
    complexity=DocumentComplexity.COMPLEX,
    pages=15,
    text_density=0.8,
    template="""
# Q{{quarter}} {{year}} Portfolio Review

## Portfolio Overview
Total Projects: {{totalProjects}}
Portfolio RAG: {{portfolioStatus}}

## Executive Dashboard

| Project | Status | Reason |
|---------|--------|--------|
{{#projects}}
| {{name}} | {{status}} | {{ragReason}} |
{{/projects}}

## Cross-Project Risks

{{#risks}}
### Risk: {{description}}
- **Impact:** {{impact}}
- **Probability:** {{probability}}
- **Mitigation Strategy:** {{mitigation}}

{{/risks}}

## Project Financial Summary

{{#financials}}
**{{projectName}}:**
- Current Budget: {{currency}} {{budgetAmount}}
- Spent to Date: {{currency}} {{actualAmount}}
- Forecast to Complete: {{currency}} {{forecastAmount}}
- Variance from Budget: {{variance}}%

{{/financials}}

## Milestone Tracking

{{#milestones}}
- {{name}} ({{projectName}}) - Due {{targetDate}} - {{status}}
{{/milestones}}

## Resource Allocation

{{#teams}}
### {{name}} Team
- **Current Utilization:** {{utilization}}%
- **Commentary:** {{commentary}}

{{/teams}}

## Appendix

### Definitions
- **RAG Status:** Red (Critical Issues), Amber (At Risk), Green (On Track), Blue (Complete)
- **Utilization:** Percentage of team capacity allocated to tracked projects
- **Variance:** Difference between planned and actual spend as percentage

---
*Report generated on {{date}}*
""",
)


LOW_QUALITY_SCAN = DocumentTemplate(
    id="low-quality-scan",
    name="Low Quality Scanned Document",
    format=DocumentFormat.IMAGE,
    quality=DocumentQuality.LOW,
    complexity=DocumentComplexity.MODERATE,
    pages=5,
    text_density=0.6,
    # Glyph substitutions mimic what a poor scan does to headings.
    template="""
STEERING C0MMITTEE REP0RT
Date: {{date}}

PR0JECT STATUS UPD4TES

{{#projects}}
{{name}} - St4tus: {{status}}
RAG Re4son: {{ragReason}}
{{/projects}}

R1SKS 4ND ISSUES

{{#risks}}
Risk: {{description}}
lmpact: {{impact}} | Prob4bility: {{probability}}
Mitigation: {{mitigation}}
{{/risks}}

BUDG3T UPD4TES

{{#financials}}
{{projectName}}
Budget: {{currency}} {{budgetAmount}}
4ctual: {{currency}} {{actualAmount}}
V4riance: {{variance}}%
{{/financials}}

TE4M UTILIZ4TION

{{#teams}}
{{name}} Team: {{utilization}}% utilized
Commentary: {{commentary}}
{{/teams}}

M1LEST0NES

{{#milestones}}
{{name}} ({{projectName}}) - {{targetDate}} - {{status}}
{{/milestones}}
""",
)


TEST_DOCUMENT_TEMPLATES: List[DocumentTemplate] = [
    SIMPLE_STEERCO,
    COMPLEX_STEERCO,
    LOW_QUALITY_SCAN,
]

DEFAULT_TEMPLATE_IDS: List[str] = [t.id for t in TEST_DOCUMENT_TEMPLATES]


def get_template(template_id: str) -> Optional[DocumentTemplate]:
    """Look up a built-in template by id.

    Args:
        template_id: Template identifier (e.g. "simple-steerco")

    Returns:
        The template, or None if the id is unknown
    """
    for template in TEST_DOCUMENT_TEMPLATES:
        if template.id == template_id:
            return template
    return None


# Candidate pools for quick, hand-picked test cases per quality tier.
SAMPLE_DOCUMENT_CONFIGS: Dict[str, Dict] = {
    "high_quality": {
        "template": SIMPLE_STEERCO,
        "projects": ["Digital Transformation", "Customer Portal", "Data Migration"],
        "teams": ["Development Team", "QA Team"],
        "risks": ["Resource availability", "Technical complexity"],
    },
    "medium_quality": {
        "template": COMPLEX_STEERCO,
        "projects": [
            "Platform Modernization",
            "Mobile App",
            "Analytics Dashboard",
            "Legacy System",
        ],
        "teams": ["Frontend", "Backend", "DevOps", "Design"],
        "risks": [
            "Third-party dependencies",
            "Compliance requirements",
            "Budget constraints",
        ],
    },
    "low_quality": {
        "template": LOW_QUALITY_SCAN,
        "projects": ["Cloud Migration", "Security Enhancement"],
        "teams": ["Infrastructure", "Security"],
        "risks": ["Migration complexity", "Downtime risk"],
    },
}
