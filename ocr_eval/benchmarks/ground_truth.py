"""Synthetic ground truth generation for extraction benchmarking.

Builds reproducible GroundTruthDataset values from a document template and
candidate name pools, renders matching synthetic documents, and assembles
whole test suites. All randomness comes from one seeded linear-congruential
generator, so identical inputs always give identical datasets.
"""

import calendar
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from ocr_eval.core.datamodels import (
    DocumentComplexity,
    DocumentMetadata,
    DocumentTemplate,
    EntityPosition,
    ExpectedFinancial,
    ExpectedMilestone,
    ExpectedProjectStatus,
    ExpectedRisk,
    ExpectedTeamUpdate,
    ExtractedFinancial,
    ExtractedMilestone,
    ExtractedProjectStatus,
    ExtractedRisk,
    ExtractedTeamUpdate,
    ExtractionResult,
    GroundTruthDataset,
    MilestoneStatus,
    RagStatus,
    RiskImpact,
    RiskProbability,
)
from ocr_eval.benchmarks.templates import DEFAULT_TEMPLATE_IDS, get_template


DEFAULT_SEED = 12345
DEFAULT_SUITE_SEED = 54321
DEFAULT_REFERENCE_DATE = date(2025, 1, 1)

RAG_STATUSES = list(RagStatus)
RISK_IMPACTS = list(RiskImpact)
RISK_PROBABILITIES = list(RiskProbability)
MILESTONE_STATUSES = list(MilestoneStatus)
CURRENCIES = ["USD", "GBP", "EUR"]

RAG_REASONS = [
    "On track with all deliverables",
    "Minor delays in testing phase",
    "Resource constraints affecting timeline",
    "Critical blocker identified",
    "Scope changes impacting delivery",
    "Dependencies causing delays",
    "Budget variance requires attention",
    "Quality issues in development",
    "Stakeholder approval pending",
    "Technical debt being addressed",
]

MITIGATIONS = [
    "Monitor closely and escalate if needed",
    "Implement contingency plan",
    "Increase resource allocation",
    "Engage external consultants",
    "Adjust timeline and scope",
    "Enhanced stakeholder communication",
    "Technical architecture review",
    "Process improvement initiative",
]

MILESTONE_NAMES = [
    "Project Kickoff",
    "Requirements Complete",
    "Design Review",
    "Development Complete",
    "Testing Complete",
    "UAT Sign-off",
    "Go-Live",
    "Post-Implementation Review",
]

TEAM_COMMENTARIES = [
    "Team operating at full capacity",
    "Some bandwidth available for additional work",
    "Overallocated due to concurrent projects",
    "Waiting for new team members to start",
    "Cross-training in progress",
    "Focus on technical debt reduction",
    "Supporting multiple high-priority initiatives",
]

PROJECT_PREFIXES = ["Digital", "Customer", "Platform", "Data", "Cloud", "Mobile", "AI", "Legacy"]
PROJECT_SUFFIXES = [
    "Transformation",
    "Migration",
    "Modernization",
    "Enhancement",
    "Initiative",
    "Platform",
    "System",
    "Portal",
]

TEAM_NAMES = [
    "Frontend Development",
    "Backend Engineering",
    "DevOps & Infrastructure",
    "Quality Assurance",
    "Product Management",
    "UX/UI Design",
    "Data Engineering",
    "Security",
    "Architecture",
    "Business Analysis",
]

RISK_DESCRIPTIONS = [
    "Key technical resources may become unavailable during critical delivery phase",
    "Third-party API integration complexity higher than anticipated",
    "Regulatory compliance requirements not fully defined",
    "Budget constraints may limit scope delivery",
    "Dependency on legacy system modernization causing delays",
    "Change management resistance from end users",
    "Technical architecture decisions impacting performance",
    "Vendor delivery timeline uncertainty",
    "Cross-functional team coordination challenges",
    "Data migration complexity and quality issues",
]

# Per-complexity entity caps: (simple, moderate, complex). None = whole pool.
PROJECT_STATUS_LIMITS = (3, 5, None)
RISK_LIMITS = (2, 4, 6)
FINANCIAL_LIMITS = (2, 4, None)
MILESTONE_COUNTS = (3, 6, 10)
TEAM_LIMITS = (2, 4, None)


class SeededRandom:
    """Deterministic linear-congruential generator.

    ``state = (state * 1664525 + 1013904223) mod 2**32``, normalized to
    [0, 1). The sequence for a given seed is part of the dataset contract.
    """

    MULTIPLIER = 1664525
    INCREMENT = 1013904223
    MODULUS = 2 ** 32

    def __init__(self, seed: int = DEFAULT_SEED):
        self._state = int(seed) % self.MODULUS

    def next(self) -> float:
        """Advance the generator and return a float in [0, 1)."""
        self._state = (self._state * self.MULTIPLIER + self.INCREMENT) % self.MODULUS
        return self._state / self.MODULUS

    __call__ = next

    def below(self, n: int) -> int:
        """Random integer in [0, n)."""
        return int(self.next() * n)

    def choice(self, seq: Sequence[Any]) -> Any:
        """Pick one element of a non-empty sequence."""
        return seq[self.below(len(seq))]


@dataclass
class SyntheticDocumentConfig:
    """Inputs for one ground truth dataset."""
    template: DocumentTemplate
    projects: List[str]
    teams: List[str]
    risks: List[str]
    seed: int = DEFAULT_SEED
    reference_date: date = DEFAULT_REFERENCE_DATE

    @classmethod
    def from_template_id(
        cls,
        template_id: str,
        projects: List[str],
        teams: List[str],
        risks: List[str],
        seed: int = DEFAULT_SEED,
        reference_date: date = DEFAULT_REFERENCE_DATE
    ) -> Optional["SyntheticDocumentConfig"]:
        """Build a config from a built-in template id.

        Returns:
            The config, or None if the template id is unknown
        """
        template = get_template(template_id)
        if template is None:
            logger.warning(f"Unknown template id: {template_id}")
            return None
        return cls(template, projects, teams, risks, seed=seed, reference_date=reference_date)


@dataclass
class TestSuite:
    """Ground truth datasets with their rendered synthetic documents."""
    __test__ = False

    ground_truth_datasets: List[GroundTruthDataset] = field(default_factory=list)
    synthetic_documents: List[str] = field(default_factory=list)


def _limit(complexity: DocumentComplexity, limits: tuple, pool_size: int) -> int:
    index = {
        DocumentComplexity.SIMPLE: 0,
        DocumentComplexity.MODERATE: 1,
        DocumentComplexity.COMPLEX: 2,
    }[complexity]
    cap = limits[index]
    return pool_size if cap is None else min(cap, pool_size)


def _add_months(base: date, months: int) -> date:
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


# =========================================================================
# Category generators (order of RNG consumption matters)
# =========================================================================

def _generate_project_statuses(
    projects: List[str],
    complexity: DocumentComplexity,
    rng: SeededRandom
) -> List[ExpectedProjectStatus]:
    count = _limit(complexity, PROJECT_STATUS_LIMITS, len(projects))

    statuses = []
    for index, project in enumerate(projects[:count]):
        statuses.append(ExpectedProjectStatus(
            project_name=project,
            status=rng.choice(RAG_STATUSES),
            rag_reason=rng.choice(RAG_REASONS),
            position=EntityPosition(page=index // 3 + 1, section="Project Status Updates"),
        ))
    return statuses


def _generate_risks(
    risk_descriptions: List[str],
    complexity: DocumentComplexity,
    rng: SeededRandom
) -> List[ExpectedRisk]:
    count = _limit(complexity, RISK_LIMITS, len(risk_descriptions))

    risks = []
    for index, description in enumerate(risk_descriptions[:count]):
        risks.append(ExpectedRisk(
            risk_description=description,
            impact=rng.choice(RISK_IMPACTS),
            probability=rng.choice(RISK_PROBABILITIES),
            mitigation=rng.choice(MITIGATIONS),
            position=EntityPosition(page=index // 2 + 2, section="Risks and Issues"),
        ))
    return risks


def _generate_financials(
    projects: List[str],
    complexity: DocumentComplexity,
    rng: SeededRandom
) -> List[ExpectedFinancial]:
    count = _limit(complexity, FINANCIAL_LIMITS, len(projects))

    financials = []
    for index, project in enumerate(projects[:count]):
        budget = int(rng() * 1000 + 100) * 1000  # 100K to 1.099M
        actual = int(budget * (0.5 + rng() * 0.6))  # 50% to 110% of budget
        forecast = int(budget * (0.8 + rng() * 0.4))  # 80% to 120% of budget

        financials.append(ExpectedFinancial(
            project_name=project,
            budget_amount=budget,
            actual_amount=actual,
            forecast_amount=forecast,
            currency=rng.choice(CURRENCIES),
            position=EntityPosition(page=index // 2 + 2, section="Financial Summary"),
        ))
    return financials


def _generate_milestones(
    projects: List[str],
    complexity: DocumentComplexity,
    rng: SeededRandom,
    reference_date: date
) -> List[ExpectedMilestone]:
    if not projects:
        return []

    count = _limit(complexity, MILESTONE_COUNTS, MILESTONE_COUNTS[2])

    milestones = []
    for i in range(count):
        project = rng.choice(projects)
        name = rng.choice(MILESTONE_NAMES)
        offset = math.floor(rng() * 12 - 3)  # -3 to +8 months
        target = _add_months(reference_date, offset)

        milestones.append(ExpectedMilestone(
            milestone_name=name,
            project_name=project,
            target_date=target.isoformat(),
            status=rng.choice(MILESTONE_STATUSES),
            position=EntityPosition(page=i // 4 + 3, section="Upcoming Milestones"),
        ))
    return milestones


def _generate_team_updates(
    teams: List[str],
    complexity: DocumentComplexity,
    rng: SeededRandom
) -> List[ExpectedTeamUpdate]:
    count = _limit(complexity, TEAM_LIMITS, len(teams))

    updates = []
    for index, team in enumerate(teams[:count]):
        utilization = int(rng() * 50 + 50)  # 50% to 99%
        commentary = rng.choice(TEAM_COMMENTARIES) if rng() > 0.5 else None

        updates.append(ExpectedTeamUpdate(
            team_name=team,
            utilization=utilization,
            commentary=commentary,
            position=EntityPosition(page=index // 3 + 3, section="Team Utilization"),
        ))
    return updates


# =========================================================================
# Public API
# =========================================================================

def generate_ground_truth_dataset(config: SyntheticDocumentConfig) -> GroundTruthDataset:
    """Generate a ground truth dataset from a template.

    The same config (template, pools, seed, reference date) always produces
    an equal dataset.

    Args:
        config: Template, candidate pools and seed

    Returns:
        Frozen GroundTruthDataset
    """
    template = config.template
    rng = SeededRandom(config.seed)

    project_statuses = _generate_project_statuses(config.projects, template.complexity, rng)
    risks = _generate_risks(config.risks, template.complexity, rng)
    financials = _generate_financials(config.projects, template.complexity, rng)
    milestones = _generate_milestones(
        config.projects, template.complexity, rng, config.reference_date
    )
    team_updates = _generate_team_updates(config.teams, template.complexity, rng)

    total = (
        len(project_statuses)
        + len(risks)
        + len(financials)
        + len(milestones)
        + len(team_updates)
    )

    dataset = GroundTruthDataset(
        document_id=f"test-doc-{template.id}-{config.seed}",
        expected_project_statuses=project_statuses,
        expected_risks=risks,
        expected_financials=financials,
        expected_milestones=milestones,
        expected_team_updates=team_updates,
        total_expected_entities=total,
        document_metadata=DocumentMetadata(
            pages=template.pages,
            format=template.format,
            quality=template.quality,
            text_density=template.text_density,
        ),
    )

    logger.debug(
        f"Generated ground truth {dataset.document_id}: {total} expected entities"
    )
    return dataset


def generate_project_names(count: int, rng: SeededRandom) -> List[str]:
    """Build up to `count` unique "<prefix> <suffix>" project names.

    Duplicate draws are dropped, so fewer names than requested may come back.
    """
    names = []
    for _ in range(count):
        prefix = rng.choice(PROJECT_PREFIXES)
        suffix = rng.choice(PROJECT_SUFFIXES)
        names.append(f"{prefix} {suffix}")

    return list(dict.fromkeys(names))[:count]


def generate_team_names(count: int) -> List[str]:
    return TEAM_NAMES[:count]


def generate_risk_descriptions(count: int) -> List[str]:
    return RISK_DESCRIPTIONS[:count]


def _portfolio_status(dataset: GroundTruthDataset) -> str:
    statuses = {p.status for p in dataset.expected_project_statuses}
    if RagStatus.RED in statuses:
        return "Red"
    if RagStatus.AMBER in statuses:
        return "Amber"
    return "Green"


def _format_amount(amount: Optional[float]) -> str:
    return f"{amount:,.0f}" if amount is not None else ""


def _section_contexts(dataset: GroundTruthDataset) -> Dict[str, List[Dict[str, Any]]]:
    financials = []
    for f in dataset.expected_financials:
        variance = ""
        if f.budget_amount and f.actual_amount is not None:
            variance = f"{(f.actual_amount - f.budget_amount) / f.budget_amount * 100:.1f}"
        financials.append({
            "projectName": f.project_name,
            "currency": f.currency,
            "budgetAmount": _format_amount(f.budget_amount),
            "actualAmount": _format_amount(f.actual_amount),
            "forecastAmount": _format_amount(f.forecast_amount),
            "variance": variance,
        })

    return {
        "projects": [
            {"name": p.project_name, "status": p.status.value.title(), "ragReason": p.rag_reason}
            for p in dataset.expected_project_statuses
        ],
        "risks": [
            {
                "description": r.risk_description,
                "impact": r.impact.value.title(),
                "probability": r.probability.value.title() if r.probability else "Unknown",
                "mitigation": r.mitigation,
            }
            for r in dataset.expected_risks
        ],
        "financials": financials,
        "milestones": [
            {
                "name": m.milestone_name,
                "projectName": m.project_name,
                "targetDate": m.target_date,
                "status": m.status.value,
            }
            for m in dataset.expected_milestones
        ],
        "teams": [
            {"name": t.team_name, "utilization": f"{t.utilization:g}", "commentary": t.commentary}
            for t in dataset.expected_team_updates
        ],
    }


_SECTION_PATTERN = re.compile(r"\{\{#(\w+)\}\}\n?(.*?)\{\{/\1\}\}\n?", re.DOTALL)
_PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")
_LEFTOVER_TAG_PATTERN = re.compile(r"\{\{[^}]*\}\}")


def _fill(text: str, context: Dict[str, Any]) -> str:
    def replace(match: re.Match) -> str:
        value = context.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return _PLACEHOLDER_PATTERN.sub(replace, text)


def render_synthetic_document(
    template: DocumentTemplate,
    dataset: GroundTruthDataset,
    reference_date: date = DEFAULT_REFERENCE_DATE
) -> str:
    """Render a human-readable document containing the dataset's entities.

    Used for end-to-end pipeline testing only; scoring never reads it.

    Args:
        template: Template whose placeholder text is filled
        dataset: Entities to substitute into the section blocks
        reference_date: Date printed in the report header

    Returns:
        Rendered document text with all template tags resolved or removed
    """
    sections = _section_contexts(dataset)

    def render_section(match: re.Match) -> str:
        items = sections.get(match.group(1), [])
        body = match.group(2)
        return "".join(_LEFTOVER_TAG_PATTERN.sub("", _fill(body, item)) for item in items)

    content = _SECTION_PATTERN.sub(render_section, template.template)

    scalars = {
        "date": reference_date.isoformat(),
        "portfolioStatus": _portfolio_status(dataset),
        "totalProjects": len(dataset.expected_project_statuses),
        "quarter": (reference_date.month - 1) // 3 + 1,
        "year": reference_date.year,
    }
    content = _fill(content, scalars)

    return _LEFTOVER_TAG_PATTERN.sub("", content)


def generate_test_suite(
    template_ids: Optional[List[str]] = None,
    project_count: int = 8,
    team_count: int = 5,
    risk_count: int = 6,
    seed: int = DEFAULT_SUITE_SEED,
    reference_date: date = DEFAULT_REFERENCE_DATE
) -> TestSuite:
    """Generate one dataset and synthetic document per template id.

    Unknown template ids are skipped, so the suite may hold fewer datasets
    than ids requested.

    Args:
        template_ids: Templates to use (default: all built-in templates)
        project_count: Size of the generated project name pool
        team_count: Size of the team name pool
        risk_count: Size of the risk description pool
        seed: Seed for the pools; dataset i uses seed + i
        reference_date: Anchor date for milestones and headers

    Returns:
        TestSuite with parallel lists of datasets and documents
    """
    template_ids = list(DEFAULT_TEMPLATE_IDS) if template_ids is None else template_ids

    rng = SeededRandom(seed)
    projects = generate_project_names(project_count, rng)
    teams = generate_team_names(team_count)
    risks = generate_risk_descriptions(risk_count)

    suite = TestSuite()
    for index, template_id in enumerate(template_ids):
        template = get_template(template_id)
        if template is None:
            logger.debug(f"Skipping unknown template id: {template_id}")
            continue

        dataset = generate_ground_truth_dataset(SyntheticDocumentConfig(
            template=template,
            projects=projects,
            teams=teams,
            risks=risks,
            seed=seed + index,
            reference_date=reference_date,
        ))
        suite.ground_truth_datasets.append(dataset)
        suite.synthetic_documents.append(
            render_synthetic_document(template, dataset, reference_date)
        )

    logger.info(
        f"Generated test suite: {len(suite.ground_truth_datasets)} dataset(s) "
        f"from {len(template_ids)} template id(s)"
    )
    return suite


def build_perfect_extraction(
    dataset: GroundTruthDataset,
    confidence: float = 0.95
) -> ExtractionResult:
    """Build an extraction result that exactly reproduces a dataset.

    Handy as a reference run: scoring it against its own dataset must give
    precision = recall = F1 = 1 for every category.

    Args:
        dataset: Ground truth to copy
        confidence: Confidence assigned to every entity

    Returns:
        ExtractionResult mirroring the expected entities
    """
    project_statuses = [
        ExtractedProjectStatus(
            text=f"{p.project_name}: {p.status.value.title()}",
            confidence=confidence,
            project_name=p.project_name,
            status=p.status,
            rag_reason=p.rag_reason,
        )
        for p in dataset.expected_project_statuses
    ]
    risks = [
        ExtractedRisk(
            text=f"Risk: {r.risk_description}",
            confidence=confidence,
            risk_description=r.risk_description,
            impact=r.impact,
            probability=r.probability,
            mitigation=r.mitigation,
        )
        for r in dataset.expected_risks
    ]
    financials = [
        ExtractedFinancial(
            text=f"{f.project_name} Budget: {f.currency} {_format_amount(f.budget_amount)}",
            confidence=confidence,
            project_name=f.project_name,
            budget_amount=f.budget_amount,
            actual_amount=f.actual_amount,
            forecast_amount=f.forecast_amount,
            currency=f.currency,
        )
        for f in dataset.expected_financials
    ]
    milestones = [
        ExtractedMilestone(
            text=f"Milestone: {m.milestone_name} due {m.target_date}",
            confidence=confidence,
            milestone_name=m.milestone_name,
            project_name=m.project_name,
            target_date=m.target_date,
            status=m.status,
        )
        for m in dataset.expected_milestones
    ]
    team_updates = [
        ExtractedTeamUpdate(
            text=f"Team {t.team_name}: {t.utilization:g}% utilization",
            confidence=confidence,
            team_name=t.team_name,
            utilization=t.utilization,
            commentary=t.commentary,
        )
        for t in dataset.expected_team_updates
    ]

    spans = [e.text for e in [*project_statuses, *risks, *financials, *milestones, *team_updates]]

    return ExtractionResult(
        raw_text=".\n".join(spans) + ("." if spans else ""),
        project_statuses=project_statuses,
        risks=risks,
        financials=financials,
        milestones=milestones,
        team_updates=team_updates,
    )
