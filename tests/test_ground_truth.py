"""Test suite for synthetic ground truth generation.

Tests the seeded generator, dataset determinism and counts, document
rendering, test suite assembly and the perfect-extraction helper.
"""

from datetime import date

import pytest

from ocr_eval.benchmarks.ground_truth import (
    DEFAULT_SEED,
    SeededRandom,
    SyntheticDocumentConfig,
    build_perfect_extraction,
    generate_ground_truth_dataset,
    generate_project_names,
    generate_test_suite,
    render_synthetic_document,
)
from ocr_eval.benchmarks.templates import (
    COMPLEX_STEERCO,
    DEFAULT_TEMPLATE_IDS,
    LOW_QUALITY_SCAN,
    SAMPLE_DOCUMENT_CONFIGS,
    SIMPLE_STEERCO,
    TEST_DOCUMENT_TEMPLATES,
    get_template,
)
from ocr_eval.core.datamodels import category_counts


PROJECTS = ["Digital Transformation", "Customer Portal", "Data Migration", "Cloud Platform"]
TEAMS = ["Frontend", "Backend", "DevOps", "Design", "QA"]
RISKS = ["Resource availability", "Technical complexity", "Budget constraints", "Vendor delays"]


def _config(template, seed=DEFAULT_SEED, **kwargs):
    return SyntheticDocumentConfig(
        template=template,
        projects=kwargs.get("projects", PROJECTS),
        teams=kwargs.get("teams", TEAMS),
        risks=kwargs.get("risks", RISKS),
        seed=seed,
    )


class TestSeededRandom:
    """Test the linear-congruential generator."""

    def test_known_first_value(self):
        """Test the first draw for seed 12345 follows the LCG formula."""
        rng = SeededRandom(12345)
        expected_state = (12345 * 1664525 + 1013904223) % 2 ** 32

        assert rng.next() == expected_state / 2 ** 32

    def test_same_seed_same_sequence(self):
        """Test two generators with one seed produce identical sequences."""
        a = SeededRandom(42)
        b = SeededRandom(42)

        assert [a() for _ in range(20)] == [b() for _ in range(20)]

    def test_values_in_unit_interval(self):
        """Test every draw lies in [0, 1)."""
        rng = SeededRandom(7)
        values = [rng() for _ in range(1000)]

        assert all(0.0 <= v < 1.0 for v in values)

    def test_choice_and_below(self):
        """Test integer helpers stay inside their ranges."""
        rng = SeededRandom(99)

        for _ in range(200):
            assert 0 <= rng.below(5) < 5
            assert rng.choice(["a", "b", "c"]) in {"a", "b", "c"}


class TestDatasetGeneration:
    """Test generate_ground_truth_dataset()."""

    @pytest.mark.parametrize("template", TEST_DOCUMENT_TEMPLATES, ids=lambda t: t.id)
    def test_determinism(self, template):
        """Test identical configs produce equal datasets."""
        first = generate_ground_truth_dataset(_config(template, seed=2024))
        second = generate_ground_truth_dataset(_config(template, seed=2024))

        assert first == second

    def test_seed_changes_output(self):
        """Test a different seed changes at least one generated field."""
        first = generate_ground_truth_dataset(_config(COMPLEX_STEERCO, seed=1))
        second = generate_ground_truth_dataset(_config(COMPLEX_STEERCO, seed=2))

        assert first.model_dump(exclude={"document_id"}) != second.model_dump(exclude={"document_id"})

    @pytest.mark.parametrize("seed", [0, 1, 12345, 54321, 2 ** 31])
    @pytest.mark.parametrize("template", TEST_DOCUMENT_TEMPLATES, ids=lambda t: t.id)
    def test_count_invariant(self, template, seed):
        """Test total_expected_entities equals the sum of the category lists."""
        dataset = generate_ground_truth_dataset(_config(template, seed=seed))

        assert dataset.total_expected_entities == sum(category_counts(dataset).values())

    def test_simple_template_caps(self):
        """Test simple templates cap each category."""
        dataset = generate_ground_truth_dataset(_config(SIMPLE_STEERCO))
        counts = category_counts(dataset)

        assert counts == {
            "project_statuses": 3,
            "risks": 2,
            "financials": 2,
            "milestones": 3,
            "team_updates": 2,
        }

    def test_complex_template_uses_whole_pools(self):
        """Test complex templates include every project and team."""
        dataset = generate_ground_truth_dataset(_config(COMPLEX_STEERCO))

        assert len(dataset.expected_project_statuses) == len(PROJECTS)
        assert len(dataset.expected_team_updates) == len(TEAMS)
        assert len(dataset.expected_risks) == len(RISKS)
        assert len(dataset.expected_milestones) == 10

    def test_document_id_and_metadata(self):
        """Test document id is derived from template and seed."""
        dataset = generate_ground_truth_dataset(_config(LOW_QUALITY_SCAN, seed=77))

        assert dataset.document_id == "test-doc-low-quality-scan-77"
        assert dataset.document_metadata.pages == LOW_QUALITY_SCAN.pages
        assert dataset.document_metadata.quality == LOW_QUALITY_SCAN.quality

    def test_value_ranges(self):
        """Test generated amounts, utilization and dates stay in range."""
        dataset = generate_ground_truth_dataset(_config(COMPLEX_STEERCO, seed=31337))

        for financial in dataset.expected_financials:
            assert 100_000 <= financial.budget_amount <= 1_099_000
            assert financial.actual_amount <= financial.budget_amount * 1.1
            assert financial.currency in {"USD", "GBP", "EUR"}

        for team in dataset.expected_team_updates:
            assert 50 <= team.utilization < 100

        for milestone in dataset.expected_milestones:
            target = date.fromisoformat(milestone.target_date)
            assert date(2024, 10, 1) <= target <= date(2025, 9, 1)
            assert milestone.project_name in PROJECTS

    def test_empty_pools(self):
        """Test empty candidate pools produce an empty, valid dataset."""
        dataset = generate_ground_truth_dataset(
            _config(SIMPLE_STEERCO, projects=[], teams=[], risks=[])
        )

        assert dataset.total_expected_entities == 0
        assert dataset.expected_milestones == ()

    def test_positions_are_one_indexed(self):
        """Test entity positions start on page 1 or later."""
        dataset = generate_ground_truth_dataset(_config(COMPLEX_STEERCO))

        assert dataset.expected_project_statuses[0].position.page == 1
        assert all(r.position.page >= 2 for r in dataset.expected_risks)


class TestProjectNames:
    """Test generate_project_names()."""

    def test_names_are_unique(self):
        """Test duplicate draws are removed."""
        names = generate_project_names(30, SeededRandom(5))

        assert len(names) == len(set(names))
        assert len(names) <= 30

    def test_names_have_prefix_and_suffix(self):
        """Test each name is two parts."""
        names = generate_project_names(5, SeededRandom(5))

        assert all(len(name.split(" ")) == 2 for name in names)


class TestRendering:
    """Test render_synthetic_document()."""

    def test_no_template_tags_remain(self):
        """Test every placeholder and section tag is resolved."""
        for template in TEST_DOCUMENT_TEMPLATES:
            dataset = generate_ground_truth_dataset(_config(template))
            document = render_synthetic_document(template, dataset)

            assert "{{" not in document
            assert "}}" not in document

    def test_entities_appear_in_document(self):
        """Test project names and risk descriptions are rendered."""
        dataset = generate_ground_truth_dataset(_config(SIMPLE_STEERCO))
        document = render_synthetic_document(SIMPLE_STEERCO, dataset, date(2025, 6, 30))

        for status in dataset.expected_project_statuses:
            assert status.project_name in document
        for risk in dataset.expected_risks:
            assert risk.risk_description in document
        assert "2025-06-30" in document

    def test_complex_header_quarter(self):
        """Test quarter and year placeholders use the reference date."""
        dataset = generate_ground_truth_dataset(_config(COMPLEX_STEERCO))
        document = render_synthetic_document(COMPLEX_STEERCO, dataset, date(2025, 8, 15))

        assert "Q3 2025 Portfolio Review" in document
        assert f"Total Projects: {len(PROJECTS)}" in document


class TestTestSuite:
    """Test generate_test_suite()."""

    def test_default_suite(self):
        """Test one dataset and document per built-in template."""
        suite = generate_test_suite()

        assert len(suite.ground_truth_datasets) == len(DEFAULT_TEMPLATE_IDS)
        assert len(suite.synthetic_documents) == len(DEFAULT_TEMPLATE_IDS)

    def test_unknown_ids_skipped(self):
        """Test unknown template ids are skipped silently."""
        suite = generate_test_suite(template_ids=["simple-steerco", "nope"])

        assert len(suite.ground_truth_datasets) == 1

    def test_seed_offsets(self):
        """Test each dataset uses the suite seed plus its index."""
        suite = generate_test_suite(seed=100)

        ids = [d.document_id for d in suite.ground_truth_datasets]
        assert ids == [
            "test-doc-simple-steerco-100",
            "test-doc-complex-steerco-101",
            "test-doc-low-quality-scan-102",
        ]

    def test_suite_deterministic(self):
        """Test suites with equal arguments are equal."""
        assert generate_test_suite(seed=9) == generate_test_suite(seed=9)


class TestPerfectExtraction:
    """Test build_perfect_extraction()."""

    def test_entity_count_matches(self, high_quality_dataset):
        """Test the mirror has one entity per expected entity."""
        extraction = build_perfect_extraction(high_quality_dataset, confidence=0.9)

        assert extraction.entity_count == high_quality_dataset.total_expected_entities
        assert all(e.confidence == 0.9 for e in extraction.all_entities())
        assert extraction.raw_text

    def test_empty_dataset(self):
        """Test an empty dataset gives an empty extraction."""
        dataset = generate_ground_truth_dataset(
            _config(SIMPLE_STEERCO, projects=[], teams=[], risks=[])
        )
        extraction = build_perfect_extraction(dataset)

        assert extraction.entity_count == 0
        assert extraction.raw_text == ""


class TestTemplates:
    """Test the template catalog."""

    def test_get_template(self):
        """Test lookup by id."""
        assert get_template("complex-steerco") is COMPLEX_STEERCO
        assert get_template("missing") is None

    def test_config_from_template_id(self):
        """Test configs built from an id match configs built from the template."""
        config = SyntheticDocumentConfig.from_template_id("simple-steerco", PROJECTS, TEAMS, RISKS, seed=7)

        assert config.template is SIMPLE_STEERCO
        assert config.seed == 7
        assert generate_ground_truth_dataset(config) == generate_ground_truth_dataset(
            _config(SIMPLE_STEERCO, seed=7)
        )

    def test_config_from_unknown_template_id(self):
        """Test an unknown id gives None like get_template."""
        assert SyntheticDocumentConfig.from_template_id("missing", PROJECTS, TEAMS, RISKS) is None

    def test_sample_configs_reference_templates(self):
        """Test sample configs point at catalog templates."""
        for sample in SAMPLE_DOCUMENT_CONFIGS.values():
            assert sample["template"] in TEST_DOCUMENT_TEMPLATES
            assert sample["projects"]
