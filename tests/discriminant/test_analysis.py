"""
Tests for the discriminant analysis solvers and the aggregate runner.
"""

from dataclasses import replace

import numpy as np
import pytest

from pydiscriminant.core.exceptions import ConfigurationError, ValidationError
from pydiscriminant.core.tracing import RecordingTracer
from pydiscriminant.discriminant import (
    ClassifyOptions,
    DefineRange,
    DiscriminantConfig,
    ErrorCollector,
    MainOptions,
    StatisticsOptions,
    box_m_test,
    canonical_discriminant,
    case_processing_summary,
    casewise_statistics,
    classification,
    discriminant_analysis,
    equality_of_group_means,
    group_statistics,
    stepwise_statistics,
    wilks_lambda_test,
)

ALL_STATISTICS = StatisticsOptions(
    means=True, anova=True, box_m=True, within_groups_matrices=True,
    covariance_matrices=True, fisher=True, unstandardized=True,
)


@pytest.fixture
def full_config(three_group_config):
    return replace(
        three_group_config,
        statistics=ALL_STATISTICS,
        classify=ClassifyOptions(leave_one_out=True, case=True, limit=True, limit_value=3),
    )


@pytest.fixture
def plain_config():
    return DiscriminantConfig(main=MainOptions('group', ('x1', 'x2')))


# ═══════════════════════════════════════════════════════════════════════
# Case screening
# ═══════════════════════════════════════════════════════════════════════


class TestCaseProcessing:
    """Counts of valid and excluded records."""

    def test_exclusions(self, three_group_records, plain_config):
        records = three_group_records + [
            {'group': 9, 'x1': 1.0, 'x2': 1.0},
            {'group': 1, 'x1': None, 'x2': 1.0},
            {'group': None, 'x1': None, 'x2': 1.0},
        ]
        config = replace(plain_config, define_range=DefineRange(1, 3))
        sol = case_processing_summary(records, config)
        assert sol.valid == 30
        assert sol.total == 33
        assert sol.excluded == 3
        assert sol.params.missing_or_out_of_range_group == 1
        assert sol.params.missing_discriminating == 1
        assert sol.params.missing_both == 1
        assert sol.warnings == ("3 of 33 cases excluded (missing or out-of-range values)",)
        assert "Analysis Case Processing Summary" in sol.summary()

    def test_selection_variable(self, three_group_records):
        records = [dict(r, keep=1 if i % 2 == 0 else 0) for i, r in enumerate(three_group_records)]
        config = DiscriminantConfig(main=MainOptions(
            'group', ('x1', 'x2'), selection_variable='keep', selection_value=1,
        ))
        sol = case_processing_summary(records, config)
        assert sol.valid == 15
        assert sol.params.unselected == 15
        assert sol.warnings == ()

    def test_records_require_config(self, three_group_records):
        with pytest.raises(ConfigurationError, match="config") as exc_info:
            group_statistics(three_group_records)
        assert exc_info.value.option == 'config'

    def test_no_valid_case(self, plain_config):
        records = [{'group': 1, 'x1': None, 'x2': 1.0}]
        with pytest.raises(ValidationError, match="No valid cases"):
            group_statistics(records, plain_config)
        assert case_processing_summary(records, plain_config).valid == 0


# ═══════════════════════════════════════════════════════════════════════
# Single procedures
# ═══════════════════════════════════════════════════════════════════════


class TestProcedures:
    """Standalone solver functions on records and datasets."""

    def test_group_statistics(self, three_group_records, plain_config):
        sol = group_statistics(three_group_records, plain_config)
        assert sol.groups == ('1', '2', '3')
        assert sol.statistics['2']['x1'].mean == pytest.approx(5.0)
        assert sol.procedure == 'group_statistics'
        assert sol.info['n_cases'] == 30
        assert "Group Statistics" in sol.summary()

    def test_equality_row_lookup(self, three_group_dataset):
        sol = equality_of_group_means(three_group_dataset)
        assert sol.row('x2').df2 == 27
        with pytest.raises(KeyError):
            sol.row('missing')

    def test_dataset_without_config(self, three_group_dataset):
        sol = canonical_discriminant(three_group_dataset)
        assert sol.n_functions == 2
        assert sol.eigenvalues[0] == pytest.approx(1000.0 / 15.0, rel=1e-6)

    def test_variable_subset(self, three_group_dataset):
        sol = canonical_discriminant(three_group_dataset, variables=['x1'])
        assert sol.n_functions == 1
        assert sol.unstandardized.shape == (1, 1)

    def test_unstandardized_table_follows_config(self, three_group_records, plain_config):
        hidden = canonical_discriminant(three_group_records, plain_config)
        assert hidden.info['show_unstandardized'] is False
        assert "(unstandardized)" not in hidden.summary()
        shown = canonical_discriminant(
            three_group_records,
            replace(plain_config, statistics=StatisticsOptions(unstandardized=True)),
        )
        assert "(unstandardized)" in shown.summary()
        np.testing.assert_allclose(shown.unstandardized, hidden.unstandardized)

    def test_unknown_variable(self, three_group_dataset):
        with pytest.raises(ValidationError, match="not in the dataset"):
            wilks_lambda_test(three_group_dataset, variables=['x9'])

    def test_wilks_lambda(self, three_group_dataset):
        sol = wilks_lambda_test(three_group_dataset)
        assert sol.test_of_functions == ('1 through 2', '2')
        assert sol.significance[0] < 0.001
        assert "Wilks' Lambda" in sol.summary()

    def test_box_m_skipped_group_warning(self, plain_config):
        records = [
            {'group': 'a', 'x1': 0.0, 'x2': 1.0}, {'group': 'a', 'x1': 1.0, 'x2': 0.0},
            {'group': 'a', 'x1': 2.0, 'x2': 2.0}, {'group': 'b', 'x1': 5.0, 'x2': 4.0},
            {'group': 'b', 'x1': 6.0, 'x2': 6.0}, {'group': 'b', 'x1': 7.0, 'x2': 5.0},
            {'group': 'c', 'x1': 9.0, 'x2': 9.0},
        ]
        sol = box_m_test(records, plain_config)
        assert sol.info['skipped_groups'] == ('c',)
        assert any("skipped" in w for w in sol.warnings)
        assert "Log Determinants" in sol.summary()

    def test_stepwise(self, three_group_records, three_group_config):
        tracer = RecordingTracer()
        sol = stepwise_statistics(three_group_records, three_group_config, tracer=tracer)
        assert sol.variables_entered == ('x1', 'x2')
        assert sol.variables_removed == (None, None)
        assert len(sol.wilks_lambda) == len(sol.f_values) == len(sol.significance) == 2
        assert sol.df3 == (27, 27)
        assert sol.final_wilks_lambda < 0.3
        assert set(sol.variables_in_analysis) == {0, 1, 2}
        assert sol.pairwise_comparisons == {}
        assert sol.info['method'] == 'wilks'
        assert tracer.names()[0] == 'dataset_extracted'
        assert tracer.names().count('step_completed') == 3
        assert tracer.names()[-1] == 'test_computed'
        assert "Variables Entered/Removed" in sol.summary()

    def test_stepwise_cap_warns(self, three_group_dataset, make_config):
        config = make_config(p_entry=1.0, p_removal=0.0, max_steps=4)
        with pytest.warns(RuntimeWarning, match="maximum of 4 steps"):
            sol = stepwise_statistics(three_group_dataset, config)
        assert sol.hit_step_cap
        assert sol.variables_removed == (None, None, 'x1', None)
        assert any("maximum of 4 steps" in w for w in sol.warnings)

    def test_classification(self, three_group_dataset, plain_config):
        config = replace(plain_config, classify=ClassifyOptions(leave_one_out=True))
        sol = classification(three_group_dataset, config)
        assert sol.percent_correct == 100.0
        assert sol.cross_validated.percent_correct == 100.0
        assert sol.functions.coefficients.shape == (2, 3)
        text = sol.summary()
        assert "Classification Function Coefficients" in text
        assert "Cross-validated" in text

    def test_casewise_requires_case_option(self, three_group_dataset, plain_config):
        with pytest.raises(ConfigurationError, match="classify.case") as exc_info:
            casewise_statistics(three_group_dataset, plain_config)
        assert exc_info.value.option == 'classify.case'

    def test_casewise(self, three_group_dataset, plain_config):
        config = replace(plain_config, classify=ClassifyOptions(case=True, limit=True, limit_value=4))
        sol = casewise_statistics(three_group_dataset, config)
        assert len(sol.rows) == 4
        assert sol.truncated
        assert "(first 4 of 30 cases)" in sol.summary()

    def test_invalid_config_rejected(self, three_group_dataset, plain_config):
        config = replace(plain_config, epsilon=-1.0)
        with pytest.raises(ConfigurationError, match="epsilon"):
            group_statistics(three_group_dataset, config)


# ═══════════════════════════════════════════════════════════════════════
# Aggregate runner
# ═══════════════════════════════════════════════════════════════════════


class TestDiscriminantAnalysis:
    """Every requested procedure in one run."""

    def test_full_run(self, three_group_records, full_config):
        sol = discriminant_analysis(three_group_records, full_config)
        assert sol.ok
        assert sol.analysis_variables == ('x1', 'x2')
        for name in (
            'processing_summary', 'group_statistics', 'equality_tests',
            'pooled_matrices', 'covariance_matrices', 'box_m_test', 'stepwise',
            'wilks_lambda_test', 'canonical', 'classification', 'casewise',
        ):
            assert getattr(sol, name) is not None, name
        assert sol.stepwise.final_variables == ('x1', 'x2')
        assert sol.canonical.n_functions == 2
        assert sol.classification.percent_correct == 100.0
        assert len(sol.casewise.rows) == 3
        assert sol.box_m_test.p_value > 0.05
        assert 'stepwise' in sol.timing

        text = sol.summary()
        for heading in ("Analysis Case Processing Summary", "Group Statistics",
                        "Tests of Equality of Group Means", "Log Determinants",
                        "Variables Entered/Removed", "Eigenvalues", "Wilks' Lambda",
                        "Prior Probabilities for Groups", "Casewise Statistics"):
            assert heading in text

    def test_optional_tables_follow_config(self, three_group_records, plain_config):
        sol = discriminant_analysis(three_group_records, plain_config)
        assert sol.group_statistics is None
        assert sol.box_m_test is None
        assert sol.stepwise is None
        assert sol.casewise is None
        assert sol.canonical is not None
        assert sol.classification is not None
        assert sol.analysis_variables == ('x1', 'x2')

    def test_failed_procedures_do_not_abort(self, plain_config):
        # one case per group: no within-groups degrees of freedom
        records = [{'group': 1, 'x1': 1.0, 'x2': 2.0}, {'group': 2, 'x1': 3.0, 'x2': 1.0}]
        config = replace(plain_config, statistics=StatisticsOptions(means=True))
        sol = discriminant_analysis(records, config)
        assert not sol.ok
        assert sol.group_statistics is not None
        assert sol.canonical is None
        assert sol.failed('canonical')
        assert sol.failed('wilks_lambda_test')
        assert sol.failed('classification')
        assert not sol.failed('group_statistics')
        assert all(e.error_type == 'ValidationError' for e in sol.errors)
        assert "Errors" in sol.summary()

    def test_nothing_entered(self, three_group_records, three_group_config):
        # every group gets the first group's values, so no variable separates them
        first = [r for r in three_group_records if r['group'] == 1]
        records = [dict(r, group=code) for code in (1, 2) for r in first]
        sol = discriminant_analysis(records, three_group_config)
        assert sol.ok
        assert sol.stepwise.final_variables == ()
        assert sol.analysis_variables == ()
        assert sol.canonical is None
        assert sol.classification is None
        assert any("no variable qualified" in w for w in sol.warnings)

    def test_tracer_sees_every_procedure(self, three_group_records, full_config):
        tracer = RecordingTracer()
        discriminant_analysis(three_group_records, full_config, tracer=tracer)
        tests = [f['test'] for name, f in tracer.events if name == 'test_computed']
        assert tests[:4] == [
            'group_statistics', 'equality_of_group_means',
            'pooled_within_matrices', 'covariance_matrices',
        ]
        assert {'stepwise', 'box_m', 'canonical', 'wilks_lambda',
                'classification', 'casewise'} <= set(tests)


class TestErrorCollector:
    """Library errors are recorded, others propagate."""

    def test_records_library_error(self):
        collector = ErrorCollector()

        def fail():
            raise ValidationError("bad input")

        assert collector.run('proc', fail) is None
        (error,) = collector.errors
        assert (error.procedure, error.message, error.error_type) == ('proc', 'bad input', 'ValidationError')

    def test_passes_value_through(self):
        assert ErrorCollector().run('proc', lambda x: x * 2, 21) == 42

    def test_other_errors_propagate(self):
        def boom():
            raise RuntimeError("unexpected")

        with pytest.raises(RuntimeError, match="unexpected"):
            ErrorCollector().run('proc', boom)
