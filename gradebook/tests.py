import random
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings

from . import config
from .aggregation import (
    WeightedAssessment, aggregate_gpa, combine_internal_terminal,
    combine_weighted, term_gpa, validate_weight_config,
)
from .exceptions import (
    ConfigurationError, PercentageRangeError, PreconditionError,
    WeightBoundsError, WeightSumError,
)
from .grading import GradeScale, classify_grade, is_passing
from .models import GradingSystem, GradeBand
from .ranking import (
    ScoredEntity, calculate_overall_ranks, calculate_percentile,
    calculate_ranks, rank_statistics,
)
from .utils import get_active_grading_system, get_grade_scale_cached


class CalculateRanksTest(SimpleTestCase):
    """Tests for competition ranking."""

    def test_ties_share_rank_and_skip(self):
        """Test tied scores share a position and the next one skips."""
        ranked = calculate_ranks([(1, 90), (2, 85), (3, 85), (4, 70)])
        self.assertEqual([r.id for r in ranked], [1, 2, 3, 4])
        self.assertEqual([r.rank for r in ranked], [1, 2, 2, 4])
        self.assertEqual([r.percentile for r in ranked], [100.0, 75.0, 75.0, 25.0])

    def test_sorted_descending(self):
        """Test output is ordered by score, highest first."""
        ranked = calculate_ranks([ScoredEntity(7, 40), ScoredEntity(8, 95), ScoredEntity(9, 60)])
        self.assertEqual([r.id for r in ranked], [8, 9, 7])
        self.assertEqual([r.rank for r in ranked], [1, 2, 3])

    def test_percentile_rounding(self):
        """Test percentiles are rounded to 2 decimal places."""
        ranked = calculate_ranks([(1, 3), (2, 2), (3, 1)])
        self.assertEqual([r.percentile for r in ranked], [100.0, 66.67, 33.33])

    def test_all_tied(self):
        """Test everyone tied is ranked first at the 100th percentile."""
        ranked = calculate_ranks([(1, 50), (2, 50), (3, 50)])
        self.assertEqual({r.rank for r in ranked}, {1})
        self.assertEqual({r.percentile for r in ranked}, {100.0})

    def test_ties_keep_input_order(self):
        """Test tied entities stay in the order they were given."""
        ranked = calculate_ranks([(5, 70), (3, 70), (4, 70)])
        self.assertEqual([r.id for r in ranked], [5, 3, 4])

    def test_output_is_permutation_of_input(self):
        """Test every input id appears exactly once, ties included."""
        entities = [(i, score) for i, score in enumerate([88, 72, 88, 95, 72, 60, 88, 50, 95, 70])]
        random.Random(7).shuffle(entities)

        ranked = calculate_ranks(entities)

        self.assertEqual(sorted(r.id for r in ranked), sorted(i for i, _ in entities))
        self.assertEqual([r.rank for r in ranked], [1, 1, 3, 3, 3, 6, 6, 8, 9, 10])
        scores = [r.score for r in ranked]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_deterministic(self):
        """Test the same input always gives the same ranking."""
        entities = [(1, 70), (2, 85), (3, 70), (4, 85), (5, 40)]
        self.assertEqual(calculate_ranks(entities), calculate_ranks(list(entities)))

    def test_empty(self):
        """Test no entities gives an empty ranking."""
        self.assertEqual(calculate_ranks([]), [])

    def test_single_entity(self):
        ranked = calculate_ranks([(1, 0)])
        self.assertEqual(ranked[0].rank, 1)
        self.assertEqual(ranked[0].percentile, 100.0)


class RankingSupplementTest(SimpleTestCase):
    """Tests for overall ranks, percentiles and statistics."""

    def test_overall_ranks_sum_scores(self):
        """Test entities are ranked on the sum of their exam scores."""
        ranked = calculate_overall_ranks([
            [(1, 40), (2, 50)],
            [(1, 45), (2, 30)],
        ])
        self.assertEqual([(r.id, r.score, r.rank) for r in ranked], [(1, 85, 1), (2, 80, 2)])

    def test_percentile_of_score(self):
        self.assertEqual(calculate_percentile(70, [50, 60, 70, 80]), 75.0)
        self.assertEqual(calculate_percentile(10, [50, 60]), 0.0)

    def test_percentile_empty(self):
        """Test percentile against no scores is 0."""
        self.assertEqual(calculate_percentile(70, []), 0.0)

    def test_rank_statistics(self):
        ranked = calculate_ranks([(1, 90), (2, 85), (3, 85), (4, 70)])
        stats = rank_statistics(ranked)
        self.assertEqual(stats.total, 4)
        self.assertEqual(stats.top_rank, 1)
        self.assertEqual(stats.bottom_rank, 4)
        self.assertEqual(stats.average_score, 82.5)
        self.assertEqual(stats.median_score, 85.0)
        self.assertEqual(stats.tied_ranks, [(2, 2)])

    def test_rank_statistics_empty(self):
        stats = rank_statistics([])
        self.assertEqual(stats.total, 0)
        self.assertEqual(stats.tied_ranks, [])


class ClassifyGradeTest(SimpleTestCase):
    """Tests for grade classification on the NEB scale."""

    def test_band_boundaries(self):
        """Test each band starts at its minimum (inclusive)."""
        cases = [
            (100, 'A+'), (90, 'A+'), (89.99, 'A'), (80, 'A'), (70, 'B+'),
            (60, 'B'), (50, 'C+'), (40, 'C'), (35, 'D'), (34.99, 'NG'), (0, 'NG'),
        ]
        for percentage, label in cases:
            with self.subTest(percentage=percentage):
                self.assertEqual(classify_grade(percentage).label, label)

    def test_grade_points(self):
        self.assertEqual(classify_grade(95).point, 4.0)
        self.assertEqual(classify_grade(36).point, 1.6)
        self.assertEqual(classify_grade(10).point, 0.0)

    def test_out_of_range_rejected(self):
        """Test percentages outside 0-100 are rejected, not clamped."""
        for value in (-0.01, 100.01, 150):
            with self.subTest(value=value):
                with self.assertRaises(PercentageRangeError):
                    classify_grade(value)

    def test_non_numeric_rejected(self):
        for value in ('abc', None, float('nan'), float('inf'), True):
            with self.subTest(value=value):
                with self.assertRaises(PercentageRangeError):
                    classify_grade(value)

    def test_percentage_error_is_value_error(self):
        with self.assertRaises(ValueError):
            classify_grade(101)

    def test_is_passing(self):
        """Test NG is the only failing band."""
        self.assertTrue(is_passing(35))
        self.assertTrue(is_passing(100))
        self.assertFalse(is_passing(34.99))

    def test_custom_scale(self):
        scale = GradeScale([(50, 'Pass', 1.0), (0, 'Fail', 0.0, 'Fail', False)])
        self.assertEqual(classify_grade(50, scale).label, 'Pass')
        self.assertEqual(classify_grade(49.99, scale).label, 'Fail')
        self.assertFalse(is_passing(10, scale))

    @override_settings(GRADEBOOK_GRADE_BANDS=((40, 'P', 1.0), (0, 'F', 0.0, 'Fail', False)))
    def test_scale_follows_settings(self):
        """Test the default scale is rebuilt from GRADEBOOK_GRADE_BANDS."""
        self.assertEqual(classify_grade(40).label, 'P')
        self.assertEqual(classify_grade(39).label, 'F')


class GradeScaleValidationTest(SimpleTestCase):
    """Tests for grade table validation."""

    def test_bands_sorted_highest_first(self):
        scale = GradeScale([(0, 'F', 0.0), (80, 'A', 4.0), (50, 'C', 2.0)])
        self.assertEqual([b.label for b in scale], ['A', 'C', 'F'])
        self.assertEqual(len(scale), 3)
        self.assertEqual(scale.get_band('C').point, 2.0)
        self.assertIsNone(scale.get_band('Z'))

    def test_empty_table(self):
        with self.assertRaises(ConfigurationError):
            GradeScale([])

    def test_gap_at_bottom(self):
        """Test a table not starting at 0 is rejected."""
        with self.assertRaises(ConfigurationError):
            GradeScale([(50, 'P', 1.0), (10, 'F', 0.0)])

    def test_overlapping_minimums(self):
        with self.assertRaises(ConfigurationError):
            GradeScale([(50, 'P', 1.0), (50, 'Q', 1.0), (0, 'F', 0.0)])

    def test_duplicate_labels(self):
        with self.assertRaises(ConfigurationError):
            GradeScale([(50, 'P', 1.0), (0, 'P', 0.0)])

    def test_point_must_not_drop(self):
        """Test a higher band cannot carry a lower grade point."""
        with self.assertRaises(ConfigurationError):
            GradeScale([(50, 'P', 1.0), (0, 'F', 2.0)])

    def test_minimum_out_of_range(self):
        with self.assertRaises(ConfigurationError):
            GradeScale([(120, 'X', 5.0), (0, 'F', 0.0)])

    def test_malformed_row(self):
        with self.assertRaises(ConfigurationError):
            GradeScale([('fifty', 'P', 1.0), (0, 'F', 0.0)])


class CombineWeightedTest(SimpleTestCase):
    """Tests for weighted percentage aggregation."""

    def test_weighted_sum(self):
        result = combine_weighted([(80, 40), (60, 60)])
        self.assertEqual(result.final_percentage, 68.0)
        self.assertEqual(result.label, 'B')
        self.assertEqual(result.point, 2.8)
        self.assertEqual(result.contributions, (32.0, 36.0))

    def test_thirty_seventy_split(self):
        result = combine_weighted([(80, 30), (70, 70)])
        self.assertEqual(result.final_percentage, 73.0)
        self.assertEqual(result.label, 'B+')

    def test_boundary_classified_before_rounding(self):
        """Test 89.995% is graded A even though it is reported as 90.0."""
        result = combine_weighted([(89.99, 50), (90, 50)])
        self.assertEqual(result.label, 'A')
        self.assertEqual(result.point, 3.6)
        self.assertEqual(result.final_percentage, 90.0)

    def test_deterministic(self):
        assessments = [(67.5, 25), (81.25, 75)]
        self.assertEqual(combine_weighted(assessments), combine_weighted(assessments))

    def test_named_assessments(self):
        result = combine_weighted([
            WeightedAssessment(90, 25, 'Project'),
            WeightedAssessment(90, 75, 'Final'),
        ])
        self.assertEqual(result.final_percentage, 90.0)
        self.assertEqual(result.label, 'A+')

    def test_rounds_half_up(self):
        """Test the final percentage rounds half-up to 2 decimal places."""
        result = combine_weighted([(33.345, 100)])
        self.assertEqual(result.final_percentage, 33.35)
        self.assertEqual(result.label, 'NG')

    def test_weights_must_sum_to_100(self):
        with self.assertRaises(WeightSumError) as ctx:
            combine_weighted([(80, 40), (60, 50)])
        self.assertIn('Current sum: 90%', str(ctx.exception))

    def test_weight_sum_tolerance(self):
        """Test a total within tolerance is accepted and stays within 100."""
        result = combine_weighted([(100, 50), (100, 50.005)])
        self.assertEqual(result.final_percentage, 100.0)

    def test_out_of_range_inputs(self):
        with self.assertRaises(PercentageRangeError):
            combine_weighted([(120, 50), (50, 50)])
        with self.assertRaises(PercentageRangeError):
            combine_weighted([(50, 120), (50, -20)])

    def test_empty_assessments(self):
        with self.assertRaises(WeightSumError):
            combine_weighted([])


class InternalTerminalTest(SimpleTestCase):
    """Tests for NEB internal + terminal combination."""

    def test_combination(self):
        result = combine_internal_terminal(80, 70, 40)
        self.assertEqual(result.final_percentage, 74.0)
        self.assertEqual(result.label, 'B+')

    def test_explicit_terminal_weight(self):
        result = combine_internal_terminal(50, 50, 25, 75)
        self.assertEqual(result.final_percentage, 50.0)
        self.assertEqual(result.label, 'C+')

    def test_bounds_reported_together(self):
        """Test every broken bound is reported."""
        with self.assertRaises(WeightBoundsError) as ctx:
            combine_internal_terminal(80, 70, 20)
        self.assertEqual(len(ctx.exception.errors), 2)

    def test_bounds_checked_before_percentages(self):
        with self.assertRaises(WeightBoundsError):
            combine_internal_terminal(150, 70, 20)

    def test_validate_weight_config(self):
        self.assertEqual(validate_weight_config(30, 70), [])
        errors = validate_weight_config(40, 50)
        self.assertEqual(len(errors), 1)
        self.assertIn('sum to 100%', errors[0])

    @override_settings(GRADEBOOK_INTERNAL_WEIGHT_RANGE=(60, 50))
    def test_inverted_range_is_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            config.get_weight_bounds()

    @override_settings(GRADEBOOK_INTERNAL_WEIGHT_RANGE=(10, 20))
    def test_unreachable_total_is_configuration_error(self):
        """Test ranges that can never reach 100% are rejected."""
        with self.assertRaises(ConfigurationError):
            combine_internal_terminal(80, 70, 20)


class GPATest(SimpleTestCase):
    """Tests for GPA calculations."""

    def test_term_gpa(self):
        """Test credit-weighted GPA, skipping zero-credit subjects."""
        self.assertEqual(term_gpa([(4, 4.0), (3, 3.6), (0, 2.0)]), 3.83)

    def test_term_gpa_five_four_three_credits(self):
        self.assertEqual(term_gpa([(5, 4.0), (4, 3.6), (3, 3.2)]), 3.67)

    def test_fractional_credit_hours(self):
        """Test credit hours given as floats are accepted."""
        self.assertEqual(term_gpa([(4.0, 3.6), (3, 3.2)]), 3.43)
        self.assertEqual(term_gpa([(1.5, 4.0), (0.5, 2.0)]), 3.5)

    def test_non_numeric_credit_hours(self):
        with self.assertRaises(PreconditionError):
            term_gpa([('four', 3.6)])

    def test_term_gpa_empty(self):
        self.assertEqual(term_gpa([]), 0.0)
        self.assertEqual(term_gpa([(0, 4.0)]), 0.0)

    def test_negative_credit_hours(self):
        with self.assertRaises(PreconditionError):
            term_gpa([(-1, 3.0)])

    def test_aggregate_gpa(self):
        self.assertEqual(aggregate_gpa(3.6, 3.25), 3.43)

    def test_aggregate_gpa_out_of_range(self):
        with self.assertRaises(PreconditionError):
            aggregate_gpa(4.5, 3.0)


class GradingSystemModelTest(TestCase):
    """Tests for GradingSystem and GradeBand models."""

    def setUp(self):
        cache.clear()
        self.grading_system = GradingSystem.objects.create(
            name='Pass/Fail',
            level='BASIC'
        )
        self.pass_band = GradeBand.objects.create(
            grading_system=self.grading_system,
            grade_label='P',
            min_percentage=Decimal('50.00'),
            grade_point=Decimal('1.00'),
            interpretation='Pass',
            order=1
        )
        GradeBand.objects.create(
            grading_system=self.grading_system,
            grade_label='F',
            min_percentage=Decimal('0.00'),
            grade_point=Decimal('0.00'),
            interpretation='Fail',
            is_pass=False,
            order=2
        )

    def test_str_representation(self):
        self.assertEqual(str(self.grading_system), 'Pass/Fail (Basic Level (Grades 1-8))')
        self.assertIn('P', str(self.pass_band))

    def test_classify(self):
        self.assertEqual(self.grading_system.classify(75).label, 'P')
        self.assertEqual(self.grading_system.classify(49.99).label, 'F')

    def test_is_passing_score(self):
        self.assertTrue(self.grading_system.is_passing_score(50))
        self.assertFalse(self.grading_system.is_passing_score(10))
        self.assertFalse(self.grading_system.is_passing_score(None))

    def test_duplicate_minimum_rejected(self):
        """Test a band cannot start where another band starts."""
        band = GradeBand(
            grading_system=self.grading_system,
            grade_label='Q',
            min_percentage=Decimal('50.00'),
            grade_point=Decimal('1.00'),
        )
        with self.assertRaises(ValidationError):
            band.full_clean()

    def test_dropping_grade_point_rejected(self):
        band = GradeBand(
            grading_system=self.grading_system,
            grade_label='D',
            min_percentage=Decimal('80.00'),
            grade_point=Decimal('0.50'),
        )
        with self.assertRaises(ValidationError):
            band.full_clean()

    def test_cached_scale_invalidated_on_band_change(self):
        """Test the cached scale is dropped when a band is added."""
        self.assertEqual(get_grade_scale_cached(self.grading_system).classify(85).label, 'P')
        self.assertIsNotNone(cache.get(f'grade_scale_{self.grading_system.pk}'))

        GradeBand.objects.create(
            grading_system=self.grading_system,
            grade_label='D',
            min_percentage=Decimal('80.00'),
            grade_point=Decimal('2.00'),
        )
        self.assertIsNone(cache.get(f'grade_scale_{self.grading_system.pk}'))
        self.assertEqual(get_grade_scale_cached(self.grading_system).classify(85).label, 'D')

    def test_default_scale_without_system(self):
        self.assertEqual(get_grade_scale_cached().classify(85).label, 'A')

    def test_active_grading_system(self):
        self.assertEqual(get_active_grading_system('BASIC'), self.grading_system)
        # Falls back to any active system
        self.assertEqual(get_active_grading_system('SECONDARY'), self.grading_system)

        self.grading_system.is_active = False
        self.grading_system.save()
        self.assertIsNone(get_active_grading_system())


class SeedGradingDataCommandTest(TestCase):
    """Tests for the seed_grading_data management command."""

    def test_seeds_neb_scale(self):
        call_command('seed_grading_data', stdout=StringIO())

        system = GradingSystem.objects.get(name='NEB Standard')
        self.assertEqual(system.bands.count(), 8)
        self.assertEqual(system.classify(85).label, 'A')
        self.assertEqual(system.classify(34.99).label, 'NG')

    def test_existing_system_kept_without_force(self):
        call_command('seed_grading_data', stdout=StringIO())
        out = StringIO()
        call_command('seed_grading_data', stdout=out)

        self.assertIn('already exists', out.getvalue())
        self.assertEqual(GradingSystem.objects.filter(name='NEB Standard').count(), 1)

    def test_force_recreates(self):
        call_command('seed_grading_data', stdout=StringIO())
        first = GradingSystem.objects.get(name='NEB Standard')
        call_command('seed_grading_data', '--force', stdout=StringIO())

        system = GradingSystem.objects.get(name='NEB Standard')
        self.assertNotEqual(system.pk, first.pk)
        self.assertEqual(system.bands.count(), 8)
