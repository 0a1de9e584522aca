"""ConfidenceEstimator 单元测试

测试内容：
1. 档位是 overall 的纯函数
2. 三个子分与默认值
3. 历史数据对评分的影响
4. 执行建议与谨慎等级
"""

import pytest
from autoops.core.models import (
    CautionLevel,
    ConfidenceLevel,
    FactorImpact,
    RunRecord,
    TaskPriority,
)
from autoops.pipeline import ConfidenceConfig, ConfidenceEstimator, TaskPlanner
from autoops.pipeline.confidence import confidence_level_for, extract_keywords

from pipeline_helpers import CICD_CONTEXT, CICD_GOAL, make_goal, make_task


class TestConfidenceLevel:
    """档位映射"""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (1.0, ConfidenceLevel.VERY_HIGH),
            (0.85, ConfidenceLevel.VERY_HIGH),
            (0.84, ConfidenceLevel.HIGH),
            (0.70, ConfidenceLevel.HIGH),
            (0.69, ConfidenceLevel.MEDIUM),
            (0.50, ConfidenceLevel.MEDIUM),
            (0.49, ConfidenceLevel.LOW),
            (0.35, ConfidenceLevel.LOW),
            (0.34, ConfidenceLevel.VERY_LOW),
            (0.0, ConfidenceLevel.VERY_LOW),
        ],
    )
    def test_level_thresholds(self, score: float, expected: ConfidenceLevel):
        assert confidence_level_for(score) == expected

    def test_assessment_level_matches_overall(self):
        estimator = ConfidenceEstimator()
        for goal in ["Make it better", CICD_GOAL, "Deploy redis to kubernetes with 3 replicas"]:
            assessment = estimator.assess(goal)
            assert assessment.confidence_level == confidence_level_for(
                assessment.overall_confidence
            )
            assert 0.0 <= assessment.overall_confidence <= 1.0


class TestSubScores:
    """子分计算"""

    def test_cicd_goal_clarity(self):
        clarity = ConfidenceEstimator.assess_clarity(CICD_GOAL, CICD_CONTEXT)
        assert clarity.specificity == 0.65
        assert clarity.actionability == 1.0
        assert clarity.measurability == 0.3
        assert clarity.context_richness == 0.6
        assert clarity.overall == 0.7

    def test_ambiguous_phrase_lowers_actionability(self):
        clarity = ConfidenceEstimator.assess_clarity("Make it better")
        assert clarity.actionability == 0.0
        assert clarity.specificity == 0.0

    def test_default_historical_without_data(self):
        historical = ConfidenceEstimator.assess_historical(CICD_GOAL, [])
        assert historical.overall == 0.6
        assert historical.data_points == 0

    def test_default_complexity_without_plan(self):
        complexity = ConfidenceEstimator.assess_complexity(None)
        assert complexity.overall == 0.7
        assert complexity.task_count == 0

    def test_complexity_of_cicd_draft(self):
        goal = make_goal(CICD_GOAL, CICD_CONTEXT)
        draft = TaskPlanner().decompose(goal)
        complexity = ConfidenceEstimator.assess_complexity(draft)
        assert complexity.task_count == 6
        assert complexity.estimated_duration == 135
        assert complexity.risk_level == 0.8
        assert complexity.overall == 0.66

    def test_complexity_floor(self):
        tasks = [make_task(f"step {i}", estimated_duration=300) for i in range(20)]
        complexity = ConfidenceEstimator.assess_complexity(tasks)
        assert complexity.overall >= 0.3

    def test_priority_mix(self):
        tasks = [
            make_task("a", priority=TaskPriority.HIGH),
            make_task("b", priority=TaskPriority.HIGH),
        ]
        assert ConfidenceEstimator.assess_complexity(tasks).priority_mix == 0.33


class TestHistorical:
    """历史数据"""

    def test_failing_history_lowers_score(self):
        runs = [RunRecord(goal="deploy docker service", success=False, score=10) for _ in range(10)]
        historical = ConfidenceEstimator.assess_historical("deploy docker image", runs)
        assert historical.similar_goal_success_rate == 0.0
        assert historical.workflow_success_rate == 0.0
        assert historical.overall < 0.6

    def test_improving_trend(self):
        older = [RunRecord(goal="x", success=False, score=20) for _ in range(5)]
        recent = [RunRecord(goal="x", success=True, score=90) for _ in range(5)]
        historical = ConfidenceEstimator.assess_historical("build", older + recent)
        assert historical.recent_trend == 1.0

    def test_keywords_are_verbs_and_technologies(self):
        assert extract_keywords("Deploy the Redis cache with Docker") == [
            "deploy",
            "redis",
            "docker",
        ]


class TestRecommendation:
    """执行建议"""

    def test_cicd_goal_proceeds_with_medium_confidence(self):
        goal = make_goal(CICD_GOAL, CICD_CONTEXT)
        draft = TaskPlanner().decompose(goal)
        assessment = ConfidenceEstimator().assess(CICD_GOAL, CICD_CONTEXT, draft)
        assert assessment.overall_confidence == 0.65
        assert assessment.confidence_level == ConfidenceLevel.MEDIUM
        assert assessment.execution_recommendation.proceed_with_execution is True
        assert any(f.name == "Elevated Risk Level" for f in assessment.factors)

    def test_below_threshold_does_not_proceed(self):
        estimator = ConfidenceEstimator(ConfidenceConfig(min_confidence_threshold=0.9))
        assessment = estimator.assess(CICD_GOAL, CICD_CONTEXT)
        recommendation = assessment.execution_recommendation
        assert recommendation.proceed_with_execution is False
        assert recommendation.caution_level == CautionLevel.HIGH
        assert recommendation.suggested_approach

    def test_negative_factors_produce_mitigation(self):
        estimator = ConfidenceEstimator()
        assessment = estimator.assess("Make it better")
        negatives = [f for f in assessment.factors if f.impact == FactorImpact.NEGATIVE]
        assert negatives
        assert (
            "Request additional context or clarification"
            in assessment.execution_recommendation.additional_validation
        )

    def test_assessments_are_stored(self):
        estimator = ConfidenceEstimator()
        assessment = estimator.assess(CICD_GOAL)
        assert estimator.get_assessment(assessment.assessment_id) == assessment
        assert estimator.average_confidence() == assessment.overall_confidence
