"""ConfidenceEstimator -- 执行置信度评估

由三个子分加权得到 overall：
- 目标清晰度（specificity / actionability / measurability / context richness）
- 历史表现（相似目标成功率 / 整体成功率 / 近期趋势）
- 复杂度（任务数、预估时长、依赖深度、风险越高，得分越低）

所有权重与阈值都是经验常量，保持原值。
"""

from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from ulid import ULID

from autoops.core.models import (
    CautionLevel,
    ComplexityScore,
    ConfidenceAssessment,
    ConfidenceFactor,
    ConfidenceLevel,
    ExecutionRecommendation,
    FactorImpact,
    GoalClarityScore,
    HistoricalScore,
    RunRecord,
    Task,
    TaskPlan,
)

from .config import ConfidenceConfig
from .scoring import clamp, round2

log = structlog.get_logger()

ACTION_VERBS: tuple[str, ...] = (
    "create", "build", "deploy", "setup", "configure", "implement",
    "migrate", "update", "fix", "optimize", "test", "monitor",
    "install", "run", "execute", "develop", "design", "integrate",
)

SPECIFIC_TECHNOLOGIES: tuple[str, ...] = (
    "docker", "kubernetes", "aws", "azure", "gcp", "terraform",
    "jenkins", "github", "gitlab", "react", "node", "python",
    "java", "postgres", "mysql", "mongodb", "redis", "nginx",
)

MEASURABLE_INDICATORS: tuple[str, ...] = (
    "performance", "latency", "throughput", "availability", "uptime",
    "coverage", "errors", "logs", "metrics", "alerts", "monitoring",
    "scale", "capacity", "concurrent", "response time", "sla",
)

AMBIGUOUS_PHRASES: tuple[str, ...] = (
    "make it better", "improve things", "fix stuff", "do something",
    "work on it", "handle it", "take care of", "sort out",
)

# 档位下限，从高到低匹配
LEVEL_THRESHOLDS: tuple[tuple[float, ConfidenceLevel], ...] = (
    (0.85, ConfidenceLevel.VERY_HIGH),
    (0.70, ConfidenceLevel.HIGH),
    (0.50, ConfidenceLevel.MEDIUM),
    (0.35, ConfidenceLevel.LOW),
)

SUGGESTED_APPROACH: dict[ConfidenceLevel, str] = {
    ConfidenceLevel.VERY_HIGH: "Full autonomous execution recommended",
    ConfidenceLevel.HIGH: "Execute with standard oversight",
    ConfidenceLevel.MEDIUM: "Execute with enhanced monitoring and checkpoints",
    ConfidenceLevel.LOW: "Execute cautiously with manual validation steps",
    ConfidenceLevel.VERY_LOW: "Request clarification before proceeding",
}

# 无历史数据时的默认子分
_DEFAULT_HISTORICAL = HistoricalScore(
    similar_goal_success_rate=0.7,
    workflow_success_rate=0.7,
    recent_trend=0.5,
    data_points=0,
    overall=0.6,
)

# 无计划时的默认复杂度
_DEFAULT_COMPLEXITY = ComplexityScore(
    task_count=0,
    estimated_duration=0,
    priority_mix=0.5,
    dependency_depth=0.3,
    risk_level=0.5,
    overall=0.7,
)

DEFAULT_TASK_DURATION = 10


def confidence_level_for(confidence: float) -> ConfidenceLevel:
    """置信度档位：overall 的纯函数"""
    for threshold, level in LEVEL_THRESHOLDS:
        if confidence >= threshold:
            return level
    return ConfidenceLevel.VERY_LOW


def extract_keywords(text: str) -> list[str]:
    """提取用于相似度比较的关键字（动作动词 + 技术名词，长度 > 3）"""
    words = [w for w in text.lower().split() if len(w) > 3]
    verbs = [w for w in words if w in ACTION_VERBS]
    techs = [w for w in words if w in SPECIFIC_TECHNOLOGIES]
    return list(dict.fromkeys([*verbs, *techs]))


class ConfidenceEstimator:
    """置信度评估器"""

    def __init__(self, config: ConfidenceConfig | None = None) -> None:
        self._config = config or ConfidenceConfig()
        self._assessments: dict[str, ConfidenceAssessment] = {}

    def assess(
        self,
        goal: str,
        context: str | None = None,
        draft_plan: TaskPlan | Sequence[Task] | None = None,
        historical_runs: Sequence[RunRecord] | None = None,
    ) -> ConfidenceAssessment:
        """评估执行置信度"""
        clarity = self.assess_clarity(goal, context)
        historical = self.assess_historical(goal, historical_runs)
        complexity = self.assess_complexity(draft_plan)

        overall = round2(
            clamp(
                clarity.overall * self._config.clarity_weight
                + historical.overall * self._config.historical_weight
                + complexity.overall * self._config.complexity_weight
            )
        )
        level = confidence_level_for(overall)
        factors = self.identify_factors(clarity, historical, complexity)
        recommendation = self.recommend(overall, level, factors)

        assessment = ConfidenceAssessment(
            assessment_id=str(ULID()),
            timestamp=datetime.now(UTC),
            goal=goal,
            goal_clarity=clarity,
            historical=historical,
            complexity=complexity,
            overall_confidence=overall,
            confidence_level=level,
            execution_recommendation=recommendation,
            factors=factors,
        )
        self._assessments[assessment.assessment_id] = assessment

        log.info(
            "confidence_assessed",
            assessment_id=assessment.assessment_id,
            overall_confidence=overall,
            confidence_level=level,
            proceed=recommendation.proceed_with_execution,
        )
        return assessment

    # ------------------------------------------------------------
    # 子分
    # ------------------------------------------------------------

    @staticmethod
    def assess_clarity(goal: str, context: str | None = None) -> GoalClarityScore:
        goal_lower = goal.lower()
        full_text = f"{goal} {context or ''}".lower()

        specificity = 0.0
        if any(tech in full_text for tech in SPECIFIC_TECHNOLOGIES):
            specificity += 0.3
        if any(ch.isdigit() for ch in goal):
            specificity += 0.2
        if len(goal) > 50:
            specificity += 0.2
        if len(goal) > 100:
            specificity += 0.15
        if context and len(context) > 30:
            specificity += 0.15
        specificity = min(1.0, specificity)

        verb_count = sum(1 for v in ACTION_VERBS if v in goal_lower)
        actionability = min(1.0, verb_count * 0.25 + 0.3)
        if any(p in goal_lower for p in AMBIGUOUS_PHRASES):
            actionability -= 0.4
        actionability = max(0.0, actionability)

        measurable_count = sum(1 for m in MEASURABLE_INDICATORS if m in full_text)
        measurability = min(1.0, 0.3 + measurable_count * 0.15)

        context_richness = 0.2
        if context:
            if len(context) > 20:
                context_richness += 0.2
            if len(context) > 50:
                context_richness += 0.2
            if len(context) > 100:
                context_richness += 0.2
            if any(tech in context.lower() for tech in SPECIFIC_TECHNOLOGIES):
                context_richness += 0.2
        context_richness = min(1.0, context_richness)

        overall = (
            specificity * 0.3
            + actionability * 0.35
            + measurability * 0.2
            + context_richness * 0.15
        )

        return GoalClarityScore(
            specificity=round2(specificity),
            actionability=round2(actionability),
            measurability=round2(measurability),
            context_richness=round2(context_richness),
            overall=round2(overall),
        )

    @staticmethod
    def assess_historical(
        goal: str,
        historical_runs: Sequence[RunRecord] | None = None,
    ) -> HistoricalScore:
        if not historical_runs:
            return _DEFAULT_HISTORICAL

        goal_keywords = set(extract_keywords(goal))
        similar = [r for r in historical_runs if goal_keywords & set(extract_keywords(r.goal))]

        similar_rate = (
            sum(1 for r in similar if r.success) / len(similar) if similar else 0.7
        )
        overall_rate = sum(1 for r in historical_runs if r.success) / len(historical_runs)

        # 最近 5 次与之前 5 次的平均得分之差
        recent = list(historical_runs[-5:])
        older = list(historical_runs[-10:-5])
        recent_avg = sum(r.score / 100 for r in recent) / len(recent) if recent else 0.5
        older_avg = sum(r.score / 100 for r in older) / len(older) if older else recent_avg
        trend = clamp(0.5 + (recent_avg - older_avg))

        overall = similar_rate * 0.4 + overall_rate * 0.35 + trend * 0.25

        return HistoricalScore(
            similar_goal_success_rate=round2(similar_rate),
            workflow_success_rate=round2(overall_rate),
            recent_trend=round2(trend),
            data_points=len(historical_runs),
            overall=round2(overall),
        )

    @staticmethod
    def assess_complexity(draft_plan: TaskPlan | Sequence[Task] | None = None) -> ComplexityScore:
        if draft_plan is None:
            return _DEFAULT_COMPLEXITY

        if isinstance(draft_plan, TaskPlan):
            tasks = draft_plan.tasks
            duration = draft_plan.estimated_total_duration
        else:
            tasks = list(draft_plan)
            duration = 0
        if not duration:
            duration = sum(t.estimated_duration or DEFAULT_TASK_DURATION for t in tasks)

        task_count = len(tasks)
        priority_mix = min(1.0, len({t.priority for t in tasks}) / 3)
        depth = min(1.0, task_count / 10)

        risk = 0.3
        if task_count > 5:
            risk += 0.2
        if task_count > 8:
            risk += 0.2
        if duration > 60:
            risk += 0.15
        if duration > 120:
            risk += 0.15
        risk = min(1.0, risk)

        factor = (
            (task_count / 10) * 0.3
            + (min(duration, 180) / 180) * 0.3
            + depth * 0.2
            + risk * 0.2
        )
        overall = max(0.3, 1 - factor * 0.5)

        return ComplexityScore(
            task_count=task_count,
            estimated_duration=duration,
            priority_mix=round2(priority_mix),
            dependency_depth=round2(depth),
            risk_level=round2(risk),
            overall=round2(overall),
        )

    # ------------------------------------------------------------
    # 因子与建议
    # ------------------------------------------------------------

    @staticmethod
    def identify_factors(
        clarity: GoalClarityScore,
        historical: HistoricalScore,
        complexity: ComplexityScore,
    ) -> list[ConfidenceFactor]:
        factors: list[ConfidenceFactor] = []

        def add(name: str, value: float, weight: float, impact: FactorImpact, description: str) -> None:
            factors.append(
                ConfidenceFactor(
                    name=name, value=value, weight=weight, impact=impact, description=description
                )
            )

        if clarity.specificity >= 0.7:
            add("High Goal Specificity", clarity.specificity, 0.15, FactorImpact.POSITIVE,
                "Goal contains specific technologies and details")
        elif clarity.specificity < 0.4:
            add("Low Goal Specificity", clarity.specificity, 0.15, FactorImpact.NEGATIVE,
                "Goal lacks specific details and technologies")

        if clarity.actionability >= 0.7:
            add("Clear Action Items", clarity.actionability, 0.15, FactorImpact.POSITIVE,
                "Goal contains clear, actionable instructions")
        elif clarity.actionability < 0.4:
            add("Ambiguous Instructions", clarity.actionability, 0.15, FactorImpact.NEGATIVE,
                "Goal lacks clear action items")

        if historical.data_points > 5 and historical.similar_goal_success_rate >= 0.8:
            add("Strong Historical Success", historical.similar_goal_success_rate, 0.2,
                FactorImpact.POSITIVE, "Similar goals have high success rate")
        elif historical.data_points > 3 and historical.similar_goal_success_rate < 0.5:
            add("Low Historical Success", historical.similar_goal_success_rate, 0.2,
                FactorImpact.NEGATIVE, "Similar goals have struggled in the past")

        if historical.recent_trend >= 0.7:
            add("Improving Trend", historical.recent_trend, 0.1, FactorImpact.POSITIVE,
                "Recent performance shows improvement")
        elif historical.recent_trend < 0.4:
            add("Declining Trend", historical.recent_trend, 0.1, FactorImpact.NEGATIVE,
                "Recent performance shows decline")

        if complexity.task_count > 8:
            add("High Task Count", complexity.task_count, 0.15, FactorImpact.NEGATIVE,
                "Many tasks increase execution complexity")

        if complexity.risk_level >= 0.7:
            add("Elevated Risk Level", complexity.risk_level, 0.15, FactorImpact.NEGATIVE,
                "Plan has elevated risk factors")
        elif complexity.risk_level < 0.4:
            add("Low Risk Level", complexity.risk_level, 0.1, FactorImpact.POSITIVE,
                "Plan has minimal risk factors")

        return factors

    def recommend(
        self,
        confidence: float,
        level: ConfidenceLevel,
        factors: list[ConfidenceFactor],
    ) -> ExecutionRecommendation:
        negative = [f for f in factors if f.impact == FactorImpact.NEGATIVE]

        if confidence < self._config.min_confidence_threshold:
            caution = CautionLevel.HIGH
        elif confidence < self._config.caution_threshold:
            caution = CautionLevel.MEDIUM
        elif len(negative) > 2:
            caution = CautionLevel.LOW
        else:
            caution = CautionLevel.NONE

        validation: list[str] = []
        mitigation: list[str] = []
        for factor in negative:
            if "Specificity" in factor.name or "Ambiguous" in factor.name:
                validation.append("Request additional context or clarification")
                mitigation.append("Break down into smaller, more specific goals")
            if "Historical" in factor.name:
                validation.append("Review past failures for similar goals")
                mitigation.append("Apply learnings from previous attempts")
            if "Task Count" in factor.name or "Risk" in factor.name:
                validation.append("Validate task dependencies")
                mitigation.append("Implement incremental execution with checkpoints")

        return ExecutionRecommendation(
            proceed_with_execution=confidence >= self._config.min_confidence_threshold,
            caution_level=caution,
            suggested_approach=SUGGESTED_APPROACH[level],
            additional_validation=list(dict.fromkeys(validation)),
            risk_mitigation=list(dict.fromkeys(mitigation)),
        )

    # ------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------

    def get_assessment(self, assessment_id: str) -> ConfidenceAssessment | None:
        return self._assessments.get(assessment_id)

    @property
    def assessments(self) -> list[ConfidenceAssessment]:
        return list(self._assessments.values())

    def average_confidence(self) -> float:
        if not self._assessments:
            return 0.0
        return sum(a.overall_confidence for a in self._assessments.values()) / len(self._assessments)
