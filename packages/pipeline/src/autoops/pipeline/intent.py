"""IntentRouter -- 输入意图分类

基于锚定正则 + 关键字重叠 + 启发式规则计算三个独立分数：
ambiguity / information / execution，并按固定顺序判定意图。
"""

import re
from datetime import UTC, datetime

import structlog
from ulid import ULID

from autoops.core.models import IntentClassification, IntentType

from .scoring import round2

log = structlog.get_logger()

# 信息查询
INFORMATION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^what\s+(is|are|does|do|can|will|would|should)", re.I),
    re.compile(r"^why\s+(is|are|does|do|did|can|should)", re.I),
    re.compile(r"^how\s+(does|do|can|to|should|is|are)", re.I),
    re.compile(r"^explain\s", re.I),
    re.compile(r"^describe\s", re.I),
    re.compile(r"^tell\s+me\s+(about|what|why|how)", re.I),
    re.compile(r"^can\s+you\s+(explain|describe|tell)", re.I),
    re.compile(r"\?$"),
]

INFORMATION_KEYWORDS: frozenset[str] = frozenset(
    {
        "what", "why", "how", "explain", "describe", "definition",
        "meaning", "difference", "compare", "versus", "vs",
    }
)

# 执行目标
EXECUTION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^(create|build|make|generate|develop|implement)\s", re.I),
    re.compile(r"^(run|execute|start|launch|deploy|trigger)\s", re.I),
    re.compile(r"^(setup|configure|install|initialize|prepare)\s", re.I),
    re.compile(r"^(update|modify|change|edit|fix|repair)\s", re.I),
    re.compile(r"^(delete|remove|clean|purge)\s", re.I),
    re.compile(r"^(test|validate|verify|check)\s", re.I),
    re.compile(r"^(optimize|improve|enhance|refactor)\s", re.I),
    re.compile(r"^(migrate|move|transfer|copy)\s", re.I),
]

EXECUTION_KEYWORDS: frozenset[str] = frozenset(
    {
        "create", "build", "make", "generate", "develop", "implement",
        "run", "execute", "start", "launch", "deploy", "trigger",
        "setup", "configure", "install", "initialize",
        "update", "modify", "change", "edit", "fix",
        "delete", "remove", "clean",
        "test", "validate", "verify",
        "optimize", "improve", "enhance",
        "pipeline", "workflow", "automation",
    }
)

TECHNICAL_TERMS: frozenset[str] = frozenset(
    {
        "api", "database", "server", "application", "service",
        "website", "page", "component", "function", "script",
        "pipeline", "workflow", "automation", "deployment",
    }
)

# 模糊输入
AMBIGUOUS_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^(do|handle|manage|process)\s+(everything|all|anything|something)", re.I),
    re.compile(r"^(help|assist)\s+(me|with)?$", re.I),
    re.compile(r"^(fix|solve|resolve)\s+(it|this|that|problem|issue)?$", re.I),
    # 指代不明的宾语："make it better"、"handle this"
    re.compile(r"^(do|make|fix|handle|take care of|sort out)\s+(it|this|that|things|stuff)\b", re.I),
]

AMBIGUOUS_KEYWORDS: frozenset[str] = frozenset(
    {
        "everything", "anything", "something", "stuff",
        "things", "it", "this", "that",
        # 缺少度量的比较级
        "better", "nicer", "good", "somehow",
    }
)

AMBIGUOUS_THRESHOLD = 0.7
INFORMATION_THRESHOLD = 0.5
EXECUTION_THRESHOLD = 0.4
FALLBACK_CONFIDENCE = 0.6


class IntentRouter:
    """意图分类器

    每次分类都追加到 history，不会自动清理。
    """

    def __init__(self) -> None:
        self._history: list[IntentClassification] = []

    @property
    def history(self) -> list[IntentClassification]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def classify(self, text: str) -> IntentClassification:
        """对输入文本分类

        判定顺序：ambiguity > 0.7 -> AMBIGUOUS；
        info > exec 且 info > 0.5 -> INFORMATION_QUERY；
        exec > 0.4 -> EXECUTION_GOAL；否则 AMBIGUOUS（固定置信度 0.6）。
        """
        normalized = text.strip().lower()
        words = normalized.split()

        ambiguity = self.ambiguity_score(normalized, words)
        if ambiguity > AMBIGUOUS_THRESHOLD:
            return self._record(
                text,
                IntentType.AMBIGUOUS,
                ambiguity,
                "Input is too vague and lacks specific details",
                "Request more specific information from the user",
                _matched(words, AMBIGUOUS_KEYWORDS),
            )

        info = self.information_score(normalized, words)
        execution = self.execution_score(normalized, words)

        if info > execution and info > INFORMATION_THRESHOLD:
            return self._record(
                text,
                IntentType.INFORMATION_QUERY,
                info,
                "Input is a question seeking information or explanation",
                "Provide a direct answer without executing workflows",
                _matched(words, INFORMATION_KEYWORDS),
            )

        if execution > EXECUTION_THRESHOLD:
            return self._record(
                text,
                IntentType.EXECUTION_GOAL,
                execution,
                "Input contains actionable goal requiring execution",
                "Proceed with planning and workflow execution",
                _matched(words, EXECUTION_KEYWORDS),
            )

        return self._record(
            text,
            IntentType.AMBIGUOUS,
            FALLBACK_CONFIDENCE,
            "Intent is unclear - could be question or action",
            "Request clarification on whether information or execution is needed",
            [],
        )

    @staticmethod
    def ambiguity_score(normalized: str, words: list[str]) -> float:
        score = 0.0
        for pattern in AMBIGUOUS_PATTERNS:
            if pattern.search(normalized):
                score += 0.4

        keyword_matches = sum(1 for w in words if w in AMBIGUOUS_KEYWORDS)
        score += min(keyword_matches * 0.2, 0.4)

        if len(words) < 3:
            score += 0.3

        has_specific_content = any(
            len(w) > 5 and w not in AMBIGUOUS_KEYWORDS for w in words
        )
        if not has_specific_content:
            score += 0.2

        return min(score, 1.0)

    @staticmethod
    def information_score(normalized: str, words: list[str]) -> float:
        score = 0.0
        # 只计首个命中的模式
        if any(p.search(normalized) for p in INFORMATION_PATTERNS):
            score += 0.5

        if "?" in normalized:
            score += 0.3

        keyword_matches = sum(1 for w in words if w in INFORMATION_KEYWORDS)
        score += min(keyword_matches * 0.15, 0.3)

        return min(score, 1.0)

    @staticmethod
    def execution_score(normalized: str, words: list[str]) -> float:
        score = 0.0
        if any(p.search(normalized) for p in EXECUTION_PATTERNS):
            score += 0.5

        keyword_matches = sum(1 for w in words if w in EXECUTION_KEYWORDS)
        score += min(keyword_matches * 0.2, 0.4)

        tech_matches = sum(1 for w in words if w in TECHNICAL_TERMS)
        score += min(tech_matches * 0.1, 0.2)

        return min(score, 1.0)

    def _record(
        self,
        text: str,
        intent_type: IntentType,
        confidence: float,
        reasoning: str,
        suggested_action: str,
        keywords: list[str],
    ) -> IntentClassification:
        classification = IntentClassification(
            classification_id=str(ULID()),
            timestamp=datetime.now(UTC),
            input=text,
            intent_type=intent_type,
            confidence=round2(confidence),
            reasoning=reasoning,
            suggested_action=suggested_action,
            keywords=keywords,
        )
        self._history.append(classification)
        log.debug(
            "intent_classified",
            intent_type=intent_type,
            confidence=classification.confidence,
        )
        return classification

    @staticmethod
    def explain(query: str) -> str:
        """为信息查询生成确定性的直接回答"""
        normalized = query.strip().lower()

        if "autoops" in normalized or "this system" in normalized:
            return (
                "AutoOps is a goal orchestration pipeline for DevOps automation. It classifies "
                "the intent of a goal, screens it for safety risk, estimates confidence, "
                "decomposes it into a dependency-ordered task graph, executes the tasks and "
                "reflects on the outcome."
            )

        if "agent" in normalized and ("what" in normalized or "how" in normalized):
            return (
                "The pipeline is made of cooperating stages: an intent router, a safety gate, "
                "a confidence estimator, a task planner and a task executor, sequenced by an "
                "orchestrator that records every phase transition."
            )

        if "workflow" in normalized:
            return (
                "Workflows are decomposed into tasks from domain templates (data, automation, "
                "analysis, integration). Each task declares its dependencies and the executor "
                "only starts a task once every dependency has succeeded."
            )

        if "learning" in normalized or "evolution" in normalized:
            return (
                "Completed runs are kept in an in-process run history. The confidence estimator "
                "reads that history to estimate success rates for similar goals and the recent "
                "performance trend."
            )

        if "safety" in normalized:
            return (
                "The safety gate checks goals before planning to detect ambiguous, destructive "
                "or risky operations. It blocks unsafe goals, requests clarification for vague "
                "goals and records every decision in an append-only log."
            )

        return (
            "This is an automation pipeline that plans tasks, executes them under dependency "
            "gating and reflects on the result. To execute something, provide a specific goal "
            'such as "Create a CI/CD pipeline for Node.js" or "Deploy a data processing pipeline".'
        )


def _matched(words: list[str], keywords: frozenset[str]) -> list[str]:
    return [w for w in words if w in keywords]
