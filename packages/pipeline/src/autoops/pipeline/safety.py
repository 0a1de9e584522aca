"""SafetyGate -- Goal 安全校验层

按固定顺序的风险模式目录对 goal + context 打分，生成违规、澄清请求与决策日志。
支持对先前校验结果的人工放行（critical 违规除外），放行本身也会记录。
"""

import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from ulid import ULID

from autoops.core.models import (
    ClarificationRequest,
    SafetyDecision,
    SafetyDecisionLog,
    SafetyLevel,
    SafetyStatistics,
    SafetyValidationResult,
    SafetyViolation,
    Severity,
    ViolationCategory,
)

from .config import SafetyConfig

log = structlog.get_logger()


@dataclass(frozen=True)
class PatternRule:
    """风险模式规则"""

    pattern: re.Pattern[str]
    category: ViolationCategory
    severity: Severity
    description: str
    recommendation: str

    def violation(self) -> SafetyViolation:
        return SafetyViolation(
            category=self.category,
            severity=self.severity,
            description=self.description,
            matched_pattern=self.pattern.pattern,
            recommendation=self.recommendation,
        )


def _rule(
    pattern: str,
    category: ViolationCategory,
    severity: Severity,
    description: str,
    recommendation: str,
) -> PatternRule:
    return PatternRule(re.compile(pattern, re.I), category, severity, description, recommendation)


_A = ViolationCategory.AMBIGUITY
_SEC = ViolationCategory.SECURITY
_D = ViolationCategory.DESTRUCTIVE
_R = ViolationCategory.RESOURCE
_E = ViolationCategory.EXTERNAL
_SCO = ViolationCategory.SCOPE

# 规则目录：顺序固定，决定违规列表顺序
PATTERN_CATALOGUE: tuple[PatternRule, ...] = (
    # ambiguity
    _rule(
        r"^(do|make|fix|handle|take care of|sort out)\s+(it|this|that|stuff|things)",
        _A, Severity.MEDIUM,
        "Goal is too vague - unclear what needs to be done",
        "Specify exactly what needs to be done and to what",
    ),
    _rule(
        r"^(improve|optimize|enhance|better)\s*$",
        _A, Severity.HIGH,
        "Goal lacks any specific target or action",
        "Specify what to improve and define success criteria",
    ),
    _rule(
        r"^(something|anything|whatever)",
        _A, Severity.HIGH,
        "Goal is completely undefined",
        "Provide a clear, specific goal",
    ),
    _rule(
        r"^.{1,10}$",
        _A, Severity.MEDIUM,
        "Goal is too short to be actionable",
        "Provide more detail about the desired outcome",
    ),
    _rule(
        r"\?\s*$",
        _A, Severity.LOW,
        "Goal appears to be a question rather than an instruction",
        "Rephrase as an actionable goal statement",
    ),
    # security
    _rule(
        r"\b(password|secret|api[_\-\s]?key|token|credential|private[_\-\s]?key)\b",
        _SEC, Severity.HIGH,
        "Goal mentions sensitive credentials",
        "Ensure secrets are handled securely and not logged",
    ),
    _rule(
        r"\b(sudo|root|admin|administrator)\b.*\b(access|permission|privilege)",
        _SEC, Severity.HIGH,
        "Goal involves elevated privileges",
        "Verify privilege escalation is necessary and authorized",
    ),
    _rule(
        r"\b(disable|bypass|skip)\s*(security|auth|validation|firewall)",
        _SEC, Severity.CRITICAL,
        "Goal attempts to bypass security measures",
        "Security measures should not be bypassed",
    ),
    _rule(
        r"\b(inject|exploit|vulnerability|hack)\b",
        _SEC, Severity.CRITICAL,
        "Goal contains potential security threat keywords",
        "Clarify intent - this appears to involve security vulnerabilities",
    ),
    # destructive
    _rule(
        r"\b(delete|remove|drop|destroy|erase|wipe)\s*(all|everything|\*|database|production|prod)",
        _D, Severity.CRITICAL,
        "Goal involves mass deletion or destruction",
        "Ensure backups exist and confirm this action is intended",
    ),
    _rule(
        r"\bformat\s*(disk|drive|volume)\b",
        _D, Severity.CRITICAL,
        "Goal involves disk formatting",
        "Verify correct target and ensure data is backed up",
    ),
    _rule(
        r"\brm\s+-rf\s+[/\\]?\s*$",
        _D, Severity.CRITICAL,
        "Goal contains dangerous recursive delete command",
        "Specify exact path and verify target is correct",
    ),
    _rule(
        r"\b(truncate|purge)\s*(table|log|data)",
        _D, Severity.HIGH,
        "Goal involves data purging",
        "Ensure data retention requirements are met",
    ),
    # resource
    _rule(
        r"\b(unlimited|infinite|maximum|all\s+available)\s*(resource|cpu|memory|storage|instances)",
        _R, Severity.MEDIUM,
        "Goal requests unlimited resources",
        "Specify reasonable resource limits to prevent cost overruns",
    ),
    _rule(
        r"\b(scale|spawn|create)\s*(\d{3,}|thousands?|millions?)\s*(instance|server|container)",
        _R, Severity.HIGH,
        "Goal involves creating many resources",
        "Verify scale is intended and budget is available",
    ),
    # external
    _rule(
        r"\b(call|access|connect|send\s+to)\s*(external|third[_\-\s]?party|public)\s*(api|service|endpoint)",
        _E, Severity.MEDIUM,
        "Goal involves external service access",
        "Verify external service is authorized and rate limits are respected",
    ),
    _rule(
        r"\b(upload|send|transmit|share)\s*(data|file|information)\s*(to|with)\s*(external|public|internet)",
        _E, Severity.HIGH,
        "Goal involves sending data externally",
        "Ensure data classification allows external sharing",
    ),
    # scope
    _rule(
        r"\b(entire|all|whole|every)\s*(system|infrastructure|network|organization)",
        _SCO, Severity.MEDIUM,
        "Goal has very broad scope",
        "Consider breaking into smaller, targeted goals",
    ),
    _rule(
        r"\b(migrate|upgrade|transform)\s*(everything|all|entire)",
        _SCO, Severity.HIGH,
        "Goal involves large-scale migration",
        "Plan in phases with rollback capability",
    ),
)

COMPLEX_GOAL_PATTERN = re.compile(r"\b(deploy|migrate|setup|configure|implement)\b", re.I)
COMPLEX_GOAL_MIN_LENGTH = 50

SEVERITY_PENALTY: dict[Severity, int] = {
    Severity.CRITICAL: 40,
    Severity.HIGH: 25,
    Severity.MEDIUM: 15,
    Severity.LOW: 5,
}

# 类别 -> (问题, 原因, 建议)，按输出顺序排列
_CLARIFICATION_TEMPLATES: dict[ViolationCategory, tuple[str, str, list[str]]] = {
    ViolationCategory.AMBIGUITY: (
        "Can you provide more specific details about what you want to achieve?",
        "The goal is ambiguous and could be interpreted in multiple ways",
        [
            "Add specific technologies or systems involved",
            "Define measurable success criteria",
            "Specify the scope (which services, environments, etc.)",
        ],
    ),
    ViolationCategory.DESTRUCTIVE: (
        "Are you sure you want to perform this destructive operation?",
        "This goal involves deleting or destroying resources",
        [
            "Confirm backups are in place",
            "Specify exact targets to avoid accidental damage",
            "Consider a dry-run first",
        ],
    ),
    ViolationCategory.SECURITY: (
        "Please confirm the security implications are understood",
        "This goal involves security-sensitive operations",
        [
            "Verify you have proper authorization",
            "Ensure audit logging is enabled",
            "Consider security review before proceeding",
        ],
    ),
    ViolationCategory.SCOPE: (
        "Can you narrow the scope of this goal?",
        "The goal has a very broad scope which increases risk",
        [
            "Break into smaller, phased goals",
            "Start with a single environment or system",
            "Define clear boundaries",
        ],
    ),
    ViolationCategory.RESOURCE: (
        "Can you specify resource limits?",
        "Unbounded resource requests can cause cost or availability issues",
        [
            "Define maximum instance count",
            "Set budget limits",
            "Specify scaling boundaries",
        ],
    ),
}


class SafetyGate:
    """安全校验门

    校验历史与决策日志都是 append-only；同一实例可跨多次 Run 复用，
    以支持对先前校验结果的人工放行。
    """

    def __init__(self, config: SafetyConfig | None = None) -> None:
        self._config = config or SafetyConfig()
        self._history: list[SafetyValidationResult] = []
        self._decision_log: list[SafetyDecisionLog] = []

    @property
    def config(self) -> SafetyConfig:
        return self._config

    # ------------------------------------------------------------
    # 校验
    # ------------------------------------------------------------

    def validate(self, goal: str, context: str | None = None) -> SafetyValidationResult:
        """校验 goal，记录校验历史与决策日志"""
        violations = self.detect_violations(goal, context)
        clarifications = self.generate_clarifications(violations)
        score = self.calculate_score(violations)
        level = self.determine_level(violations, score)
        approved = self.determine_approval(level, violations)

        result = SafetyValidationResult(
            validation_id=str(ULID()),
            timestamp=datetime.now(UTC),
            goal=goal,
            context=context,
            safety_level=level,
            is_approved=approved,
            violations=violations,
            clarifications_needed=clarifications,
            safety_score=score,
            summary=_summary(level, violations, approved),
            recommendations=list(dict.fromkeys(v.recommendation for v in violations)),
        )

        self._history.append(result)
        decision = self._log_decision(result)

        log.info(
            "safety_validated",
            validation_id=result.validation_id,
            safety_level=level,
            safety_score=score,
            approved=approved,
            decision=decision,
            violation_count=len(violations),
        )
        return result

    def detect_violations(self, goal: str, context: str | None = None) -> list[SafetyViolation]:
        full_text = f"{goal} {context or ''}"
        violations: list[SafetyViolation] = []

        for rule in PATTERN_CATALOGUE:
            if not rule.pattern.search(full_text):
                continue
            if rule.category == ViolationCategory.DESTRUCTIVE and self._config.allow_destructive_operations:
                continue
            if rule.category == ViolationCategory.EXTERNAL and self._config.allow_external_access:
                continue
            violations.append(rule.violation())

        # 复杂目标缺少上下文
        if not context and len(goal) > COMPLEX_GOAL_MIN_LENGTH and COMPLEX_GOAL_PATTERN.search(goal):
            violations.append(
                SafetyViolation(
                    category=ViolationCategory.AMBIGUITY,
                    severity=Severity.LOW,
                    description="Complex goal lacks additional context",
                    recommendation="Provide context about environment, constraints, or requirements",
                )
            )

        return violations

    @staticmethod
    def generate_clarifications(violations: list[SafetyViolation]) -> list[ClarificationRequest]:
        by_category: dict[ViolationCategory, list[SafetyViolation]] = defaultdict(list)
        for v in violations:
            by_category[v.category].append(v)

        clarifications: list[ClarificationRequest] = []
        for category, (question, reason, suggestions) in _CLARIFICATION_TEMPLATES.items():
            if category not in by_category:
                continue
            if category == ViolationCategory.SECURITY:
                required = any(v.severity == Severity.CRITICAL for v in by_category[category])
            else:
                required = category in (ViolationCategory.AMBIGUITY, ViolationCategory.DESTRUCTIVE)
            clarifications.append(
                ClarificationRequest(
                    category=category,
                    question=question,
                    reason=reason,
                    suggestions=suggestions,
                    required=required,
                )
            )
        return clarifications

    @staticmethod
    def calculate_score(violations: list[SafetyViolation]) -> int:
        score = 100 - sum(SEVERITY_PENALTY[v.severity] for v in violations)
        return max(0, score)

    @staticmethod
    def determine_level(violations: list[SafetyViolation], score: int) -> SafetyLevel:
        has_critical = any(v.severity == Severity.CRITICAL for v in violations)
        high_count = sum(1 for v in violations if v.severity == Severity.HIGH)

        if has_critical or score < 20:
            return SafetyLevel.BLOCKED
        if high_count >= 2 or score < 50:
            return SafetyLevel.WARNING
        if violations or score < 80:
            return SafetyLevel.CAUTION
        return SafetyLevel.SAFE

    def determine_approval(self, level: SafetyLevel, violations: list[SafetyViolation]) -> bool:
        if level == SafetyLevel.BLOCKED:
            return False
        if self._config.strict_mode and level != SafetyLevel.SAFE:
            return False
        return not any(v.severity == Severity.CRITICAL for v in violations)

    # ------------------------------------------------------------
    # 决策日志与人工放行
    # ------------------------------------------------------------

    @staticmethod
    def decision_for(result: SafetyValidationResult) -> SafetyDecision:
        if not result.is_approved and result.safety_level == SafetyLevel.BLOCKED:
            return SafetyDecision.BLOCKED
        if any(c.required for c in result.clarifications_needed):
            return SafetyDecision.CLARIFICATION_REQUIRED
        if result.violations:
            return SafetyDecision.MODIFIED
        return SafetyDecision.APPROVED

    def _log_decision(self, result: SafetyValidationResult) -> SafetyDecision:
        decision = self.decision_for(result)
        self._decision_log.append(
            SafetyDecisionLog(
                log_id=str(ULID()),
                timestamp=datetime.now(UTC),
                validation_id=result.validation_id,
                goal=result.goal,
                decision=decision,
                safety_level=result.safety_level,
                reason=result.summary,
                violations=result.violations,
            )
        )
        return decision

    def approve_with_override(self, validation_id: str, reason: str) -> bool:
        """人工放行先前的校验结果

        存在 critical 违规时拒绝放行。

        Returns:
            True 如果放行成功
        """
        result = self.get_validation(validation_id)
        if result is None:
            log.error("safety_override_unknown_validation", validation_id=validation_id)
            return False

        if any(v.severity == Severity.CRITICAL for v in result.violations):
            log.error(
                "safety_override_refused",
                validation_id=validation_id,
                reason="critical violation present",
            )
            return False

        self._decision_log.append(
            SafetyDecisionLog(
                log_id=str(ULID()),
                timestamp=datetime.now(UTC),
                validation_id=validation_id,
                goal=result.goal,
                decision=SafetyDecision.APPROVED,
                safety_level=result.safety_level,
                reason="Manual override applied",
                violations=result.violations,
                applied_override=True,
                override_reason=reason,
            )
        )
        log.warning("safety_override_applied", validation_id=validation_id, override_reason=reason)
        return True

    def is_overridden(self, validation_id: str) -> bool:
        return any(
            d.applied_override and d.validation_id == validation_id for d in self._decision_log
        )

    # ------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------

    def get_validation(self, validation_id: str) -> SafetyValidationResult | None:
        return next((v for v in self._history if v.validation_id == validation_id), None)

    @property
    def history(self) -> list[SafetyValidationResult]:
        return list(self._history)

    @property
    def decision_log(self) -> list[SafetyDecisionLog]:
        return list(self._decision_log)

    def recent_decisions(self, limit: int = 10) -> list[SafetyDecisionLog]:
        return self._decision_log[-limit:]

    def blocked_goals(self) -> list[SafetyDecisionLog]:
        return [d for d in self._decision_log if d.decision == SafetyDecision.BLOCKED]

    def statistics(self) -> SafetyStatistics:
        by_category: dict[str, int] = defaultdict(int)
        for result in self._history:
            for v in result.violations:
                by_category[str(v.category)] += 1

        decisions = [d.decision for d in self._decision_log]
        total = len(self._history)
        return SafetyStatistics(
            total_validations=total,
            approved=decisions.count(SafetyDecision.APPROVED),
            blocked=decisions.count(SafetyDecision.BLOCKED),
            clarification_required=decisions.count(SafetyDecision.CLARIFICATION_REQUIRED),
            average_safety_score=(
                sum(r.safety_score for r in self._history) / total if total else 100.0
            ),
            violations_by_category=dict(by_category),
        )

    def reset(self) -> None:
        self._history.clear()
        self._decision_log.clear()


def _summary(level: SafetyLevel, violations: list[SafetyViolation], approved: bool) -> str:
    if level == SafetyLevel.SAFE:
        return "Goal passed safety validation. No concerns detected."
    if level == SafetyLevel.BLOCKED:
        return (
            f"Goal blocked due to {len(violations)} safety concern(s). "
            "Critical issues must be addressed."
        )
    if not approved:
        return f"Goal requires clarification. {len(violations)} concern(s) need to be addressed."
    return (
        f"Goal approved with {len(violations)} advisory note(s). "
        "Review recommendations before proceeding."
    )
