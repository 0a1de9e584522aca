"""CLI 入口模块 -- python -m autoops.pipeline "<goal>"

以 time_scale=0 运行一次 Goal 并打印摘要；--json 输出完整 RunOutcome。
"""

import argparse
import asyncio
import sys

from autoops.core.models import RunOptions, RunOutcome

from .config import load_pipeline_config
from .orchestrator import Orchestrator, build_services


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m autoops.pipeline",
        description="运行一次 Goal 编排流水线",
    )
    parser.add_argument("goal", help="目标文本")
    parser.add_argument("--context", default=None, help="附加上下文")
    parser.add_argument("--skip-execution", action="store_true", help="只规划不执行")
    parser.add_argument("--parallel", action="store_true", help="有界并行执行")
    parser.add_argument("--proceed", action="store_true", help="需要澄清时继续执行")
    parser.add_argument("--json", action="store_true", help="输出完整 RunOutcome JSON")
    return parser


def format_summary(outcome: RunOutcome) -> str:
    """渲染人类可读的摘要"""
    lines = [
        f"Run:     {outcome.run_id}",
        f"Status:  {outcome.status}  (phase: {outcome.final_phase})",
    ]
    if outcome.intent:
        lines.append(f"Intent:  {outcome.intent.intent_type} ({outcome.intent.confidence})")
    if outcome.explanation:
        lines.append("")
        lines.append(outcome.explanation)
    if outcome.safety:
        lines.append(
            f"Safety:  {outcome.safety.safety_level} (score {outcome.safety.safety_score})"
        )
    if outcome.confidence:
        lines.append(
            f"Confidence: {outcome.confidence.overall_confidence} "
            f"({outcome.confidence.confidence_level})"
        )
    if outcome.tasks:
        lines.append("")
        lines.append("Tasks:")
        for task in outcome.tasks:
            lines.append(f"  [{task.status}] {task.title}")
    if outcome.summary.total:
        s = outcome.summary
        lines.append(
            f"Summary: {s.completed} completed, {s.failed} failed, {s.skipped} skipped "
            f"in {s.total_duration_ms}ms"
        )
    if outcome.reflection:
        lines.append(f"Score:   {outcome.reflection.overall_score}/100")
    if outcome.error:
        lines.append(f"Error:   [{outcome.error.kind}] {outcome.error.message}")
    return "\n".join(lines)


async def run_goal(args: argparse.Namespace) -> RunOutcome:
    config = load_pipeline_config()
    config.executor.time_scale = 0.0
    orchestrator = Orchestrator(build_services(config))
    options = RunOptions(
        skip_execution=args.skip_execution,
        parallel_execution=args.parallel,
        clarification_policy="proceed" if args.proceed else "abort",
    )
    return await orchestrator.process_goal(args.goal, args.context, options)


def main(argv: list[str] | None = None) -> int:
    """CLI 主入口，Run 未成功时返回非零退出码"""
    args = build_parser().parse_args(argv)
    outcome = asyncio.run(run_goal(args))
    if args.json:
        print(outcome.model_dump_json(indent=2))
    else:
        print(format_summary(outcome))
    return 0 if outcome.success else 1


if __name__ == "__main__":
    sys.exit(main())
