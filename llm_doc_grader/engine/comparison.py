import asyncio
import logging
from typing import List, Optional

from ..models import ComparisonRequest, ComparisonResult, EvaluationResult, StructuralReport, Winner
from . import templates
from .orchestrator import PhaseOrchestrator
from .report import format_comparison_report
from .structural import StructuralEvaluator

logger = logging.getLogger(__name__)


def adjudicate(score_a: int, score_b: int) -> Winner:
    """Higher score wins; ties resolve to A."""
    return Winner.B if score_b > score_a else Winner.A


class ComparisonEngine:
    """
    Pairwise comparison of two documents.

    Both evaluations run concurrently on the same orchestrator and are joined
    before the winner is decided. A third provider call writes the narrative.
    """

    def __init__(
        self,
        orchestrator: PhaseOrchestrator,
        structural: Optional[StructuralEvaluator] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.gateway = orchestrator.gateway
        self.prompts = orchestrator.prompts
        self.structural = structural or StructuralEvaluator()

    async def _evaluate_both(self, request: ComparisonRequest) -> List[EvaluationResult]:
        tasks = [
            asyncio.ensure_future(self.orchestrator.evaluate(request.request_for(Winner.A))),
            asyncio.ensure_future(self.orchestrator.evaluate(request.request_for(Winner.B))),
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # One side failed: the comparison fails, so stop the other side too
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def compare(self, request: ComparisonRequest) -> ComparisonResult:
        self.gateway.ensure_available(request.provider)
        logger.info(f"Comparing two documents with {request.provider.value} ({request.mode.value})")

        result_a, result_b = await self._evaluate_both(request)
        winner = adjudicate(result_a.final_score, result_b.final_score)
        logger.info(f"Document A: {result_a.final_score}/100, Document B: {result_b.final_score}/100 -> {winner.value}")

        prompt = self.prompts.render(
            templates.COMPARISON,
            score_a=result_a.final_score,
            report_a=result_a.formatted_report,
            score_b=result_b.final_score,
            report_b=result_b.formatted_report,
            winner=winner.value,
            tie=result_a.final_score == result_b.final_score,
        )
        narrative = await self.gateway.invoke(request.provider, prompt)

        result = ComparisonResult(
            winner=winner,
            narrative=narrative,
            formatted_report="",
            result_a=result_a,
            result_b=result_b,
        )
        result.formatted_report = format_comparison_report(result)
        return result

    def compare_structural(self, text_a: str, text_b: str) -> ComparisonResult:
        return compare_structural(text_a, text_b, self.structural)


def compare_structural(
    text_a: str,
    text_b: str,
    evaluator: Optional[StructuralEvaluator] = None,
) -> ComparisonResult:
    """No-model comparison: structural scores only, no provider calls."""
    evaluator = evaluator or StructuralEvaluator()
    report_a = evaluator.evaluate(text_a)
    report_b = evaluator.evaluate(text_b)
    winner = adjudicate(report_a.overall_score, report_b.overall_score)
    result = ComparisonResult(
        winner=winner,
        narrative=structural_narrative(report_a, report_b, winner),
        formatted_report="",
        structural_a=report_a,
        structural_b=report_b,
    )
    result.formatted_report = format_comparison_report(result)
    return result


def structural_narrative(report_a: StructuralReport, report_b: StructuralReport, winner: Winner) -> str:
    markers_a = report_a.markers.as_dict()
    markers_b = report_b.markers.as_dict()
    leads_a = [name for name in markers_a if markers_a[name] > markers_b[name]]
    leads_b = [name for name in markers_b if markers_b[name] > markers_a[name]]

    lines = [
        f"Document A scores {report_a.overall_score}/100 structurally; "
        f"Document B scores {report_b.overall_score}/100."
    ]
    if leads_a:
        lines.append(f"Document A leads on: {', '.join(leads_a)}.")
    if leads_b:
        lines.append(f"Document B leads on: {', '.join(leads_b)}.")
    if report_a.overall_score == report_b.overall_score:
        lines.append("The structural scores are tied; Document A is preferred.")
    else:
        lines.append(f"Document {winner.value} shows the stronger structural profile.")
    return " ".join(lines)
