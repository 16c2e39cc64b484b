import asyncio
import logging
from typing import List

from ..errors import RewriteError
from ..models import EvaluationRequest, EvaluationResult, RewriteIterationResult
from . import templates
from .chunking import chunk, reassemble
from .orchestrator import PhaseOrchestrator
from .report import format_rewrite_report

logger = logging.getLogger(__name__)


def fallback_reasoning(original_score: int, rewritten_score: int) -> str:
    """Explanation used when the provider returns no reasoning text."""
    improvement = rewritten_score - original_score
    if improvement > 0:
        direction = f"improved by {improvement} points"
    elif improvement < 0:
        direction = f"dropped by {-improvement} points"
    else:
        direction = "did not change"
    return (
        f"The score {direction}, from {original_score}/100 to {rewritten_score}/100. "
        "The provider returned no further explanation."
    )


class RewriteLoop:
    """
    One rewrite iteration: evaluate, rewrite, re-evaluate, explain.

    There is no retry when the rewrite scores lower; a negative improvement is
    reported as-is.
    """

    def __init__(self, orchestrator: PhaseOrchestrator) -> None:
        self.orchestrator = orchestrator
        self.gateway = orchestrator.gateway
        self.prompts = orchestrator.prompts

    async def _evaluate(self, request: EvaluationRequest, text: str) -> EvaluationResult:
        # Rewrite instructions steer the rewrite only, never the scoring
        return await self.orchestrator.evaluate(
            EvaluationRequest(text=text, provider=request.provider, mode=request.mode)
        )

    async def _rewrite_text(self, request: EvaluationRequest, original_score: int) -> str:
        parts = chunk(request.text, self.orchestrator.word_threshold)
        if len(parts) > 1:
            logger.info(f"Rewriting {len(parts)} parts in order")

        rewritten: List[str] = []
        for i, part in enumerate(parts, 1):
            if i > 1 and self.orchestrator.chunk_delay_seconds > 0:
                await asyncio.sleep(self.orchestrator.chunk_delay_seconds)
            prompt = self.prompts.render(
                templates.REWRITE,
                original_score=original_score,
                custom_instructions=request.custom_instructions,
                part_index=i,
                part_count=len(parts),
                text=part,
            )
            output = (await self.gateway.invoke(request.provider, prompt)).strip()
            if not output:
                raise RewriteError(
                    f"{request.provider.value} returned an empty rewrite"
                    + (f" for part {i} of {len(parts)}." if len(parts) > 1 else ".")
                )
            rewritten.append(output)
        return reassemble(rewritten) if len(rewritten) > 1 else rewritten[0]

    async def rewrite(self, request: EvaluationRequest) -> RewriteIterationResult:
        self.gateway.ensure_available(request.provider)

        original = await self._evaluate(request, request.text)
        logger.info(f"Original text scored {original.final_score}/100; requesting rewrite")

        rewritten_text = await self._rewrite_text(request, original.final_score)
        rewritten = await self._evaluate(request, rewritten_text)
        logger.info(f"Rewritten text scored {rewritten.final_score}/100")

        prompt = self.prompts.render(
            templates.REWRITE_REASONING,
            original_score=original.final_score,
            original_text=request.text,
            rewritten_score=rewritten.final_score,
            rewritten_text=rewritten_text,
            improvement=rewritten.final_score - original.final_score,
        )
        reasoning = (await self.gateway.invoke(request.provider, prompt)).strip()
        if not reasoning:
            logger.warning(f"{request.provider.value} returned no rewrite reasoning; using a score summary")
            reasoning = fallback_reasoning(original.final_score, rewritten.final_score)

        result = RewriteIterationResult(
            original_text=request.text,
            rewritten_text=rewritten_text,
            original_score=original.final_score,
            rewritten_score=rewritten.final_score,
            reasoning=reasoning,
            original_result=original,
            rewritten_result=rewritten,
        )
        result.formatted_report = format_rewrite_report(result)
        return result
