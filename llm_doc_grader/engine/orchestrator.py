"""
Phased evaluation protocol for one document.

Comprehensive mode runs a strict state machine:

    INITIAL -> [PUSHBACK]? -> VALIDATION -> FINAL_CHECK -> DONE

PUSHBACK only runs when the initial score is below 95; otherwise a fixed
placeholder record is logged and no call is made. Quick mode runs the
condensed battery, pushes back only below 70, and logs placeholders for the
last two phases.

Scores only ratchet upward: the final score is the maximum defined score in
the phase log. A phase whose reply carries no score is logged as unscored;
the documented fallback default is used to drive the following prompts, and
becomes the final score only when no phase produced one.

Documents longer than the chunk threshold are evaluated phase by phase over
their chunks, in order; each phase's score is the maximum of its chunk scores.
Any provider failure aborts the whole evaluation.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Awaitable, Callable, Dict, List, Optional

from ..models import EvaluationRequest, EvaluationResult, Mode, PhaseRecord
from . import templates
from .chunking import DEFAULT_WORD_THRESHOLD, chunk, word_count
from .providers import ProviderGateway
from .report import format_phase_report
from .scoring import ScorePolicy, extract

logger = logging.getLogger(__name__)

PUSHBACK_THRESHOLD = 95
QUICK_PUSHBACK_THRESHOLD = 70

PUSHBACK_SKIPPED = "No pushback required (score ≥ 95/100)"
QUICK_PLACEHOLDERS = {
    2: "Quick Mode - Score validated",
    3: "Quick Mode - Consistency verified",
    4: "Quick Mode - Assessment complete",
}


class Phase(IntEnum):
    INITIAL = 1
    PUSHBACK = 2
    VALIDATION = 3
    FINAL_CHECK = 4
    DONE = 5


PHASE_NAMES = {
    Phase.INITIAL: "initial",
    Phase.PUSHBACK: "pushback",
    Phase.VALIDATION: "validation",
    Phase.FINAL_CHECK: "final_check",
}

# Per-phase precedence when a reply quotes several "N/100" values
COMPREHENSIVE_POLICIES: Dict[Phase, ScorePolicy] = {
    Phase.INITIAL: ScorePolicy.MAX,
    Phase.PUSHBACK: ScorePolicy.MAX,
    Phase.VALIDATION: ScorePolicy.MAX,
    Phase.FINAL_CHECK: ScorePolicy.MAX,
}
QUICK_POLICIES: Dict[Phase, ScorePolicy] = {
    Phase.INITIAL: ScorePolicy.LAST,
    Phase.PUSHBACK: ScorePolicy.LAST,
}


@dataclass
class _Segment:
    index: int
    text: str
    score: int = 0
    last_response: str = ""


class _EvaluationRun:
    """State for one evaluation. Owns its phase log; never shared between runs."""

    def __init__(
        self,
        orchestrator: "PhaseOrchestrator",
        request: EvaluationRequest,
        chunks: List[str],
    ) -> None:
        self.gateway = orchestrator.gateway
        self.prompts = orchestrator.prompts
        self.chunk_delay = orchestrator.chunk_delay_seconds
        self.request = request
        self.quick = request.mode is Mode.QUICK
        self.policies = QUICK_POLICIES if self.quick else COMPREHENSIVE_POLICIES
        self.segments = [_Segment(i, text) for i, text in enumerate(chunks, 1)]
        self.phases: List[PhaseRecord] = []
        self.fallbacks: List[int] = []
        self.state = Phase.INITIAL

    @property
    def chunked(self) -> bool:
        return len(self.segments) > 1

    async def run(self) -> List[PhaseRecord]:
        handlers: Dict[Phase, Callable[[], Awaitable[Phase]]] = {
            Phase.INITIAL: self._initial,
            Phase.PUSHBACK: self._pushback,
            Phase.VALIDATION: self._validation,
            Phase.FINAL_CHECK: self._final_check,
        }
        while self.state is not Phase.DONE:
            self.state = await handlers[self.state]()
        return self.phases

    def final_score(self) -> int:
        defined = [p.extracted_score for p in self.phases if p.scored]
        if defined:
            return max(defined)
        # No phase carried a score: fall back to the documented default
        return max(self.fallbacks)

    async def _ask(self, phase: Phase, build_prompt: Callable[[_Segment], str]) -> int:
        policy = self.policies[phase]
        phase_scores: List[int] = []
        for seg in self.segments:
            if seg.index > 1 and self.chunk_delay > 0:
                await asyncio.sleep(self.chunk_delay)
            prompt = build_prompt(seg)
            response = await self.gateway.invoke(self.request.provider, prompt)
            extraction = extract(response, policy)
            defined = extraction.source != "default"
            if not defined:
                self.fallbacks.append(extraction.score)
            self.phases.append(
                PhaseRecord(
                    phase_index=int(phase),
                    name=PHASE_NAMES[phase],
                    prompt_sent=prompt,
                    raw_response=response,
                    extracted_score=extraction.score if defined else None,
                    score_source=extraction.source,
                    chunk_index=seg.index if self.chunked else None,
                )
            )
            seg.score = max(seg.score, extraction.score)
            seg.last_response = response
            phase_scores.append(extraction.score)
            if self.chunked:
                logger.info(f"Phase {int(phase)}, segment {seg.index}/{len(self.segments)}: {extraction.score}/100")

        phase_score = max(phase_scores)
        logger.info(f"Phase {int(phase)} complete. Score: {phase_score}/100")
        return phase_score

    def _placeholder(self, phase: Phase, text: str) -> None:
        self.phases.append(
            PhaseRecord(
                phase_index=int(phase),
                name=PHASE_NAMES[phase],
                prompt_sent="",
                raw_response=text,
                extracted_score=None,
                skipped=True,
            )
        )
        logger.info(f"Phase {int(phase)} skipped")

    async def _initial(self) -> Phase:
        template = templates.INITIAL_QUICK if self.quick else templates.INITIAL
        score = await self._ask(
            Phase.INITIAL,
            lambda seg: self.prompts.render(
                template,
                text=seg.text,
                custom_instructions=self.request.custom_instructions,
                chunk_index=seg.index,
                chunk_count=len(self.segments),
            ),
        )
        threshold = QUICK_PUSHBACK_THRESHOLD if self.quick else PUSHBACK_THRESHOLD
        if score < threshold:
            return Phase.PUSHBACK
        if self.quick:
            self._placeholder(Phase.PUSHBACK, QUICK_PLACEHOLDERS[2])
            return self._quick_tail()
        self._placeholder(Phase.PUSHBACK, PUSHBACK_SKIPPED)
        return Phase.VALIDATION

    async def _pushback(self) -> Phase:
        if self.quick:
            await self._ask(
                Phase.PUSHBACK,
                lambda seg: self.prompts.render(
                    templates.PUSHBACK_QUICK,
                    score=seg.score,
                    outperforming=100 - seg.score,
                    previous=seg.last_response,
                ),
            )
            return self._quick_tail()
        await self._ask(
            Phase.PUSHBACK,
            lambda seg: self.prompts.render(
                templates.PUSHBACK,
                score=seg.score,
                outperforming=100 - seg.score,
                text=seg.text,
            ),
        )
        return Phase.VALIDATION

    async def _validation(self) -> Phase:
        await self._ask(
            Phase.VALIDATION,
            lambda seg: self.prompts.render(
                templates.VALIDATION,
                current_score=seg.score,
                outperforming=100 - seg.score,
                previous=seg.last_response,
            ),
        )
        return Phase.FINAL_CHECK

    async def _final_check(self) -> Phase:
        await self._ask(
            Phase.FINAL_CHECK,
            lambda seg: self.prompts.render(templates.FINAL_CHECK, final_score=seg.score),
        )
        return Phase.DONE

    def _quick_tail(self) -> Phase:
        self._placeholder(Phase.VALIDATION, QUICK_PLACEHOLDERS[3])
        self._placeholder(Phase.FINAL_CHECK, QUICK_PLACEHOLDERS[4])
        return Phase.DONE


class PhaseOrchestrator:
    """
    Runs the phased prompting protocol for one document.

    The gateway is injected; the orchestrator itself is stateless across
    evaluate() calls, so concurrent evaluations never share a phase log.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        prompts: Optional[templates.PromptLibrary] = None,
        word_threshold: int = DEFAULT_WORD_THRESHOLD,
        chunk_delay_seconds: float = 0.0,
    ) -> None:
        self.gateway = gateway
        self.prompts = prompts or templates.PromptLibrary()
        self.word_threshold = word_threshold
        self.chunk_delay_seconds = chunk_delay_seconds

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResult:
        # Reject unknown/unavailable providers before any network call
        self.gateway.ensure_available(request.provider)

        chunks = chunk(request.text, self.word_threshold)
        logger.info(
            f"Starting {request.mode.value} evaluation with {request.provider.value} "
            f"({word_count(request.text)} words, {len(chunks)} segment(s))"
        )

        run = _EvaluationRun(self, request, chunks)
        phases = await run.run()
        final_score = run.final_score()

        report = format_phase_report(
            phases,
            final_score,
            quick=request.mode is Mode.QUICK,
            segment_count=len(chunks),
            word_count=word_count(request.text),
        )
        logger.info(f"Evaluation complete. Final score: {final_score}/100")
        return EvaluationResult(
            phases=tuple(phases),
            final_score=final_score,
            formatted_report=report,
            provider=request.provider,
            mode=request.mode,
            chunk_count=len(chunks),
        )
