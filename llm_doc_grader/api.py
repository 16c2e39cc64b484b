"""
Public entry points.

Each coroutine accepts either plain arguments or a prepared request object.
Provider, mode and chunking defaults come from config.yaml (see config.py).
A gateway may be injected; otherwise one is built for the requested provider.
"""
from __future__ import annotations

from typing import Any, Optional, Union

from .config import GraderConfig, load_config
from .engine.comparison import ComparisonEngine, compare_structural
from .engine.orchestrator import PhaseOrchestrator
from .engine.providers import ProviderGateway, build_gateway
from .engine.rewrite import RewriteLoop
from .engine.structural import StructuralEvaluator
from .models import (
    ComparisonRequest,
    ComparisonResult,
    EvaluationRequest,
    EvaluationResult,
    Provider,
    RewriteIterationResult,
    StructuralReport,
)


def build_orchestrator(
    provider: Any,
    config: Optional[GraderConfig] = None,
    gateway: Optional[ProviderGateway] = None,
) -> PhaseOrchestrator:
    cfg = config or load_config()
    if gateway is None:
        gateway = build_gateway(cfg, only=[Provider.parse(provider)])
    return PhaseOrchestrator(
        gateway,
        word_threshold=cfg.chunk_word_threshold,
        chunk_delay_seconds=cfg.chunk_delay_seconds,
    )


def _evaluation_request(
    text: Union[str, EvaluationRequest],
    provider: Any,
    mode: Any,
    custom_instructions: Optional[str],
    cfg: GraderConfig,
) -> EvaluationRequest:
    if isinstance(text, EvaluationRequest):
        return text
    return EvaluationRequest(
        text=text,
        provider=provider or cfg.default_provider,
        mode=mode or cfg.mode,
        custom_instructions=custom_instructions,
    )


async def evaluate_text(
    text: Union[str, EvaluationRequest],
    provider: Any = None,
    mode: Any = None,
    custom_instructions: Optional[str] = None,
    config: Optional[GraderConfig] = None,
    gateway: Optional[ProviderGateway] = None,
) -> EvaluationResult:
    """
    Run the phased protocol on one text.

    Returns:
        EvaluationResult whose to_dict() carries overallScore and formattedReport.

    Raises:
        UnknownProviderError: provider id is not supported (no call is made).
        ProviderError: any provider call failed; no partial result exists.
    """
    cfg = config or load_config()
    request = _evaluation_request(text, provider, mode, custom_instructions, cfg)
    orchestrator = build_orchestrator(request.provider, cfg, gateway)
    return await orchestrator.evaluate(request)


async def compare_texts(
    text_a: Union[str, ComparisonRequest],
    text_b: Optional[str] = None,
    provider: Any = None,
    mode: Any = None,
    config: Optional[GraderConfig] = None,
    gateway: Optional[ProviderGateway] = None,
) -> ComparisonResult:
    """Evaluate two texts concurrently and pick the winner (A on a tie)."""
    cfg = config or load_config()
    if isinstance(text_a, ComparisonRequest):
        request = text_a
    else:
        request = ComparisonRequest(
            text_a=text_a,
            text_b=text_b,
            provider=provider or cfg.default_provider,
            mode=mode or cfg.mode,
        )
    orchestrator = build_orchestrator(request.provider, cfg, gateway)
    return await ComparisonEngine(orchestrator).compare(request)


async def rewrite_text(
    text: Union[str, EvaluationRequest],
    provider: Any = None,
    mode: Any = None,
    custom_instructions: Optional[str] = None,
    config: Optional[GraderConfig] = None,
    gateway: Optional[ProviderGateway] = None,
) -> RewriteIterationResult:
    """One evaluate, rewrite, re-evaluate, explain iteration."""
    cfg = config or load_config()
    request = _evaluation_request(text, provider, mode, custom_instructions, cfg)
    orchestrator = build_orchestrator(request.provider, cfg, gateway)
    return await RewriteLoop(orchestrator).rewrite(request)


def structural_evaluate(text: str) -> StructuralReport:
    return StructuralEvaluator().evaluate(text)


def structural_compare(text_a: str, text_b: str) -> ComparisonResult:
    """Provider-free comparison using structural scores only."""
    return compare_structural(text_a, text_b)
