from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import UnknownProviderError


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    PERPLEXITY = "perplexity"
    DEEPSEEK = "deepseek"
    GOOGLE = "google"

    @classmethod
    def parse(cls, value: Any) -> "Provider":
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        for member in cls:
            if member.value == name:
                return member
        raise UnknownProviderError(str(value))


class Mode(str, Enum):
    QUICK = "quick"
    COMPREHENSIVE = "comprehensive"

    @classmethod
    def parse(cls, value: Any) -> "Mode":
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        for member in cls:
            if member.value == name:
                return member
        raise ValueError(f"Unsupported mode: {value!r} (expected 'quick' or 'comprehensive')")


class Winner(str, Enum):
    A = "A"
    B = "B"


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string.")
    return value


@dataclass
class EvaluationRequest:
    text: str
    provider: Provider
    mode: Mode = Mode.COMPREHENSIVE
    custom_instructions: Optional[str] = None

    def __post_init__(self) -> None:
        _require_text(self.text, "text")
        self.provider = Provider.parse(self.provider)
        self.mode = Mode.parse(self.mode)
        if self.custom_instructions is not None and not self.custom_instructions.strip():
            self.custom_instructions = None


@dataclass
class ComparisonRequest:
    text_a: str
    text_b: str
    provider: Provider
    mode: Mode = Mode.COMPREHENSIVE

    def __post_init__(self) -> None:
        _require_text(self.text_a, "text_a")
        _require_text(self.text_b, "text_b")
        self.provider = Provider.parse(self.provider)
        self.mode = Mode.parse(self.mode)

    def request_for(self, side: Winner) -> EvaluationRequest:
        text = self.text_a if side is Winner.A else self.text_b
        return EvaluationRequest(text=text, provider=self.provider, mode=self.mode)


@dataclass(frozen=True)
class PhaseRecord:
    """One scripted round of prompting; immutable once appended to the phase log."""

    phase_index: int
    name: str
    prompt_sent: str
    raw_response: str
    extracted_score: Optional[int]
    skipped: bool = False
    score_source: Optional[str] = None
    chunk_index: Optional[int] = None

    @property
    def scored(self) -> bool:
        return self.extracted_score is not None


@dataclass
class EvaluationResult:
    phases: Tuple[PhaseRecord, ...]
    final_score: int
    formatted_report: str
    provider: Provider
    mode: Mode
    chunk_count: int = 1

    @property
    def overall_score(self) -> int:
        return self.final_score

    @property
    def unscored(self) -> bool:
        """True when no phase produced a score, so final_score is the fallback default."""
        return not any(p.scored for p in self.phases)

    def scores(self) -> Dict[int, int]:
        """Highest score per phase index across the log (skipped placeholders excluded)."""
        out: Dict[int, int] = {}
        for p in self.phases:
            if p.scored and not p.skipped:
                out[p.phase_index] = max(out.get(p.phase_index, 0), p.extracted_score)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": self.final_score,
            "formattedReport": self.formatted_report,
            "provider": self.provider.value,
            "mode": self.mode.value,
            "chunkCount": self.chunk_count,
            "unscored": self.unscored,
            "phases": [
                {
                    "phaseIndex": p.phase_index,
                    "name": p.name,
                    "chunkIndex": p.chunk_index,
                    "promptSent": p.prompt_sent,
                    "rawResponse": p.raw_response,
                    "extractedScore": p.extracted_score if p.scored else "unscored",
                    "skipped": p.skipped,
                }
                for p in self.phases
            ],
        }


@dataclass(frozen=True)
class StructuralMarkers:
    semantic_compression: int
    inferential_continuity: int
    semantic_topology: int
    cognitive_asymmetry: int
    epistemic_resistance: int
    metacognitive_awareness: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "semanticCompression": self.semantic_compression,
            "inferentialContinuity": self.inferential_continuity,
            "semanticTopology": self.semantic_topology,
            "cognitiveAsymmetry": self.cognitive_asymmetry,
            "epistemicResistance": self.epistemic_resistance,
            "metacognitiveAwareness": self.metacognitive_awareness,
        }


@dataclass
class StructuralReport:
    overall_score: int
    markers: StructuralMarkers
    variance: float
    textual_analysis: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "markers": self.markers.as_dict(),
            "variance": self.variance,
            "textualAnalysis": self.textual_analysis,
        }


@dataclass
class ComparisonResult:
    winner: Winner
    narrative: str
    formatted_report: str
    result_a: Optional[EvaluationResult] = None
    result_b: Optional[EvaluationResult] = None
    structural_a: Optional[StructuralReport] = None
    structural_b: Optional[StructuralReport] = None

    @property
    def score_a(self) -> int:
        if self.result_a is not None:
            return self.result_a.final_score
        return self.structural_a.overall_score if self.structural_a else 0

    @property
    def score_b(self) -> int:
        if self.result_b is not None:
            return self.result_b.final_score
        return self.structural_b.overall_score if self.structural_b else 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "winner": self.winner.value,
            "narrative": self.narrative,
            "formattedReport": self.formatted_report,
            "documentAScore": self.score_a,
            "documentBScore": self.score_b,
        }
        if self.result_a is not None and self.result_b is not None:
            data["documentA"] = self.result_a.to_dict()
            data["documentB"] = self.result_b.to_dict()
        if self.structural_a is not None and self.structural_b is not None:
            data["documentA"] = self.structural_a.to_dict()
            data["documentB"] = self.structural_b.to_dict()
        return data


@dataclass
class RewriteIterationResult:
    original_text: str
    rewritten_text: str
    original_score: int
    rewritten_score: int
    reasoning: str
    formatted_report: str = ""
    original_result: Optional[EvaluationResult] = None
    rewritten_result: Optional[EvaluationResult] = None
    improvement_score: int = field(init=False)

    def __post_init__(self) -> None:
        self.improvement_score = self.rewritten_score - self.original_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalText": self.original_text,
            "rewrittenText": self.rewritten_text,
            "originalScore": self.original_score,
            "rewrittenScore": self.rewritten_score,
            "improvementScore": self.improvement_score,
            "rewriteReasoning": self.reasoning,
            "formattedReport": self.formatted_report,
        }
