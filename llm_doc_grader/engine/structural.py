"""
Deterministic structural scorer.

Scores text from six lexical/pattern markers without calling any provider.
Used as a baseline, and as the no-model comparison path.
"""
import math
import re
from typing import Dict, List, Sequence

import numpy as np

from ..models import StructuralMarkers, StructuralReport

WEIGHTS: Dict[str, float] = {
    "semantic_compression": 0.30,
    "inferential_continuity": 0.25,
    "epistemic_resistance": 0.20,
    "metacognitive_awareness": 0.15,
    "semantic_topology": 0.10,
    # computed and reported, but excluded from the total
    "cognitive_asymmetry": 0.00,
}

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_WORD_SPLIT = re.compile(r"\W+")
_ALPHA = re.compile(r"^[a-z]+$")
_STOPWORDS = frozenset(["the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"])


def _rx(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern, re.IGNORECASE)


RECURSIVE_INSIGHT = _rx(r"\b(?:thus|therefore|consequently|it follows|this means|implies)\b")
SYNTHESIS = _rx(r"\b(?:combines|integrates|unifies|both.*and|not only.*but)\b")
ENTAILMENT = _rx(r"\b(?:entails|necessitates|requires|must follow)\b")
GROUNDING = _rx(r"\b(?:because|since|given)\b")
BRIDGING = _rx(r"\b(?:therefore|however|moreover)\b")
INCOMING_BRANCH = _rx(r"\b(?:leads to|results in|causes)\b")
OUTGOING_BRANCH = _rx(r"\b(?:implies|entails|suggests)\b")
COMPLEXITY = _rx(r"\b(?:complex|complicated|intricate|paradox|dialectic)\b")
SUPPORT = _rx(r"\b(?:for example|specifically|namely|such as)\b")
QUALIFICATION = _rx(r"\b(?:however|but|nevertheless|although|except)\b")
TAUTOLOGIES = (
    _rx(r"\bis\s+(?:important|good|bad|clear)\b"),
    _rx(r"\bobviously\b"),
    _rx(r"\bof\s+course\b"),
    _rx(r"\bneedless\s+to\s+say\b"),
)
REINTERPRETATION = _rx(r"\b(?:contrary to|rather than|instead of|not.*but rather|the real.*is)\b")
HIGH_LOAD = _rx(r"\b(?:if and only if|necessary and sufficient|recursive|paradox|meta-)\b")
REFRAMING = _rx(r"\b(?:let us consider|from.*perspective|put differently|to reframe|in other words)\b")
RECURSIVE_DEFINITION = _rx(r"\b(?:defines itself|circular definition|self-defining)\b")
LEVEL_SHIFT = _rx(r"\b(?:this argument|our discussion|meta-|about thinking)\b")

BUILDING_MARKERS = ("therefore", "thus", "consequently", "it follows", "this means")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text or "") if s.strip()]


def extract_key_terms(text: str) -> List[str]:
    """Lowercase alphabetic words longer than three letters, stopwords removed, in order."""
    return [
        w
        for w in _WORD_SPLIT.split((text or "").lower())
        if len(w) > 3 and w not in _STOPWORDS and _ALPHA.match(w)
    ]


class StructuralEvaluator:
    """Scores text from structural markers; no provider calls."""

    def evaluate(self, text: str) -> StructuralReport:
        markers = self.assess_markers(text)
        return StructuralReport(
            overall_score=self.structural_score(markers),
            markers=markers,
            variance=self.marker_variance(markers),
            textual_analysis=self.textual_analysis(markers),
        )

    def assess_markers(self, text: str) -> StructuralMarkers:
        sentences = split_sentences(text)
        if not sentences:
            return StructuralMarkers(0, 0, 0, 0, 0, 0)
        return StructuralMarkers(
            semantic_compression=self._semantic_compression(sentences),
            inferential_continuity=self._inferential_continuity(sentences),
            semantic_topology=self._semantic_topology(text, sentences),
            cognitive_asymmetry=self._cognitive_asymmetry(sentences),
            epistemic_resistance=self._epistemic_resistance(sentences),
            metacognitive_awareness=self._metacognitive_awareness(sentences),
        )

    # -- markers -------------------------------------------------------------

    def _semantic_compression(self, sentences: Sequence[str]) -> int:
        high_impact = recursive = synthesis = 0
        for sentence in sentences:
            if RECURSIVE_INSIGHT.search(sentence):
                recursive += 1
                high_impact += 1
            if SYNTHESIS.search(sentence):
                synthesis += 1
                high_impact += 1
            if ENTAILMENT.search(sentence):
                high_impact += 1
        ratio = high_impact / len(sentences)
        return min(100, round_half_up(ratio * 100 + recursive * 5 + synthesis * 3))

    def _inferential_continuity(self, sentences: Sequence[str]) -> int:
        building = necessary = isolated = 0
        term_sets = [set(extract_key_terms(s)) for s in sentences]
        for i in range(1, len(sentences)):
            curr = sentences[i]
            lowered = curr.lower()
            if any(marker in lowered for marker in BUILDING_MARKERS):
                building += 1
            if term_sets[i - 1] & term_sets[i] and GROUNDING.search(curr):
                necessary += 1
            connected = any(term_sets[i] & prior for prior in term_sets[:i])
            if not connected and not BRIDGING.search(curr):
                isolated += 1
        n = len(sentences)
        score = building / n * 50 + necessary / n * 40 - isolated / n * 30
        return max(0, min(100, round_half_up(score)))

    def _semantic_topology(self, text: str, sentences: Sequence[str]) -> int:
        key_terms = extract_key_terms(text)
        lowered_text = text.lower()
        lowered_sentences = [s.lower() for s in sentences]

        attractors: List[str] = []
        for term in dict.fromkeys(key_terms):
            # Attractors are key terms repeated more than twice
            if len(re.findall(rf"\b{re.escape(term)}\b", lowered_text)) > 2:
                attractors.append(term)

        connectivity = 0
        for attractor in attractors:
            for sentence, lowered in zip(sentences, lowered_sentences):
                if attractor in lowered:
                    if INCOMING_BRANCH.search(sentence):
                        connectivity += 1
                    if OUTGOING_BRANCH.search(sentence):
                        connectivity += 1

        node_density = len(key_terms) / len(text) * 1000 if text else 0.0
        return round_half_up(min(100.0, node_density * 20 + connectivity * 2))

    def _cognitive_asymmetry(self, sentences: Sequence[str]) -> int:
        complexity = supporting = qualifying = 0
        for sentence in sentences:
            if COMPLEXITY.search(sentence):
                complexity += 1
            elif SUPPORT.search(sentence):
                supporting += 1
            elif QUALIFICATION.search(sentence):
                qualifying += 1
        ratio = abs(complexity - (supporting + qualifying)) / len(sentences)
        return min(100, round_half_up(ratio * 100))

    def _epistemic_resistance(self, sentences: Sequence[str]) -> int:
        non_tautological = reinterpretation = high_load = 0
        for sentence in sentences:
            if any(p.search(sentence) for p in TAUTOLOGIES):
                continue
            non_tautological += 1
            if REINTERPRETATION.search(sentence):
                reinterpretation += 1
            if HIGH_LOAD.search(sentence) or _is_conditional_chain(sentence):
                high_load += 1
        n = len(sentences)
        score = non_tautological / n * 40 + reinterpretation / n * 35 + high_load / n * 25
        return min(100, round_half_up(score))

    def _metacognitive_awareness(self, sentences: Sequence[str]) -> int:
        reframing = recursive_defs = level_shifts = 0
        for sentence in sentences:
            if REFRAMING.search(sentence):
                reframing += 1
            if RECURSIVE_DEFINITION.search(sentence):
                recursive_defs += 1
            if LEVEL_SHIFT.search(sentence):
                level_shifts += 1
        n = len(sentences)
        score = reframing / n * 40 + recursive_defs / n * 35 + level_shifts / n * 25
        return min(100, round_half_up(score))

    # -- aggregation ---------------------------------------------------------

    @staticmethod
    def weighted_sum(markers: StructuralMarkers) -> float:
        return sum(getattr(markers, name) * weight for name, weight in WEIGHTS.items())

    @staticmethod
    def adjust(score: float) -> float:
        """Boost exceptional scores and suppress the 70-85 band to avoid clustering."""
        if score > 85:
            return min(100.0, score * 1.1)
        if 70 < score < 85:
            return score * 0.9
        return score

    def structural_score(self, markers: StructuralMarkers) -> int:
        return round_half_up(self.adjust(self.weighted_sum(markers)))

    @staticmethod
    def marker_variance(markers: StructuralMarkers) -> float:
        """Population standard deviation of the five weighted markers, one decimal."""
        values = np.array(
            [
                markers.semantic_compression,
                markers.inferential_continuity,
                markers.epistemic_resistance,
                markers.metacognitive_awareness,
                markers.semantic_topology,
            ],
            dtype=float,
        )
        return round_half_up(float(np.std(values)) * 10) / 10

    @staticmethod
    def textual_analysis(markers: StructuralMarkers) -> str:
        insights: List[str] = []
        if markers.semantic_compression > 80:
            insights.append(
                f"Exceptional semantic compression ({markers.semantic_compression}/100) with high-impact "
                "sentences creating multiple inferential consequences."
            )
        elif markers.semantic_compression < 40:
            insights.append(
                f"Low semantic compression ({markers.semantic_compression}/100) suggesting surface-level "
                "or redundant content."
            )
        if markers.inferential_continuity > 75:
            insights.append(
                f"Strong inferential continuity ({markers.inferential_continuity}/100) with propositions "
                "building necessarily on prior statements."
            )
        elif markers.inferential_continuity < 30:
            insights.append(
                f"Weak inferential continuity ({markers.inferential_continuity}/100) indicating isolated "
                "or disconnected statements."
            )
        if markers.epistemic_resistance > 70:
            insights.append(
                f"High epistemic resistance ({markers.epistemic_resistance}/100) avoiding tautological "
                "statements and creating cognitive friction."
            )
        if markers.metacognitive_awareness > 60:
            insights.append(
                f"Notable metacognitive awareness ({markers.metacognitive_awareness}/100) with reframing "
                "and recursive self-reflection."
            )
        if not insights:
            return "Text shows standard structural markers without exceptional cognitive features."
        return " ".join(insights)


def _is_conditional_chain(sentence: str) -> bool:
    return "if" in sentence and "then" in sentence and "unless" in sentence
