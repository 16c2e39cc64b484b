from typing import Optional, Sequence

from ..models import ComparisonResult, PhaseRecord, RewriteIterationResult, Winner

PHASE_TITLES = {
    1: "PHASE 1 - INITIAL ASSESSMENT",
    2: "PHASE 2 - PUSHBACK ANALYSIS",
    3: "PHASE 3 - VALIDATION (WALMART METRIC)",
    4: "PHASE 4 - FINAL CHECK",
}


def _phase_block(record: PhaseRecord, segment_count: int = 1) -> str:
    title = PHASE_TITLES.get(record.phase_index, f"PHASE {record.phase_index}")
    if record.chunk_index is not None:
        title += f" (SEGMENT {record.chunk_index}/{segment_count})"
    if record.skipped:
        score = ""
    elif record.scored:
        score = f" [{record.extracted_score}/100]"
    else:
        score = " [unscored]"
    return f"**{title}:**{score}\n{record.raw_response}"


def format_phase_report(
    phases: Sequence[PhaseRecord],
    final_score: int,
    quick: bool = False,
    segment_count: int = 1,
    word_count: Optional[int] = None,
) -> str:
    heading = "**QUICK PHASED INTELLIGENCE EVALUATION**" if quick else "**4-PHASE INTELLIGENCE EVALUATION**"
    blocks = [heading]
    if segment_count > 1:
        blocks.append(
            f"**Document Length:** {word_count} words\n"
            f"**Analysis Segments:** {segment_count} (each phase scored per segment; highest segment score carried)"
        )
    blocks.extend(_phase_block(p, segment_count) for p in phases)
    if not any(p.scored for p in phases):
        blocks.append("_No phase returned a parsable score; the final score is the documented default._")
    blocks.append(f"**FINAL SCORE: {final_score}/100**")
    return "\n\n".join(blocks)


def format_comparison_report(result: ComparisonResult) -> str:
    parts = ["# Dual Document Intelligence Evaluation Report"]
    for side, evaluation, structural in (
        ("A", result.result_a, result.structural_a),
        ("B", result.result_b, result.structural_b),
    ):
        if evaluation is not None:
            parts.append(f"## Document {side} Analysis\n**Final Score: {evaluation.final_score}/100**\n\n{evaluation.formatted_report}")
        elif structural is not None:
            markers = "\n".join(f"- {k}: {v}/100" for k, v in structural.markers.as_dict().items())
            parts.append(
                f"## Document {side} Structural Analysis\n**Structural Score: {structural.overall_score}/100** "
                f"(variance {structural.variance})\n\n{markers}\n\n{structural.textual_analysis}"
            )
    parts.append(f"## Comparative Analysis\n{result.narrative}")
    tie = result.score_a == result.score_b
    verdict = f"Document {result.winner.value} demonstrates superior intelligence"
    if tie and result.winner is Winner.A:
        verdict += " (scores tied; ties are resolved in favor of Document A)"
    parts.append(f"**Final Judgment:** {verdict}.")
    return "\n\n---\n\n".join(parts)


def format_rewrite_report(result: RewriteIterationResult) -> str:
    sign = "+" if result.improvement_score > 0 else ""
    return "\n\n".join(
        [
            "# Intelligent Rewrite Report",
            f"**Original Score:** {result.original_score}/100",
            f"**Rewritten Score:** {result.rewritten_score}/100",
            f"**Improvement:** {sign}{result.improvement_score} points",
            f"## Rewritten Text\n{result.rewritten_text}",
            f"## Rewrite Reasoning\n{result.reasoning}",
        ]
    )
