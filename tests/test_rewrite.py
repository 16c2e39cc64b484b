import asyncio

import pytest

from conftest import FakeProviderClient, make_gateway
from llm_doc_grader.engine.orchestrator import PhaseOrchestrator
from llm_doc_grader.engine.rewrite import RewriteLoop, fallback_reasoning
from llm_doc_grader.errors import ProviderError, RewriteError
from llm_doc_grader.models import EvaluationRequest, Mode

ORIGINAL = "Things are important and good, obviously."
REWRITTEN = "Importance is earned: a claim matters when its denial breaks something else."


def _rewrite(client, text=ORIGINAL, word_threshold=1000, **kwargs):
    loop = RewriteLoop(PhaseOrchestrator(make_gateway(client), word_threshold=word_threshold))
    return asyncio.run(loop.rewrite(EvaluationRequest(text=text, provider="openai", **kwargs)))


def test_rewrite_reports_improvement():
    client = FakeProviderClient(
        ["60/100"] * 4
        + [REWRITTEN]
        + ["78/100"] * 4
        + ["The rewrite replaces platitudes with an entailment."]
    )

    result = _rewrite(client)

    assert result.original_score == 60
    assert result.rewritten_score == 78
    assert result.improvement_score == 18
    assert result.rewritten_text == REWRITTEN
    assert result.reasoning.startswith("The rewrite replaces")
    assert "+18" in client.prompts[-1]
    assert "**Improvement:** +18 points" in result.formatted_report


def test_rewrite_prompt_carries_score_and_weighted_instructions():
    client = FakeProviderClient(["60/100"] * 4 + [REWRITTEN] + ["70/100"] * 4 + ["ok"])

    _rewrite(client, custom_instructions="Keep it under fifty words.")

    rewrite_prompt = client.prompts[4]
    assert "scored 60/100" in rewrite_prompt
    assert "Keep it under fifty words." in rewrite_prompt
    assert "weight the custom instructions more heavily" in rewrite_prompt
    # instructions steer the rewrite, not the scoring
    assert "Keep it under fifty words." not in client.prompts[0]


def test_negative_improvement_is_reported_without_retry():
    client = FakeProviderClient(["80/100"] * 4 + [REWRITTEN] + ["72/100"] * 4 + ["It got worse."])

    result = _rewrite(client)

    assert result.improvement_score == -8
    assert len(client.prompts) == 10
    assert result.to_dict()["improvementScore"] == -8


@pytest.mark.parametrize("reply", ["", "  \n "])
def test_empty_reasoning_is_replaced_with_score_summary(reply):
    client = FakeProviderClient(["60/100"] * 4 + [REWRITTEN] + ["78/100"] * 4 + [reply])

    result = _rewrite(client)

    assert result.reasoning.strip()
    assert "improved by 18 points" in result.reasoning
    assert "60/100" in result.reasoning and "78/100" in result.reasoning
    assert result.reasoning in result.formatted_report


def test_fallback_reasoning_describes_drop_and_no_change():
    assert "dropped by 8 points" in fallback_reasoning(80, 72)
    assert "did not change" in fallback_reasoning(70, 70)


def test_empty_rewrite_is_fatal():
    client = FakeProviderClient(["60/100"] * 4 + ["   "])

    with pytest.raises(RewriteError):
        _rewrite(client)


def test_provider_failure_during_rewrite_propagates():
    client = FakeProviderClient(["60/100"] * 4 + [ConnectionError("dropped")])

    with pytest.raises(ProviderError):
        _rewrite(client)


def test_long_text_rewritten_part_by_part():
    text = "\n\n".join(["alpha " * 8, "bravo " * 8]).strip()
    client = FakeProviderClient(
        ["80/100", "80/100"]  # quick evaluation of both segments
        + ["First part rewritten.", "Second part rewritten."]
        + ["85/100"]  # rewritten text fits one segment
        + ["Better."]
    )

    result = _rewrite(client, text=text, word_threshold=10, mode=Mode.QUICK)

    assert "part 1 of 2" in client.prompts[2]
    assert "alpha" in client.prompts[2]
    assert "part 2 of 2" in client.prompts[3]
    assert result.rewritten_text == "First part rewritten.\n\nSecond part rewritten."
    assert result.improvement_score == 5
