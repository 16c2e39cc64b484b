import asyncio

import pytest

from conftest import FakeProviderClient, make_gateway, tagged_router
from llm_doc_grader.engine.comparison import ComparisonEngine, adjudicate, compare_structural
from llm_doc_grader.engine.orchestrator import PhaseOrchestrator
from llm_doc_grader.errors import ProviderError
from llm_doc_grader.models import ComparisonRequest, Winner

DOC_A = "ZEBRA stripes confuse predators because motion blurs their outline."
DOC_B = "QUOKKA populations persist on islands since foxes never arrived there."


def _compare(client):
    engine = ComparisonEngine(PhaseOrchestrator(make_gateway(client)))
    request = ComparisonRequest(text_a=DOC_A, text_b=DOC_B, provider="openai")
    return asyncio.run(engine.compare(request))


@pytest.mark.parametrize(
    "score_a, score_b, expected",
    [(90, 82, Winner.A), (70, 88, Winner.B), (80, 80, Winner.A), (0, 0, Winner.A)],
)
def test_adjudicate(score_a, score_b, expected):
    assert adjudicate(score_a, score_b) is expected


def test_higher_scoring_document_wins():
    client = FakeProviderClient(router=tagged_router({"ZEBRA": 90, "QUOKKA": 82}, narrative="A is tighter."))

    result = _compare(client)

    assert result.winner is Winner.A
    assert result.score_a == 90
    assert result.score_b == 82
    assert result.narrative == "A is tighter."
    # two full evaluations plus one narrative call
    assert len(client.prompts) == 9


def test_document_b_can_win():
    client = FakeProviderClient(router=tagged_router({"ZEBRA": 70, "QUOKKA": 88}))

    result = _compare(client)

    assert result.winner is Winner.B


def test_tie_goes_to_document_a():
    client = FakeProviderClient(router=tagged_router({"ZEBRA": 80, "QUOKKA": 80}))

    result = _compare(client)

    assert result.winner is Winner.A
    assert "ties are resolved in favor of Document A" in result.formatted_report
    narrative_prompt = client.prompts[-1]
    assert "Winner: Document A (tie" in narrative_prompt


def test_one_failed_evaluation_fails_the_comparison():
    client = FakeProviderClient(router=tagged_router({"ZEBRA": 90, "QUOKKA": RuntimeError("upstream closed")}))

    with pytest.raises(ProviderError):
        _compare(client)

    assert all("COMPARATIVE ANALYSIS INSTRUCTIONS" not in p for p in client.prompts)


def test_comparison_serializes_both_documents():
    client = FakeProviderClient(router=tagged_router({"ZEBRA": 90, "QUOKKA": 82}))

    data = _compare(client).to_dict()

    assert data["winner"] == "A"
    assert data["documentA"]["overallScore"] == 90
    assert data["documentB"]["overallScore"] == 82


def test_structural_comparison_needs_no_provider():
    result = compare_structural(DOC_A, DOC_A)

    assert result.winner is Winner.A
    assert result.result_a is None
    assert "tied" in result.narrative
    assert "Structural Analysis" in result.formatted_report
