from llm_doc_grader.archive import COMPARISON_TABLE, EVALUATION_TABLE, REWRITE_TABLE, ResultArchive
from llm_doc_grader.engine.comparison import compare_structural
from llm_doc_grader.models import EvaluationResult, Mode, PhaseRecord, Provider, RewriteIterationResult


def _result(score: int, provider: Provider = Provider.OPENAI) -> EvaluationResult:
    phases = (
        PhaseRecord(1, "initial", "p1", f"{score}/100", score, score_source="pattern"),
        PhaseRecord(2, "pushback", "", "No pushback required (score ≥ 95/100)", None, skipped=True),
        PhaseRecord(3, "validation", "p3", f"{score}/100", score, score_source="pattern"),
        PhaseRecord(4, "final_check", "p4", "No score here", None, score_source="default"),
    )
    return EvaluationResult(
        phases=phases,
        final_score=score,
        formatted_report="report",
        provider=provider,
        mode=Mode.COMPREHENSIVE,
    )


def test_evaluations_are_appended(tmp_path):
    archive = ResultArchive(str(tmp_path / "results.db"))

    archive.record_evaluation(_result(96), doc_id="essay")
    archive.record_evaluation(_result(90), doc_id="essay")

    df = archive.load(EVALUATION_TABLE)
    assert len(df) == 2
    assert list(df["overall_score"]) == [96, 90]
    assert df["phase2_score"].isna().all()
    assert df["phase1_score"].iloc[0] == 96


def test_missing_table_loads_empty(tmp_path):
    archive = ResultArchive(str(tmp_path / "results.db"))
    assert archive.load(REWRITE_TABLE).empty
    assert archive.summary().empty


def test_summary_aggregates_per_document_and_provider(tmp_path):
    archive = ResultArchive(str(tmp_path / "nested" / "results.db"))
    archive.record_evaluation(_result(80), doc_id="essay")
    archive.record_evaluation(_result(90), doc_id="essay")
    archive.record_evaluation(_result(70, Provider.ANTHROPIC), doc_id="essay")

    summary = archive.summary()

    openai_row = summary[summary["provider"] == "openai"].iloc[0]
    assert openai_row["mean_score"] == 85
    assert openai_row["runs"] == 2
    assert len(summary) == 2


def test_comparison_and_rewrite_rows(tmp_path):
    archive = ResultArchive(str(tmp_path / "results.db"))
    archive.record_comparison(compare_structural("Thus it follows.", "It rains."), "one", "two")
    archive.record_rewrite(
        RewriteIterationResult(
            original_text="a",
            rewritten_text="b",
            original_score=60,
            rewritten_score=78,
            reasoning="better",
            original_result=_result(60),
        ),
        doc_id="essay",
    )

    comparisons = archive.load(COMPARISON_TABLE)
    assert comparisons.iloc[0]["provider"] == "structural"
    assert comparisons.iloc[0]["doc_id_a"] == "one"
    rewrites = archive.load(REWRITE_TABLE)
    assert rewrites.iloc[0]["improvement_score"] == 18
