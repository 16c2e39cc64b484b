"""
llm_doc_grader package

Grades prose for intelligence with a phased LLM prompting protocol:
- api: evaluate_text, compare_texts, rewrite_text, structural_evaluate, structural_compare
- engine: provider gateway, orchestrator, comparison, rewrite, structural scorer
- archive: SQLite result archive (SQLAlchemy + pandas)
- cli: Typer command line

Every provider failure is fatal for the evaluation that raised it; there are
no partial results.
"""
__version__ = "0.1.0"

__all__ = [
    "api",
]
