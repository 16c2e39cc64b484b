import datetime
import logging
import os
from typing import Any, Dict

import pandas as pd
from sqlalchemy import create_engine, inspect

from .models import ComparisonResult, EvaluationResult, RewriteIterationResult

logger = logging.getLogger(__name__)

EVALUATION_TABLE = "evaluation_results"
COMPARISON_TABLE = "comparison_results"
REWRITE_TABLE = "rewrite_results"


def _timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class ResultArchive:
    """
    Appends finished results to a SQLite database.

    Only summaries of completed runs are stored; a failed evaluation never
    reaches the archive because it never produces a result.
    """

    def __init__(self, db_path: str) -> None:
        parent = os.path.dirname(os.path.abspath(db_path))
        if parent and not os.path.exists(parent):
            os.makedirs(parent, exist_ok=True)
        self.db_path = db_path
        self.db_engine = create_engine(f"sqlite:///{db_path}")

    def _append(self, table: str, row: Dict[str, Any]) -> None:
        pd.DataFrame([row]).to_sql(table, self.db_engine, if_exists="append", index=False)
        logger.info(f"Archived result to {table} in {self.db_path}")

    def record_evaluation(self, result: EvaluationResult, doc_id: str = "") -> None:
        scores = result.scores()
        self._append(
            EVALUATION_TABLE,
            {
                "doc_id": doc_id,
                "provider": result.provider.value,
                "mode": result.mode.value,
                "overall_score": result.final_score,
                "phase1_score": scores.get(1),
                "phase2_score": scores.get(2),
                "phase3_score": scores.get(3),
                "phase4_score": scores.get(4),
                "chunk_count": result.chunk_count,
                "unscored": result.unscored,
                "timestamp": _timestamp(),
            },
        )

    def record_comparison(self, result: ComparisonResult, doc_id_a: str = "A", doc_id_b: str = "B") -> None:
        provider = result.result_a.provider.value if result.result_a is not None else "structural"
        self._append(
            COMPARISON_TABLE,
            {
                "doc_id_a": doc_id_a,
                "doc_id_b": doc_id_b,
                "provider": provider,
                "score_a": result.score_a,
                "score_b": result.score_b,
                "winner": result.winner.value,
                "timestamp": _timestamp(),
            },
        )

    def record_rewrite(self, result: RewriteIterationResult, doc_id: str = "") -> None:
        provider = result.original_result.provider.value if result.original_result is not None else ""
        self._append(
            REWRITE_TABLE,
            {
                "doc_id": doc_id,
                "provider": provider,
                "original_score": result.original_score,
                "rewritten_score": result.rewritten_score,
                "improvement_score": result.improvement_score,
                "timestamp": _timestamp(),
            },
        )

    def load(self, table: str) -> pd.DataFrame:
        """Returns the archived rows, or an empty DataFrame if the table does not exist yet."""
        if not inspect(self.db_engine).has_table(table):
            return pd.DataFrame()
        return pd.read_sql_table(table, self.db_engine)

    def summary(self) -> pd.DataFrame:
        """Mean, spread and count of overall scores per document and provider."""
        df = self.load(EVALUATION_TABLE)
        if df.empty:
            return pd.DataFrame()
        df["overall_score"] = pd.to_numeric(df["overall_score"], errors="coerce")
        return (
            df.groupby(["doc_id", "provider"])["overall_score"]
            .agg(mean_score="mean", std_dev_score="std", runs="count")
            .reset_index()
        )
