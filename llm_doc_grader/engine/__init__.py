"""
Evaluation engine: provider gateway, score extraction, chunking, the phased
orchestrator, comparison, rewrite, and the deterministic structural scorer.
"""
