"""Batch jobs keeping the derived ranking tables in sync with tournament results."""
