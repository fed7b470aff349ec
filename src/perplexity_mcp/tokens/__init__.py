"""Token estimation."""

from perplexity_mcp.tokens.estimator import TokenEstimator

__all__ = ["TokenEstimator"]
