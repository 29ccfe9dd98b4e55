"""
Backend AgentScore: reputation scoring for on-chain agent wallets.

Indexes USDC transfers on Base, rolls them up into per-wallet statistics,
and computes a five-dimension composite trust score with an integrity
adjustment for sybil/gaming patterns and fraud reports. Background jobs
keep scores and intent signals fresh; a small API exposes job health.
"""

__version__ = "0.1.0"
