"""
Recall Engine - adaptive review scheduling.

Decides which previously seen items to review and in what priority while
tracking how well each topic is retained.

Components:
- study.scheduler: per-item FSRS state machine (ItemScheduler)
- core.mastery: recency-weighted topic mastery (MasteryAggregator)
- study.composer: band-weighted, topic-diverse sessions (SessionComposer)
"""

__version__ = "1.0.0"
