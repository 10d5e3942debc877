"""
Recommendation engine: enumerates provider × seeker pairs, scores them
concurrently and keeps a ranked, persisted top-N.

Modules
-------
ranker    : ScoredPair dataclass + enumerate_pairs() + paginate() +
            merge_top() + build_recommendations() — pure, no I/O.
generator : RecommendationGenerator.generate() — paged fan-out scoring,
            ranking and isolated per-item persistence.
"""
