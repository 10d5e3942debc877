"""
Duplicate detection over relationship history.

Modules
-------
deduplicator : Deduplicator (exact / fuzzy / similar-recent tiers) +
               DuplicateCheck outcome + identity_similarity() and
               pair_similarity() scoring helpers.
"""
