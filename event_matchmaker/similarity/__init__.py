"""
Similarity toolkit: generic string primitives (edit distance, token overlap)
used by the scoring engine and the deduplicator.

Modules
-------
strings : normalize(), comparable(), levenshtein_distance(), string_similarity(),
          token_overlap(), partial_token_matches(), email_similarity(),
          band_proximity(). Pure functions, no I/O.
"""
