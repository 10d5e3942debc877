"""
Scoring engine: weighted multi-factor compatibility between a provider and
a seeker.

Modules
-------
factors : one pure function per weighted factor plus the sub-metrics they
          share (profile completeness, activity level, formality).
scorer  : FACTOR_TABLE + ScoreBreakdown / ScoreResult dataclasses +
          score_pair() — pure, deterministic, safe to run concurrently.
"""
