"""Scoring core: context, per-observation points, aggregation, trophies, battles."""
