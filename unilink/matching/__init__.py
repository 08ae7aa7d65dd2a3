"""Recommendation scoring: weighted rules and skill overlap."""
