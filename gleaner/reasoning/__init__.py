"""
Reasoning Module

Answer generation for retrieval-augmented queries.
"""
