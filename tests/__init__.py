"""
Test Suite Initialization

Gleaner test configuration.
"""
