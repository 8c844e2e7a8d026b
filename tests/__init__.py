"""
Test suite for the imitation agent.

Run with:
    pytest tests/
"""
