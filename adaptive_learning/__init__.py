"""
Adaptive Learning Engine.

SM-2 spaced repetition, grading, adaptive reassignment and practice quiz
generation over pluggable stores.
"""

__version__ = "1.0.0"
