"""Tutorlytics - student progress and performance reporting.

Turns raw tutoring-session and assessment records into progress,
attendance, performance and session-history reports.
"""
__version__ = "1.0.0"
