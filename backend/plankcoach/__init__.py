"""
PlankCoach

Real-time plank form coaching: landmark scoring, session state machine,
spoken feedback and session reports.
"""

__version__ = "1.0.0"
