"""sitebrain — conversational context-assembly and decision-memory engine."""

__version__ = "0.1.0"
