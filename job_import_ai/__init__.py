"""Job Import AI: turn a job listing URL into a structured JobPosting."""

__version__ = "0.1.0"
