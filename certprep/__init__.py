"""certprep: exam session engine for certification practice exams."""

__version__ = "0.1.0"
