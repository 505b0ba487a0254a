"""Serialize a repository into size-bounded, priority-ordered chunks for LLM consumption."""

__version__ = "0.1.0"
