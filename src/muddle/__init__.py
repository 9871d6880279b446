"""
Muddle: messy notes in, organised notes out.

A personal note-capture tool that provides:
- Free-text capture with tags
- LLM-powered decomposition into ideas, decisions, questions and actions
- A local, write-through note history with restore and Markdown export
"""

__version__ = "0.1.0"
