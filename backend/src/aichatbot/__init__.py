"""
AI Chatbot backend.

Chat orchestration over hosted language models with resumable streaming of
generated artifacts (text, code, sheet and image documents).
"""

__version__ = "0.1.0"
