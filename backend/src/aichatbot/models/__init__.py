"""Database models for AI Chatbot."""
