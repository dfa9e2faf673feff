"""HTTP API for the AI Chatbot backend."""
