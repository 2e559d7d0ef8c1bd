"""Django project for ticket wallet pass generation."""
