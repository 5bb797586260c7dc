"""Anonchat: анонимный чат один на один со случайным собеседником."""
