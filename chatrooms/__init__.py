"""Chatrooms API - chatroom membership, messages and real-time fan-out."""

__version__ = "1.0.0"
