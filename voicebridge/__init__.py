"""Call protocol, media-server client, chat-model handling and robot storage for voice assistants."""

__version__ = "0.1.0"