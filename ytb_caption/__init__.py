"""YouTube subtitle retrieval with cached, chunked pagination for tool-calling clients."""

__version__ = "0.6.0"
