"""Device-side HTTP and WebSocket clients, URL parsing and encoders over pluggable byte-stream transports."""

__version__ = "0.1.0"