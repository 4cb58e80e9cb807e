"""Application layer: settings, controller and HTTP/WebSocket endpoints."""
