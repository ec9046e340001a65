"""HTTP and WebSocket surface for the elevator bank."""
