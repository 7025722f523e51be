"""HTTP and WebSocket surface of OfflineTube."""
