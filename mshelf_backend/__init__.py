"""Media Shelf backend: ingestion pipeline, listings and the HTTP/WebSocket API."""
