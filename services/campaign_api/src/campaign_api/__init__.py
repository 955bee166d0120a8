"""Campaign generation service with a chunked SSE push channel."""
