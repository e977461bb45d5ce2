"""Chat-completion transports."""
