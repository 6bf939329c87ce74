"""Scene building and rendering engine adapters."""
