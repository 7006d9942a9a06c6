"""Bearer authentication for device clients."""
