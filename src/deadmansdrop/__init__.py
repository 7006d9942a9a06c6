"""Dead man's switch video escrow service."""
