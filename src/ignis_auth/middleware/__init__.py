"""Request guards for level-protected and voice-agent routes."""
