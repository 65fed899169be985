"""Groups and the membership state machine."""
