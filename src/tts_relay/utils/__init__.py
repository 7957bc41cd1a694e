"""Small helpers shared by the relay services (timing, clock, ids)."""
