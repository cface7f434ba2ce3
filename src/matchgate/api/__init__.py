"""HTTP API for the MatchGate service."""
