"""MatchGate: like/pass gate, daily quota, mutual matches and match notifications."""

__version__ = "1.0.0"
