"""
Worker Fleet

Runs an unattended fleet of worker identities against a coordination service:
- Per-account credential acquisition and renewal
- Persistent WebSocket sessions with registration and heartbeats
- Job assignment acknowledgment
- Periodic point polling and daily reward claiming
- Optional per-account HTTP/SOCKS egress
"""

__version__ = "0.1.0"
__author__ = "Worker Fleet Team"
