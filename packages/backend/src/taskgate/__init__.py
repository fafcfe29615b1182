"""taskgate — role-gated task tracking.

Identity reconciliation (password + OAuth sign-in into one identity store),
JWT sessions with a cached role, role-gated admin operations, and
time-windowed task notifications.
"""

__version__ = "0.1.0"
