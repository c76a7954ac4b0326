"""
Single execution guard app.

Detects whether the scheduler ever runs two instances of the guard task at
the same time.
"""
