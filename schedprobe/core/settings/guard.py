"""
Execution guard settings.

The guard marker lives in a single well-known directory so that separate
worker processes (or hosts sharing the directory) collide on it.
"""
import os

# ============================
# Single Execution Guard
# ============================

# Directory holding the marker file. Empty means the project root
# (BASE_DIR); see execution_guard.conf.
EXECUTION_GUARD_ROOT = os.getenv("SCHEDPROBE_GUARD_ROOT", "")

# Marker file name inside EXECUTION_GUARD_ROOT
EXECUTION_GUARD_MARKER_NAME = "single-execution-guard"

# How long a successful claim holds the marker before releasing it.
# Long enough that an overlapping run reliably sees the marker.
EXECUTION_GUARD_HOLD_SECONDS = float(
    os.getenv("SCHEDPROBE_GUARD_HOLD_SECONDS", "0.8")
)
