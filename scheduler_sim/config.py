"""
Simulation-wide constants.
"""

import math

# === Policy engine ===
DEFAULT_QUANTUM = 2.0
MLFQ_LEVELS = 3
MLFQ_QUANTA = {1: 2.0, 2: 4.0, 3: math.inf}  # level 3 is FCFS

# Remaining time / quantum at or below this counts as exhausted.
TIME_EPSILON = 1e-9

# === Metrics ===
CPU_UTILIZATION_EPSILON = 0.001
SHORT_BURST_THRESHOLD = 5
INTERACTIVE_BURST_THRESHOLD = 3

# === Feedback triggers ===
FEEDBACK_HIGH_WAITING = 8.0
FEEDBACK_LOW_UTILIZATION = 0.7
FEEDBACK_CONVOY_WAITING = 10.0
FEEDBACK_SMALL_QUANTUM = 2.0
FEEDBACK_WARMUP = 5.0  # simulated seconds before live suggestions
METRICS_INTERVAL = 1.0  # simulated seconds between metric refreshes

# === Driver ===
DEFAULT_DELTA = 0.1
DEFAULT_SPEED = 1.0
FRAME_INTERVAL = 1 / 60
MAX_STEPS = 1_000_000

# === Process entry defaults ===
DEFAULT_BURST = 5.0
DEFAULT_PRIORITY = 1

COLORS = ["red", "green", "yellow", "blue", "magenta", "cyan"]
