"""
Timed Quiz Session - Core Package

This package contains the components of a timed, integrity-monitored quiz attempt:
- session: Stage machine tying the timer, monitor and autosave together
- integrity: Debounced violation counting over environment signals
- autosave: Debounced local persistence of in-progress answers
- evaluation: Automatic and manual grading, submission statistics
"""

__version__ = "1.0.0"
