"""
pending-choice: resolve pending multi-option tasks from free-form replies.

A privileged user answers in a room; the reply is matched to one of the
pending tasks and options, and the bound worker runs (or the task is cancelled).
"""

__version__ = "0.1.0"
