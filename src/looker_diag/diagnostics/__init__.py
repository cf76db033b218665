"""Looker diagnostics built on top of one-shot toolbox calls.

Every fetch goes through a fresh toolbox subprocess, so a hung or crashed
call costs one process and never poisons later calls. Callers get partial
results plus a diagnostic log instead of exceptions: a scan that loses the
LookML fetch still reports slow queries and explores.
"""
