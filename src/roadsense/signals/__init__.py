"""
Signals Module
==============

Signal processing over raw accelerometer streams.

This module turns a drive's vertical acceleration into a road-surface
roughness summary.
"""

from roadsense.signals.roughness import RoughnessAnalyzer, analyze_roughness

__all__ = ["RoughnessAnalyzer", "analyze_roughness"]
