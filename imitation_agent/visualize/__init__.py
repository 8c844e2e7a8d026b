"""
Visualization tools for the imitation agent.

Usage:
    from imitation_agent.visualize import PreviewWindow
    preview = PreviewWindow(enabled=True)
    preview.show(canvas, output)
"""

from .preview import PreviewWindow, draw_prediction

__all__ = ["PreviewWindow", "draw_prediction"]
