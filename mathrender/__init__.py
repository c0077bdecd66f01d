"""
mathrender: renders mathematical markup to SVG, PNG, MathML and speech.
"""

__version__ = "0.1.0"
