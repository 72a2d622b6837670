# doconvert/__init__.py
"""Document conversion web utility: images to PDF, PDF merge, office pass-through."""

__version__ = "0.1.0"
