"""
ARCHISHEETS: Google Sheets / Drive backed project manager for architecture memòries.
"""

__version__ = "1.0.0"
