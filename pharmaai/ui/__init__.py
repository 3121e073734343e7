"""
Streamlit UI package.

Run with ``streamlit run pharmaai/app.py``.
"""

from __future__ import annotations
