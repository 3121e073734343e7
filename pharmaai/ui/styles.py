"""
UI styling (CSS injected via st.markdown).
"""

from __future__ import annotations

import streamlit as st

THEME_CSS = """
<style>
  :root {
    --bg-secondary: #f8fafc;
    --text-primary: #0f172a;
    --text-secondary: #64748b;
    --border-color: #e2e8f0;
    --accent: #0d9488;
    --accent-light: #ccfbf1;
    --warning: #b45309;
    --warning-light: #fef3c7;
    --danger: #b91c1c;
    --shadow-color: rgba(15, 23, 42, 0.08);
  }
</style>
"""

BASE_CSS = """
<style>
  .block-container { padding-top: 1.5rem; padding-bottom: 2rem; }
  .sidebar-brand { font-size: 1.4rem; font-weight: 700; color: var(--accent); margin-bottom: 0; }
  .sidebar-subtitle { font-size: 0.8rem; color: var(--text-secondary); margin-top: 0; }
  .nav-section {
    font-size: 0.7rem;
    font-weight: 700;
    letter-spacing: 0.08em;
    color: var(--text-secondary);
    margin: 1rem 0 0.25rem 0;
  }
  .stock-badge {
    background: var(--accent-light);
    color: var(--accent);
    padding: 2px 8px;
    border-radius: 12px;
    font-size: 0.75rem;
    font-weight: bold;
  }
  .stock-badge.low { background: var(--warning-light); color: var(--warning); }
  .allergy-badge {
    background: var(--warning-light);
    color: var(--warning);
    padding: 2px 8px;
    border-radius: 12px;
    font-size: 0.75rem;
    font-weight: bold;
  }
  .model-badge {
    background: var(--bg-secondary);
    border: 1px solid var(--border-color);
    color: var(--text-secondary);
    padding: 2px 8px;
    border-radius: 12px;
    font-size: 0.7rem;
  }
  .live-status {
    padding: 0.5rem 1rem;
    border-radius: 8px;
    background: var(--bg-secondary);
    border: 1px solid var(--border-color);
    box-shadow: 0 2px 6px var(--shadow-color);
    font-weight: 600;
  }
  .live-status.active { color: var(--accent); }
  .live-status.error { color: var(--danger); }
</style>
"""

RESPONSIVE_CSS = """
<style>
  @media (max-width: 768px) {
    .block-container { padding-left: 1rem; padding-right: 1rem; }
    .sidebar-brand { font-size: 1.2rem; }
  }
</style>
"""


def apply_styles() -> None:
    st.markdown(THEME_CSS, unsafe_allow_html=True)
    st.markdown(BASE_CSS, unsafe_allow_html=True)
    st.markdown(RESPONSIVE_CSS, unsafe_allow_html=True)
