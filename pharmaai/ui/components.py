"""
Reusable UI components (sidebar, product cards, profile badge).
"""

from __future__ import annotations

import html
from datetime import datetime
from typing import Optional

import streamlit as st

from pharmaai.config import settings
from pharmaai.inventory import Inventory
from pharmaai.models import AppMode, Product, RecommendationRecord, User
from pharmaai.routes import nav_sections

LOW_STOCK_THRESHOLD = 10


def render_sidebar(user: Optional[User], inventory: Inventory, current: AppMode) -> None:
    """Role-aware navigation; each item sets the ``page`` query parameter."""
    subtitle = "Yönetim Paneli" if user is not None and user.is_pharmacist else "Kişisel Asistan"
    st.sidebar.markdown(f'<p class="sidebar-brand">{html.escape(settings.app_title)}</p>', unsafe_allow_html=True)
    st.sidebar.markdown(f'<p class="sidebar-subtitle">{subtitle}</p>', unsafe_allow_html=True)

    for section in nav_sections(user):
        st.sidebar.markdown(f'<p class="nav-section">{section.title}</p>', unsafe_allow_html=True)
        for item in section.items:
            if st.sidebar.button(
                item.label,
                key=f"nav_{item.mode.value}",
                icon=item.icon,
                type="primary" if item.mode == current else "secondary",
                use_container_width=True,
            ):
                st.query_params["page"] = item.mode.value
                st.rerun()

    if user is not None and user.is_pharmacist:
        st.sidebar.divider()
        st.sidebar.markdown('<p class="nav-section">ENVANTER DURUMU</p>', unsafe_allow_html=True)
        st.sidebar.metric("Envanter", f"{len(inventory)} Ürün", label_visibility="collapsed")

    if user is not None:
        st.sidebar.caption(f"{user.name} · {user.email}")


def render_product_card(product: Product) -> None:
    with st.container(border=True):
        col1, col2 = st.columns([3, 1])
        with col1:
            st.markdown(f"**{product.name}**")
            st.caption(product.category)
        with col2:
            css = "stock-badge low" if product.stock < LOW_STOCK_THRESHOLD else "stock-badge"
            st.markdown(f'<span class="{css}">Stok: {product.stock}</span>', unsafe_allow_html=True)

        if product.description:
            st.write(product.description)
        if product.usage:
            st.markdown(f"*Kullanım:* {product.usage}")


def render_product_grid(products: list[Product]) -> None:
    cols = st.columns(2)
    for i, product in enumerate(products):
        with cols[i % 2]:
            render_product_card(product)


def render_profile_badge(user: User) -> None:
    """Active profile line shown above the recommendation form."""
    age = f"{user.age} yaş" if user.age is not None else "Yaş girilmedi"
    badge = ""
    if user.allergies:
        badge = ' <span class="allergy-badge">⚠️ Alerji Kaydı Mevcut</span>'
    st.markdown(
        f"**Aktif Profil:** {html.escape(user.name)} ({age}){badge}",
        unsafe_allow_html=True,
    )


def render_model_badge(label: str) -> None:
    st.markdown(f'<span class="model-badge">{html.escape(label)}</span>', unsafe_allow_html=True)


def render_history_entry(record: RecommendationRecord) -> None:
    date = datetime.fromtimestamp(record.date / 1000).strftime("%d.%m.%Y %H:%M")
    with st.expander(f"{date} · {record.complaint[:60]}"):
        st.markdown(f"**Şikayet:** {record.complaint}")
        st.markdown(record.recommendation)


def render_live_status(status: str, *, active: bool = False, error: Optional[str] = None) -> None:
    css = "live-status error" if error else ("live-status active" if active else "live-status")
    st.markdown(f'<div class="{css}">{html.escape(error or status)}</div>', unsafe_allow_html=True)
