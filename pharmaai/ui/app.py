"""
Streamlit entrypoint: page config, logging, routing and dispatch.
"""

from __future__ import annotations

import streamlit as st

from pharmaai import __version__
from pharmaai.config import settings
from pharmaai.logging_config import LogContextManager, configure_logging, log_event
from pharmaai.models import AppMode, User
from pharmaai.routes import page_title, parse_mode, resolve_route
from pharmaai.ui import pages
from pharmaai.ui.components import render_sidebar
from pharmaai.ui.session import get_current_user, get_inventory, get_session_id, init_session_state
from pharmaai.ui.styles import apply_styles


@st.cache_resource
def _init_logging() -> bool:
    configure_logging(environment="development" if settings.debug_mode else "production")
    log_event("app_started", version=__version__)
    return True


def _dispatch(mode: AppMode, user: User | None) -> None:
    # resolve_route guarantees a user for every page except AUTH
    if mode == AppMode.AUTH or user is None:
        pages.render_auth_page()
    elif mode == AppMode.INVENTORY:
        pages.render_inventory_page()
    elif mode == AppMode.STAFF:
        pages.render_staff_page(user)
    elif mode == AppMode.SEARCH:
        pages.render_search_page()
    elif mode == AppMode.RECOMMEND:
        pages.render_recommend_page(user)
    elif mode == AppMode.CHAT:
        pages.render_chat_page()
    elif mode == AppMode.LIVE:
        pages.render_live_page()
    elif mode == AppMode.VISION:
        pages.render_vision_page()
    elif mode == AppMode.TRANSCRIBE:
        pages.render_transcribe_page()
    elif mode == AppMode.PROFILE:
        pages.render_profile_page(user)


def main() -> None:
    requested = parse_mode(st.query_params.get("page"))
    st.set_page_config(
        page_title=f"{page_title(requested)} · {settings.app_title}",
        page_icon="💊",
        layout="wide",
    )
    _init_logging()
    init_session_state()
    apply_styles()

    user = get_current_user()
    mode = resolve_route(requested, user)
    if mode != requested:
        st.query_params["page"] = mode.value

    with LogContextManager(
        session_id=get_session_id(),
        user_id=user.id if user is not None else None,
        page=mode.value,
    ):
        render_sidebar(user, get_inventory(), mode)
        _dispatch(mode, user)


if __name__ == "__main__":
    main()
