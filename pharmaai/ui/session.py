"""
Session state helpers for the Streamlit UI.
"""

from __future__ import annotations

import uuid
from typing import Optional

import streamlit as st

from pharmaai.auth import AuthService
from pharmaai.inventory import Inventory
from pharmaai.models import AppMode, Message, User

CHAT_GREETING = (
    "Merhaba! Ben Eczane asistanınızım. Stoklarımızla ilgili veya genel sağlık sorularınızı sorabilirsiniz."
)


def init_session_state() -> None:
    if "_session_id" not in st.session_state:
        st.session_state["_session_id"] = str(uuid.uuid4())
    if "_inventory" not in st.session_state:
        st.session_state["_inventory"] = Inventory()
    if "_chat_messages" not in st.session_state:
        reset_chat()


def get_session_id() -> str:
    return st.session_state.get("_session_id", "default")


def get_inventory() -> Inventory:
    return st.session_state["_inventory"]


def get_auth_service() -> AuthService:
    """Auth bound to this browser session's state."""
    return AuthService(st.session_state)


def get_current_user() -> Optional[User]:
    return get_auth_service().get_current_user()


def navigate(mode: AppMode) -> None:
    st.query_params["page"] = mode.value
    st.rerun()


# ----------------------------------------------------------------------
# Chat
# ----------------------------------------------------------------------


def reset_chat() -> None:
    st.session_state["_chat_messages"] = [Message(id="init", role="model", content=CHAT_GREETING)]
    st.session_state.pop("_chat", None)
    st.session_state.pop("_chat_inventory_key", None)


def get_chat_messages() -> list[Message]:
    return st.session_state["_chat_messages"]


def append_chat_message(message: Message) -> None:
    st.session_state["_chat_messages"].append(message)


def inventory_key(inventory: Inventory) -> tuple[str, ...]:
    """Identity of the inventory snapshot a chat session was created for."""
    return tuple(product.id for product in inventory)


# ----------------------------------------------------------------------
# Page results (kept across reruns)
# ----------------------------------------------------------------------


def get_result(page: str) -> Optional[str]:
    return st.session_state.get(f"_result_{page}")


def set_result(page: str, value: Optional[str]) -> None:
    st.session_state[f"_result_{page}"] = value
