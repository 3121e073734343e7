"""
Page routing: titles, role-based navigation and access rules.

The UI addresses pages through the ``page`` query parameter; this module is
pure so the rules can be tested without Streamlit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pharmaai.models import AppMode, User

DEFAULT_TITLE = "PharmaAI"

PAGE_TITLES: dict[AppMode, str] = {
    AppMode.INVENTORY: "Envanter Yönetimi",
    AppMode.STAFF: "Personel Yönetimi",
    AppMode.SEARCH: "İlaç Arama",
    AppMode.RECOMMEND: "Akıllı Öneri",
    AppMode.CHAT: "AI Sohbet",
    AppMode.LIVE: "Canlı Asistan",
    AppMode.VISION: "Görsel Analiz",
    AppMode.TRANSCRIBE: "Ses Çözümleme",
    AppMode.PROFILE: "Profil",
    AppMode.AUTH: "Giriş",
}

PHARMACIST_ONLY = frozenset({AppMode.INVENTORY, AppMode.STAFF})
PUBLIC = frozenset({AppMode.AUTH})


@dataclass(frozen=True)
class NavItem:
    mode: AppMode
    label: str
    icon: str


@dataclass(frozen=True)
class NavSection:
    title: str
    items: tuple[NavItem, ...]


MANAGEMENT_SECTION = NavSection(
    "YÖNETİM",
    (
        NavItem(AppMode.INVENTORY, "Envanter Yönetimi", ":material/inventory_2:"),
        NavItem(AppMode.SEARCH, "İlaç Veritabanı", ":material/search:"),
        NavItem(AppMode.STAFF, "Personel Yönetimi", ":material/group:"),
    ),
)

ASSISTANT_SECTION = NavSection(
    "ASİSTAN",
    (
        NavItem(AppMode.RECOMMEND, "Akıllı Öneri", ":material/dashboard:"),
        NavItem(AppMode.CHAT, "AI Sohbet", ":material/chat:"),
        NavItem(AppMode.LIVE, "Canlı Asistan", ":material/radio:"),
        NavItem(AppMode.VISION, "Görsel Analiz", ":material/photo_camera:"),
        NavItem(AppMode.TRANSCRIBE, "Ses Çözümleme", ":material/mic:"),
    ),
)

PROFILE_ITEM = NavItem(AppMode.PROFILE, "Profilim", ":material/person:")
LOGIN_ITEM = NavItem(AppMode.AUTH, "Giriş Yap / Kayıt Ol", ":material/login:")


def page_title(mode: Optional[AppMode]) -> str:
    if mode is None:
        return DEFAULT_TITLE
    return PAGE_TITLES.get(mode, DEFAULT_TITLE)


def parse_mode(value: Optional[str]) -> Optional[AppMode]:
    """Query parameter value -> AppMode, None for missing or unknown pages."""
    if not value:
        return None
    try:
        return AppMode(value.strip().lower())
    except ValueError:
        return None


def nav_sections(user: Optional[User]) -> list[NavSection]:
    sections = []
    if user is not None and user.is_pharmacist:
        sections.append(MANAGEMENT_SECTION)
    sections.append(ASSISTANT_SECTION)
    sections.append(NavSection("HESAP", (PROFILE_ITEM if user is not None else LOGIN_ITEM,)))
    return sections


def home_for(user: Optional[User]) -> AppMode:
    return AppMode.RECOMMEND if user is not None else AppMode.AUTH


def resolve_route(mode: Optional[AppMode | str], user: Optional[User]) -> AppMode:
    """
    Apply the access rules and return the page that should actually render.

    - unknown or missing page: recommend when logged in, auth otherwise
    - auth while logged in: inventory for pharmacists, profile for patients
    - any other page without a session: auth
    - pharmacist-only pages for patients: recommend
    """
    if isinstance(mode, str) and not isinstance(mode, AppMode):
        mode = parse_mode(mode)
    if mode is None:
        return home_for(user)

    if mode in PUBLIC:
        if user is None:
            return mode
        return AppMode.INVENTORY if user.is_pharmacist else AppMode.PROFILE

    if user is None:
        return AppMode.AUTH

    if mode in PHARMACIST_ONLY and not user.is_pharmacist:
        return AppMode.RECOMMEND

    return mode
