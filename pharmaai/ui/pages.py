"""
Page renderers, one per AppMode.

Every model call is wrapped at the call site; failures surface as the literal
Turkish strings below and never escape to Streamlit.
"""

from __future__ import annotations

import asyncio
import logging

import streamlit as st

from pharmaai.ai_service import get_gemini_service, handle_gemini_error
from pharmaai.config import GENDERS, ROLE_LABELS, settings
from pharmaai.exceptions import PharmaAIError, exception_to_user_message
from pharmaai.live_audio import LiveSession, prepare_recording
from pharmaai.logging_config import log_event
from pharmaai.models import AppMode, Message, RecommendationRecord, User
from pharmaai.search import categories, semantic_search, standard_search
from pharmaai.ui.components import (
    render_history_entry,
    render_live_status,
    render_model_badge,
    render_product_grid,
    render_profile_badge,
)
from pharmaai.ui.session import (
    append_chat_message,
    get_auth_service,
    get_chat_messages,
    get_inventory,
    get_result,
    inventory_key,
    navigate,
    reset_chat,
    set_result,
)

logger = logging.getLogger(__name__)

RECOMMEND_ERROR = "Bir hata oluştu. Lütfen tekrar deneyin."
CHAT_ERROR = "Üzgünüm, bir bağlantı hatası oluştu."
VISION_ERROR = "Analiz sırasında bir hata oluştu."
TRANSCRIBE_ERROR = "Çeviri sırasında hata oluştu."
EMPTY_INVENTORY_HINT = 'Lütfen önce "Ürünler" sekmesinden envanter yükleyin.'
SEARCH_FALLBACK_NOTE = "AI araması başarısız oldu, standart arama sonuçları gösteriliyor."
INVENTORY_FILE_TYPES = ["csv", "txt"]


# ----------------------------------------------------------------------
# Management
# ----------------------------------------------------------------------


def render_inventory_page() -> None:
    inventory = get_inventory()
    st.title("Eczane Envanter Yönetimi")
    st.caption(
        "Ürünlerinizi yükleyin (.csv) veya demo verisi ekleyin. Bu veriler yapay zeka önerilerinde kullanılacaktır."
    )

    col1, col2 = st.columns([2, 1])
    with col1:
        uploaded = st.file_uploader(
            "CSV Dosyası",
            type=INVENTORY_FILE_TYPES,
            help="Sütunlar: name, category, description, stock, usage",
        )
        if uploaded is not None and st.button("Envantere Ekle", type="primary"):
            try:
                added = inventory.import_csv(uploaded.getvalue(), uploaded.name)
            except PharmaAIError as e:
                st.error(exception_to_user_message(e))
            else:
                st.success(f"{added} ürün eklendi.")
    with col2:
        if st.button("Demo Verisi Ekle", use_container_width=True):
            inventory.add_demo_data()
            st.rerun()
        if st.button("Envanteri Temizle", use_container_width=True, disabled=not inventory):
            inventory.clear()
            st.rerun()

    if not inventory:
        st.info("Henüz ürün yok. CSV yükleyin veya demo verisi ekleyin.")
        return

    st.markdown(f"### Ürünler ({len(inventory)})")
    st.dataframe(
        [product.model_dump(exclude={"id"}) for product in inventory],
        use_container_width=True,
        hide_index=True,
    )
    st.download_button(
        "CSV Olarak İndir",
        inventory.to_csv().encode("utf-8"),
        file_name="envanter.csv",
        mime="text/csv",
    )


def render_staff_page(user: User) -> None:
    auth = get_auth_service()
    st.title("Personel Yönetimi")

    with st.container(border=True):
        st.markdown("### Yeni Personel Ekle")
        st.caption("Eczane çalışanları için hesap oluşturun.")
        with st.form("staff_form", clear_on_submit=True):
            name = st.text_input("Ad Soyad")
            username = st.text_input("Kullanıcı Adı")
            password = st.text_input("Şifre", type="password")
            submitted = st.form_submit_button("Personel Oluştur", type="primary")

        if submitted:
            try:
                auth.register_staff(user.email, username.strip(), password, name.strip())
            except PharmaAIError as e:
                st.error(exception_to_user_message(e, fallback="Bir hata oluştu."))
            else:
                st.success("Personel başarıyla oluşturuldu!")

    st.markdown("### Personel Listesi")
    try:
        staff = auth.get_staff_list()
    except PharmaAIError as e:
        st.error(exception_to_user_message(e))
        return
    st.dataframe(
        [{"Ad Soyad": member.name, "Kullanıcı Adı": member.email} for member in staff],
        use_container_width=True,
        hide_index=True,
    )


def render_search_page() -> None:
    inventory = get_inventory()
    st.title("İlaç Arama Motoru")
    st.caption("İlaç adı, etken madde, endikasyon veya yan etkiye göre arayın.")

    if not inventory:
        st.info(EMPTY_INVENTORY_HINT)
        return

    mode = st.radio("Arama Modu", ["Standart", "AI Semantik"], horizontal=True)
    col1, col2 = st.columns([3, 1])
    with col1:
        term = st.text_input("Arama", placeholder="Örn: baş ağrısı, ateş düşürücü...")
    with col2:
        category = st.selectbox("Kategori", categories(inventory.products))

    if mode == "Standart":
        results = standard_search(inventory.products, term, category)
    else:
        results = None
        if st.button("AI ile Ara", type="primary", disabled=not term.strip()):
            with st.spinner("Gemini ile aranıyor..."):
                outcome = semantic_search(inventory.products, term, get_gemini_service(), category=category)
            if outcome is not None:
                if outcome.fell_back:
                    st.warning(SEARCH_FALLBACK_NOTE)
                results = outcome.products
        if results is None:
            results = standard_search(inventory.products, "", category)

    st.markdown(f"### Sonuçlar ({len(results)})")
    if not results:
        st.info("Aramanızla eşleşen ürün bulunamadı.")
        return
    render_product_grid(results)


# ----------------------------------------------------------------------
# Assistant
# ----------------------------------------------------------------------


def render_recommend_page(user: User) -> None:
    inventory = get_inventory()
    st.title("Akıllı İlaç Asistanı")
    st.caption("Hasta şikayetini girin, stoktan en uygun ürünü bulalım.")
    render_profile_badge(user)

    complaint = st.text_area(
        "Hasta Şikayeti / Belirtiler",
        placeholder="Örn: Hastanın başı ağrıyor ve hafif ateşi var...",
        height=140,
    )
    if not inventory:
        st.warning(EMPTY_INVENTORY_HINT)

    if st.button("Öneri Al", type="primary", disabled=not complaint.strip() or not inventory):
        with st.spinner("Gemini analiz ediyor..."):
            try:
                result = get_gemini_service().get_recommendation(complaint, inventory.products, user)
            except Exception as e:
                set_result("recommend", None)
                st.error(handle_gemini_error(e, RECOMMEND_ERROR))
            else:
                set_result("recommend", result)
                _save_history(complaint, result)

    result = get_result("recommend")
    if result:
        with st.container(border=True):
            st.markdown("#### Gemini Analiz Sonucu")
            st.markdown(result)


def _save_history(complaint: str, recommendation: str) -> None:
    try:
        get_auth_service().add_to_history(RecommendationRecord(complaint=complaint, recommendation=recommendation))
    except PharmaAIError as e:
        logger.warning("Could not save recommendation history: %s", e)


def render_chat_page() -> None:
    inventory = get_inventory()
    col1, col2 = st.columns([3, 1])
    with col1:
        st.title("PharmaAI Chat")
    with col2:
        render_model_badge("Gemini 3.0 Pro")
        if st.button("Sohbeti Temizle", use_container_width=True):
            reset_chat()
            st.rerun()

    for message in get_chat_messages():
        with st.chat_message("user" if message.role == "user" else "assistant"):
            st.markdown(message.content)

    prompt = st.chat_input("Sorunuzu yazın...")
    if not prompt:
        return

    append_chat_message(Message(role="user", content=prompt))
    with st.chat_message("user"):
        st.markdown(prompt)

    with st.chat_message("assistant"):
        try:
            chat = _get_chat(inventory)
            answer = st.write_stream(chat.send_message_stream(prompt))
        except Exception as e:
            answer = handle_gemini_error(e, CHAT_ERROR)
            st.markdown(answer)
    append_chat_message(Message(role="model", content=answer if isinstance(answer, str) else "".join(answer)))


def _get_chat(inventory):
    """Chat session for the current inventory; a changed inventory starts a new one."""
    key = inventory_key(inventory)
    if st.session_state.get("_chat") is None or st.session_state.get("_chat_inventory_key") != key:
        st.session_state["_chat"] = get_gemini_service().create_pharmacy_chat(inventory.products)
        st.session_state["_chat_inventory_key"] = key
    return st.session_state["_chat"]


def render_live_page() -> None:
    st.title("Canlı Asistan")
    st.caption("Gemini 2.5 Native Audio Live API")

    if not settings.enable_live_audio:
        st.info("Canlı asistan bu kurulumda devre dışı.")
        return

    if "_live_session" not in st.session_state:
        st.session_state["_live_session"] = LiveSession()
    session: LiveSession = st.session_state["_live_session"]

    recording = st.audio_input("Sorunuzu kaydedin")

    col1, col2 = st.columns(2)
    with col1:
        start = st.button("Konuşmayı Başlat", type="primary", disabled=recording is None, use_container_width=True)
    with col2:
        if st.button("Bitir", use_container_width=True):
            session.stop()
            st.session_state.pop("_live_result", None)

    if start and recording is not None:
        try:
            frames = prepare_recording(recording.getvalue())
        except PharmaAIError as e:
            st.error(exception_to_user_message(e))
        else:
            session.scheduler.reset()
            with st.spinner("Gemini dinliyor..."):
                st.session_state["_live_result"] = asyncio.run(session.run_turn(frames))

    render_live_status(session.status, active=session.is_active, error=session.error)

    result = st.session_state.get("_live_result")
    if result is not None and result.audio:
        st.audio(result.audio, format="audio/wav", autoplay=True)
        st.caption(f"{result.duration:.1f} sn yanıt")


def render_vision_page() -> None:
    st.title("Görsel Analiz")
    col1, col2 = st.columns(2)

    with col1:
        st.markdown("#### Reçete veya Ürün Fotoğrafı Yükle")
        image = st.file_uploader("JPG, PNG (Max 5MB)", type=["jpg", "jpeg", "png", "webp"])
        if image is not None:
            st.image(image, use_container_width=True)
        question = st.text_input(
            "Ek Soru (Opsiyonel)",
            placeholder="Örn: Bu reçetedeki ilaçların kullanım şekli nedir?",
        )
        analyze = st.button("Analiz Et", type="primary", disabled=image is None)

    with col2:
        st.markdown("#### Analiz Sonuçları")
        if analyze and image is not None:
            with st.spinner("Görüntü işleniyor ve analiz ediliyor..."):
                try:
                    result = get_gemini_service().analyze_medical_image(
                        image.getvalue(), question, image.type or "image/jpeg"
                    )
                except Exception as e:
                    result = handle_gemini_error(e, VISION_ERROR)
            set_result("vision", result)

        result = get_result("vision")
        if result:
            st.markdown(result)
        else:
            st.info('Sol taraftan bir görüntü yükleyip "Analiz Et" butonuna basın.')


def render_transcribe_page() -> None:
    st.title("Ses Çözümleme")
    st.caption("Hasta şikayetlerini içeren ses kayıtlarını metne dökün.")

    audio = st.file_uploader("Ses Dosyası Seç (MP3, WAV)", type=["mp3", "wav", "m4a", "ogg", "webm"])
    if audio is not None:
        st.audio(audio)

    if st.button("Metne Dök", type="primary", disabled=audio is None) and audio is not None:
        with st.spinner("Ses çözümleniyor..."):
            try:
                result = get_gemini_service().transcribe_audio(audio.getvalue(), audio.type or "audio/mpeg")
            except Exception as e:
                result = handle_gemini_error(e, TRANSCRIBE_ERROR)
        set_result("transcribe", result)

    result = get_result("transcribe")
    if result:
        with st.container(border=True):
            st.markdown("#### Çözümleme Sonucu")
            st.write(result)


# ----------------------------------------------------------------------
# Account
# ----------------------------------------------------------------------


def render_profile_page(user: User) -> None:
    auth = get_auth_service()
    col1, col2 = st.columns([3, 1])
    with col1:
        st.title("Kullanıcı Profili")
        st.markdown(f"**{user.name}** · {user.email}")
    with col2:
        if st.button("Çıkış Yap", use_container_width=True):
            auth.logout()
            reset_chat()
            navigate(AppMode.AUTH)

    editing = st.session_state.get("_profile_editing", False)
    if not editing and st.button("Düzenle"):
        st.session_state["_profile_editing"] = True
        st.rerun()

    if editing:
        with st.form("profile_form"):
            age = st.number_input("Yaş", min_value=0, max_value=130, value=user.age, step=1)
            gender_options = ["", *GENDERS]
            gender = st.selectbox(
                "Cinsiyet",
                gender_options,
                index=gender_options.index(user.gender) if user.gender else 0,
                format_func=lambda value: value or "Belirtilmemiş",
            )
            allergies = st.text_area(
                "Alerjiler / Kronik Durumlar", value=user.allergies or "", placeholder="Penisilin vb."
            )
            if st.form_submit_button("Kaydet", type="primary"):
                data = {
                    "age": int(age) if age is not None else None,
                    "gender": gender or None,
                    "allergies": allergies.strip() or None,
                }
                try:
                    auth.update_user_profile(user.email, data)
                except PharmaAIError as e:
                    logger.error("Profile update failed: %s", e)
                    st.error(exception_to_user_message(e))
                else:
                    log_event("profile_updated", fields=sorted(data))
                    st.session_state["_profile_editing"] = False
                    st.rerun()
    else:
        c1, c2, c3 = st.columns(3)
        c1.metric("Yaş", user.age if user.age is not None else "Belirtilmemiş")
        c2.metric("Cinsiyet", user.gender or "Belirtilmemiş")
        c3.markdown(f"**Alerjiler / Kronik Durumlar**  \n{user.allergies or 'Belirtilmemiş'}")

    st.markdown("### Geçmiş Öneriler")
    if not user.history:
        st.info("Henüz bir öneri geçmişiniz bulunmuyor.")
        return
    for record in user.history:
        render_history_entry(record)


def render_auth_page() -> None:
    auth = get_auth_service()
    role = st.radio(
        "Hesap Türü",
        ["patient", "pharmacist"],
        format_func=ROLE_LABELS.get,
        horizontal=True,
        label_visibility="collapsed",
    )
    is_pharmacist = role == "pharmacist"
    is_register = False if is_pharmacist else st.toggle("Yeni hesap oluştur", key="_auth_register")

    st.title("Eczane Yönetimi" if is_pharmacist else "PharmaAI Asistan")
    if is_register:
        st.caption("Sağlık geçmişinizi takip etmek için kayıt olun")
    elif is_pharmacist:
        st.caption("Yetkili personel girişi")
    else:
        st.caption("Hesabınıza giriş yaparak devam edin")

    with st.form("auth_form"):
        name = st.text_input("İsim Soyisim", placeholder="Adınız Soyadınız") if is_register else ""
        email = st.text_input("Kullanıcı Adı" if is_pharmacist else "E-posta Adresi")
        password = st.text_input(
            "Şifre", type="password", help="En az 6 karakter" if is_register else None
        )
        submitted = st.form_submit_button("Hesap Oluştur" if is_register else "Giriş Yap", type="primary")

    if not submitted:
        return

    try:
        if is_register:
            auth.register(email.strip(), password, name.strip(), role)
        else:
            auth.login(email.strip(), password)
    except PharmaAIError as e:
        st.error(exception_to_user_message(e, fallback="Kayıt başarısız." if is_register else "Giriş başarısız."))
        return

    navigate(AppMode.INVENTORY if is_pharmacist else AppMode.RECOMMEND)
