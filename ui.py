# ui.py
"""
The user interface for the AI Photo Organizer.
Built with Streamlit, this page lets the user:
- Upload photos by picking files or dragging them onto the uploader.
- Send them to the AI model to be grouped into folders.
- Browse each folder and download it as a zip archive.
"""

import logging

import streamlit as st

# config_service must be imported before anything that logs.
from photo_organizer.services import config, gemini_service
from photo_organizer import vlm
from photo_organizer.exceptions import ExportError, InvalidTransitionError, PreviewError
from photo_organizer.export import export_folder
from photo_organizer.ui_state import UISessionState

logger = logging.getLogger(__name__)

UPLOAD_TYPES = ["png", "jpg", "jpeg", "gif", "webp", "bmp", "heic", "heif"]


# --- Section 1: Session Wiring ---

def organize_with_gemini(photos):
    """The organizer used by the session: one Gemini call per organize request."""
    return vlm.organize_photos(photos, gemini_service.generate, config.yaml)


def get_session() -> UISessionState:
    st.session_state.setdefault("uploader_generation", 0)
    return UISessionState(organizer=organize_with_gemini)


def uploader_key() -> str:
    # A new key gives the uploader a fresh, empty widget after a reset.
    return f"photo_uploader_{st.session_state.uploader_generation}"


def on_files_changed(session: UISessionState):
    """Both the file picker and drag-and-drop land here via the uploader."""
    try:
        session.select_photos(st.session_state.get(uploader_key()))
    except InvalidTransitionError as e:
        logger.warning(f"Ignored upload: {e}")


def on_reset(session: UISessionState):
    try:
        session.reset()
    except InvalidTransitionError as e:
        logger.warning(f"Ignored reset: {e}")
        return
    st.session_state.uploader_generation += 1


# --- Section 2: Upload & Organize ---

def render_intake(session: UISessionState):
    busy = session.is_organizing
    st.file_uploader(
        "Click to upload or drag and drop",
        type=UPLOAD_TYPES,
        accept_multiple_files=True,
        key=uploader_key(),
        on_change=on_files_changed,
        args=(session,),
        disabled=busy,
        help="PNG, JPG, GIF or other image formats",
    )

    if not session.photos:
        return

    st.write(f"{len(session.photos)} photo(s) selected. Ready to organize!")
    preview_columns = config.get('ui.preview_columns', 6)
    cols = st.columns(preview_columns)
    for idx, photo in enumerate(session.photos):
        with cols[idx % preview_columns]:
            st.image(session.previews.fetch(photo.preview_url), caption=photo.name, use_container_width=True)

    organize_col, reset_col, _ = st.columns([2, 1, 3])
    with organize_col:
        if st.button("✨ Organize Photos", type="primary", use_container_width=True, disabled=busy):
            with st.spinner("Organizing..."):
                session.organize()
            st.rerun()
    with reset_col:
        st.button("Reset", use_container_width=True, disabled=busy, on_click=on_reset, args=(session,))


# --- Section 3: Folder Grid ---

def render_folder_grid(session: UISessionState):
    header_col, action_col = st.columns([4, 1])
    with header_col:
        st.subheader("Your Organized Folders")
    with action_col:
        st.button("Start Over", use_container_width=True, on_click=on_reset, args=(session,))

    report = session.coverage()
    if report is not None and not report.is_complete:
        st.warning(
            "The AI did not place every photo in exactly one folder. "
            f"Unassigned: {len(report.missing)}, assigned twice: {len(report.duplicated)}, "
            f"invalid references: {len(report.out_of_range)}.",
            icon="⚠️",
        )

    folder_columns = config.get('ui.folder_columns', 4)
    cols = st.columns(folder_columns)
    for idx, folder in enumerate(session.folders):
        with cols[idx % folder_columns]:
            with st.container(border=True):
                st.markdown(f"### 📁\n**{folder.name}**")
                st.caption(f"{folder.photo_count} photos")
                if st.button("Open", key=f"open_folder_{idx}", use_container_width=True):
                    session.open_folder(idx)
                    st.rerun()


# --- Section 4: Folder View ---

def render_folder_view(session: UISessionState):
    folder = session.selected_folder
    title_col, download_col, close_col = st.columns([4, 2, 1])
    with title_col:
        st.subheader(folder.name)
        st.caption(folder.description)
    with download_col:
        try:
            archive = export_folder(folder, session.photos, session.previews,
                                    fetch_workers=config.get('export.fetch_workers', 4))
        except ExportError as e:
            st.error(f"Failed to create the zip file: {e}")
        else:
            st.download_button(
                "📥 Download Folder",
                data=archive.data,
                file_name=archive.filename,
                mime=archive.mime_type,
                use_container_width=True,
            )
    with close_col:
        if st.button("✖", help="Close", use_container_width=True):
            session.close_folder()
            st.rerun()

    photos = session.photos_in(folder)
    if len(photos) < folder.photo_count:
        st.warning(f"{folder.photo_count - len(photos)} photo reference(s) in this folder are invalid and were skipped.")

    gallery_columns = config.get('ui.gallery_columns', 4)
    cols = st.columns(gallery_columns)
    for idx, photo in enumerate(photos):
        with cols[idx % gallery_columns]:
            try:
                st.image(session.previews.fetch(photo.preview_url), use_container_width=True,
                         caption=f"Photo {idx + 1} in folder {folder.name}")
            except PreviewError:
                st.error("🖼️ Photo failed to load", icon="⚠️")


# --- Section 5: Page ---

def main():
    st.set_page_config(page_title="AI Photo Organizer", page_icon="📁", layout="wide")
    st.title("AI Photo Organizer")
    st.caption("Upload your memories and let AI sort them into beautiful collections.")

    session = get_session()

    if session.folders is None:
        render_intake(session)

    if session.error:
        st.error(session.error)

    if session.status == "organized":
        if session.selected_folder is not None:
            render_folder_view(session)
        else:
            render_folder_grid(session)


main()
