"""
app.py
Streamlit Gym Membership System (owner-only).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging

import pandas as pd
import streamlit as st

import auth
import utils
from config import settings
from errors import MembershipError
from models import GENDERS, MEMBERSHIP_DAYS, RenewalOutcome
from service import MembershipService

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=settings.LOG_LEVEL,
)
log = logging.getLogger(__name__)

st.set_page_config(page_title="Gym Membership System", layout="wide")

TYPE_LABELS = {t: f"{t} ({d} days)" for t, d in MEMBERSHIP_DAYS.items()}


@st.cache_resource
def get_service() -> MembershipService:
    # One store per server process; Streamlit reruns share it.
    service = MembershipService.from_settings(settings)
    loaded = service.bootstrap(seed_sample=settings.SEED_SAMPLE_DATA)
    if loaded:
        log.info("Loaded %d member(s) from %s", loaded, settings.DATA_FILE)
    else:
        log.info("No valid data file found; started with sample data")
    return service


def init_once():
    auth.init_credentials(settings.CREDENTIALS_FILE, settings.DEFAULT_ADMIN_PASSWORD)


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("Logged out.")


def report_saved(result, message: str):
    if result.saved:
        st.success(f"{message} (saved)")
    else:
        st.warning(f"{message}, but it could not be written to disk. Use Settings > Save now to retry.")


def views_frame(views) -> pd.DataFrame:
    df = utils.members_to_frame(views)
    df["remaining_days"] = df["remaining_days"].map(lambda d: "---" if pd.isna(d) else f"{int(d)} days")
    return df


def login_screen():
    st.title("🔐 Gym Owner Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value=auth.DEFAULT_USERNAME)
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(settings.CREDENTIALS_FILE, username.strip(), password):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default owner account:\n\n"
            f"- username: **{auth.DEFAULT_USERNAME}**\n"
            "- password: the configured default\n\n"
            "You will be forced to change it on first login."
        )


def password_form(force: bool):
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(new1, new2)
        for e in errors:
            st.error(e)
        if errors:
            return
        if auth.change_password(settings.CREDENTIALS_FILE, st.session_state.username, new1):
            st.success("Password updated.")
            if force:
                st.rerun()
        else:
            st.error("Password could not be saved. Try again.")


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")
    st.warning("You must change the default password before using the app.")
    password_form(force=True)


# ---------- Pages ----------

def dashboard_page(service: MembershipService):
    st.header("📊 Dashboard")

    stats = service.statistics(window=settings.EXPIRY_WARNING_DAYS)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total members", stats.total)
    c2.metric("Active members", stats.active)
    c3.metric(f"Expiring in {settings.EXPIRY_WARNING_DAYS} days", len(stats.expiring_soon))
    c4.metric("Inactive members", stats.total - stats.active)

    st.subheader("Active members by type")
    st.dataframe(
        pd.DataFrame({
            "membership_type": list(stats.by_type),
            "count": list(stats.by_type.values()),
            "share_%": [round(stats.share_by_type[t], 1) for t in stats.by_type],
        }),
        use_container_width=True,
        hide_index=True,
    )

    st.divider()

    st.subheader(f"Expiring soon (next {settings.EXPIRY_WARNING_DAYS} days)")
    if stats.expiring_soon:
        st.dataframe(views_frame(stats.expiring_soon), use_container_width=True, hide_index=True)
    else:
        st.caption("No members expiring soon.")


def add_member_form(service: MembershipService):
    st.subheader("➕ Add Member")

    col1, col2, col3 = st.columns(3)
    with col1:
        name = st.text_input("Name")
        gender = st.selectbox("Gender", options=list(GENDERS))
    with col2:
        age = st.number_input("Age", min_value=0, max_value=150, value=25, step=1)
        phone = st.text_input("Phone (11 digits)")
    with col3:
        membership_type = st.selectbox(
            "Membership type", options=list(MEMBERSHIP_DAYS), format_func=TYPE_LABELS.get
        )
        st.caption(f"Join date: {utils.today_iso()} (today)")

    if st.button("Add member", type="primary"):
        try:
            result = service.add(name, gender, int(age), phone.strip(), membership_type)
        except MembershipError as e:
            for msg in getattr(e, "errors", [str(e)]):
                st.error(msg)
            return
        report_saved(result, f"Member added with card ID {result.record.card_id}")


def members_page(service: MembershipService):
    st.header("👥 Members")

    views = service.list_members()
    st.caption(f"Today: {utils.today_iso()}")
    st.dataframe(views_frame(views), use_container_width=True, hide_index=True)

    st.divider()

    colA, colB = st.columns(2)
    with colA:
        st.subheader("📞 Update phone")
        card_id = st.number_input("Card ID", min_value=1, step=1, key="phone_card")
        new_phone = st.text_input("New phone (11 digits)")
        if st.button("Update phone"):
            try:
                result = service.update_phone(int(card_id), new_phone.strip())
            except MembershipError as e:
                st.error(str(e))
            else:
                report_saved(result, "Phone updated")

    with colB:
        st.subheader("🗑️ Delete member")
        st.caption("Only expired or deactivated members can be deleted.")
        del_id = st.number_input("Card ID", min_value=1, step=1, key="del_card")
        delete_confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
        if st.button("Delete", type="secondary", disabled=not delete_confirm):
            try:
                result = service.delete(int(del_id))
            except MembershipError as e:
                st.error(str(e))
            else:
                report_saved(result, "Member deleted")

    st.divider()
    add_member_form(service)


def search_page(service: MembershipService):
    st.header("🔎 Search")

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("By card ID")
        card_id = st.number_input("Card ID", min_value=1, step=1)
        if st.button("Find"):
            view = service.find_by_id(int(card_id))
            if view is None:
                st.error(f"No member with card ID {int(card_id)}.")
            else:
                st.dataframe(views_frame([view]), use_container_width=True, hide_index=True)

    with col2:
        st.subheader("By name")
        fragment = st.text_input("Name contains")
        if fragment.strip():
            views = service.find_by_name(fragment)
            if views:
                st.dataframe(views_frame(views), use_container_width=True, hide_index=True)
            else:
                st.caption("No matching members.")


def renewals_page(service: MembershipService):
    st.header("🔁 Renewals")
    st.caption(
        "A still-valid member can only renew the same type; the extra days are added on top. "
        "Expired or deactivated members start over from today with any type."
    )

    card_id = st.number_input("Card ID", min_value=1, step=1)
    view = service.find_by_id(int(card_id))
    if view is None:
        st.info("Enter the card ID of an existing member.")
        return

    m = view.record
    remaining = "---" if view.remaining_days is None else f"{view.remaining_days} days"
    st.write(
        f"**{m.name}** | Type: **{m.membership_type}** | "
        f"Status: **{'active' if m.is_active else 'expired'}** | Remaining: **{remaining}**"
    )

    membership_type = st.selectbox(
        "Renew as",
        options=list(MEMBERSHIP_DAYS),
        index=list(MEMBERSHIP_DAYS).index(m.membership_type),
        format_func=TYPE_LABELS.get,
    )

    if st.button("Renew", type="primary"):
        try:
            result = service.renew(m.card_id, membership_type)
        except MembershipError as e:
            st.error(str(e))
            return
        if result.outcome is RenewalOutcome.REJECTED:
            st.error(
                f"Renewal refused: the member is still valid as {m.membership_type}. "
                "Wait for expiry or deactivate first to switch type."
            )
        elif result.outcome is RenewalOutcome.EXTENDED:
            report_saved(result, f"Extended by {MEMBERSHIP_DAYS[membership_type]} days")
        else:
            report_saved(result, f"Restarted from today as {membership_type}")


def status_page(service: MembershipService):
    st.header("⛔ Deactivate Member")
    st.warning("Deactivation cannot be undone; the member must renew to become active again.")

    card_id = st.number_input("Card ID", min_value=1, step=1)
    confirm = st.checkbox("Confirm deactivation", value=False)
    if st.button("Deactivate", type="primary", disabled=not confirm):
        try:
            result = service.deactivate(int(card_id))
        except MembershipError as e:
            st.error(str(e))
        else:
            report_saved(result, f"Member {result.record.name} deactivated")


def reports_page(service: MembershipService):
    st.header("🧾 Reports")

    st.subheader("Export members to CSV")
    views = service.list_members()
    if views:
        st.download_button(
            "Download members.csv",
            data=utils.members_to_csv_bytes(views),
            file_name="members.csv",
            mime="text/csv",
        )
    else:
        st.caption("No members to export.")


def settings_page(service: MembershipService):
    st.header("⚙️ Settings")

    st.subheader("Change password")
    password_form(force=False)

    st.divider()

    st.subheader("Data file")
    st.caption(f"{service.data_file} ({len(service.store)} / {service.store.capacity} members)")
    if st.button("Save now"):
        if service.save():
            st.success("Saved.")
        else:
            st.error("Save failed; see the log for details.")


PAGES = {
    "Dashboard": dashboard_page,
    "Members": members_page,
    "Search": search_page,
    "Renewals": renewals_page,
    "Status": status_page,
    "Reports": reports_page,
    "Settings": settings_page,
}


def main_app():
    service = get_service()

    st.sidebar.title("🏋️ Gym Membership")
    st.sidebar.caption(f"Logged in as: {st.session_state.username}")

    pages = list(PAGES)
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Save & exit"):
        if service.shutdown():
            st.sidebar.success("Data saved.")
            logout()
            st.rerun()
        else:
            st.sidebar.error("Final save failed; data is still in memory.")

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    PAGES[st.session_state.page](service)


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login
    if auth.is_force_password_change(settings.CREDENTIALS_FILE, st.session_state.username):
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
