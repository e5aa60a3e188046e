"""
Streamlit Frontend for Every Rand

This is the page users interact with every month.

DESIGN PRINCIPLES:
1. The "Left to Budget" number is always visible
2. Explicit confirmation before deleting or starting a new month
3. Clear error messages in simple language
4. Edits show up immediately; storage catches up in the background

The ledger's background writes need an event loop that outlives a single
Streamlit rerun, so one loop runs in a daemon thread for the whole process.
"""

import asyncio
import threading

import streamlit as st

from every_rand.auth import AccountSessionProvider, AuthError
from every_rand.config import get_settings
from every_rand.formatting import format_currency
from every_rand.ledger import (
    BudgetLedger,
    LedgerError,
    LoadFailed,
    RolloverFailed,
    WriteFailed,
)
from every_rand.log import configure_logging
from every_rand.models import LineItem, LineItemType
from every_rand.orchestrator import create_session_components, create_store


# Page configuration
st.set_page_config(
    page_title="Every Rand",
    page_icon="🇿🇦",
    layout="centered",
    initial_sidebar_state="collapsed",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .budget-banner {
        padding: 20px;
        background-color: #2563eb;
        color: white;
        border-radius: 12px;
        text-align: center;
        margin-bottom: 20px;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: 800;
    }
    .balanced {
        color: #86efac;
    }
    .budget-warning {
        color: #fde047;
        font-size: 0.85em;
    }
    .rollover-badge {
        color: #3b82f6;
        font-size: 0.8em;
        font-weight: 600;
    }
    .group-label {
        color: #9ca3af;
        font-size: 0.75em;
        text-transform: uppercase;
        letter-spacing: 0.05em;
    }
</style>
""", unsafe_allow_html=True)


BABY_STEPS = [
    (1, "R15k Emergency Fund"),
    (2, "Kill Debt (Snowball)"),
    (3, "Invest 15% (TFSA)"),
]


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """Start the process-wide event loop in a background thread."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    return loop


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


async def _call_in_loop(fn, *args, **kwargs):
    return fn(*args, **kwargs)


def run_in_loop(fn, *args, **kwargs):
    """Run a synchronous ledger call on the event loop thread."""
    return run_async(_call_in_loop(fn, *args, **kwargs))


@st.cache_resource
def get_store():
    """Get or create the document store (cached for the process)."""
    app_settings = get_settings().app
    configure_logging(app_settings.log_level, app_settings.log_json)
    store, _ = create_store(use_storage=True)
    return store


def get_session_components() -> tuple[AccountSessionProvider, BudgetLedger]:
    """Provider and ledger for this browser session."""
    if "ledger" not in st.session_state:
        provider, ledger = create_session_components(get_store())
        st.session_state.provider = provider
        st.session_state.ledger = ledger
    return st.session_state.provider, st.session_state.ledger


def money(amount) -> str:
    return format_currency(amount, symbol=get_settings().app.currency_symbol)


def reset_amount_widgets() -> None:
    """Forget cached input values so inputs show freshly loaded amounts."""
    for key in list(st.session_state.keys()):
        if str(key).startswith("planned_"):
            del st.session_state[key]


def main():
    """Main application entry point."""
    provider, ledger = get_session_components()

    if provider.current_session() is None:
        render_auth_page(provider)
    else:
        render_ledger_page(provider, ledger)


def render_auth_page(provider: AccountSessionProvider):
    """Render the log in / sign up form."""
    if "auth_mode" not in st.session_state:
        st.session_state.auth_mode = "login"
    is_login = st.session_state.auth_mode == "login"

    st.title("Welcome Back!" if is_login else "Start Your Zero-Based Budget")
    st.markdown(
        "Log in to Every Rand." if is_login else "Sign up and give every rand a name."
    )

    min_length = get_settings().app.min_password_length
    with st.form("auth_form"):
        email = st.text_input("Email Address")
        password = st.text_input(
            f"Password (min {min_length} characters)",
            type="password",
        )
        submitted = st.form_submit_button(
            "Log In" if is_login else "Create Account",
            type="primary",
        )

    if submitted:
        try:
            if is_login:
                run_async(provider.sign_in(email, password))
            else:
                run_async(provider.sign_up(email, password))
            st.rerun()
        except AuthError as e:
            st.error(str(e))

    toggle_label = (
        "Need an account? Sign up" if is_login else "Already have an account? Log in"
    )
    if st.button(toggle_label):
        st.session_state.auth_mode = "signup" if is_login else "login"
        st.rerun()


def render_ledger_page(provider: AccountSessionProvider, ledger: BudgetLedger):
    """Render the monthly budget."""
    if ledger.owner_id is None:
        with st.spinner("Loading Every Rand... Securing your budget..."):
            try:
                run_async(ledger.load())
                reset_amount_widgets()
            except LoadFailed as e:
                st.error(f"We couldn't load your budget. {e}")
                if st.button("🔄 Try Again"):
                    st.rerun()
                return

    for failure in ledger.pop_write_failures():
        st.warning(f"⚠️ A change may not have been saved: {failure}")

    error = st.session_state.pop("ledger_error", None)
    if error:
        st.error(error)

    render_header(provider, ledger)
    render_control_panel(ledger)
    render_baby_steps()
    render_section(ledger, LineItemType.INCOME, "💰 Income")
    render_section(ledger, LineItemType.EXPENSE, "🧾 Expenses")


def render_header(provider: AccountSessionProvider, ledger: BudgetLedger):
    """Render the title and the Left to Budget banner."""
    col1, col2 = st.columns([4, 1])
    with col1:
        st.title("Every Rand 🇿🇦")
        st.caption("Give every rand a name.")
    with col2:
        if st.button("Log Out"):
            provider.sign_out()
            reset_amount_widgets()
            st.rerun()

    snapshot = ledger.snapshot()
    warning = ""
    if not snapshot.is_balanced:
        warning = (
            '<div class="budget-warning">'
            f"⚠️ You must budget this down to {money(0)}!"
            "</div>"
        )
    st.markdown(f"""
    <div class="budget-banner">
        <div>LEFT TO BUDGET</div>
        <div class="big-number {'balanced' if snapshot.is_balanced else ''}">
            {money(snapshot.left_to_budget)}
        </div>
        {warning}
    </div>
    """, unsafe_allow_html=True)


def render_control_panel(ledger: BudgetLedger):
    """Render the Start Next Month control with its confirmation step."""
    col1, col2 = st.columns([3, 2])
    with col1:
        st.subheader("Current Month")
    with col2:
        if st.button("Start Next Month", type="primary", disabled=ledger.is_busy):
            st.session_state.confirm_rollover = True

    if st.session_state.get("confirm_rollover"):
        st.info("Ready for a new month? This will reset expenses and apply rollovers.")
        col1, col2 = st.columns(2)
        with col1:
            if st.button("✅ Yes, start next month"):
                st.session_state.confirm_rollover = False
                try:
                    with st.spinner("Applying rollovers..."):
                        run_async(ledger.apply_month_rollover(confirmed=True))
                    reset_amount_widgets()
                    st.success("New month started! Rollovers applied successfully.")
                except RolloverFailed as e:
                    st.error(f"{e} Nothing was changed, please try again.")
                except LedgerError as e:
                    st.error(str(e))
        with col2:
            if st.button("Cancel"):
                st.session_state.confirm_rollover = False
                st.rerun()


def render_baby_steps():
    """Render the Baby Steps reminder."""
    st.markdown("**YOUR BABY STEPS**")
    columns = st.columns(len(BABY_STEPS))
    for column, (step, title) in zip(columns, BABY_STEPS):
        with column:
            st.markdown(f"**{step}.** {title}")


def _on_planned_change(ledger: BudgetLedger, item_id: str):
    try:
        run_in_loop(
            ledger.update_field,
            item_id,
            "plannedAmount",
            st.session_state[f"planned_{item_id}"],
        )
    except LedgerError as e:
        st.session_state.ledger_error = str(e)


def render_item_row(ledger: BudgetLedger, item: LineItem):
    """Render one line item with its editable planned amount."""
    col1, col2, col3, col4 = st.columns([4, 2, 2, 1])

    with col1:
        badge = ""
        surplus = ledger.rollover_surplus(item)
        if surplus > 0:
            badge = f' <span class="rollover-badge">📈 {money(surplus)} Rollover</span>'
        st.markdown(
            f"**{item.name}**{badge}<br>"
            f'<span class="group-label">{item.category_group}</span>',
            unsafe_allow_html=True,
        )

    with col2:
        st.number_input(
            "Planned",
            value=float(item.planned_amount),
            min_value=0.0,
            step=100.0,
            format="%.2f",
            key=f"planned_{item.id}",
            label_visibility="collapsed",
            on_change=_on_planned_change,
            args=(ledger, item.id),
            disabled=ledger.is_busy,
        )

    with col3:
        colour = "red" if item.remaining < 0 else "green"
        st.markdown(f":{colour}[**{money(item.spent_amount)}**]")

    with col4:
        if st.button("🗑️", key=f"delete_{item.id}", disabled=ledger.is_busy):
            st.session_state.pending_delete = item.id

    if st.session_state.get("pending_delete") == item.id:
        st.warning(f"Are you sure you want to delete {item.name}?")
        yes, no = st.columns(2)
        with yes:
            if st.button("Delete", key=f"confirm_delete_{item.id}"):
                st.session_state.pending_delete = None
                try:
                    run_in_loop(ledger.delete_item, item.id, confirmed=True)
                except LedgerError as e:
                    st.error(str(e))
                st.rerun()
        with no:
            if st.button("Keep", key=f"cancel_delete_{item.id}"):
                st.session_state.pending_delete = None
                st.rerun()


def render_section(ledger: BudgetLedger, item_type: LineItemType, title: str):
    """Render the income or expense section."""
    items = ledger.items_of_type(item_type)
    snapshot = ledger.snapshot()
    total = (
        snapshot.total_income if item_type == LineItemType.INCOME
        else snapshot.total_expenses
    )

    st.markdown("---")
    col1, col2 = st.columns([3, 2])
    with col1:
        st.subheader(title)
    with col2:
        st.markdown(f"### {money(total)}")

    for item in items:
        render_item_row(ledger, item)

    label = "Income" if item_type == LineItemType.INCOME else "Expense"
    with st.form(f"add_{item_type.value}", clear_on_submit=True):
        name = st.text_input(f"What is the name of the new {item_type.value} category?")
        if st.form_submit_button(f"➕ Add {label} Category", disabled=ledger.is_busy):
            try:
                item = run_async(ledger.add_item(ledger.owner_id, item_type, name))
                if item is not None:
                    st.rerun()
            except WriteFailed as e:
                st.error(f"Couldn't add the category. {e}")
            except LedgerError as e:
                st.error(str(e))


if __name__ == "__main__":
    main()
