"""
app.py
Streamlit case-management desk for social assistance (families, visits and
aid history, cash flow, reports).
Run: streamlit run app.py
"""

from __future__ import annotations

import atexit
import logging
from datetime import date

import pandas as pd
import streamlit as st

import db
import exports
import stats
import utils
from auth import AuthGateway
from config import settings
from exceptions import RemoteStoreError
from models import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    STATUS_LABELS,
    TRANSACTION_TYPE_LABELS,
    AgeType,
    AidType,
    Family,
    FamilyMember,
    HistoryRecord,
    HistoryType,
    Status,
    Transaction,
    TransactionType,
)
from runtime import LoopRunner
from store import AppStore, Outcome

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Gestão Social", layout="wide")

MONTHS = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]

DARK_CSS = """
<style>
.stApp { background-color: #0f172a; color: #e2e8f0; }
section[data-testid="stSidebar"] { background-color: #1e293b; }
</style>
"""


# ---------- Store wiring ----------

@st.cache_resource
def get_runner() -> LoopRunner:
    runner = LoopRunner()
    atexit.register(runner.stop)
    return runner


def run_async(coro):
    return get_runner().run(coro)


def get_store() -> AppStore:
    # One store per browser session; it owns the Supabase client and its auth subscription
    if "store" not in st.session_state:
        client = run_async(db.create_client(settings))
        store = AppStore(db.RemoteStore(client), AuthGateway(client))
        run_async(store.start())
        get_runner().add_closer(store.close)
        logger.info("Session store started (auth: %s)", store.auth_state.value)
        st.session_state.store = store
    return st.session_state.store


def flash(outcome: Outcome, success_msg: str) -> bool:
    if outcome.ok:
        st.session_state.flash = ("success", success_msg)
    else:
        st.session_state.flash = ("error", f"Erro ao sincronizar: {outcome.error}")
    return outcome.ok


def show_flash():
    msg = st.session_state.pop("flash", None)
    if not msg:
        return
    kind, text = msg
    if kind == "success":
        st.success(text)
    else:
        st.error(text)


def period_selector(key: str) -> tuple[int, int]:
    today = date.today()
    years = list(range(2023, today.year + 2))
    c1, c2 = st.columns(2)
    with c1:
        month = st.selectbox("Mês", options=list(range(12)), index=today.month - 1,
                             format_func=lambda i: MONTHS[i], key=f"{key}_month")
    with c2:
        year = st.selectbox("Ano", options=years, index=years.index(today.year), key=f"{key}_year")
    return month, year


# ---------- Login ----------

def login_screen(store: AppStore):
    st.title("🤝 Gestão Social")
    st.caption("Cuidando de famílias, transformando vidas")

    mode = st.radio("Acesso", ["Entrar", "Criar Cadastro"], horizontal=True, label_visibility="collapsed")
    email = st.text_input("E-mail", placeholder="ex: social@igreja.com")
    password = st.text_input("Senha", type="password")

    if mode == "Entrar":
        if st.button("Entrar", type="primary"):
            result = run_async(store.sign_in(email, password))
            if result.ok:
                st.rerun()
            else:
                st.error(result.error)
    else:
        if st.button("Cadastrar", type="primary"):
            result = run_async(store.sign_up(email, password))
            if not result.ok:
                st.error(result.error)
            elif result.needs_confirmation:
                st.info(
                    "Cadastro realizado! Se o login não for automático, "
                    "verifique seu e-mail para confirmar a conta."
                )
            else:
                st.rerun()

    st.caption(
        "Os dados são coletados exclusivamente para fins de assistência social e organização da igreja."
    )


# ---------- Dashboard ----------

def dashboard_page(store: AppStore):
    st.header("📊 Visão Geral")

    summary = stats.dashboard_summary(store.families, store.transactions)
    c1, c2, c3 = st.columns(3)
    c1.metric("Famílias cadastradas", summary["total_families"])
    c2.metric("Em situação crítica", summary["critical_families"])
    c3.metric("Saldo em caixa", utils.format_currency(summary["total_balance"]))

    st.divider()

    st.subheader("Doações por tipo")
    aid = stats.aid_histogram(store.families)
    if any(s.value for s in aid):
        df = pd.DataFrame([{"Tipo": s.name, "Quantidade": s.value, "cor": s.fill} for s in aid])
        st.bar_chart(df, x="Tipo", y="Quantidade", color="cor")
    else:
        st.caption("Nenhuma doação registrada ainda.")


# ---------- Families ----------

def families_page(store: AppStore):
    st.header("👥 Famílias")

    with st.sidebar:
        st.subheader("Busca e filtros")
        query = st.text_input("Buscar família (nome, código, responsável)")
        status_filter = st.radio(
            "Situação",
            [stats.ALL, Status.CRITICAL.value, Status.ACTIVE.value],
            format_func=lambda s: "Todas" if s == stats.ALL else STATUS_LABELS[Status(s)],
        )
        babies_only = False
        min_age = max_age = None
        if st.toggle("Filhos/Idade"):
            babies_only = st.checkbox("Apenas Bebês (0-11 meses)")
            if not babies_only:
                min_raw = st.text_input("Idade mínima (anos)", placeholder="0")
                max_raw = st.text_input("Idade máxima (anos)", placeholder="18")
                min_age = int(min_raw) if min_raw.strip().isdigit() else None
                max_age = int(max_raw) if max_raw.strip().isdigit() else None

    families = stats.filter_families(
        store.families, query, status_filter, babies_only, min_age, max_age
    )

    if not families:
        st.caption("Nenhuma família encontrada.")
        return

    rows = [
        {
            "Código": f.code,
            "Família": f.name,
            "Responsável": f.responsible_name,
            "Situação": STATUS_LABELS[f.status],
            "Crianças": stats.children_count(f),
            "Tem bebê": "Sim" if stats.has_baby(f) else "",
        }
        for f in families
    ]
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

    options = {f"{f.name} ({f.code})": f.id for f in families}
    chosen = st.selectbox("Abrir cadastro", list(options.keys()))
    if st.button("Abrir"):
        st.session_state.family_id = options[chosen]
        st.session_state.page = "Família"
        st.rerun()


def family_detail_page(store: AppStore):
    family = store.find_family(st.session_state.get("family_id", ""))
    if family is None:
        st.warning("Família não encontrada.")
        return

    if st.button("← Voltar"):
        st.session_state.page = "Famílias"
        st.rerun()

    st.header(family.name)
    st.caption(f"{family.code} · {STATUS_LABELS[family.status]} · {family.status_description}")

    c1, c2, c3, c4, c5 = st.columns(5)
    digits = utils.phone_digits(family.phone)
    if digits:
        c1.link_button("📞 Ligar", f"tel:{digits}")
    wa = utils.whatsapp_link(family.phone, family.whatsapp)
    if wa:
        c2.link_button("💬 WhatsApp", wa)
    c3.link_button("🗺️ Mapa", utils.map_link(family.address, family.neighborhood))
    with c4:
        if st.button("✏️ Editar"):
            st.session_state.page = "Editar Família"
            st.rerun()
    with c5:
        confirm = st.checkbox("Confirmar exclusão", key="del_family_confirm")
        if st.button("🗑️ Excluir", disabled=not confirm):
            if flash(run_async(store.remove_family(family.id)), f"{family.name} excluída."):
                st.session_state.page = "Famílias"
            st.rerun()

    info, members, history = st.tabs(["Dados", "Membros", "Histórico"])
    with info:
        st.write(f"**Responsável:** {family.responsible_name}")
        st.write(f"**Endereço:** {family.address} {('- ' + family.neighborhood) if family.neighborhood else ''}")
        st.write(f"**Telefone:** {family.phone}  |  **WhatsApp:** {family.whatsapp or '-'}")
        st.write(f"**Membro da igreja:** {'Sim' if family.church_member else 'Não'}"
                 f"{' (' + family.congregation + ')' if family.congregation else ''}")
        st.write(f"**Renda:** {family.income or '-'}  |  **Classe social:** {family.social_class or '-'}")
        st.write(f"**Situação profissional:** {family.professional_status or '-'}")
        st.write(f"**Necessidade principal:** {family.main_need or '-'}")
        if family.observations:
            st.info(family.observations)
    with members:
        if not family.members:
            st.caption("Nenhum membro cadastrado.")
        for m in family.members:
            unit = "meses" if m.age_type == AgeType.MONTHS else "anos"
            tags = " ".join(f"`{t}`" for t in m.tags)
            st.write(f"**{m.name}** · {m.role} · {m.age} {unit} {tags}")
    with history:
        if not family.history:
            st.caption("Nenhum registro ainda.")
        for r in family.history:
            icon = "📦" if r.type == HistoryType.AID else "🏠"
            st.write(f"{icon} **{r.title}** · {utils.format_date_br(r.date)} · {r.responsible}")
            if r.description:
                st.caption(r.description)


def member_subform(key: str) -> list[FamilyMember]:
    members: list[FamilyMember] = st.session_state.setdefault(key, [])

    st.subheader("Membros da família")
    for m in list(members):
        c1, c2 = st.columns([4, 1])
        unit = "meses" if m.age_type == AgeType.MONTHS else "anos"
        c1.write(f"**{m.name}** · {m.role} · {m.age} {unit} {' '.join(m.tags)}")
        if c2.button("Remover", key=f"{key}_rm_{m.id}"):
            st.session_state[key] = [x for x in members if x.id != m.id]
            st.rerun()

    c1, c2, c3, c4, c5 = st.columns([2, 2, 1, 1, 2])
    name = c1.text_input("Nome", key=f"{key}_name")
    role = c2.text_input("Parentesco", key=f"{key}_role")
    age = c3.text_input("Idade", key=f"{key}_age")
    age_type = c4.selectbox("Unidade", [AgeType.YEARS.value, AgeType.MONTHS.value],
                            format_func=lambda a: "Anos" if a == AgeType.YEARS.value else "Meses",
                            key=f"{key}_age_type")
    tags = c5.text_input("Etiquetas (separadas por vírgula)", key=f"{key}_tags")
    if st.button("Adicionar membro", key=f"{key}_add"):
        errors = utils.validate_member_inputs(name, role, age, age_type)
        if errors:
            for e in errors:
                st.error(e)
        else:
            st.session_state[key] = members + [
                FamilyMember(
                    id=utils.new_id(),
                    name=name.strip(),
                    role=role.strip(),
                    age=int(age or 0),
                    age_type=AgeType(age_type),
                    tags=utils.split_tags(tags),
                )
            ]
            st.rerun()
    return st.session_state[key]


def family_form(store: AppStore, existing: Family | None = None):
    key = f"members_{existing.id}" if existing else "members_new"
    if existing and key not in st.session_state:
        st.session_state[key] = list(existing.members)

    st.header("✏️ Editar Família" if existing else "➕ Nova Família")

    col1, col2 = st.columns(2)
    with col1:
        family_name = st.text_input("Nome de referência", value=existing.name if existing else "",
                                    placeholder="Ex: Família Silva (Jd. Esperança)")
        responsible = st.text_input("Responsável", value=existing.responsible_name if existing else "")
        address = st.text_input("Endereço", value=existing.address if existing else "")
        neighborhood = st.text_input("Bairro", value=(existing.neighborhood or "") if existing else "")
        phone = st.text_input("Telefone", value=existing.phone if existing else "")
        whatsapp = st.text_input("WhatsApp", value=(existing.whatsapp or "") if existing else "")
    with col2:
        church_member = st.checkbox("Membro da igreja", value=existing.church_member if existing else False)
        congregation = st.text_input("Congregação", value=(existing.congregation or "") if existing else "")
        income = utils.format_income_input(
            st.text_input("Renda familiar (R$)", value=(existing.income or "") if existing else "")
        )
        social_class = st.text_input("Classe social", value=(existing.social_class or "") if existing else "")
        professional_status = st.text_input(
            "Situação profissional", value=(existing.professional_status or "") if existing else ""
        )
        main_need = st.text_input("Necessidade principal", value=(existing.main_need or "") if existing else "")

    observations = st.text_area("Observações", value=(existing.observations or "") if existing else "")

    status = Status.ACTIVE
    status_description = ""
    if existing:
        statuses = list(Status)
        status = st.selectbox("Situação", statuses, index=statuses.index(existing.status),
                              format_func=lambda s: STATUS_LABELS[s])
        status_description = st.text_input("Descrição da situação", value=existing.status_description)

    members = member_subform(key)

    st.divider()
    if st.button("Salvar", type="primary", disabled=not responsible.strip()):
        fields = dict(
            responsible_name=responsible.strip(),
            address=address.strip(),
            neighborhood=neighborhood.strip() or None,
            phone=phone.strip(),
            whatsapp=whatsapp.strip() or None,
            church_member=church_member,
            congregation=congregation.strip() or None,
            income=income or None,
            social_class=social_class.strip() or None,
            professional_status=professional_status.strip() or None,
            main_need=main_need.strip() or None,
            observations=observations.strip() or None,
            members=list(members),
        )
        if existing:
            updated = Family(
                id=existing.id,
                code=existing.code,
                name=family_name.strip() or existing.name,
                avatar_url=existing.avatar_url,
                status=status,
                status_description=status_description,
                history=existing.history,
                **fields,
            )
            ok = flash(run_async(store.update_family(updated)), "Cadastro atualizado.")
            st.session_state.page = "Família"
        else:
            created = Family(
                id=utils.new_id(),
                code=utils.generate_family_code(settings.family_code_year),
                name=family_name.strip() or utils.default_family_name(responsible),
                avatar_url=utils.avatar_url(),
                status=Status.ACTIVE,
                status_description=main_need.strip() or utils.PENDING_STATUS_DESCRIPTION,
                history=[],
                **fields,
            )
            ok = flash(run_async(store.add_family(created)), f"{created.name} cadastrada.")
            st.session_state.page = "Visão Geral"
        if ok:
            st.session_state.pop(key, None)
        st.rerun()


# ---------- History records ----------

def new_record_page(store: AppStore):
    st.header("📝 Novo Registro")

    if not store.families:
        st.info("Nenhuma família cadastrada ainda.")
        return

    options = {f"{f.name} - {f.responsible_name}": f.id for f in store.families}
    chosen = st.selectbox("Família", list(options.keys()))
    family_id = options[chosen]

    record_date = st.date_input("Data", value=date.today()).isoformat()
    record_type = st.radio("Tipo", [HistoryType.AID, HistoryType.VISIT], horizontal=True,
                           format_func=lambda t: "Doação / Ajuda" if t == HistoryType.AID else "Visita")

    aid_type = None
    custom_detail = ""
    if record_type == HistoryType.AID:
        aid_type = st.selectbox("Item entregue", list(AidType), format_func=lambda a: a.value)
        if aid_type == AidType.OTHER:
            custom_detail = st.text_input("Qual item?", placeholder="Ex: Móveis, Transporte, Pagamento de Luz...")

    description = st.text_area("Detalhes", placeholder="Descreva detalhes sobre a visita ou itens entregues...")

    missing_detail = record_type == HistoryType.AID and aid_type == AidType.OTHER and not custom_detail.strip()
    if st.button("Salvar registro", type="primary", disabled=missing_detail):
        record = HistoryRecord(
            id=utils.new_id(),
            date=record_date,
            type=record_type,
            title=utils.history_title(record_type, aid_type, custom_detail),
            description=description.strip(),
            responsible=settings.operator_name,
        )
        if flash(run_async(store.add_history_record(family_id, record)), "Registro salvo com sucesso!"):
            st.session_state.page = "Visão Geral"
        st.rerun()


# ---------- Cash flow ----------

def financial_page(store: AppStore):
    st.header("💰 Caixa")

    month, year = period_selector("fin")
    totals = stats.period_totals(store.transactions, month, year)

    c1, c2, c3 = st.columns(3)
    c1.metric("Saldo Geral (Total)", utils.format_currency(stats.total_balance(store.transactions)))
    c2.metric(f"Entradas em {MONTHS[month]}", utils.format_currency(totals.income))
    c3.metric(f"Saídas em {MONTHS[month]}", utils.format_currency(totals.expense))

    left, right = st.columns(2)
    with left:
        chart = pd.DataFrame(stats.cash_flow_chart(totals))
        st.bar_chart(chart, x="name", y="value", color="fill")
    with right:
        st.subheader("Por categoria")
        categories = stats.category_totals(store.transactions, month, year)
        if not categories:
            st.caption("Sem movimentação no período.")
        for name, total in categories.items():
            st.write(f"**{name}** · +{utils.format_currency(total.income)} / "
                     f"-{utils.format_currency(total.expense)}")

    st.divider()

    with st.expander("Novo Lançamento"):
        t_type = st.radio("Tipo", list(TransactionType), horizontal=True,
                          format_func=lambda t: TRANSACTION_TYPE_LABELS[t])
        suggestions = INCOME_CATEGORIES if t_type == TransactionType.INCOME else EXPENSE_CATEGORIES
        with st.form("new_transaction", clear_on_submit=True):
            category = st.selectbox("Categoria", suggestions)
            amount_raw = st.text_input("Valor (R$)", placeholder="0,00")
            t_date = st.date_input("Data", value=date.today()).isoformat()
            description = st.text_input("Descrição", placeholder="Ex: Oferta de Missões")
            if st.form_submit_button("Salvar Lançamento", type="primary"):
                errors = utils.validate_amount(amount_raw)
                if errors:
                    for e in errors:
                        st.error(e)
                else:
                    transaction = Transaction(
                        id=utils.new_id(),
                        date=t_date,
                        type=t_type,
                        category=category,
                        amount=utils.parse_amount(amount_raw),
                        description=description.strip(),
                        responsible=settings.operator_name,
                    )
                    flash(run_async(store.add_transaction(transaction)), "Lançamento salvo.")
                    st.rerun()

    st.subheader("Lançamentos do período")
    type_filter = st.radio("Mostrar", [stats.ALL] + [t.value for t in TransactionType], horizontal=True,
                           format_func=lambda t: "Todos" if t == stats.ALL
                           else TRANSACTION_TYPE_LABELS[TransactionType(t)])
    entries = stats.filter_by_type(stats.period_transactions(store.transactions, month, year), type_filter)
    if not entries:
        st.caption("Nenhum lançamento encontrado.")
    for t in entries:
        c1, c2, c3 = st.columns([5, 2, 1])
        sign = "+" if t.type == TransactionType.INCOME else "-"
        c1.write(f"**{t.category}** · {t.description or '-'} · {utils.format_date_br(t.date)}")
        c2.write(f"{sign} {utils.format_currency(t.amount)}")
        if st.session_state.get("confirm_del_tx") != t.id:
            if c3.button("Excluir", key=f"del_tx_{t.id}"):
                st.session_state.confirm_del_tx = t.id
                st.rerun()
            continue
        st.warning("Excluir este lançamento permanentemente?")
        yes, no = st.columns(2)
        if yes.button("Sim, excluir", key=f"confirm_del_tx_{t.id}", type="primary"):
            st.session_state.pop("confirm_del_tx", None)
            flash(run_async(store.remove_transaction(t.id)), "Lançamento excluído.")
            st.rerun()
        if no.button("Cancelar", key=f"cancel_del_tx_{t.id}"):
            st.session_state.pop("confirm_del_tx", None)
            st.rerun()

    st.divider()
    st.subheader("Histórico mensal")
    st.dataframe(stats.monthly_summary(store.transactions), use_container_width=True, hide_index=True)


# ---------- Reports ----------

def reports_page(store: AppStore):
    st.header("🧾 Relatórios")

    month, year = period_selector("rep")
    view = st.radio("Exibir", list(stats.REPORT_VIEWS), horizontal=True,
                    format_func={"all": "Tudo", "aid": "Doações", "financial": "Financeiro"}.get)

    totals = stats.period_totals(store.transactions, month, year)
    c1, c2, c3 = st.columns(3)
    c1.metric("Entradas", utils.format_currency(totals.income))
    c2.metric("Saídas", utils.format_currency(totals.expense))
    c3.metric("Saldo do período", utils.format_currency(totals.balance))

    rows = stats.consolidate_report(store.families, store.transactions, month, year, view)
    if not rows:
        st.caption("Nenhum registro no período.")
        return

    df = pd.DataFrame(
        [
            {
                "Data": utils.format_date_br(r.date),
                "Tipo": r.type_label,
                "Categoria/Item": r.title,
                "Descrição": r.description,
                "Valor": utils.format_currency(r.amount) if r.amount is not None else "",
                "Destino/Origem": r.target,
                "Responsável": r.responsible,
            }
            for r in rows
        ]
    )
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.download_button(
        "Exportar CSV",
        data=exports.report_to_csv_bytes(rows),
        file_name=exports.report_export_filename(month, year),
        mime="text/csv",
    )


# ---------- Settings ----------

def settings_page(store: AppStore):
    st.header("⚙️ Configurações")

    st.subheader("Aparência")
    if st.toggle("Modo escuro", value=store.theme == "dark") != (store.theme == "dark"):
        store.toggle_theme()
        st.rerun()

    st.divider()

    st.subheader("Backup")
    if store.families:
        st.download_button(
            "Exportar famílias (CSV)",
            data=exports.families_to_csv_bytes(store.families),
            file_name=exports.families_export_filename(),
            mime="text/csv",
        )
    else:
        st.caption("Não há famílias cadastradas para exportar.")

    st.divider()

    if st.button("Sair do Aplicativo", type="primary"):
        run_async(store.sign_out())
        st.session_state.page = "Visão Geral"
        st.rerun()


def main_app(store: AppStore):
    st.sidebar.title("🤝 Gestão Social")

    pages = ["Visão Geral", "Famílias", "Nova Família", "Novo Registro", "Caixa", "Relatórios", "Configurações"]
    hidden = ["Família", "Editar Família"]
    if "page" not in st.session_state:
        st.session_state.page = "Visão Geral"
    current = st.session_state.page
    # No selection while a detail/edit page is open, so any entry (Famílias included) navigates
    choice = st.sidebar.radio("Navegar", pages, index=None if current in hidden else pages.index(current))
    if choice is not None:
        st.session_state.page = choice

    if st.sidebar.button("Atualizar dados"):
        run_async(store.reload())
        st.rerun()

    show_flash()

    page = st.session_state.page
    if page == "Visão Geral":
        dashboard_page(store)
    elif page == "Famílias":
        families_page(store)
    elif page == "Família":
        family_detail_page(store)
    elif page == "Nova Família":
        family_form(store)
    elif page == "Editar Família":
        family = store.find_family(st.session_state.get("family_id", ""))
        if family:
            family_form(store, existing=family)
        if st.button("Cancelar edição"):
            st.session_state.pop(f"members_{st.session_state.get('family_id')}", None)
            st.session_state.page = "Família"
            st.rerun()
    elif page == "Novo Registro":
        new_record_page(store)
    elif page == "Caixa":
        financial_page(store)
    elif page == "Relatórios":
        reports_page(store)
    elif page == "Configurações":
        settings_page(store)


# --------- App entry ---------

def run():
    try:
        store = get_store()
    except RemoteStoreError as exc:
        st.error(str(exc))
        st.stop()

    if store.theme == "dark":
        st.markdown(DARK_CSS, unsafe_allow_html=True)

    if not store.is_authenticated:
        login_screen(store)
        return

    main_app(store)


if __name__ == "__main__":
    run()
