import streamlit as st
import httpx
import asyncio
import os
from datetime import date
from typing import Optional, Tuple

from backend.utils.masks import CEP_DIGITS, mask_cep, mask_cpf, only_digits

API_BASE = os.getenv("API_BASE", "http://api:3000")  # service name in docker network (docker compose network)

SEX_OPTIONS = ["Masculino", "Feminino", "Outro"]
ADDRESS_FIELDS = ["city", "state", "street", "neighborhood", "complement"]

st.set_page_config(page_title="Cadastro de Usuário", page_icon="📝", layout="wide")

# -------------- Helpers --------------
def current_auth() -> Optional[Tuple[str, str]]:
    return st.session_state.get("auth")

async def fetch_json(client: httpx.AsyncClient, method: str, url: str, **kwargs):
    auth = kwargs.pop("auth", current_auth())
    try:
        resp = await client.request(method, url, auth=auth, timeout=10, **kwargs)
        if resp.headers.get("content-type", "").startswith("application/json"):
            data = resp.json()
        else:
            data = {"raw": resp.text}
        if resp.is_error:
            return False, data, resp.status_code
        return True, data, resp.status_code
    except httpx.HTTPError as e:
        return False, {"error": str(e)}, 0

async def lookup_cep(cep: str):
    async with httpx.AsyncClient() as client:
        return await fetch_json(client, "GET", f"{API_BASE}/api/v1/cep/{only_digits(cep)}")

async def create_registration(client, payload: dict):
    return await fetch_json(client, "POST", f"{API_BASE}/api/v1/users", json=payload)

async def get_registration_status(client, registration_id: str):
    return await fetch_json(client, "GET", f"{API_BASE}/api/v1/users/{registration_id}")

async def validate_credentials(user: str, password: str) -> bool:
    """Realiza uma chamada ao endpoint raiz para validar credenciais Basic Auth."""
    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{API_BASE}/", auth=(user, password), timeout=5)
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

# -------------- Callbacks de máscara --------------
# O estado do campo é a fonte da verdade: cada alteração passa pela máscara
# e o valor formatado é gravado de volta no session_state.
def on_cpf_change():
    st.session_state["cpf"] = mask_cpf(st.session_state.get("cpf", ""))

def on_cep_change():
    masked = mask_cep(st.session_state.get("cep", ""))
    st.session_state["cep"] = masked
    if len(only_digits(masked)) != CEP_DIGITS:
        return
    ok, data, status = asyncio.run(lookup_cep(masked))
    if ok:
        for field in ADDRESS_FIELDS:
            st.session_state[field] = data.get(field, "")
        st.session_state.pop("cep_error", None)
    else:
        # Campos de endereço permanecem como estavam
        detail = data.get("detail") if isinstance(data, dict) else data
        st.session_state["cep_error"] = f"Erro ao buscar CEP ({status}): {detail}"

def logout():
    if "auth" in st.session_state:
        st.session_state.pop("auth")
    st.rerun()

def field_error(errors: dict, field: str):
    for err in errors.get(field, []):
        st.caption(f":red[{err.get('message')}]")

# -------------- UI Sections --------------
st.title("📝 Cadastro de Usuário")
st.caption("Interface em Streamlit para o cadastro (login obrigatório)")

async def main_ui():
    # Gating de autenticação
    if "auth" not in st.session_state:
        st.subheader("🔐 Login")
        with st.form("login_form", clear_on_submit=False):
            user = st.text_input("Usuário", key="login_user")
            pwd = st.text_input("Senha", type="password", key="login_pwd")
            submitted = st.form_submit_button("Entrar")
            if submitted:
                if not user or not pwd:
                    st.warning("Preencha usuário e senha.")
                elif await validate_credentials(user, pwd):
                    st.session_state["auth"] = (user, pwd)
                    st.rerun()
                else:
                    st.error("Credenciais inválidas ou serviço indisponível.")
        st.stop()

    st.sidebar.markdown(f"**Usuário:** {st.session_state['auth'][0]}")
    st.sidebar.button("Sair", on_click=logout)

    async with httpx.AsyncClient() as client:
        tabs = st.tabs(["Cadastro", "Status do Cadastro"])

        # ---- Tab Cadastro ----
        with tabs[0]:
            errors = st.session_state.get("form_errors", {})

            st.markdown("**Dados pessoais**")
            c1, c2 = st.columns(2)
            with c1:
                st.text_input("Nome", key="name")
                field_error(errors, "name")
                st.text_input("CPF", key="cpf", on_change=on_cpf_change, max_chars=14)
                field_error(errors, "cpf")
                st.text_input("Senha", type="password", key="password")
                field_error(errors, "password")
                st.date_input("Data de Nascimento", key="birth_date", value=date.today(),
                              min_value=date(1900, 1, 1), max_value=date.today(), format="DD/MM/YYYY")
                field_error(errors, "birth_date")
            with c2:
                st.text_input("Sobrenome", key="surname")
                field_error(errors, "surname")
                st.text_input("Email", key="email")
                field_error(errors, "email")
                st.selectbox("Sexo", SEX_OPTIONS, key="sex")
                field_error(errors, "sex")

            st.markdown("**Endereço**")
            c3, c4 = st.columns(2)
            with c3:
                st.text_input("CEP", key="cep", on_change=on_cep_change, max_chars=9)
                field_error(errors, "cep")
                if st.session_state.get("cep_error"):
                    st.warning(st.session_state["cep_error"])
                st.text_input("Estado", key="state")
                st.text_input("Bairro", key="neighborhood")
            with c4:
                st.text_input("Cidade", key="city")
                st.text_input("Logradouro", key="street")
                st.text_input("Complemento", key="complement")

            if st.button("Registrar", type="primary"):
                payload = {
                    "name": st.session_state.get("name", ""),
                    "surname": st.session_state.get("surname", ""),
                    "cpf": st.session_state.get("cpf", ""),
                    "email": st.session_state.get("email", ""),
                    "password": st.session_state.get("password", ""),
                    "sex": st.session_state.get("sex", ""),
                    "birth_date": st.session_state["birth_date"].isoformat() if st.session_state.get("birth_date") else None,
                    "cep": st.session_state.get("cep", ""),
                }
                payload.update({field: st.session_state.get(field, "") for field in ADDRESS_FIELDS})
                ok, data, status = await create_registration(client, payload)
                if ok:
                    st.session_state["form_errors"] = {}
                    st.session_state["last_registration"] = data.get("registration_id")
                    st.success(f"Cadastro enviado. ID: {data.get('registration_id')}")
                else:
                    detail = data.get("detail") if isinstance(data, dict) else data
                    if status == 422 and isinstance(detail, dict):
                        st.session_state["form_errors"] = detail.get("errors", {})
                        st.rerun()
                    elif status == 409:
                        st.error(f"Conflito: {detail}")
                    else:
                        st.error(f"Erro ({status}): {detail}")

        # ---- Tab Status ----
        with tabs[1]:
            st.subheader("Consultar Status do Cadastro")
            default_id: Optional[str] = st.session_state.get("last_registration")
            reg_id = st.text_input("Registration ID", value=default_id if default_id else "")
            if st.button("Consultar"):
                ok, data, status = await get_registration_status(client, reg_id)
                if ok:
                    st.json(data)
                else:
                    detail = data.get("detail") if isinstance(data, dict) else data
                    if status == 404:
                        st.warning(f"Não encontrado: {detail}")
                    elif status == 400:
                        st.error(f"ID inválido: {detail}")
                    else:
                        st.error(f"Erro ({status}): {detail}")

asyncio.run(main_ui())
