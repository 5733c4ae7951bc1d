# utils.py
import re
import secrets
import string
from collections import namedtuple
from datetime import datetime, timedelta
from functools import wraps

from flask import session, flash, redirect, url_for, request, current_app, jsonify
from reportlab.lib.units import cm
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from extensions import db, bcrypt
from erros import ErroValidacao, ErroConflito, ErroPersistencia
from models import Log


PAPEL_ADMIN = "admin"
PAPEL_DENTISTA = "dentista"
PAPEL_RESPONSAVEL = "responsavel"

LOGIN_POR_PAPEL = {
    PAPEL_ADMIN: "auth.login_admin",
    PAPEL_DENTISTA: "auth.login_dentista",
    PAPEL_RESPONSAVEL: "auth.login",
}

PAGINA_INICIAL_POR_PAPEL = {
    PAPEL_ADMIN: "admin.dashboard",
    PAPEL_DENTISTA: "dentista.painel",
    PAPEL_RESPONSAVEL: "perfil.index",
}

DURACAO_SESSAO = timedelta(hours=8)
DURACAO_SESSAO_LEMBRAR = timedelta(days=30)


# --- Texto e documentos ---

def _apenas_alfanumericos(valor):
    if valor:
        return re.sub(r"[^0-9A-Za-z]", "", valor)
    return None


def limpar_cpf(cpf):
    return _apenas_alfanumericos(cpf)


def limpar_telefone(telefone):
    return _apenas_alfanumericos(telefone)


def normalizar_email(email):
    if email:
        return email.strip().lower()
    return None


def data_br_filter(value):
    if not value:
        return ""
    return value.strftime("%d/%m/%Y")


def criancas_do_formulario(form):
    """Monta a lista de crianças a partir dos campos repetidos do formulário."""
    colunas = [
        form.getlist("crianca_id"),
        form.getlist("crianca_nome"),
        form.getlist("crianca_cpf"),
        form.getlist("crianca_data_nascimento"),
        form.getlist("crianca_parentesco"),
    ]
    total = max(len(c) for c in colunas[1:])
    criancas = []
    for i in range(total):
        linha = [c[i] if i < len(c) else "" for c in colunas]
        crianca_id, nome, cpf, data_nascimento, parentesco = linha
        if not any((nome, cpf, data_nascimento)):
            continue
        criancas.append(
            {
                "id": crianca_id or None,
                "nome": nome,
                "cpf": cpf,
                "data_nascimento": data_nascimento,
                "parentesco": parentesco,
            }
        )
    return criancas


# --- Senhas e tokens ---

def gerar_hash_senha(senha):
    return bcrypt.generate_password_hash(senha).decode("utf-8")


def verificar_senha(senha, senha_hash):
    if not senha or not senha_hash:
        return False
    try:
        return bcrypt.check_password_hash(senha_hash, senha)
    except ValueError:
        # hash malformado ou gerado por outro algoritmo
        return False


def gerar_token_seguro():
    """Token url-safe de 32 caracteres."""
    return secrets.token_urlsafe(24)


def gerar_senha_aleatoria(tamanho=10):
    alfabeto = string.ascii_letters + string.digits
    return "".join(secrets.choice(alfabeto) for _ in range(tamanho))


# --- Datas e horários vindos de formulários ---

def parse_data(valor, campo="data"):
    try:
        return datetime.strptime((valor or "").strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ErroValidacao(erros={campo: "Data inválida."})


def parse_hora(valor, campo="hora"):
    texto = (valor or "").strip()
    for formato in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(texto, formato).time()
        except ValueError:
            continue
    raise ErroValidacao(erros={campo: "Horário inválido."})


def parse_id(valor, campo, mensagem="Identificador inválido."):
    try:
        return int(valor)
    except (TypeError, ValueError):
        raise ErroValidacao(erros={campo: mensagem})


# --- Persistência ---

def salvar_alteracoes(mensagem=None, conflito=None):
    """
    Faz o commit da sessão; em caso de falha desfaz e levanta ErroPersistencia.
    Com `conflito`, uma violação de unicidade vira ErroConflito com essa mensagem.
    """
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if conflito is None:
            current_app.logger.exception("Falha ao gravar no banco de dados")
            raise ErroPersistencia(mensagem)
        raise ErroConflito(conflito)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Falha ao gravar no banco de dados")
        raise ErroPersistencia(mensagem)


def registrar_log(action):
    try:
        if "logged_in" in session:
            username = session.get("email") or session.get("username", "Anônimo")
            log_entry = Log(username=username, action=action, ip_address=request.remote_addr)
            db.session.add(log_entry)
            db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Erro ao registrar log")


# --- Sessão e identidade ---

class Identidade(namedtuple("Identidade", "papel usuario_id nome email")):
    __slots__ = ()

    @property
    def is_admin(self):
        return self.papel == PAPEL_ADMIN

    @property
    def is_dentista(self):
        return self.papel == PAPEL_DENTISTA

    @property
    def is_responsavel(self):
        return self.papel == PAPEL_RESPONSAVEL


def iniciar_sessao(usuario, papel, lembrar_me=False):
    session.clear()
    session["logged_in"] = True
    session["role"] = papel
    session["user_id"] = usuario.id
    session["username"] = usuario.nome
    session["email"] = usuario.email
    session["lembrar_me"] = bool(lembrar_me)
    session.permanent = bool(lembrar_me)
    _renovar_expiracao()


def _renovar_expiracao():
    duracao = DURACAO_SESSAO_LEMBRAR if session.get("lembrar_me") else DURACAO_SESSAO
    session["expira_em"] = (datetime.now() + duracao).timestamp()


def renovar_sessao():
    """Expiração deslizante: chamada antes de cada requisição."""
    if "logged_in" not in session:
        return
    expira_em = session.get("expira_em")
    if expira_em is None or datetime.now().timestamp() > expira_em:
        session.clear()
        return
    _renovar_expiracao()


def encerrar_sessao():
    """Limpa a sessão e devolve o endpoint de login do papel que estava logado."""
    papel = session.get("role")
    session.clear()
    return LOGIN_POR_PAPEL.get(papel, "index")


def identidade_atual():
    if "logged_in" not in session or session.get("role") not in LOGIN_POR_PAPEL:
        return None
    return Identidade(
        papel=session["role"],
        usuario_id=session.get("user_id"),
        nome=session.get("username"),
        email=session.get("email"),
    )


# --- Autorização ---

def autorizar(identidade, *papeis):
    return identidade is not None and identidade.papel in papeis


def requisicao_ajax():
    return (
        request.is_json
        or request.headers.get("X-Requested-With") == "XMLHttpRequest"
        or request.accept_mimetypes.best == "application/json"
    )


def role_required(*papeis):
    """
    Libera a rota apenas para os papéis informados. Não há acesso implícito:
    se o admin pode usar a rota, 'admin' precisa estar na lista.
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identidade = identidade_atual()
            if autorizar(identidade, *papeis):
                return f(*args, **kwargs)

            if identidade is None:
                mensagem = "Por favor, faça login para acessar esta página."
            else:
                mensagem = "Você não tem permissão para acessar esta página."

            if requisicao_ajax():
                return jsonify({"success": False, "message": mensagem}), 403
            flash(mensagem, "warning")
            return redirect(url_for(LOGIN_POR_PAPEL[papeis[0]]))

        return decorated_function

    return decorator


def responder_erro(erro, endpoint, **valores):
    """Traduz um ErroDominio em JSON (AJAX) ou flash + redirect."""
    if requisicao_ajax():
        return jsonify(erro.to_dict()), erro.status_code
    flash(erro.mensagem, "danger")
    return redirect(url_for(endpoint, **valores))


# --- Relatórios ---

def cabecalho_e_rodape(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 9)
    canvas.drawString(2 * cm, 1.5 * cm, f"Emitido em: {datetime.now().strftime('%d/%m/%Y %H:%M:%S')}")
    canvas.drawRightString(doc.width + doc.leftMargin, 1.5 * cm, f"Página {doc.page}")
    if doc.page == 1:
        canvas.setFont("Helvetica-Bold", 12)
        canvas.drawString(2 * cm, doc.pagesize[1] - 1.5 * cm, "Pi Odonto")
    canvas.restoreState()
