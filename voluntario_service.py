# voluntario_service.py
from datetime import datetime

from flask import current_app

from extensions import db
from erros import ErroValidacao, ErroConflito, ErroNaoEncontrado
from models import SolicitacaoVoluntario, Dentista
from utils import limpar_cpf, limpar_telefone, normalizar_email, salvar_alteracoes
from cadastro_service import EMAIL_REGEX
from dentista_service import criar_dentista
import email_service


def cpf_existe(cpf):
    cpf = limpar_cpf(cpf)
    if not cpf:
        return False
    return bool(
        SolicitacaoVoluntario.query.filter_by(cpf=cpf).first()
        or Dentista.query.filter_by(cpf=cpf).first()
    )


def email_existe(email):
    email = normalizar_email(email)
    if not email:
        return False
    return bool(
        SolicitacaoVoluntario.query.filter_by(email=email).first()
        or Dentista.query.filter_by(email=email).first()
    )


def cro_existe(cro):
    cro = (cro or "").strip().upper()
    if not cro:
        return False
    return bool(
        SolicitacaoVoluntario.query.filter_by(cro=cro).first()
        or Dentista.query.filter_by(cro=cro).first()
    )


def registrar_solicitacao(dados):
    limpos = {
        "nome": (dados.get("nome") or "").strip(),
        "email": normalizar_email((dados.get("email") or "").strip()),
        "telefone": limpar_telefone((dados.get("telefone") or "").strip()),
        "cro": (dados.get("cro") or "").strip().upper(),
        "cpf": limpar_cpf((dados.get("cpf") or "").strip()),
        "endereco": (dados.get("endereco") or "").strip() or None,
        "mensagem": (dados.get("mensagem") or "").strip() or None,
    }
    erros = {}
    for campo, rotulo in (
        ("nome", "Nome"), ("email", "E-mail"), ("telefone", "Telefone"), ("cro", "CRO"), ("cpf", "CPF"),
    ):
        if not limpos[campo]:
            erros[campo] = f"{rotulo} é obrigatório."
    if limpos["email"] and not EMAIL_REGEX.match(limpos["email"]):
        erros["email"] = "E-mail inválido."
    if erros:
        raise ErroValidacao(erros=erros)

    if cpf_existe(limpos["cpf"]):
        raise ErroConflito("Este CPF já está cadastrado no sistema.")
    if email_existe(limpos["email"]):
        raise ErroConflito("Este e-mail já está cadastrado no sistema.")
    if cro_existe(limpos["cro"]):
        raise ErroConflito("Este CRO já está cadastrado no sistema.")

    solicitacao = SolicitacaoVoluntario(status="Pendente", visualizado=False, **limpos)
    db.session.add(solicitacao)
    salvar_alteracoes("Erro ao enviar a solicitação. Tente novamente.")
    current_app.logger.info("Nova solicitação de voluntário %s", solicitacao.id)
    return solicitacao


def listar_solicitacoes(status=None):
    query = SolicitacaoVoluntario.query
    if status:
        query = query.filter_by(status=status)
    return query.order_by(SolicitacaoVoluntario.data_envio.desc()).all()


def contar_nao_visualizadas():
    return SolicitacaoVoluntario.query.filter_by(visualizado=False).count()


def visualizar_solicitacao(solicitacao_id):
    solicitacao = db.session.get(SolicitacaoVoluntario, solicitacao_id)
    if solicitacao is None:
        raise ErroNaoEncontrado("Solicitação não encontrada.")
    if not solicitacao.visualizado:
        solicitacao.visualizado = True
        salvar_alteracoes()
    return solicitacao


def _pendente(solicitacao_id):
    solicitacao = visualizar_solicitacao(solicitacao_id)
    if solicitacao.status != "Pendente":
        raise ErroConflito(f"Esta solicitação já foi {solicitacao.status.lower()}.")
    return solicitacao


def aprovar_solicitacao(solicitacao_id, observacao=None):
    """Aprova a solicitação e cria o dentista correspondente numa única transação."""
    solicitacao = _pendente(solicitacao_id)
    dentista, senha_temporaria = criar_dentista(
        {
            "nome": solicitacao.nome,
            "cpf": solicitacao.cpf,
            "cro": solicitacao.cro,
            "email": solicitacao.email,
            "telefone": solicitacao.telefone,
            "endereco": solicitacao.endereco,
        },
        commit=False,
    )
    solicitacao.status = "Aprovado"
    solicitacao.data_resposta = datetime.now()
    solicitacao.observacao_admin = (observacao or "").strip() or None
    salvar_alteracoes()
    current_app.logger.info("Solicitação %s aprovada, dentista %s criado", solicitacao.id, dentista.id)

    email_service.enviar_email_boas_vindas_dentista(dentista, senha_temporaria)
    return dentista


def rejeitar_solicitacao(solicitacao_id, observacao=None):
    solicitacao = _pendente(solicitacao_id)
    solicitacao.status = "Rejeitado"
    solicitacao.data_resposta = datetime.now()
    solicitacao.observacao_admin = (observacao or "").strip() or None
    salvar_alteracoes()
    return solicitacao
