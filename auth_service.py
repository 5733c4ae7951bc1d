# auth_service.py
# Autenticação dos três perfis e recuperação de senha dos responsáveis.
from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from extensions import db
from erros import ErroAutenticacao, ErroValidacao
from models import Administrador, Dentista, Responsavel, RecuperacaoSenhaToken
from utils import (
    normalizar_email,
    verificar_senha,
    gerar_hash_senha,
    gerar_token_seguro,
    salvar_alteracoes,
)
import email_service

TAMANHO_MINIMO_SENHA = 8
MENSAGEM_TOKEN_INVALIDO = "Link de recuperação expirado ou inválido."


def _autenticar(modelo, email, senha):
    usuario = modelo.query.filter_by(email=normalizar_email(email)).first()
    # Mesma resposta para e-mail inexistente, senha errada e conta inativa
    if usuario is None or not usuario.ativo or not verificar_senha(senha, usuario.senha_hash):
        raise ErroAutenticacao()
    return usuario


def autenticar_responsavel(email, senha):
    responsavel = _autenticar(Responsavel, email, senha)
    if not responsavel.email_verificado:
        raise ErroAutenticacao()
    return responsavel


def autenticar_dentista(email, senha):
    return _autenticar(Dentista, email, senha)


def autenticar_admin(email, senha):
    return _autenticar(Administrador, email, senha)


def validar_nova_senha(senha, confirmacao, campo="senha"):
    if not senha or len(senha) < TAMANHO_MINIMO_SENHA:
        raise ErroValidacao(erros={campo: f"A senha deve ter no mínimo {TAMANHO_MINIMO_SENHA} caracteres."})
    if senha != confirmacao:
        raise ErroValidacao(erros={"confirmar_senha": "As senhas não conferem."})


# --- Recuperação de senha ---

def solicitar_recuperacao(email):
    """
    Gera um token de recuperação para um responsável ativo e envia o link.
    Não informa ao chamador se o e-mail existe.
    """
    email = normalizar_email(email)
    responsavel = Responsavel.query.filter_by(email=email, ativo=True).first() if email else None
    if responsavel is None:
        current_app.logger.info("Recuperação de senha solicitada para e-mail não cadastrado")
        return None

    # Um novo pedido invalida os links anteriores
    RecuperacaoSenhaToken.query.filter_by(email=email, usado=False).update({"usado": True})

    agora = datetime.now()
    registro = RecuperacaoSenhaToken(
        email=email,
        token=gerar_token_seguro(),
        data_criacao=agora,
        data_expiracao=agora + RecuperacaoSenhaToken.VALIDADE,
    )
    db.session.add(registro)
    salvar_alteracoes()

    email_service.enviar_email_recuperacao_senha(email, responsavel.nome, registro.token)
    return registro


def validar_token(token):
    if not token:
        return None
    registro = RecuperacaoSenhaToken.query.filter_by(token=token).first()
    if registro is None or not registro.valido:
        return None
    return registro


def redefinir_senha(token, nova_senha, confirmacao):
    registro = validar_token(token)
    if registro is None:
        raise ErroValidacao(MENSAGEM_TOKEN_INVALIDO)

    responsavel = Responsavel.query.filter_by(email=registro.email).first()
    if responsavel is None:
        raise ErroValidacao(MENSAGEM_TOKEN_INVALIDO)

    validar_nova_senha(nova_senha, confirmacao)

    responsavel.senha_hash = gerar_hash_senha(nova_senha)
    registro.usado = True
    salvar_alteracoes()
    current_app.logger.info("Senha redefinida para o responsável %s", responsavel.id)
    return responsavel


def limpar_tokens_expirados():
    """Remove tokens usados ou vencidos. Devolve a quantidade removida."""
    removidos = RecuperacaoSenhaToken.query.filter(
        or_(
            RecuperacaoSenhaToken.usado.is_(True),
            RecuperacaoSenhaToken.data_expiracao < datetime.now(),
        )
    ).delete(synchronize_session=False)
    salvar_alteracoes()
    return removidos
