from datetime import datetime, timedelta

import pytest

import auth_service
from erros import ErroValidacao
from models import RecuperacaoSenhaToken
from utils import verificar_senha


def test_solicitacao_gera_token_e_envia_link(app, novo_responsavel, outbox):
    responsavel = novo_responsavel(email="ana@example.com")
    registro = auth_service.solicitar_recuperacao("Ana@Example.com ")

    assert len(registro.token) == 32
    assert registro.data_expiracao - registro.data_criacao == timedelta(hours=1)
    assert len(outbox) == 1
    assert outbox[0].recipients == [responsavel.email]
    assert f"/Auth/RedefinirSenha?token={registro.token}" in outbox[0].body


def test_email_desconhecido_nao_gera_token(client, outbox):
    resposta = client.post("/Auth/EsqueceuSenha", data={"email": "ninguem@example.com"}, follow_redirects=True)
    assert "Se o e-mail estiver cadastrado" in resposta.get_data(as_text=True)
    assert RecuperacaoSenhaToken.query.count() == 0
    assert outbox == []


def test_novo_pedido_invalida_token_anterior(app, novo_responsavel):
    novo_responsavel(email="ana@example.com")
    primeiro = auth_service.solicitar_recuperacao("ana@example.com").token
    segundo = auth_service.solicitar_recuperacao("ana@example.com").token

    assert auth_service.validar_token(primeiro) is None
    assert auth_service.validar_token(segundo) is not None


def test_token_e_de_uso_unico(app, novo_responsavel):
    novo_responsavel(email="ana@example.com")
    token = auth_service.solicitar_recuperacao("ana@example.com").token

    responsavel = auth_service.redefinir_senha(token, "nova-senha-forte", "nova-senha-forte")
    assert verificar_senha("nova-senha-forte", responsavel.senha_hash)

    with pytest.raises(ErroValidacao) as exc:
        auth_service.redefinir_senha(token, "outra-senha-forte", "outra-senha-forte")
    assert exc.value.mensagem == auth_service.MENSAGEM_TOKEN_INVALIDO


def test_token_expirado_e_rejeitado(app, db, novo_responsavel):
    novo_responsavel(email="ana@example.com")
    registro = auth_service.solicitar_recuperacao("ana@example.com")
    registro.data_expiracao = datetime.now() - timedelta(seconds=1)
    db.session.commit()

    with pytest.raises(ErroValidacao):
        auth_service.redefinir_senha(registro.token, "nova-senha-forte", "nova-senha-forte")


def test_senha_curta_nao_consome_token(app, novo_responsavel):
    novo_responsavel(email="ana@example.com")
    token = auth_service.solicitar_recuperacao("ana@example.com").token

    with pytest.raises(ErroValidacao):
        auth_service.redefinir_senha(token, "curta", "curta")
    assert auth_service.validar_token(token) is not None


def test_pagina_com_token_invalido_volta_para_pedido(client):
    resposta = client.get("/Auth/RedefinirSenha?token=inexistente")
    assert resposta.status_code == 302
    assert resposta.headers["Location"].endswith("/Auth/EsqueceuSenha")


def test_fluxo_completo_pelas_rotas(client, novo_responsavel, senha_padrao):
    novo_responsavel(email="ana@example.com")
    client.post("/Auth/EsqueceuSenha", data={"email": "ana@example.com"})
    token = RecuperacaoSenhaToken.query.one().token

    assert client.get(f"/Auth/RedefinirSenha?token={token}").status_code == 200
    resposta = client.post(
        "/Auth/RedefinirSenha",
        data={"token": token, "nova_senha": "senha-renovada-1", "confirmar_senha": "senha-renovada-1"},
    )
    assert resposta.headers["Location"].endswith("/Login")

    resposta = client.post("/Login", data={"email": "ana@example.com", "senha": "senha-renovada-1"})
    assert resposta.headers["Location"].endswith("/Perfil/")


def test_limpeza_remove_usados_e_vencidos(app, db, novo_responsavel):
    novo_responsavel(email="ana@example.com")
    usado = auth_service.solicitar_recuperacao("ana@example.com")
    vigente = auth_service.solicitar_recuperacao("ana@example.com")
    usado_token, vigente_token = usado.token, vigente.token

    assert auth_service.limpar_tokens_expirados() == 1
    assert RecuperacaoSenhaToken.query.filter_by(token=usado_token).first() is None
    assert RecuperacaoSenhaToken.query.filter_by(token=vigente_token).first() is not None


def test_comando_limpar_tokens(app):
    resultado = app.test_cli_runner().invoke(args=["limpar-tokens"])
    assert "0 token(s)" in resultado.output
