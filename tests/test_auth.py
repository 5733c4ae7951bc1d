from datetime import datetime, timedelta

import pytest

import auth_service
from erros import ErroAutenticacao
from models import Log
from utils import PAPEL_ADMIN, PAPEL_DENTISTA, PAPEL_RESPONSAVEL

MENSAGEM_GENERICA = "E-mail ou senha inválidos."


def test_autenticar_responsavel(app, novo_responsavel, senha_padrao):
    responsavel = novo_responsavel(email="ana@example.com")
    assert auth_service.autenticar_responsavel("  ANA@example.com", senha_padrao).id == responsavel.id


@pytest.mark.parametrize(
    "ativo, verificado, senha",
    [(True, True, "senha-errada"), (False, True, None), (True, False, None)],
)
def test_falhas_de_login_tem_mensagem_unica(app, novo_responsavel, senha_padrao, ativo, verificado, senha):
    novo_responsavel(email="ana@example.com", ativo=ativo, verificado=verificado)
    with pytest.raises(ErroAutenticacao) as exc:
        auth_service.autenticar_responsavel("ana@example.com", senha or senha_padrao)
    assert exc.value.mensagem == MENSAGEM_GENERICA


def test_email_inexistente_tem_mesma_mensagem(app):
    with pytest.raises(ErroAutenticacao) as exc:
        auth_service.autenticar_responsavel("ninguem@example.com", "qualquer-senha")
    assert exc.value.mensagem == MENSAGEM_GENERICA


def test_dentista_inativo_nao_entra(app, novo_dentista, senha_padrao):
    dentista = novo_dentista(ativo=False)
    with pytest.raises(ErroAutenticacao):
        auth_service.autenticar_dentista(dentista.email, senha_padrao)


def test_login_responsavel_cria_sessao(client, novo_responsavel, senha_padrao):
    responsavel = novo_responsavel(email="ana@example.com")
    resposta = client.post("/Login", data={"email": "ana@example.com", "senha": senha_padrao})

    assert resposta.status_code == 302
    assert resposta.headers["Location"].endswith("/Perfil/")
    with client.session_transaction() as sess:
        assert sess["role"] == PAPEL_RESPONSAVEL
        assert sess["user_id"] == responsavel.id
        assert sess["lembrar_me"] is False
    assert Log.query.filter_by(username="ana@example.com").count() == 1


def test_login_com_lembrar_me_torna_sessao_permanente(client, novo_dentista, senha_padrao):
    dentista = novo_dentista()
    resposta = client.post(
        "/Auth/DentistaLogin",
        data={"email": dentista.email, "senha": senha_padrao, "lembrar_me": "on"},
    )
    assert resposta.headers["Location"].endswith("/Dentista/")
    with client.session_transaction() as sess:
        assert sess.permanent
        assert sess["expira_em"] > (datetime.now() + timedelta(days=29)).timestamp()


def test_login_admin_invalido_volta_para_login(client, novo_admin):
    novo_admin()
    resposta = client.post("/Admin/Login", data={"email": "admin@piodonto.test", "senha": "errada"})
    assert resposta.status_code == 302
    assert resposta.headers["Location"].endswith("/Admin/Login")
    with client.session_transaction() as sess:
        assert "logged_in" not in sess


@pytest.mark.parametrize(
    "papel, destino",
    [(PAPEL_ADMIN, "/Admin/Login"), (PAPEL_DENTISTA, "/Auth/DentistaLogin"), (PAPEL_RESPONSAVEL, "/Login")],
)
def test_logout_volta_para_login_do_papel(client, logar, novo_dentista, papel, destino):
    logar(novo_dentista(), papel)
    resposta = client.post("/Logout")
    assert resposta.headers["Location"].endswith(destino)
    with client.session_transaction() as sess:
        assert "logged_in" not in sess
        assert "role" not in sess


def test_logout_sem_papel_limpa_tudo(client):
    with client.session_transaction() as sess:
        sess["qualquer"] = "coisa"
    resposta = client.post("/Logout")
    assert resposta.headers["Location"].endswith("/")
    with client.session_transaction() as sess:
        assert "qualquer" not in sess


def test_sessao_expirada_e_descartada(client, logar, novo_responsavel):
    logar(novo_responsavel(), PAPEL_RESPONSAVEL, expira_em=(datetime.now() - timedelta(minutes=1)).timestamp())
    resposta = client.get("/Perfil/")
    assert resposta.status_code == 302
    assert resposta.headers["Location"].endswith("/Login")


def test_expiracao_deslizante_renova_prazo(client, logar, novo_responsavel):
    prazo_antigo = (datetime.now() + timedelta(minutes=5)).timestamp()
    logar(novo_responsavel(), PAPEL_RESPONSAVEL, expira_em=prazo_antigo)
    assert client.get("/Perfil/").status_code == 200
    with client.session_transaction() as sess:
        assert sess["expira_em"] > prazo_antigo


def test_guarda_redireciona_para_login_do_papel_exigido(client, logar, novo_responsavel):
    logar(novo_responsavel(), PAPEL_RESPONSAVEL)
    resposta = client.get("/Admin/")
    assert resposta.status_code == 302
    assert resposta.headers["Location"].endswith("/Admin/Login")


def test_anonimo_e_redirecionado_para_login(client):
    resposta = client.get("/Perfil/")
    assert resposta.headers["Location"].endswith("/Login")


def test_guarda_responde_json_em_requisicao_ajax(client, logar, novo_responsavel):
    logar(novo_responsavel(), PAPEL_RESPONSAVEL)
    resposta = client.post("/Odontograma/1/Tratamento", json={"numero_dente": 11})
    assert resposta.status_code == 403
    assert resposta.get_json()["success"] is False


def test_admin_nao_tem_acesso_implicito_a_area_do_dentista(client, logar, novo_admin):
    logar(novo_admin(), PAPEL_ADMIN)
    resposta = client.get("/Dentista/")
    assert resposta.headers["Location"].endswith("/Auth/DentistaLogin")
