import pytest

import voluntario_service
from erros import ErroValidacao, ErroConflito
from models import SolicitacaoVoluntario, Dentista
from utils import verificar_senha, PAPEL_ADMIN

FORMULARIO = {
    "nome": "Dra. Beatriz Melo",
    "email": "Beatriz@Example.com",
    "telefone": "(86) 97777-6666",
    "cro": "pi-12345",
    "cpf": "999.888.777-66",
    "mensagem": "Tenho as tardes de sexta livres.",
}


def test_registrar_solicitacao_normaliza_campos(app):
    solicitacao = voluntario_service.registrar_solicitacao(FORMULARIO)
    assert solicitacao.status == "Pendente"
    assert not solicitacao.visualizado
    assert (solicitacao.email, solicitacao.cpf, solicitacao.cro) == ("beatriz@example.com", "99988877766", "PI-12345")


def test_campos_obrigatorios(app):
    with pytest.raises(ErroValidacao) as exc:
        voluntario_service.registrar_solicitacao({"nome": "Só nome", "email": "invalido"})
    assert set(exc.value.erros) == {"email", "telefone", "cro", "cpf"}


def test_duplicidade_com_solicitacao_ou_dentista(app, novo_dentista):
    voluntario_service.registrar_solicitacao(FORMULARIO)
    with pytest.raises(ErroConflito):
        voluntario_service.registrar_solicitacao(dict(FORMULARIO, email="outro@example.com", cro="PI-1"))

    dentista = novo_dentista(cro="PI-777")
    with pytest.raises(ErroConflito):
        voluntario_service.registrar_solicitacao(
            dict(FORMULARIO, cpf="12312312312", email="novo@example.com", cro=dentista.cro)
        )


def test_endpoints_de_validacao(client, novo_dentista):
    voluntario_service.registrar_solicitacao(FORMULARIO)
    dentista = novo_dentista()

    assert client.post("/Voluntario/ValidarCpf", json={"cpf": "99988877766"}).get_json() == {"existe": True}
    assert client.post("/Voluntario/ValidarCpf", json={"cpf": dentista.cpf}).get_json() == {"existe": True}
    assert client.post("/Voluntario/ValidarEmail", json={"email": "ninguem@example.com"}).get_json() == {"existe": False}
    assert client.post("/Voluntario/ValidarCro", json={"cro": "pi-12345"}).get_json() == {"existe": True}


@pytest.mark.parametrize("corpo", [None, [], {"cpf": 123}, {"outro": "x"}])
def test_corpo_malformado(client, corpo):
    if corpo is None:
        resposta = client.post("/Voluntario/ValidarCpf", data="nao-e-json", content_type="application/json")
    else:
        resposta = client.post("/Voluntario/ValidarCpf", json=corpo)
    assert resposta.status_code == 400


def test_visualizar_marca_como_lida(app):
    solicitacao = voluntario_service.registrar_solicitacao(FORMULARIO)
    assert voluntario_service.contar_nao_visualizadas() == 1
    voluntario_service.visualizar_solicitacao(solicitacao.id)
    assert voluntario_service.contar_nao_visualizadas() == 0


def test_aprovar_cria_dentista_e_envia_email(app, outbox):
    solicitacao = voluntario_service.registrar_solicitacao(FORMULARIO)
    dentista = voluntario_service.aprovar_solicitacao(solicitacao.id, "Bem-vinda!")

    assert dentista.ativo
    assert (dentista.cpf, dentista.cro, dentista.email) == ("99988877766", "PI-12345", "beatriz@example.com")
    solicitacao = SolicitacaoVoluntario.query.one()
    assert solicitacao.status == "Aprovado"
    assert solicitacao.data_resposta is not None
    assert solicitacao.observacao_admin == "Bem-vinda!"

    assert len(outbox) == 1
    mensagem = outbox[0]
    assert mensagem.recipients == ["beatriz@example.com"]
    senha = mensagem.body.split("Senha temporária: ")[1].split()[0]
    assert verificar_senha(senha, dentista.senha_hash)


def test_nao_aprova_duas_vezes(app):
    solicitacao = voluntario_service.registrar_solicitacao(FORMULARIO)
    voluntario_service.aprovar_solicitacao(solicitacao.id)
    with pytest.raises(ErroConflito):
        voluntario_service.aprovar_solicitacao(solicitacao.id)
    with pytest.raises(ErroConflito):
        voluntario_service.rejeitar_solicitacao(solicitacao.id)
    assert Dentista.query.count() == 1


def test_rejeitar(app):
    solicitacao = voluntario_service.registrar_solicitacao(FORMULARIO)
    rejeitada = voluntario_service.rejeitar_solicitacao(solicitacao.id, "Sem vagas no momento.")
    assert rejeitada.status == "Rejeitado"
    assert Dentista.query.count() == 0


def test_fluxo_pelas_rotas(client, logar, novo_admin, outbox):
    resposta = client.post("/Voluntario/Cadastro", data=FORMULARIO)
    assert resposta.status_code == 302
    solicitacao = SolicitacaoVoluntario.query.one()

    assert client.post("/Voluntario/Cadastro", data=FORMULARIO).status_code == 400

    logar(novo_admin(), PAPEL_ADMIN)
    assert client.get("/Admin/Voluntarios").status_code == 200
    assert client.get(f"/Admin/Voluntarios/{solicitacao.id}").status_code == 200
    resposta = client.post(f"/Admin/Voluntarios/{solicitacao.id}/Aprovar", data={"observacao_admin": ""})
    assert resposta.headers["Location"].endswith("/Admin/Voluntarios")
    assert Dentista.query.filter_by(email="beatriz@example.com").count() == 1
