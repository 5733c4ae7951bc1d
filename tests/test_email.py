from datetime import date, timedelta

import pytest

import cadastro_service
import dentista_service
import voluntario_service
from extensions import mail
from models import Responsavel, Dentista, SolicitacaoVoluntario


@pytest.fixture
def smtp_fora_do_ar(app, monkeypatch):
    tentativas = []

    def falhar(mensagem):
        tentativas.append(mensagem)
        raise OSError("Connection refused")

    monkeypatch.setattr(mail, "send", falhar)
    return tentativas


def _responsavel():
    return {
        "nome": "Rita Alves",
        "cpf": "555.555.555-55",
        "telefone": "(86) 95555-4444",
        "email": "rita@example.com",
        "endereco": "Rua B, 20",
        "senha": "senha-segura-123",
        "confirmar_senha": "senha-segura-123",
    }


def _crianca():
    return {
        "nome": "Davi",
        "cpf": "66666666666",
        "data_nascimento": date.today() - timedelta(days=365 * 4),
        "parentesco": "Mãe",
    }


def test_cadastro_e_gravado_mesmo_sem_envio(smtp_fora_do_ar, db):
    responsavel = cadastro_service.registrar_responsavel(_responsavel(), [_crianca()])

    assert len(smtp_fora_do_ar) == 1
    db.session.expire_all()
    gravado = Responsavel.query.filter_by(email="rita@example.com").one()
    assert gravado.id == responsavel.id
    assert len(gravado.criancas) == 1
    assert gravado.token_verificacao


def test_verificacao_conclui_mesmo_sem_envio(app, db, monkeypatch):
    responsavel = cadastro_service.registrar_responsavel(_responsavel(), [_crianca()])
    token = responsavel.token_verificacao

    def falhar(mensagem):
        raise OSError("Connection refused")

    monkeypatch.setattr(mail, "send", falhar)
    assert cadastro_service.verificar_email(token) == "sucesso"

    db.session.expire_all()
    gravado = db.session.get(Responsavel, responsavel.id)
    assert gravado.ativo and gravado.email_verificado


def test_aprovacao_de_voluntario_conclui_mesmo_sem_envio(smtp_fora_do_ar, db):
    solicitacao = voluntario_service.registrar_solicitacao(
        {
            "nome": "Dr. Hugo",
            "email": "hugo@example.com",
            "telefone": "(86) 94444-3333",
            "cro": "PI-555",
            "cpf": "777.777.777-77",
        }
    )
    voluntario_service.aprovar_solicitacao(solicitacao.id)

    assert len(smtp_fora_do_ar) == 1
    db.session.expire_all()
    assert SolicitacaoVoluntario.query.one().status == "Aprovado"
    assert Dentista.query.filter_by(email="hugo@example.com").count() == 1


def test_cadastro_de_dentista_conclui_mesmo_sem_envio(smtp_fora_do_ar, db):
    dentista, _ = dentista_service.criar_dentista(
        {"nome": "Dra. Ines", "cpf": "88888888888", "cro": "PI-888", "email": "ines@example.com"}
    )
    assert len(smtp_fora_do_ar) == 1
    db.session.expire_all()
    assert db.session.get(Dentista, dentista.id) is not None


def test_cadastro_pela_rota_redireciona_mesmo_sem_envio(client, smtp_fora_do_ar):
    dados = dict(
        _responsavel(),
        crianca_nome=["Davi"],
        crianca_cpf=["66666666666"],
        crianca_data_nascimento=[(date.today() - timedelta(days=365 * 4)).isoformat()],
        crianca_parentesco=["Mãe"],
    )
    resposta = client.post("/Cadastro", data=dados)
    assert resposta.status_code == 302
    assert Responsavel.query.count() == 1
