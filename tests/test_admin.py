import io
from datetime import date, time

import pytest
from openpyxl import load_workbook

import dentista_service
from erros import ErroValidacao, ErroConflito
from models import Agendamento, Dentista, EscalaTrabalho
from utils import verificar_senha, PAPEL_ADMIN, PAPEL_DENTISTA


@pytest.fixture
def como_admin(client, logar, novo_admin):
    logar(novo_admin(), PAPEL_ADMIN)
    return client


def test_painel_e_listagens(como_admin, novo_responsavel, novo_dentista):
    responsavel = novo_responsavel()
    novo_dentista()
    for url in (
        "/Admin/",
        "/Admin/Responsaveis",
        f"/Admin/Responsaveis/{responsavel.id}",
        f"/Admin/Responsaveis/{responsavel.id}/Editar",
        "/Admin/Dentistas",
        "/Admin/Dentistas/Novo",
        "/Admin/EscalasTrabalho",
        "/Admin/Escala/Criar",
        "/Admin/Agendamentos",
    ):
        assert como_admin.get(url).status_code == 200, url


def test_exportar_responsaveis_em_excel(como_admin, novo_responsavel):
    novo_responsavel(nome="Carla Lima", email="carla@example.com")
    resposta = como_admin.get("/Admin/Responsaveis/Exportar")

    assert resposta.status_code == 200
    assert resposta.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    planilha = load_workbook(io.BytesIO(resposta.data)).active
    linhas = list(planilha.iter_rows(values_only=True))
    assert linhas[0][0] == "Nome"
    assert (linhas[1][0], linhas[1][2]) == ("Carla Lima", "carla@example.com")
    assert linhas[1][7] == "Criança 1"


def test_alternar_status_pela_rota(como_admin, novo_responsavel):
    responsavel = novo_responsavel(ativo=False, criancas=0)
    resposta = como_admin.post(
        f"/Admin/Responsaveis/{responsavel.id}/AlternarStatus", headers={"Accept": "application/json"}
    )
    assert resposta.status_code == 409
    assert "crianças ativas" in resposta.get_json()["message"]


def test_criar_dentista_envia_senha_temporaria(app, outbox):
    dentista, senha = dentista_service.criar_dentista(
        {"nome": "Dr. Caio", "cpf": "123.456.789-00", "cro": "pi-4321", "email": "Caio@Example.com"}
    )
    assert (dentista.cpf, dentista.cro, dentista.email) == ("12345678900", "PI-4321", "caio@example.com")
    assert verificar_senha(senha, dentista.senha_hash)
    assert senha in outbox[0].body


def test_dentista_duplicado(app, novo_dentista):
    existente = novo_dentista()
    with pytest.raises(ErroConflito) as exc:
        dentista_service.criar_dentista(
            {"nome": "Outro", "cpf": existente.cpf, "cro": "PI-1", "email": "outro@example.com"}
        )
    assert set(exc.value.erros) == {"cpf"}


def test_dentista_com_agendamento_nao_e_excluido(app, db, novo_dentista, novo_responsavel):
    dentista = novo_dentista()
    db.session.add(
        Agendamento(
            data=date(2020, 1, 10), horario=time(8, 0),
            dentista_id=dentista.id, crianca_id=novo_responsavel().criancas[0].id,
        )
    )
    db.session.commit()

    with pytest.raises(ErroConflito):
        dentista_service.excluir_dentista(dentista.id)
    assert db.session.get(Dentista, dentista.id) is not None


def test_excluir_dentista_remove_escalas(app, db, novo_dentista, nova_escala):
    dentista = novo_dentista(nome="Dr. Livre")
    nova_escala(dentista)
    assert dentista_service.excluir_dentista(dentista.id) == "Dr. Livre"
    assert Dentista.query.count() == 0


def test_escala_de_trabalho_removida_desvincula_dentistas(app, db, novo_dentista):
    escala = dentista_service.criar_escala_trabalho("Manhãs", "Seg a sex, 7h às 12h")
    dentista = novo_dentista(escala_trabalho_id=escala.id)

    dentista_service.excluir_escala_trabalho(escala.id)
    assert db.session.get(EscalaTrabalho, escala.id) is None
    assert db.session.get(Dentista, dentista.id).escala_trabalho_id is None

    with pytest.raises(ErroValidacao):
        dentista_service.criar_escala_trabalho("  ")


def test_area_do_dentista(client, logar, novo_dentista, novo_responsavel, db):
    dentista = novo_dentista()
    db.session.add(
        Agendamento(
            data=date.today(), horario=time(23, 0),
            dentista_id=dentista.id, crianca_id=novo_responsavel().criancas[0].id,
        )
    )
    db.session.commit()

    resumo = dentista_service.resumo_painel(dentista.id)
    assert (resumo["total_agendamentos"], resumo["agendamentos_hoje"]) == (1, 1)

    logar(dentista, PAPEL_DENTISTA)
    for url in ("/Dentista/", "/Dentista/Agendamentos", "/Dentista/Perfil", "/Dentista/Perfil/Editar"):
        assert client.get(url).status_code == 200, url


def test_dentista_troca_a_propria_senha(app, novo_dentista):
    dentista = novo_dentista()
    dados = {
        "nome": dentista.nome,
        "email": dentista.email,
        "nova_senha": "senha-nova-123",
        "confirmar_senha": "senha-nova-123",
    }
    atualizado = dentista_service.atualizar_perfil_dentista(dentista.id, dados)
    assert verificar_senha("senha-nova-123", atualizado.senha_hash)
