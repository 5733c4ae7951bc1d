# agendamento_service.py
from datetime import date, datetime, time

from flask import current_app

from extensions import db
from erros import ErroValidacao, ErroConflito, ErroNaoEncontrado, ErroAutorizacao
from models import Agendamento, Crianca, EscalaMensalDentista, Dentista
from utils import parse_data, parse_hora, parse_id, salvar_alteracoes

MENSAGEM_HORARIO_RESERVADO = "Este horário já foi reservado. Escolha outro horário."


def _crianca_do_solicitante(identidade, crianca_id):
    try:
        crianca = db.session.get(Crianca, int(crianca_id))
    except (TypeError, ValueError):
        crianca = None
    if crianca is None:
        raise ErroNaoEncontrado("Criança não encontrada.")
    if identidade.is_admin:
        return crianca
    if identidade.is_responsavel and crianca.responsavel_id == identidade.usuario_id:
        return crianca
    raise ErroAutorizacao("Você só pode agendar consultas para as suas crianças.")


def _data_e_hora(data, hora):
    dia = data if isinstance(data, date) else parse_data(data)
    horario = hora if isinstance(hora, time) else parse_hora(hora)
    if datetime.combine(dia, horario) <= datetime.now():
        raise ErroValidacao("Não é possível agendar para uma data ou horário que já passou.")
    return dia, horario


def _garantir_horario_livre(dentista_id, dia, horario, ignorar_id=None):
    escala = (
        EscalaMensalDentista.query.join(Dentista)
        .filter(
            EscalaMensalDentista.dentista_id == dentista_id,
            EscalaMensalDentista.data == dia,
            EscalaMensalDentista.hora_inicio == horario,
            EscalaMensalDentista.ativo.is_(True),
            Dentista.ativo.is_(True),
        )
        .first()
    )
    if escala is None:
        raise ErroValidacao("O horário selecionado não está disponível na escala do dentista.")

    query = Agendamento.query.filter_by(dentista_id=dentista_id, data=dia, horario=horario)
    if ignorar_id is not None:
        query = query.filter(Agendamento.id != ignorar_id)
    if query.first():
        raise ErroConflito(MENSAGEM_HORARIO_RESERVADO)
    return escala


def agendar(identidade, crianca_id, data, hora, dentista_id):
    # A posse da criança é verificada antes de qualquer outra regra
    crianca = _crianca_do_solicitante(identidade, crianca_id)
    dia, horario = _data_e_hora(data, hora)
    if not crianca.ativa:
        raise ErroValidacao("Não é possível agendar consultas para uma criança inativa.")
    dentista_id = parse_id(dentista_id, "dentista_id", "Selecione um dentista.")
    _garantir_horario_livre(dentista_id, dia, horario)

    agendamento = Agendamento(data=dia, horario=horario, dentista_id=dentista_id, crianca_id=crianca.id)
    db.session.add(agendamento)
    salvar_alteracoes("Erro ao salvar o agendamento. Tente novamente.", conflito=MENSAGEM_HORARIO_RESERVADO)
    current_app.logger.info(
        "Agendamento %s criado: criança %s, dentista %s, %s %s",
        agendamento.id, crianca.id, dentista_id, dia, horario,
    )
    return agendamento


def obter_agendamento_autorizado(identidade, agendamento_id):
    agendamento = db.session.get(Agendamento, agendamento_id)
    if agendamento is None:
        raise ErroNaoEncontrado("Agendamento não encontrado.")
    _crianca_do_solicitante(identidade, agendamento.crianca_id)
    return agendamento


def remarcar(identidade, agendamento_id, data, hora, dentista_id):
    agendamento = obter_agendamento_autorizado(identidade, agendamento_id)
    dia, horario = _data_e_hora(data, hora)
    dentista_id = parse_id(dentista_id, "dentista_id", "Selecione um dentista.")
    _garantir_horario_livre(dentista_id, dia, horario, ignorar_id=agendamento.id)

    agendamento.data = dia
    agendamento.horario = horario
    agendamento.dentista_id = dentista_id
    salvar_alteracoes(conflito=MENSAGEM_HORARIO_RESERVADO)
    return agendamento


def cancelar(identidade, agendamento_id):
    agendamento = obter_agendamento_autorizado(identidade, agendamento_id)
    db.session.delete(agendamento)
    salvar_alteracoes()
    current_app.logger.info("Agendamento %s cancelado", agendamento_id)


def listar_agendamentos(identidade, somente_futuros=False):
    query = Agendamento.query
    if identidade.is_responsavel:
        query = query.join(Crianca).filter(Crianca.responsavel_id == identidade.usuario_id)
    elif identidade.is_dentista:
        query = query.filter(Agendamento.dentista_id == identidade.usuario_id)
    elif not identidade.is_admin:
        raise ErroAutorizacao()
    if somente_futuros:
        query = query.filter(Agendamento.data >= date.today())
    return query.order_by(Agendamento.data, Agendamento.horario).all()


def proximos_agendamentos_dentista(dentista_id, limite=5):
    return (
        Agendamento.query.filter(
            Agendamento.dentista_id == dentista_id,
            Agendamento.data >= date.today(),
        )
        .order_by(Agendamento.data, Agendamento.horario)
        .limit(limite)
        .all()
    )
