# escala_service.py
# Escala mensal dos dentistas: blocos de 1 hora por dentista e por dia.
from collections import OrderedDict
from datetime import date, datetime, timedelta
from calendar import monthrange

from flask import current_app

from extensions import db
from erros import ErroValidacao, ErroConflito, ErroNaoEncontrado
from models import EscalaMensalDentista, Agendamento, Dentista
from utils import parse_data, parse_hora, parse_id, salvar_alteracoes

DURACAO_BLOCO = timedelta(hours=1)

NOMES_MESES = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]


def _como_data(valor):
    if isinstance(valor, date):
        return valor
    return parse_data(valor)


def _hora_fim(dia, hora_inicio):
    fim = datetime.combine(dia, hora_inicio) + DURACAO_BLOCO
    if fim.date() != dia:
        return None
    return fim.time()


def _dentista_ativo(dentista_id):
    if not dentista_id:
        raise ErroValidacao(erros={"dentista_id": "Selecione um dentista."})
    dentista = db.session.get(Dentista, parse_id(dentista_id, "dentista_id", "Selecione um dentista."))
    if dentista is None:
        raise ErroNaoEncontrado("Dentista não encontrado.")
    if not dentista.ativo:
        raise ErroValidacao("O dentista selecionado está inativo.")
    return dentista


def escala_ocupada(escala):
    return (
        Agendamento.query.filter_by(
            dentista_id=escala.dentista_id, data=escala.data, horario=escala.hora_inicio
        ).first()
        is not None
    )


def criar_escalas(dentista_id, data, horarios):
    """
    Cria um bloco de 1 hora para cada horário de início informado.

    `horarios` pode ser uma lista ou uma string separada por vírgulas
    ("08:00,09:00"). Horários já cadastrados para o dentista no dia, ou
    repetidos na própria lista, são ignorados e contados em 'duplicadas'.
    Horários ilegíveis são contados em 'invalidas'. Tudo é gravado numa
    única transação.
    """
    dentista = _dentista_ativo(dentista_id)
    dia = _como_data(data)
    if dia < date.today():
        raise ErroValidacao("Não é possível criar escalas para datas passadas.")

    if isinstance(horarios, str):
        horarios = [horarios]
    horarios = [h.strip() for item in (horarios or []) for h in str(item).split(",") if h.strip()]
    if not horarios:
        raise ErroValidacao("Selecione pelo menos um horário.")

    ocupados = {
        e.hora_inicio
        for e in EscalaMensalDentista.query.filter_by(dentista_id=dentista.id, data=dia).all()
    }

    resultado = {"criadas": 0, "duplicadas": 0, "invalidas": 0}
    for texto in horarios:
        try:
            inicio = parse_hora(str(texto))
        except ErroValidacao:
            resultado["invalidas"] += 1
            continue
        fim = _hora_fim(dia, inicio)
        if fim is None:
            resultado["invalidas"] += 1
            continue
        if inicio in ocupados:
            resultado["duplicadas"] += 1
            continue
        ocupados.add(inicio)
        db.session.add(
            EscalaMensalDentista(
                dentista_id=dentista.id, data=dia, hora_inicio=inicio, hora_fim=fim, ativo=True
            )
        )
        resultado["criadas"] += 1

    salvar_alteracoes("Erro ao criar as escalas. Nenhum horário foi salvo.")
    current_app.logger.info(
        "Escalas do dentista %s em %s: %d criadas, %d duplicadas, %d inválidas",
        dentista.id, dia, resultado["criadas"], resultado["duplicadas"], resultado["invalidas"],
    )
    return resultado


def obter_escala(escala_id):
    escala = db.session.get(EscalaMensalDentista, escala_id)
    if escala is None:
        raise ErroNaoEncontrado("Escala não encontrada.")
    return escala


def editar_escala(escala_id, data, hora_inicio, hora_fim=None, ativo=True):
    escala = obter_escala(escala_id)
    if escala_ocupada(escala):
        raise ErroConflito("Não é possível alterar um horário que já possui agendamento.")

    dia = _como_data(data)
    if dia < date.today():
        raise ErroValidacao("Não é possível mover escalas para datas passadas.")
    inicio = parse_hora(hora_inicio, "hora_inicio")
    fim_esperado = _hora_fim(dia, inicio)
    if fim_esperado is None:
        raise ErroValidacao("O bloco de horário deve terminar no mesmo dia.")
    if hora_fim and parse_hora(hora_fim, "hora_fim") != fim_esperado:
        raise ErroValidacao("Cada bloco de escala deve ter exatamente 1 hora.")

    duplicada = EscalaMensalDentista.query.filter(
        EscalaMensalDentista.dentista_id == escala.dentista_id,
        EscalaMensalDentista.data == dia,
        EscalaMensalDentista.hora_inicio == inicio,
        EscalaMensalDentista.id != escala.id,
    ).first()
    if duplicada:
        raise ErroConflito("Já existe uma escala para este dentista neste horário.")

    escala.data = dia
    escala.hora_inicio = inicio
    escala.hora_fim = fim_esperado
    escala.ativo = bool(ativo)
    salvar_alteracoes()
    return escala


def excluir_escala(escala_id):
    escala = obter_escala(escala_id)
    if escala_ocupada(escala):
        raise ErroConflito("Não é possível excluir um horário que já possui agendamento.")
    db.session.delete(escala)
    salvar_alteracoes()


def normalizar_mes(ano, mes):
    """Aceita meses fora de 1..12 (0 é dezembro do ano anterior, 13 é janeiro do seguinte)."""
    ano, indice = divmod(int(ano) * 12 + int(mes) - 1, 12)
    return ano, indice + 1


def calendario_mensal(ano, mes):
    """Escalas ativas do mês agrupadas por data e, dentro de cada data, por dentista."""
    ano, mes = normalizar_mes(ano, mes)
    inicio = date(ano, mes, 1)
    fim = date(ano, mes, monthrange(ano, mes)[1])

    escalas = (
        EscalaMensalDentista.query.filter(
            EscalaMensalDentista.data >= inicio,
            EscalaMensalDentista.data <= fim,
            EscalaMensalDentista.ativo.is_(True),
        )
        .order_by(EscalaMensalDentista.data, EscalaMensalDentista.hora_inicio)
        .all()
    )

    dias = OrderedDict()
    for escala in escalas:
        por_dentista = dias.setdefault(escala.data, OrderedDict())
        grupo = por_dentista.setdefault(
            escala.dentista_id, {"dentista": escala.dentista, "escalas": []}
        )
        grupo["escalas"].append(escala)

    return {
        "ano": ano,
        "mes": mes,
        "nome_mes": NOMES_MESES[mes - 1],
        "dias": dias,
        "total_escalas": len(escalas),
        "mes_anterior": normalizar_mes(ano, mes - 1),
        "proximo_mes": normalizar_mes(ano, mes + 1),
    }


def horarios_disponiveis(data, dentista_id=None):
    """Blocos ativos de um dia que ainda não têm agendamento."""
    dia = _como_data(data)
    query = (
        EscalaMensalDentista.query.join(Dentista)
        .filter(
            EscalaMensalDentista.data == dia,
            EscalaMensalDentista.ativo.is_(True),
            Dentista.ativo.is_(True),
        )
    )
    if dentista_id:
        dentista_id = parse_id(dentista_id, "dentista_id", "Dentista inválido.")
        query = query.filter(EscalaMensalDentista.dentista_id == dentista_id)
    escalas = query.order_by(EscalaMensalDentista.hora_inicio, Dentista.nome).all()

    reservados = {
        (a.dentista_id, a.horario) for a in Agendamento.query.filter_by(data=dia).all()
    }
    agora = datetime.now()
    livres = []
    for escala in escalas:
        if (escala.dentista_id, escala.hora_inicio) in reservados:
            continue
        if datetime.combine(dia, escala.hora_inicio) <= agora:
            continue
        livres.append(escala)
    return livres
