# atendimento_service.py
# Registro dos atendimentos clínicos feitos pelos dentistas.
from flask import current_app

from extensions import db
from erros import ErroValidacao, ErroNaoEncontrado, ErroAutorizacao
from models import Atendimento, Agendamento, Crianca, Dentista
from utils import limpar_cpf, parse_data, parse_hora, parse_id, salvar_alteracoes

TAMANHO_OBSERVACAO = 100
DURACAO_MAXIMA = 480


def _exigir_equipe(identidade):
    if identidade is None or not (identidade.is_admin or identidade.is_dentista):
        raise ErroAutorizacao("Apenas administradores e dentistas acessam os atendimentos.")


def obter_atendimento_autorizado(identidade, atendimento_id):
    _exigir_equipe(identidade)
    atendimento = db.session.get(Atendimento, atendimento_id)
    if atendimento is None:
        raise ErroNaoEncontrado("Atendimento não encontrado.")
    if identidade.is_dentista and atendimento.dentista_id != identidade.usuario_id:
        raise ErroAutorizacao("Você só pode acessar os seus próprios atendimentos.")
    return atendimento


def _validar_atendimento(identidade, dados, atual=None):
    erros = {}

    def coletar(funcao, *args):
        try:
            return funcao(*args)
        except ErroValidacao as e:
            erros.update(e.erros)
            return None

    dia = coletar(parse_data, dados.get("data"), "data")
    horario = coletar(parse_hora, dados.get("horario"), "horario")

    duracao = coletar(parse_id, dados.get("duracao_minutos") or 30, "duracao_minutos", "Duração inválida.")
    if duracao is not None and not 0 < duracao <= DURACAO_MAXIMA:
        erros["duracao_minutos"] = f"A duração deve ficar entre 1 e {DURACAO_MAXIMA} minutos."

    observacao = (dados.get("observacao") or "").strip() or None
    if observacao and len(observacao) > TAMANHO_OBSERVACAO:
        erros["observacao"] = f"A observação deve ter no máximo {TAMANHO_OBSERVACAO} caracteres."

    crianca = None
    crianca_id = coletar(parse_id, dados.get("crianca_id"), "crianca_id", "Selecione uma criança.")
    if crianca_id is not None:
        crianca = db.session.get(Crianca, crianca_id)
        if crianca is None:
            erros["crianca_id"] = "Criança não encontrada."

    # O dentista registra sempre em seu nome; só o admin escolhe ou troca o dentista
    if identidade.is_dentista:
        dentista_id = atual.dentista_id if atual is not None else identidade.usuario_id
    else:
        dentista_id = coletar(parse_id, dados.get("dentista_id"), "dentista_id", "Selecione um dentista.")
        if dentista_id is not None and db.session.get(Dentista, dentista_id) is None:
            erros["dentista_id"] = "Dentista não encontrado."

    agendamento_id = None
    if dados.get("agendamento_id"):
        agendamento_id = coletar(parse_id, dados.get("agendamento_id"), "agendamento_id", "Consulta inválida.")
        if agendamento_id is not None:
            agendamento = db.session.get(Agendamento, agendamento_id)
            if agendamento is None or crianca is None or agendamento.crianca_id != crianca.id:
                erros["agendamento_id"] = "A consulta informada não pertence a esta criança."

    if erros:
        raise ErroValidacao(erros=erros)
    return {
        "data": dia,
        "horario": horario,
        "duracao_minutos": duracao,
        "observacao": observacao,
        "crianca_id": crianca.id,
        "dentista_id": dentista_id,
        "agendamento_id": agendamento_id,
    }


def registrar_atendimento(identidade, dados):
    _exigir_equipe(identidade)
    atendimento = Atendimento(**_validar_atendimento(identidade, dados))
    db.session.add(atendimento)
    salvar_alteracoes("Erro ao registrar o atendimento.")
    current_app.logger.info(
        "Atendimento %s registrado: criança %s, dentista %s",
        atendimento.id, atendimento.crianca_id, atendimento.dentista_id,
    )
    return atendimento


def editar_atendimento(identidade, atendimento_id, dados):
    atendimento = obter_atendimento_autorizado(identidade, atendimento_id)
    for campo, valor in _validar_atendimento(identidade, dados, atual=atendimento).items():
        setattr(atendimento, campo, valor)
    salvar_alteracoes("Erro ao atualizar o atendimento.")
    return atendimento


def excluir_atendimento(identidade, atendimento_id):
    if identidade is None or not identidade.is_admin:
        raise ErroAutorizacao("Apenas administradores podem excluir atendimentos.")
    atendimento = obter_atendimento_autorizado(identidade, atendimento_id)
    db.session.delete(atendimento)
    salvar_alteracoes()
    current_app.logger.info("Atendimento %s excluído", atendimento_id)


def _consulta_base(identidade):
    _exigir_equipe(identidade)
    query = Atendimento.query
    if identidade.is_dentista:
        query = query.filter(Atendimento.dentista_id == identidade.usuario_id)
    return query


def listar_atendimentos(identidade):
    return (
        _consulta_base(identidade)
        .order_by(Atendimento.data.desc(), Atendimento.horario.desc())
        .all()
    )


def pesquisar_historico(identidade, nome_crianca=None, cpf_crianca=None, nome_dentista=None,
                        data_inicio=None, data_fim=None):
    """
    Histórico filtrado por criança (nome ou CPF), dentista e período.
    Sem nenhum filtro não há pesquisa: devolve ([], False).
    """
    nome_crianca = (nome_crianca or "").strip()
    cpf_crianca = limpar_cpf((cpf_crianca or "").strip())
    nome_dentista = (nome_dentista or "").strip()
    if not any((nome_crianca, cpf_crianca, nome_dentista, data_inicio, data_fim)):
        _exigir_equipe(identidade)
        return [], False

    query = (
        _consulta_base(identidade)
        .join(Crianca, Atendimento.crianca_id == Crianca.id)
        .join(Dentista, Atendimento.dentista_id == Dentista.id)
    )
    if nome_crianca:
        query = query.filter(Crianca.nome.ilike(f"%{nome_crianca}%"))
    if cpf_crianca:
        query = query.filter(Crianca.cpf.contains(cpf_crianca))
    if nome_dentista:
        query = query.filter(Dentista.nome.ilike(f"%{nome_dentista}%"))
    if data_inicio:
        query = query.filter(Atendimento.data >= parse_data(data_inicio, "data_inicio"))
    if data_fim:
        query = query.filter(Atendimento.data <= parse_data(data_fim, "data_fim"))
    atendimentos = query.order_by(Atendimento.data.desc(), Atendimento.horario.desc()).all()
    return atendimentos, True
