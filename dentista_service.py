# dentista_service.py
from datetime import date

from flask import current_app
from sqlalchemy import or_

from extensions import db
from erros import ErroValidacao, ErroConflito, ErroNaoEncontrado
from models import Dentista, Agendamento, Atendimento, EscalaTrabalho, DisponibilidadeDentista, DIAS_SEMANA
from utils import (
    limpar_cpf,
    limpar_telefone,
    normalizar_email,
    gerar_hash_senha,
    gerar_senha_aleatoria,
    salvar_alteracoes,
    parse_id,
    parse_hora,
)
from auth_service import validar_nova_senha
from agendamento_service import proximos_agendamentos_dentista
import email_service


def _limpar_dados(dados):
    return {
        "nome": (dados.get("nome") or "").strip(),
        "cpf": limpar_cpf((dados.get("cpf") or "").strip()),
        "cro": (dados.get("cro") or "").strip().upper(),
        "email": normalizar_email((dados.get("email") or "").strip()),
        "telefone": limpar_telefone((dados.get("telefone") or "").strip()),
        "endereco": (dados.get("endereco") or "").strip() or None,
    }


def _validar_obrigatorios(limpos, campos):
    erros = {}
    for campo, rotulo in campos:
        if not limpos.get(campo):
            erros[campo] = f"{rotulo} é obrigatório."
    if erros:
        raise ErroValidacao(erros=erros)


def _checar_unicidade(limpos, ignorar_id=None):
    mensagens = {
        "cpf": "Já existe um dentista com este CPF.",
        "email": "Já existe um dentista com este e-mail.",
        "cro": "Já existe um dentista com este CRO.",
    }
    conflitos = {}
    for campo, mensagem in mensagens.items():
        valor = limpos.get(campo)
        if not valor:
            continue
        query = Dentista.query.filter(getattr(Dentista, campo) == valor)
        if ignorar_id is not None:
            query = query.filter(Dentista.id != ignorar_id)
        if query.first():
            conflitos[campo] = mensagem
    if conflitos:
        raise ErroConflito(" ".join(conflitos.values()), erros=conflitos)


def obter_dentista(dentista_id):
    dentista = db.session.get(Dentista, dentista_id)
    if dentista is None:
        raise ErroNaoEncontrado("Dentista não encontrado.")
    return dentista


def listar_dentistas(busca=None, somente_ativos=False):
    query = Dentista.query
    if busca:
        termo = f"%{busca.strip()}%"
        query = query.filter(
            or_(Dentista.nome.ilike(termo), Dentista.email.ilike(termo), Dentista.cro.ilike(termo))
        )
    if somente_ativos:
        query = query.filter(Dentista.ativo.is_(True))
    return query.order_by(Dentista.nome).all()


def criar_dentista(dados, commit=True):
    """Cria o dentista com uma senha temporária. Devolve (dentista, senha_temporaria)."""
    limpos = _limpar_dados(dados)
    _validar_obrigatorios(
        limpos, (("nome", "Nome"), ("cpf", "CPF"), ("cro", "CRO"), ("email", "E-mail"))
    )
    _checar_unicidade(limpos)

    senha_temporaria = gerar_senha_aleatoria()
    dentista = Dentista(senha_hash=gerar_hash_senha(senha_temporaria), ativo=True, **limpos)
    escala_id = dados.get("escala_trabalho_id")
    if escala_id:
        dentista.escala_trabalho_id = _obter_escala_trabalho(escala_id).id
    db.session.add(dentista)
    if commit:
        salvar_alteracoes()
        email_service.enviar_email_boas_vindas_dentista(dentista, senha_temporaria)
    return dentista, senha_temporaria


def editar_dentista(dentista_id, dados):
    dentista = obter_dentista(dentista_id)
    limpos = _limpar_dados(dados)
    _validar_obrigatorios(
        limpos, (("nome", "Nome"), ("cpf", "CPF"), ("cro", "CRO"), ("email", "E-mail"))
    )
    _checar_unicidade(limpos, ignorar_id=dentista.id)

    for campo, valor in limpos.items():
        setattr(dentista, campo, valor)
    escala_id = dados.get("escala_trabalho_id")
    dentista.escala_trabalho_id = _obter_escala_trabalho(escala_id).id if escala_id else None
    if "ativo" in dados:
        dentista.ativo = bool(dados.get("ativo"))
    salvar_alteracoes()
    return dentista


def alternar_status_dentista(dentista_id):
    dentista = obter_dentista(dentista_id)
    dentista.ativo = not dentista.ativo
    salvar_alteracoes()
    return dentista


def excluir_dentista(dentista_id):
    dentista = obter_dentista(dentista_id)
    if Agendamento.query.filter_by(dentista_id=dentista.id).first():
        raise ErroConflito(
            "Não é possível excluir um dentista com agendamentos. Desative o cadastro."
        )
    if Atendimento.query.filter_by(dentista_id=dentista.id).first():
        raise ErroConflito(
            "Não é possível excluir um dentista com atendimentos registrados. Desative o cadastro."
        )
    nome = dentista.nome
    db.session.delete(dentista)
    salvar_alteracoes()
    current_app.logger.info("Dentista %s excluído", dentista_id)
    return nome


def atualizar_perfil_dentista(dentista_id, dados):
    dentista = obter_dentista(dentista_id)
    limpos = _limpar_dados(dados)
    _validar_obrigatorios(limpos, (("nome", "Nome"), ("email", "E-mail")))
    _checar_unicidade({"email": limpos["email"]}, ignorar_id=dentista.id)

    nova_senha = dados.get("nova_senha")
    if nova_senha:
        validar_nova_senha(nova_senha, dados.get("confirmar_senha"), campo="nova_senha")
        dentista.senha_hash = gerar_hash_senha(nova_senha)

    dentista.nome = limpos["nome"]
    dentista.email = limpos["email"]
    dentista.telefone = limpos["telefone"]
    dentista.endereco = limpos["endereco"]
    salvar_alteracoes()
    return dentista


def resumo_painel(dentista_id):
    hoje = date.today()
    base = Agendamento.query.filter(Agendamento.dentista_id == dentista_id)
    return {
        "total_agendamentos": base.count(),
        "agendamentos_hoje": base.filter(Agendamento.data == hoje).count(),
        "proximos": proximos_agendamentos_dentista(dentista_id, limite=5),
    }


# --- Escalas de trabalho (modelos semanais) ---

def _obter_escala_trabalho(escala_id):
    escala = db.session.get(EscalaTrabalho, parse_id(escala_id, "escala_id"))
    if escala is None:
        raise ErroNaoEncontrado("Escala de trabalho não encontrada.")
    return escala


def listar_escalas_trabalho():
    return EscalaTrabalho.query.order_by(EscalaTrabalho.nome).all()


def criar_escala_trabalho(nome, descricao=None):
    nome = (nome or "").strip()
    if not nome:
        raise ErroValidacao(erros={"nome": "Nome da escala é obrigatório."})
    escala = EscalaTrabalho(nome=nome, descricao=(descricao or "").strip() or None)
    db.session.add(escala)
    salvar_alteracoes()
    return escala


def excluir_escala_trabalho(escala_id):
    escala = _obter_escala_trabalho(escala_id)
    db.session.delete(escala)
    salvar_alteracoes()


# --- Disponibilidade semanal (mantida pelo próprio dentista) ---

def listar_disponibilidades(dentista_id):
    disponibilidades = DisponibilidadeDentista.query.filter_by(dentista_id=dentista_id).all()
    return sorted(disponibilidades, key=lambda d: (DIAS_SEMANA.index(d.dia_semana), d.hora_inicio))


def obter_disponibilidade(dentista_id, disponibilidade_id):
    disponibilidade = DisponibilidadeDentista.query.filter_by(
        id=disponibilidade_id, dentista_id=dentista_id
    ).first()
    if disponibilidade is None:
        raise ErroNaoEncontrado("Disponibilidade não encontrada.")
    return disponibilidade


def _validar_disponibilidade(dados):
    erros = {}
    dia_semana = (dados.get("dia_semana") or "").strip()
    if dia_semana not in DIAS_SEMANA:
        erros["dia_semana"] = "Selecione um dia da semana."

    horas = {}
    for campo in ("hora_inicio", "hora_fim"):
        try:
            horas[campo] = parse_hora(dados.get(campo), campo)
        except ErroValidacao as e:
            erros.update(e.erros)
    if len(horas) == 2 and horas["hora_fim"] <= horas["hora_inicio"]:
        erros["hora_fim"] = "A hora de fim deve ser posterior à hora de início."
    if erros:
        raise ErroValidacao(erros=erros)
    return dia_semana, horas["hora_inicio"], horas["hora_fim"]


def _checar_sobreposicao(dentista_id, dia_semana, inicio, fim, ignorar_id=None):
    """Dois blocos ativos do mesmo dia não podem se sobrepor."""
    query = DisponibilidadeDentista.query.filter(
        DisponibilidadeDentista.dentista_id == dentista_id,
        DisponibilidadeDentista.dia_semana == dia_semana,
        DisponibilidadeDentista.ativo.is_(True),
        DisponibilidadeDentista.hora_inicio < fim,
        DisponibilidadeDentista.hora_fim > inicio,
    )
    if ignorar_id is not None:
        query = query.filter(DisponibilidadeDentista.id != ignorar_id)
    if query.first():
        raise ErroConflito(f"Já existe uma disponibilidade nesse intervalo de {dia_semana}.")


def criar_disponibilidade(dentista_id, dados):
    dentista = obter_dentista(dentista_id)
    dia_semana, inicio, fim = _validar_disponibilidade(dados)
    _checar_sobreposicao(dentista.id, dia_semana, inicio, fim)
    disponibilidade = DisponibilidadeDentista(
        dentista_id=dentista.id, dia_semana=dia_semana, hora_inicio=inicio, hora_fim=fim, ativo=True
    )
    db.session.add(disponibilidade)
    salvar_alteracoes()
    return disponibilidade


def editar_disponibilidade(dentista_id, disponibilidade_id, dados):
    disponibilidade = obter_disponibilidade(dentista_id, disponibilidade_id)
    dia_semana, inicio, fim = _validar_disponibilidade(dados)
    ativo = bool(dados.get("ativo"))
    if ativo:
        _checar_sobreposicao(dentista_id, dia_semana, inicio, fim, ignorar_id=disponibilidade.id)

    disponibilidade.dia_semana = dia_semana
    disponibilidade.hora_inicio = inicio
    disponibilidade.hora_fim = fim
    disponibilidade.ativo = ativo
    salvar_alteracoes()
    return disponibilidade


def excluir_disponibilidade(dentista_id, disponibilidade_id):
    disponibilidade = obter_disponibilidade(dentista_id, disponibilidade_id)
    db.session.delete(disponibilidade)
    salvar_alteracoes()
