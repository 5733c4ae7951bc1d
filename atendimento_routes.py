# atendimento_routes.py
from datetime import date

from flask import Blueprint, render_template, request, flash, redirect, url_for

from erros import ErroDominio
from models import Crianca
from utils import (
    role_required,
    identidade_atual,
    registrar_log,
    responder_erro,
    PAPEL_ADMIN,
    PAPEL_DENTISTA,
)
import atendimento_service
import dentista_service

atendimento_bp = Blueprint("atendimento", __name__, url_prefix="/Atendimento")


def _pagina_de_retorno(identidade):
    if identidade.is_admin:
        return "atendimento.listar"
    return "dentista.meus_atendimentos"


def _contexto_formulario():
    return {
        "criancas": Crianca.query.order_by(Crianca.nome).all(),
        "dentistas": dentista_service.listar_dentistas(),
    }


@atendimento_bp.route("/")
@role_required(PAPEL_ADMIN)
def listar():
    atendimentos = atendimento_service.listar_atendimentos(identidade_atual())
    return render_template("atendimento/listar.html", atendimentos=atendimentos)


@atendimento_bp.route("/Historico")
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA)
def historico():
    filtros = {
        campo: request.args.get(campo, "")
        for campo in ("nome_crianca", "cpf_crianca", "nome_dentista", "data_inicio", "data_fim")
    }
    try:
        atendimentos, pesquisa_realizada = atendimento_service.pesquisar_historico(identidade_atual(), **filtros)
    except ErroDominio as e:
        flash(e.mensagem, "warning")
        atendimentos, pesquisa_realizada = [], False
    return render_template(
        "atendimento/historico.html",
        atendimentos=atendimentos,
        pesquisa_realizada=pesquisa_realizada,
        filtros=filtros,
    )


@atendimento_bp.route("/Novo", methods=["GET", "POST"])
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA)
def novo():
    identidade = identidade_atual()
    if request.method == "POST":
        try:
            atendimento = atendimento_service.registrar_atendimento(identidade, request.form)
        except ErroDominio as e:
            return responder_erro(e, "atendimento.novo")
        registrar_log(f"Registrou o atendimento {atendimento.id}.")
        flash("Atendimento registrado com sucesso!", "success")
        return redirect(url_for(_pagina_de_retorno(identidade)))

    return render_template(
        "atendimento/form.html",
        atendimento=None,
        hoje=date.today(),
        crianca_id=request.args.get("crianca_id", type=int),
        **_contexto_formulario(),
    )


@atendimento_bp.route("/<int:id>")
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA)
def detalhes(id):
    identidade = identidade_atual()
    try:
        atendimento = atendimento_service.obter_atendimento_autorizado(identidade, id)
    except ErroDominio as e:
        return responder_erro(e, _pagina_de_retorno(identidade))
    return render_template("atendimento/detalhes.html", atendimento=atendimento)


@atendimento_bp.route("/<int:id>/Editar", methods=["GET", "POST"])
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA)
def editar(id):
    identidade = identidade_atual()
    if request.method == "POST":
        try:
            atendimento_service.editar_atendimento(identidade, id, request.form)
        except ErroDominio as e:
            return responder_erro(e, "atendimento.editar", id=id)
        registrar_log(f"Editou o atendimento {id}.")
        flash("Atendimento atualizado com sucesso!", "success")
        return redirect(url_for(_pagina_de_retorno(identidade)))

    try:
        atendimento = atendimento_service.obter_atendimento_autorizado(identidade, id)
    except ErroDominio as e:
        return responder_erro(e, _pagina_de_retorno(identidade))
    return render_template(
        "atendimento/form.html",
        atendimento=atendimento,
        hoje=date.today(),
        crianca_id=atendimento.crianca_id,
        **_contexto_formulario(),
    )


@atendimento_bp.route("/<int:id>/Excluir", methods=["POST"])
@role_required(PAPEL_ADMIN)
def excluir(id):
    try:
        atendimento_service.excluir_atendimento(identidade_atual(), id)
    except ErroDominio as e:
        return responder_erro(e, "atendimento.listar")
    registrar_log(f"Excluiu o atendimento {id}.")
    flash("Atendimento excluído com sucesso!", "success")
    return redirect(url_for("atendimento.listar"))
