# dentista_routes.py
# Área do dentista.
from datetime import date

from flask import Blueprint, render_template, request, flash, redirect, url_for

from erros import ErroDominio
from models import DIAS_SEMANA
from utils import role_required, identidade_atual, registrar_log, responder_erro, PAPEL_DENTISTA
import agendamento_service
import atendimento_service
import dentista_service

dentista_bp = Blueprint("dentista", __name__, url_prefix="/Dentista")


@dentista_bp.route("/")
@role_required(PAPEL_DENTISTA)
def painel():
    identidade = identidade_atual()
    dentista = dentista_service.obter_dentista(identidade.usuario_id)
    return render_template(
        "dentista/painel.html", dentista=dentista, resumo=dentista_service.resumo_painel(dentista.id)
    )


@dentista_bp.route("/Agendamentos")
@role_required(PAPEL_DENTISTA)
def agendamentos():
    lista = agendamento_service.listar_agendamentos(identidade_atual())
    return render_template("agendamento/listar.html", agendamentos=lista, hoje=date.today())


@dentista_bp.route("/Perfil")
@role_required(PAPEL_DENTISTA)
def perfil():
    dentista = dentista_service.obter_dentista(identidade_atual().usuario_id)
    return render_template("dentista/perfil.html", dentista=dentista)


@dentista_bp.route("/Perfil/Editar", methods=["GET", "POST"])
@role_required(PAPEL_DENTISTA)
def editar_perfil():
    identidade = identidade_atual()
    if request.method == "POST":
        try:
            dentista_service.atualizar_perfil_dentista(identidade.usuario_id, request.form)
        except ErroDominio as e:
            flash(e.mensagem, "danger")
            return redirect(url_for("dentista.editar_perfil"))
        registrar_log("Atualizou o próprio perfil.")
        flash("Perfil atualizado com sucesso!", "success")
        return redirect(url_for("dentista.perfil"))

    dentista = dentista_service.obter_dentista(identidade.usuario_id)
    return render_template("dentista/perfil_editar.html", dentista=dentista)


@dentista_bp.route("/MeusAtendimentos")
@role_required(PAPEL_DENTISTA)
def meus_atendimentos():
    atendimentos = atendimento_service.listar_atendimentos(identidade_atual())
    return render_template("atendimento/listar.html", atendimentos=atendimentos)


# --- Disponibilidade semanal ---

@dentista_bp.route("/Escala")
@role_required(PAPEL_DENTISTA)
def escala():
    dentista = dentista_service.obter_dentista(identidade_atual().usuario_id)
    return render_template(
        "dentista/escala.html",
        dentista=dentista,
        disponibilidades=dentista_service.listar_disponibilidades(dentista.id),
    )


@dentista_bp.route("/Escala/Nova", methods=["GET", "POST"])
@role_required(PAPEL_DENTISTA)
def nova_disponibilidade():
    if request.method == "POST":
        try:
            dentista_service.criar_disponibilidade(identidade_atual().usuario_id, request.form)
        except ErroDominio as e:
            return responder_erro(e, "dentista.nova_disponibilidade")
        flash("Disponibilidade cadastrada com sucesso!", "success")
        return redirect(url_for("dentista.escala"))

    return render_template("dentista/escala_form.html", disponibilidade=None, dias_semana=DIAS_SEMANA)


@dentista_bp.route("/Escala/<int:id>/Editar", methods=["GET", "POST"])
@role_required(PAPEL_DENTISTA)
def editar_disponibilidade(id):
    dentista_id = identidade_atual().usuario_id
    if request.method == "POST":
        try:
            dentista_service.editar_disponibilidade(dentista_id, id, request.form)
        except ErroDominio as e:
            return responder_erro(e, "dentista.escala")
        flash("Disponibilidade atualizada com sucesso!", "success")
        return redirect(url_for("dentista.escala"))

    try:
        disponibilidade = dentista_service.obter_disponibilidade(dentista_id, id)
    except ErroDominio as e:
        return responder_erro(e, "dentista.escala")
    return render_template(
        "dentista/escala_form.html", disponibilidade=disponibilidade, dias_semana=DIAS_SEMANA
    )


@dentista_bp.route("/Escala/<int:id>/Excluir", methods=["POST"])
@role_required(PAPEL_DENTISTA)
def excluir_disponibilidade(id):
    try:
        dentista_service.excluir_disponibilidade(identidade_atual().usuario_id, id)
    except ErroDominio as e:
        return responder_erro(e, "dentista.escala")
    flash("Disponibilidade removida com sucesso!", "success")
    return redirect(url_for("dentista.escala"))
