# admin_escala_routes.py
# Calendário mensal de escalas dos dentistas.
from datetime import date

from flask import Blueprint, render_template, request, flash, redirect, url_for, jsonify

from erros import ErroDominio
from utils import role_required, registrar_log, responder_erro, requisicao_ajax, PAPEL_ADMIN
import dentista_service
import escala_service

HORARIOS_PADRAO = [f"{h:02d}:00" for h in range(7, 19)]

admin_escala_bp = Blueprint("admin_escala", __name__, url_prefix="/Admin/Escala")


@admin_escala_bp.route("/")
@role_required(PAPEL_ADMIN)
def calendario():
    hoje = date.today()
    ano = request.args.get("ano", hoje.year, type=int)
    mes = request.args.get("mes", hoje.month, type=int)
    return render_template(
        "admin/escala_calendario.html", calendario=escala_service.calendario_mensal(ano, mes)
    )


@admin_escala_bp.route("/Criar", methods=["GET", "POST"])
@role_required(PAPEL_ADMIN)
def criar():
    if request.method == "POST":
        horarios = request.form.getlist("horarios") or request.form.get("horarios_texto", "")
        try:
            resultado = escala_service.criar_escalas(
                request.form.get("dentista_id"), request.form.get("data"), horarios
            )
        except ErroDominio as e:
            return responder_erro(e, "admin_escala.criar")

        registrar_log(f"Criou {resultado['criadas']} escala(s) para o dentista {request.form.get('dentista_id')}.")
        if requisicao_ajax():
            return jsonify({"success": True, **resultado})
        mensagem = f"{resultado['criadas']} horário(s) criado(s)."
        if resultado["duplicadas"]:
            mensagem += f" {resultado['duplicadas']} já existiam e foram ignorados."
        if resultado["invalidas"]:
            mensagem += f" {resultado['invalidas']} horário(s) inválido(s)."
        flash(mensagem, "success" if resultado["criadas"] else "warning")
        return redirect(url_for("admin_escala.calendario"))

    return render_template(
        "admin/escala_form.html",
        escala=None,
        dentistas=dentista_service.listar_dentistas(somente_ativos=True),
        horarios=HORARIOS_PADRAO,
    )


@admin_escala_bp.route("/<int:id>/Editar", methods=["GET", "POST"])
@role_required(PAPEL_ADMIN)
def editar(id):
    if request.method == "POST":
        try:
            escala = escala_service.editar_escala(
                id,
                request.form.get("data"),
                request.form.get("hora_inicio"),
                request.form.get("hora_fim"),
                ativo=request.form.get("ativo") in ("on", "true", "1"),
            )
        except ErroDominio as e:
            return responder_erro(e, "admin_escala.editar", id=id)
        registrar_log(f"Editou a escala {id}.")
        flash("Escala atualizada com sucesso!", "success")
        return redirect(url_for("admin_escala.calendario", ano=escala.data.year, mes=escala.data.month))

    try:
        escala = escala_service.obter_escala(id)
    except ErroDominio as e:
        flash(e.mensagem, "danger")
        return redirect(url_for("admin_escala.calendario"))
    return render_template(
        "admin/escala_form.html",
        escala=escala,
        dentistas=dentista_service.listar_dentistas(somente_ativos=True),
        horarios=HORARIOS_PADRAO,
    )


@admin_escala_bp.route("/<int:id>/Excluir", methods=["POST"])
@role_required(PAPEL_ADMIN)
def excluir(id):
    try:
        escala_service.excluir_escala(id)
    except ErroDominio as e:
        return responder_erro(e, "admin_escala.calendario")
    registrar_log(f"Excluiu a escala {id}.")
    if requisicao_ajax():
        return jsonify({"success": True, "message": "Escala excluída com sucesso!"})
    flash("Escala excluída com sucesso!", "success")
    return redirect(url_for("admin_escala.calendario"))
