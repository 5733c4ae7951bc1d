# agendamento_routes.py
from datetime import date

from flask import Blueprint, render_template, request, flash, redirect, url_for, jsonify

from erros import ErroDominio
from models import Crianca
from utils import (
    role_required,
    identidade_atual,
    registrar_log,
    responder_erro,
    PAPEL_ADMIN,
    PAPEL_RESPONSAVEL,
)
import agendamento_service
import dentista_service
import escala_service

agendamento_bp = Blueprint("agendamento", __name__, url_prefix="/Agendamento")


def _criancas_disponiveis(identidade):
    query = Crianca.query.filter(Crianca.ativa.is_(True))
    if identidade.is_responsavel:
        query = query.filter(Crianca.responsavel_id == identidade.usuario_id)
    return query.order_by(Crianca.nome).all()


@agendamento_bp.route("/")
@role_required(PAPEL_RESPONSAVEL, PAPEL_ADMIN)
def listar():
    agendamentos = agendamento_service.listar_agendamentos(identidade_atual())
    return render_template("agendamento/listar.html", agendamentos=agendamentos, hoje=date.today())


@agendamento_bp.route("/Novo", methods=["GET", "POST"])
@role_required(PAPEL_RESPONSAVEL, PAPEL_ADMIN)
def novo():
    identidade = identidade_atual()

    if request.method == "POST":
        dados = request.get_json(silent=True) or request.form
        try:
            agendamento = agendamento_service.agendar(
                identidade,
                dados.get("crianca_id"),
                dados.get("data"),
                dados.get("horario"),
                dados.get("dentista_id"),
            )
        except ErroDominio as e:
            return responder_erro(e, "agendamento.novo")
        registrar_log(f"Agendou a consulta {agendamento.id}.")
        if request.is_json:
            return jsonify({"success": True, "message": "Consulta agendada com sucesso!", "id": agendamento.id})
        flash("Consulta agendada com sucesso!", "success")
        return redirect(url_for("agendamento.listar"))

    data_texto = request.args.get("data") or date.today().isoformat()
    try:
        horarios = escala_service.horarios_disponiveis(data_texto, request.args.get("dentista_id"))
    except ErroDominio as e:
        flash(e.mensagem, "warning")
        horarios = []
    return render_template(
        "agendamento/novo.html",
        criancas=_criancas_disponiveis(identidade),
        dentistas=dentista_service.listar_dentistas(somente_ativos=True),
        horarios=horarios,
        data=data_texto,
    )


@agendamento_bp.route("/HorariosDisponiveis")
@role_required(PAPEL_RESPONSAVEL, PAPEL_ADMIN)
def horarios_disponiveis():
    try:
        escalas = escala_service.horarios_disponiveis(
            request.args.get("data"), request.args.get("dentista_id")
        )
    except ErroDominio as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(
        [
            {
                "dentistaId": escala.dentista_id,
                "dentista": escala.dentista.nome,
                "horario": escala.hora_inicio.strftime("%H:%M"),
                "horarioFormatado": escala.horario_formatado,
            }
            for escala in escalas
        ]
    )


@agendamento_bp.route("/<int:id>/Remarcar", methods=["POST"])
@role_required(PAPEL_RESPONSAVEL, PAPEL_ADMIN)
def remarcar(id):
    try:
        agendamento_service.remarcar(
            identidade_atual(),
            id,
            request.form.get("data"),
            request.form.get("horario"),
            request.form.get("dentista_id"),
        )
    except ErroDominio as e:
        return responder_erro(e, "agendamento.listar")
    registrar_log(f"Remarcou a consulta {id}.")
    flash("Consulta remarcada com sucesso!", "success")
    return redirect(url_for("agendamento.listar"))


@agendamento_bp.route("/<int:id>/Cancelar", methods=["POST"])
@role_required(PAPEL_RESPONSAVEL, PAPEL_ADMIN)
def cancelar(id):
    try:
        agendamento_service.cancelar(identidade_atual(), id)
    except ErroDominio as e:
        return responder_erro(e, "agendamento.listar")
    registrar_log(f"Cancelou a consulta {id}.")
    flash("Consulta cancelada.", "info")
    return redirect(url_for("agendamento.listar"))
