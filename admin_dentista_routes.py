# admin_dentista_routes.py
from flask import Blueprint, render_template, request, flash, redirect, url_for

from erros import ErroDominio
from utils import role_required, registrar_log, responder_erro, PAPEL_ADMIN
import dentista_service

admin_dentista_bp = Blueprint("admin_dentista", __name__, url_prefix="/Admin")


@admin_dentista_bp.route("/Dentistas")
@role_required(PAPEL_ADMIN)
def listar_dentistas():
    busca = request.args.get("busca", "")
    return render_template(
        "admin/dentistas.html",
        dentistas=dentista_service.listar_dentistas(busca),
        escalas_trabalho=dentista_service.listar_escalas_trabalho(),
        busca=busca,
    )


@admin_dentista_bp.route("/Dentistas/Novo", methods=["GET", "POST"])
@role_required(PAPEL_ADMIN)
def novo_dentista():
    if request.method == "POST":
        try:
            dentista, _ = dentista_service.criar_dentista(request.form)
        except ErroDominio as e:
            return responder_erro(e, "admin_dentista.novo_dentista")
        registrar_log(f'Cadastrou o dentista "{dentista.nome}".')
        flash(
            f'Dentista "{dentista.nome}" cadastrado. A senha temporária foi enviada para {dentista.email}.',
            "success",
        )
        return redirect(url_for("admin_dentista.listar_dentistas"))

    return render_template(
        "admin/dentista_form.html", dentista=None, escalas_trabalho=dentista_service.listar_escalas_trabalho()
    )


@admin_dentista_bp.route("/Dentistas/<int:id>/Editar", methods=["GET", "POST"])
@role_required(PAPEL_ADMIN)
def editar_dentista(id):
    if request.method == "POST":
        try:
            dentista = dentista_service.editar_dentista(id, request.form)
        except ErroDominio as e:
            return responder_erro(e, "admin_dentista.editar_dentista", id=id)
        registrar_log(f'Editou o dentista "{dentista.nome}".')
        flash("Dentista atualizado com sucesso!", "success")
        return redirect(url_for("admin_dentista.listar_dentistas"))

    try:
        dentista = dentista_service.obter_dentista(id)
    except ErroDominio as e:
        flash(e.mensagem, "danger")
        return redirect(url_for("admin_dentista.listar_dentistas"))
    return render_template(
        "admin/dentista_form.html", dentista=dentista, escalas_trabalho=dentista_service.listar_escalas_trabalho()
    )


@admin_dentista_bp.route("/Dentistas/<int:id>/AlternarStatus", methods=["POST"])
@role_required(PAPEL_ADMIN)
def alternar_status_dentista(id):
    try:
        dentista = dentista_service.alternar_status_dentista(id)
    except ErroDominio as e:
        return responder_erro(e, "admin_dentista.listar_dentistas")
    situacao = "ativado" if dentista.ativo else "desativado"
    registrar_log(f'Dentista "{dentista.nome}" {situacao}.')
    flash(f'Dentista "{dentista.nome}" {situacao}.', "success")
    return redirect(url_for("admin_dentista.listar_dentistas"))


@admin_dentista_bp.route("/Dentistas/<int:id>/Excluir", methods=["POST"])
@role_required(PAPEL_ADMIN)
def excluir_dentista(id):
    try:
        nome = dentista_service.excluir_dentista(id)
    except ErroDominio as e:
        return responder_erro(e, "admin_dentista.listar_dentistas")
    registrar_log(f'Excluiu o dentista "{nome}".')
    flash(f'Dentista "{nome}" excluído.', "success")
    return redirect(url_for("admin_dentista.listar_dentistas"))


# --- Escalas de trabalho ---

@admin_dentista_bp.route("/EscalasTrabalho", methods=["GET", "POST"])
@role_required(PAPEL_ADMIN)
def escalas_trabalho():
    if request.method == "POST":
        try:
            escala = dentista_service.criar_escala_trabalho(
                request.form.get("nome"), request.form.get("descricao")
            )
        except ErroDominio as e:
            return responder_erro(e, "admin_dentista.escalas_trabalho")
        flash(f'Escala "{escala.nome}" criada.', "success")
        return redirect(url_for("admin_dentista.escalas_trabalho"))

    return render_template(
        "admin/escalas_trabalho.html", escalas=dentista_service.listar_escalas_trabalho()
    )


@admin_dentista_bp.route("/EscalasTrabalho/<int:id>/Excluir", methods=["POST"])
@role_required(PAPEL_ADMIN)
def excluir_escala_trabalho(id):
    try:
        dentista_service.excluir_escala_trabalho(id)
    except ErroDominio as e:
        return responder_erro(e, "admin_dentista.escalas_trabalho")
    flash("Escala de trabalho excluída.", "success")
    return redirect(url_for("admin_dentista.escalas_trabalho"))
