# perfil_routes.py
# Área do responsável: dados pessoais e crianças.
from flask import Blueprint, render_template, request, flash, redirect, url_for

from erros import ErroDominio
from models import PARENTESCOS
from utils import (
    role_required,
    identidade_atual,
    criancas_do_formulario,
    registrar_log,
    responder_erro,
    PAPEL_RESPONSAVEL,
)
import cadastro_service
import agendamento_service

perfil_bp = Blueprint("perfil", __name__, url_prefix="/Perfil")


@perfil_bp.route("/")
@role_required(PAPEL_RESPONSAVEL)
def index():
    identidade = identidade_atual()
    responsavel = cadastro_service.obter_responsavel(identidade.usuario_id)
    agendamentos = agendamento_service.listar_agendamentos(identidade, somente_futuros=True)
    return render_template(
        "perfil/index.html",
        responsavel=responsavel,
        agendamentos=agendamentos,
        parentescos=PARENTESCOS,
    )


@perfil_bp.route("/Editar", methods=["GET", "POST"])
@role_required(PAPEL_RESPONSAVEL)
def editar():
    identidade = identidade_atual()
    responsavel = cadastro_service.obter_responsavel(identidade.usuario_id)

    if request.method == "POST":
        criancas = criancas_do_formulario(request.form)
        try:
            cadastro_service.atualizar_perfil_responsavel(
                responsavel.id, request.form, criancas if request.form.get("editar_criancas") else None
            )
        except ErroDominio as e:
            flash(e.mensagem, "danger")
            return redirect(url_for("perfil.editar"))
        registrar_log("Atualizou o próprio perfil.")
        flash("Perfil atualizado com sucesso!", "success")
        return redirect(url_for("perfil.index"))

    return render_template("perfil/editar.html", responsavel=responsavel, parentescos=PARENTESCOS)


@perfil_bp.route("/Crianca/Nova", methods=["POST"])
@role_required(PAPEL_RESPONSAVEL)
def nova_crianca():
    try:
        crianca = cadastro_service.cadastrar_crianca(identidade_atual(), request.form)
    except ErroDominio as e:
        return responder_erro(e, "perfil.index")
    flash(f'Criança "{crianca.nome}" cadastrada com sucesso!', "success")
    return redirect(url_for("perfil.index"))


@perfil_bp.route("/Crianca/<int:id>/Editar", methods=["POST"])
@role_required(PAPEL_RESPONSAVEL)
def editar_crianca(id):
    try:
        cadastro_service.editar_crianca(identidade_atual(), id, request.form)
    except ErroDominio as e:
        return responder_erro(e, "perfil.index")
    flash("Dados da criança atualizados.", "success")
    return redirect(url_for("perfil.index"))


@perfil_bp.route("/Crianca/<int:id>/AlterarStatus", methods=["POST"])
@role_required(PAPEL_RESPONSAVEL)
def alterar_status_crianca(id):
    ativar = request.form.get("ativar") in ("1", "true", "on")
    try:
        crianca = cadastro_service.alterar_status_crianca(identidade_atual(), id, ativar)
    except ErroDominio as e:
        return responder_erro(e, "perfil.index")
    flash(f'Criança "{crianca.nome}" {"ativada" if crianca.ativa else "desativada"}.', "success")
    return redirect(url_for("perfil.index"))
