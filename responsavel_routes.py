# responsavel_routes.py
# Cadastro público de responsáveis e confirmação de e-mail.
from flask import Blueprint, render_template, request, flash, redirect, url_for

from erros import ErroDominio
from models import PARENTESCOS
from utils import criancas_do_formulario
import cadastro_service

responsavel_bp = Blueprint("responsavel", __name__)


@responsavel_bp.route("/Cadastro", methods=["GET", "POST"])
def cadastro():
    if request.method == "POST":
        criancas = criancas_do_formulario(request.form)
        try:
            cadastro_service.registrar_responsavel(request.form, criancas)
        except ErroDominio as e:
            flash(e.mensagem, "danger")
            return render_template(
                "responsavel/cadastro.html",
                parentescos=PARENTESCOS,
                dados=request.form,
                criancas=criancas,
                erros=e.erros,
            ), 400

        flash(
            "Cadastro realizado! Enviamos um e-mail de confirmação. "
            "Acesse o link em até 24 horas para ativar sua conta.",
            "success",
        )
        return redirect(url_for("auth.login"))

    return render_template(
        "responsavel/cadastro.html", parentescos=PARENTESCOS, dados={}, criancas=[], erros={}
    )


@responsavel_bp.route("/Responsavel/VerificarEmail")
def verificar_email():
    resultado = cadastro_service.verificar_email(request.args.get("token"))
    if resultado == "sucesso":
        flash("E-mail confirmado com sucesso! Sua conta está ativa.", "success")
    elif resultado == "expirado":
        flash("O link de confirmação expirou. Entre em contato com a clínica.", "warning")
    else:
        flash("Link de confirmação inválido ou já utilizado.", "danger")
    return redirect(url_for("auth.login"))
