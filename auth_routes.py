# auth_routes.py
from flask import Blueprint, render_template, request, flash, redirect, url_for, session

from erros import ErroAutenticacao, ErroDominio
from utils import (
    iniciar_sessao,
    encerrar_sessao,
    registrar_log,
    PAPEL_ADMIN,
    PAPEL_DENTISTA,
    PAPEL_RESPONSAVEL,
    PAGINA_INICIAL_POR_PAPEL,
)
import auth_service

auth_bp = Blueprint("auth", __name__)


def _login(papel, autenticar, template, endpoint):
    if session.get("role") == papel:
        return redirect(url_for(PAGINA_INICIAL_POR_PAPEL[papel]))

    if request.method == "POST":
        email = request.form.get("email")
        senha = request.form.get("senha")
        lembrar_me = request.form.get("lembrar_me") in ("on", "true", "1")
        try:
            usuario = autenticar(email, senha)
        except ErroAutenticacao as e:
            flash(e.mensagem, "danger")
            return redirect(url_for(endpoint))

        iniciar_sessao(usuario, papel, lembrar_me)
        registrar_log("Fez login no sistema.")
        flash(f"Bem-vindo(a), {usuario.nome}!", "success")
        return redirect(url_for(PAGINA_INICIAL_POR_PAPEL[papel]))

    return render_template(template)


@auth_bp.route("/Login", methods=["GET", "POST"])
def login():
    return _login(PAPEL_RESPONSAVEL, auth_service.autenticar_responsavel, "auth/login.html", "auth.login")


@auth_bp.route("/Auth/DentistaLogin", methods=["GET", "POST"])
def login_dentista():
    return _login(
        PAPEL_DENTISTA, auth_service.autenticar_dentista, "auth/login_dentista.html", "auth.login_dentista"
    )


@auth_bp.route("/Admin/Login", methods=["GET", "POST"])
def login_admin():
    return _login(PAPEL_ADMIN, auth_service.autenticar_admin, "auth/login_admin.html", "auth.login_admin")


@auth_bp.route("/Logout", methods=["POST"])
def logout():
    registrar_log("Fez logout do sistema.")
    destino = encerrar_sessao()
    flash("Você saiu do sistema.", "info")
    return redirect(url_for(destino))


@auth_bp.route("/Auth/EsqueceuSenha", methods=["GET", "POST"])
def esqueceu_senha():
    if request.method == "POST":
        try:
            auth_service.solicitar_recuperacao(request.form.get("email"))
        except ErroDominio as e:
            flash(e.mensagem, "danger")
            return redirect(url_for("auth.esqueceu_senha"))
        # Mesma mensagem para e-mails cadastrados ou não
        flash(
            "Se o e-mail estiver cadastrado, você receberá um link para redefinir a senha.",
            "info",
        )
        return redirect(url_for("auth.login"))
    return render_template("auth/esqueceu_senha.html")


@auth_bp.route("/Auth/RedefinirSenha", methods=["GET", "POST"])
def redefinir_senha():
    token = request.values.get("token")

    if request.method == "POST":
        try:
            auth_service.redefinir_senha(
                token, request.form.get("nova_senha"), request.form.get("confirmar_senha")
            )
        except ErroDominio as e:
            flash(e.mensagem, "danger")
            if auth_service.validar_token(token) is None:
                return redirect(url_for("auth.esqueceu_senha"))
            return redirect(url_for("auth.redefinir_senha", token=token))
        flash("Senha redefinida com sucesso! Faça login com a nova senha.", "success")
        return redirect(url_for("auth.login"))

    if auth_service.validar_token(token) is None:
        flash(auth_service.MENSAGEM_TOKEN_INVALIDO, "danger")
        return redirect(url_for("auth.esqueceu_senha"))
    return render_template("auth/redefinir_senha.html", token=token)
