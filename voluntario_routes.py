# voluntario_routes.py
# Candidatura pública de dentistas voluntários e triagem pelo administrador.
from flask import Blueprint, render_template, request, flash, redirect, url_for, jsonify

from erros import ErroDominio
from utils import role_required, registrar_log, responder_erro, PAPEL_ADMIN
import voluntario_service

voluntario_bp = Blueprint("voluntario", __name__)


@voluntario_bp.route("/Voluntario/Cadastro", methods=["GET", "POST"])
def cadastro():
    if request.method == "POST":
        try:
            voluntario_service.registrar_solicitacao(request.form)
        except ErroDominio as e:
            flash(e.mensagem, "danger")
            return render_template("voluntario/cadastro.html", dados=request.form, erros=e.erros), 400
        flash("Solicitação enviada! Entraremos em contato após a análise.", "success")
        return redirect(url_for("voluntario.cadastro"))
    return render_template("voluntario/cadastro.html", dados={}, erros={})


def _campo_json(campo):
    """Lê um único campo de texto do corpo JSON; None se o corpo for inválido."""
    dados = request.get_json(silent=True)
    if not isinstance(dados, dict):
        return None
    valor = dados.get(campo)
    if not isinstance(valor, str):
        return None
    return valor


def _validar(campo, verificador):
    valor = _campo_json(campo)
    if valor is None:
        return jsonify({"success": False, "message": f"Informe o campo '{campo}'."}), 400
    return jsonify({"existe": verificador(valor)})


@voluntario_bp.route("/Voluntario/ValidarCpf", methods=["POST"])
def validar_cpf():
    return _validar("cpf", voluntario_service.cpf_existe)


@voluntario_bp.route("/Voluntario/ValidarEmail", methods=["POST"])
def validar_email():
    return _validar("email", voluntario_service.email_existe)


@voluntario_bp.route("/Voluntario/ValidarCro", methods=["POST"])
def validar_cro():
    return _validar("cro", voluntario_service.cro_existe)


# --- Triagem (admin) ---

@voluntario_bp.route("/Admin/Voluntarios")
@role_required(PAPEL_ADMIN)
def listar():
    status = request.args.get("status", "")
    return render_template(
        "admin/voluntarios.html",
        solicitacoes=voluntario_service.listar_solicitacoes(status or None),
        status=status,
    )


@voluntario_bp.route("/Admin/Voluntarios/<int:id>")
@role_required(PAPEL_ADMIN)
def detalhes(id):
    try:
        solicitacao = voluntario_service.visualizar_solicitacao(id)
    except ErroDominio as e:
        flash(e.mensagem, "danger")
        return redirect(url_for("voluntario.listar"))
    return render_template("admin/voluntario_detalhes.html", solicitacao=solicitacao)


@voluntario_bp.route("/Admin/Voluntarios/<int:id>/Aprovar", methods=["POST"])
@role_required(PAPEL_ADMIN)
def aprovar(id):
    try:
        dentista = voluntario_service.aprovar_solicitacao(id, request.form.get("observacao_admin"))
    except ErroDominio as e:
        return responder_erro(e, "voluntario.detalhes", id=id)
    registrar_log(f'Aprovou a solicitação de voluntário {id} ("{dentista.nome}").')
    flash(f'Solicitação aprovada. "{dentista.nome}" agora é dentista do sistema.', "success")
    return redirect(url_for("voluntario.listar"))


@voluntario_bp.route("/Admin/Voluntarios/<int:id>/Rejeitar", methods=["POST"])
@role_required(PAPEL_ADMIN)
def rejeitar(id):
    try:
        voluntario_service.rejeitar_solicitacao(id, request.form.get("observacao_admin"))
    except ErroDominio as e:
        return responder_erro(e, "voluntario.detalhes", id=id)
    registrar_log(f"Rejeitou a solicitação de voluntário {id}.")
    flash("Solicitação rejeitada.", "info")
    return redirect(url_for("voluntario.listar"))
