# admin_routes.py
# Painel do administrador: responsáveis, crianças e relatórios.
import io
from datetime import date

from flask import Blueprint, render_template, request, flash, redirect, url_for, make_response
from openpyxl import Workbook
from openpyxl.styles import Font

from erros import ErroDominio
from models import Responsavel, Crianca, Dentista, Agendamento, PARENTESCOS
from utils import (
    role_required,
    identidade_atual,
    registrar_log,
    responder_erro,
    data_br_filter,
    PAPEL_ADMIN,
)
import cadastro_service
import agendamento_service
import voluntario_service

admin_bp = Blueprint("admin", __name__, url_prefix="/Admin")


@admin_bp.route("/")
@role_required(PAPEL_ADMIN)
def dashboard():
    hoje = date.today()
    resumo = {
        "total_responsaveis": Responsavel.query.count(),
        "responsaveis_ativos": Responsavel.query.filter_by(ativo=True).count(),
        "criancas_ativas": Crianca.query.filter_by(ativa=True).count(),
        "dentistas_ativos": Dentista.query.filter_by(ativo=True).count(),
        "agendamentos_hoje": Agendamento.query.filter_by(data=hoje).count(),
        "solicitacoes_novas": voluntario_service.contar_nao_visualizadas(),
    }
    ultimos = Responsavel.query.order_by(Responsavel.data_cadastro.desc()).limit(5).all()
    return render_template("admin/dashboard.html", resumo=resumo, ultimos_responsaveis=ultimos)


# --- Responsáveis ---

@admin_bp.route("/Responsaveis")
@role_required(PAPEL_ADMIN)
def listar_responsaveis():
    busca = request.args.get("busca", "")
    status = request.args.get("status", "")
    responsaveis = cadastro_service.listar_responsaveis(busca, status)
    return render_template(
        "admin/responsaveis.html", responsaveis=responsaveis, busca=busca, status=status
    )


@admin_bp.route("/Responsaveis/Exportar")
@role_required(PAPEL_ADMIN)
def exportar_responsaveis():
    responsaveis = cadastro_service.listar_responsaveis(
        request.args.get("busca", ""), request.args.get("status", "")
    )
    wb = Workbook()
    ws = wb.active
    ws.title = "Responsáveis"
    ws.append(["Nome", "CPF", "E-mail", "Telefone", "Endereço", "Status", "E-mail verificado", "Crianças ativas", "Cadastro"])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for r in responsaveis:
        ws.append([
            r.nome, r.cpf, r.email, r.telefone, r.endereco,
            "Ativo" if r.ativo else "Inativo",
            "Sim" if r.email_verificado else "Não",
            ", ".join(c.nome for c in r.criancas_ativas),
            data_br_filter(r.data_cadastro),
        ])
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    registrar_log("Exportou a lista de responsáveis.")
    response = make_response(output.getvalue())
    response.headers["Content-Disposition"] = "attachment; filename=responsaveis.xlsx"
    response.headers["Content-Type"] = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    return response


@admin_bp.route("/Responsaveis/<int:id>")
@role_required(PAPEL_ADMIN)
def detalhes_responsavel(id):
    try:
        responsavel = cadastro_service.obter_responsavel(id)
    except ErroDominio as e:
        flash(e.mensagem, "danger")
        return redirect(url_for("admin.listar_responsaveis"))
    return render_template(
        "admin/responsavel_detalhes.html",
        responsavel=responsavel,
        parentescos=PARENTESCOS,
        responsaveis=Responsavel.query.order_by(Responsavel.nome).all(),
    )


@admin_bp.route("/Responsaveis/<int:id>/Editar", methods=["GET", "POST"])
@role_required(PAPEL_ADMIN)
def editar_responsavel(id):
    if request.method == "POST":
        try:
            responsavel = cadastro_service.admin_atualizar_responsavel(id, request.form)
        except ErroDominio as e:
            return responder_erro(e, "admin.editar_responsavel", id=id)
        registrar_log(f'Editou o responsável "{responsavel.nome}".')
        flash("Responsável atualizado com sucesso!", "success")
        return redirect(url_for("admin.detalhes_responsavel", id=id))

    try:
        responsavel = cadastro_service.obter_responsavel(id)
    except ErroDominio as e:
        flash(e.mensagem, "danger")
        return redirect(url_for("admin.listar_responsaveis"))
    return render_template("admin/responsavel_editar.html", responsavel=responsavel)


@admin_bp.route("/Responsaveis/<int:id>/AlternarStatus", methods=["POST"])
@role_required(PAPEL_ADMIN)
def alternar_status_responsavel(id):
    try:
        responsavel = cadastro_service.alternar_status_responsavel(id)
    except ErroDominio as e:
        return responder_erro(e, "admin.listar_responsaveis")
    situacao = "ativado" if responsavel.ativo else "desativado"
    registrar_log(f'Responsável "{responsavel.nome}" {situacao}.')
    flash(f'Responsável "{responsavel.nome}" {situacao}.', "success")
    return redirect(url_for("admin.listar_responsaveis"))


@admin_bp.route("/Responsaveis/<int:id>/Excluir", methods=["POST"])
@role_required(PAPEL_ADMIN)
def excluir_responsavel(id):
    try:
        nome = cadastro_service.excluir_responsavel(id)
    except ErroDominio as e:
        return responder_erro(e, "admin.listar_responsaveis")
    registrar_log(f'Excluiu o responsável "{nome}".')
    flash(f'Responsável "{nome}" e suas crianças foram excluídos.', "success")
    return redirect(url_for("admin.listar_responsaveis"))


# --- Crianças ---

@admin_bp.route("/Responsaveis/<int:id>/Criancas/Nova", methods=["POST"])
@role_required(PAPEL_ADMIN)
def nova_crianca(id):
    try:
        crianca = cadastro_service.cadastrar_crianca(identidade_atual(), request.form, responsavel_id=id)
    except ErroDominio as e:
        return responder_erro(e, "admin.detalhes_responsavel", id=id)
    registrar_log(f'Cadastrou a criança "{crianca.nome}".')
    flash("Criança cadastrada com sucesso!", "success")
    return redirect(url_for("admin.detalhes_responsavel", id=id))


@admin_bp.route("/Criancas/<int:id>/Editar", methods=["POST"])
@role_required(PAPEL_ADMIN)
def editar_crianca(id):
    try:
        crianca = cadastro_service.editar_crianca(identidade_atual(), id, request.form)
    except ErroDominio as e:
        return responder_erro(e, "admin.listar_responsaveis")
    registrar_log(f'Editou a criança "{crianca.nome}".')
    flash("Dados da criança atualizados.", "success")
    return redirect(url_for("admin.detalhes_responsavel", id=crianca.responsavel_id))


@admin_bp.route("/Criancas/<int:id>/AlterarStatus", methods=["POST"])
@role_required(PAPEL_ADMIN)
def alterar_status_crianca(id):
    ativar = request.form.get("ativar") in ("1", "true", "on")
    try:
        crianca = cadastro_service.alterar_status_crianca(identidade_atual(), id, ativar)
    except ErroDominio as e:
        return responder_erro(e, "admin.listar_responsaveis")
    registrar_log(f'Alterou o status da criança "{crianca.nome}".')
    flash(f'Criança "{crianca.nome}" {"ativada" if crianca.ativa else "desativada"}.', "success")
    return redirect(url_for("admin.detalhes_responsavel", id=crianca.responsavel_id))


@admin_bp.route("/Criancas/<int:id>/Excluir", methods=["POST"])
@role_required(PAPEL_ADMIN)
def excluir_crianca(id):
    try:
        responsavel = cadastro_service.remover_crianca(identidade_atual(), id)
    except ErroDominio as e:
        return responder_erro(e, "admin.listar_responsaveis")
    registrar_log(f"Excluiu a criança {id}.")
    flash("Criança excluída.", "success")
    return redirect(url_for("admin.detalhes_responsavel", id=responsavel.id))


# --- Agendamentos ---

@admin_bp.route("/Agendamentos")
@role_required(PAPEL_ADMIN)
def listar_agendamentos():
    agendamentos = agendamento_service.listar_agendamentos(identidade_atual())
    return render_template("agendamento/listar.html", agendamentos=agendamentos, hoje=date.today())
