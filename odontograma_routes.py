# odontograma_routes.py
import io
from xml.sax.saxutils import escape

from flask import Blueprint, render_template, request, flash, redirect, url_for, jsonify, make_response, abort
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from extensions import db
from erros import ErroDominio
from models import Odontograma, Dentista, FACES_DENTE, STATUS_TRATAMENTO
from utils import (
    role_required,
    identidade_atual,
    registrar_log,
    cabecalho_e_rodape,
    data_br_filter,
    PAPEL_ADMIN,
    PAPEL_DENTISTA,
    PAPEL_RESPONSAVEL,
)
import odontograma_service

odontograma_bp = Blueprint("odontograma", __name__, url_prefix="/Odontograma")

# Arcadas na ordem de exibição (FDI)
DENTES_PERMANENTES = [
    [18, 17, 16, 15, 14, 13, 12, 11, 21, 22, 23, 24, 25, 26, 27, 28],
    [48, 47, 46, 45, 44, 43, 42, 41, 31, 32, 33, 34, 35, 36, 37, 38],
]
DENTES_DECIDUOS = [
    [55, 54, 53, 52, 51, 61, 62, 63, 64, 65],
    [85, 84, 83, 82, 81, 71, 72, 73, 74, 75],
]


def _p(texto, estilo):
    return Paragraph(escape(str(texto)), estilo)


def _dados_requisicao():
    return request.get_json(silent=True) or request.form


def _odontograma_visivel(odontograma_id):
    odontograma = db.session.get(Odontograma, odontograma_id)
    if odontograma is None:
        abort(404)
    return odontograma_service.obter_odontograma_autorizado(identidade_atual(), odontograma.crianca_id)


@odontograma_bp.route("/Crianca/<int:crianca_id>")
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA, PAPEL_RESPONSAVEL)
def por_crianca(crianca_id):
    identidade = identidade_atual()
    try:
        odontograma = odontograma_service.obter_odontograma_autorizado(identidade, crianca_id)
    except ErroDominio as e:
        flash(e.mensagem, "danger")
        return redirect(url_for("index"))

    return render_template(
        "odontograma/visualizar.html",
        odontograma=odontograma,
        crianca=odontograma.crianca,
        tratamentos_por_dente=odontograma.tratamentos_por_dente(),
        dentes_permanentes=DENTES_PERMANENTES,
        dentes_deciduos=DENTES_DECIDUOS,
        faces=FACES_DENTE,
        status_tratamento=STATUS_TRATAMENTO,
        dentistas=Dentista.query.filter_by(ativo=True).order_by(Dentista.nome).all(),
        pode_editar=odontograma_service.pode_editar(identidade),
    )


@odontograma_bp.route("/<int:id>/Tratamento", methods=["POST"])
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA)
def adicionar_tratamento(id):
    try:
        tratamento = odontograma_service.adicionar_tratamento(identidade_atual(), id, _dados_requisicao())
    except ErroDominio as e:
        return jsonify(e.to_dict()), e.status_code
    registrar_log(f"Adicionou tratamento no dente {tratamento.numero_dente} (odontograma {id}).")
    return jsonify({"success": True, "message": "Tratamento adicionado com sucesso!", "tratamento": tratamento.to_dict()})


@odontograma_bp.route("/Tratamento/<int:id>/Editar", methods=["POST"])
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA)
def editar_tratamento(id):
    try:
        tratamento = odontograma_service.editar_tratamento(identidade_atual(), id, _dados_requisicao())
    except ErroDominio as e:
        return jsonify(e.to_dict()), e.status_code
    registrar_log(f"Editou o tratamento {id}.")
    return jsonify({"success": True, "message": "Tratamento atualizado com sucesso!", "tratamento": tratamento.to_dict()})


@odontograma_bp.route("/Tratamento/<int:id>/Excluir", methods=["POST"])
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA)
def excluir_tratamento(id):
    try:
        odontograma_service.remover_tratamento(identidade_atual(), id)
    except ErroDominio as e:
        return jsonify(e.to_dict()), e.status_code
    registrar_log(f"Excluiu o tratamento {id}.")
    return jsonify({"success": True, "message": "Tratamento excluído com sucesso!"})


@odontograma_bp.route("/<int:id>/Observacoes", methods=["POST"])
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA)
def atualizar_observacoes(id):
    try:
        odontograma_service.atualizar_observacoes(
            identidade_atual(), id, _dados_requisicao().get("observacoes_gerais")
        )
    except ErroDominio as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"success": True, "message": "Observações salvas com sucesso!"})


@odontograma_bp.route("/<int:id>/Dente/<int:numero>")
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA, PAPEL_RESPONSAVEL)
def tratamentos_do_dente(id, numero):
    try:
        odontograma = _odontograma_visivel(id)
        tratamentos = odontograma_service.tratamentos_do_dente(odontograma.id, numero)
    except ErroDominio as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"success": True, "dente": numero, "tratamentos": tratamentos})


@odontograma_bp.route("/<int:id>/Imprimir")
@role_required(PAPEL_ADMIN, PAPEL_DENTISTA, PAPEL_RESPONSAVEL)
def imprimir(id):
    try:
        odontograma = _odontograma_visivel(id)
    except ErroDominio as e:
        flash(e.mensagem, "danger")
        return redirect(url_for("index"))
    crianca = odontograma.crianca

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=2.5 * cm)
    styles = getSampleStyleSheet()
    story = [
        _p(f"Odontograma - {crianca.nome}", styles["h1"]),
        Paragraph(
            f"Nascimento: {data_br_filter(crianca.data_nascimento)} &nbsp;&nbsp; "
            f"Responsável: {escape(crianca.responsavel.nome)}",
            styles["Normal"],
        ),
        Paragraph(
            f"Última atualização: {odontograma.data_atualizacao.strftime('%d/%m/%Y %H:%M')}",
            styles["Normal"],
        ),
        Spacer(1, 0.5 * cm),
    ]

    header_style = ParagraphStyle(name="Header", fontSize=8, fontName="Helvetica-Bold", textColor=colors.whitesmoke)
    cell_style = ParagraphStyle(name="Cell", fontSize=7)
    data = [[Paragraph(x, header_style) for x in ["Dente", "Tratamento", "Face", "Status", "Data", "Dentista", "Observação"]]]
    for t in odontograma.tratamentos:
        data.append([
            _p(t.numero_dente, cell_style),
            _p(t.tipo_tratamento, cell_style),
            _p(t.face or "-", cell_style),
            _p(t.status, cell_style),
            _p(data_br_filter(t.data_tratamento) or "-", cell_style),
            _p(t.dentista.nome if t.dentista else "-", cell_style),
            _p(t.observacao or "-", cell_style),
        ])
    if len(data) == 1:
        data.append([Paragraph("Nenhum tratamento registrado.", cell_style)] + [""] * 6)

    table = Table(data, colWidths=[1.3 * cm, 3.5 * cm, 2 * cm, 2.2 * cm, 2 * cm, 3 * cm, 3.5 * cm], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#00695c")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    story.append(table)

    if odontograma.observacoes_gerais:
        story += [
            Spacer(1, 0.5 * cm),
            Paragraph("Observações gerais", styles["h3"]),
            _p(odontograma.observacoes_gerais, styles["Normal"]),
        ]

    doc.build(story, onFirstPage=cabecalho_e_rodape, onLaterPages=cabecalho_e_rodape)
    buffer.seek(0)
    response = make_response(buffer.getvalue())
    response.headers["Content-Disposition"] = f"inline; filename=odontograma_{crianca.id}.pdf"
    response.headers["Content-Type"] = "application/pdf"
    return response
