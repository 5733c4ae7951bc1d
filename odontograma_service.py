# odontograma_service.py
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError

from extensions import db
from erros import ErroValidacao, ErroNaoEncontrado, ErroAutorizacao
from models import Odontograma, TratamentoDente, Crianca, Dentista, FACES_DENTE, STATUS_TRATAMENTO
from utils import parse_data, parse_id, salvar_alteracoes

TAMANHO_TIPO = 50
TAMANHO_OBSERVACAO = 300
TAMANHO_OBSERVACOES_GERAIS = 500


def numero_dente_valido(numero):
    """Numeração FDI: quadrantes 1-4 (permanentes) com dentes 1-8, 5-8 (decíduos) com 1-5."""
    try:
        numero = int(numero)
    except (TypeError, ValueError):
        return False
    quadrante, dente = divmod(numero, 10)
    if 1 <= quadrante <= 4:
        return 1 <= dente <= 8
    if 5 <= quadrante <= 8:
        return 1 <= dente <= 5
    return False


def pode_editar(identidade):
    return identidade is not None and (identidade.is_admin or identidade.is_dentista)


def _exigir_edicao(identidade):
    if not pode_editar(identidade):
        raise ErroAutorizacao("Apenas administradores e dentistas podem alterar o odontograma.")


def obter_ou_criar_odontograma(crianca_id):
    crianca = db.session.get(Crianca, crianca_id)
    if crianca is None:
        raise ErroNaoEncontrado("Criança não encontrada.")
    if crianca.odontograma is not None:
        return crianca.odontograma

    agora = datetime.now()
    odontograma = Odontograma(crianca_id=crianca.id, data_criacao=agora, data_atualizacao=agora)
    db.session.add(odontograma)
    try:
        db.session.commit()
    except IntegrityError:
        # criado por outra requisição ao mesmo tempo
        db.session.rollback()
        odontograma = Odontograma.query.filter_by(crianca_id=crianca.id).one()
    return odontograma


def obter_odontograma_autorizado(identidade, crianca_id):
    """Responsáveis só enxergam o odontograma das próprias crianças."""
    crianca = db.session.get(Crianca, crianca_id)
    if crianca is None:
        raise ErroNaoEncontrado("Criança não encontrada.")
    if identidade.is_responsavel and crianca.responsavel_id != identidade.usuario_id:
        raise ErroAutorizacao("Você não tem permissão para ver este odontograma.")
    return obter_ou_criar_odontograma(crianca.id)


def _obter_odontograma(odontograma_id):
    odontograma = db.session.get(Odontograma, odontograma_id)
    if odontograma is None:
        raise ErroNaoEncontrado("Odontograma não encontrado.")
    return odontograma


def _obter_tratamento(tratamento_id):
    tratamento = db.session.get(TratamentoDente, tratamento_id)
    if tratamento is None:
        raise ErroNaoEncontrado("Tratamento não encontrado.")
    return tratamento


def _validar_tratamento(dados, atual=None):
    def valor(campo, padrao=None):
        if campo in dados:
            v = dados.get(campo)
            return v.strip() if isinstance(v, str) else v
        return getattr(atual, campo) if atual is not None else padrao

    erros = {}
    numero = valor("numero_dente")
    if not numero_dente_valido(numero):
        erros["numero_dente"] = "Número de dente inválido."

    tipo = valor("tipo_tratamento") or ""
    if not tipo:
        erros["tipo_tratamento"] = "Informe o tipo de tratamento."
    elif len(tipo) > TAMANHO_TIPO:
        erros["tipo_tratamento"] = f"O tipo de tratamento deve ter no máximo {TAMANHO_TIPO} caracteres."

    face = valor("face") or None
    if face is not None and face not in FACES_DENTE:
        erros["face"] = "Face do dente inválida."

    status = valor("status", "Planejado") or "Planejado"
    if status not in STATUS_TRATAMENTO:
        erros["status"] = "Status inválido."

    data_tratamento = valor("data_tratamento") or None
    if data_tratamento is not None and not isinstance(data_tratamento, date):
        try:
            data_tratamento = parse_data(data_tratamento, "data_tratamento")
        except ErroValidacao as e:
            erros.update(e.erros)

    observacao = valor("observacao") or None
    if observacao and len(observacao) > TAMANHO_OBSERVACAO:
        erros["observacao"] = f"A observação deve ter no máximo {TAMANHO_OBSERVACAO} caracteres."

    if erros:
        raise ErroValidacao(erros=erros)

    if atual is not None and status != atual.status:
        if STATUS_TRATAMENTO.index(status) < STATUS_TRATAMENTO.index(atual.status):
            raise ErroValidacao(
                f"O status não pode voltar de '{atual.status}' para '{status}'."
            )

    return {
        "numero_dente": int(numero),
        "tipo_tratamento": tipo,
        "face": face,
        "status": status,
        "data_tratamento": data_tratamento,
        "observacao": observacao,
    }


def _dentista_responsavel(identidade, dados):
    if identidade.is_dentista:
        return identidade.usuario_id
    dentista_id = dados.get("dentista_id")
    if not dentista_id:
        return None
    dentista = db.session.get(Dentista, parse_id(dentista_id, "dentista_id", "Dentista inválido."))
    if dentista is None:
        raise ErroNaoEncontrado("Dentista não encontrado.")
    return dentista.id


def adicionar_tratamento(identidade, odontograma_id, dados):
    _exigir_edicao(identidade)
    odontograma = _obter_odontograma(odontograma_id)
    campos = _validar_tratamento(dados)

    tratamento = TratamentoDente(dentista_id=_dentista_responsavel(identidade, dados), **campos)
    odontograma.tratamentos.append(tratamento)
    odontograma.tocar()
    salvar_alteracoes("Erro ao salvar o tratamento.")
    return tratamento


def editar_tratamento(identidade, tratamento_id, dados):
    _exigir_edicao(identidade)
    tratamento = _obter_tratamento(tratamento_id)
    campos = _validar_tratamento(dados, atual=tratamento)

    for campo, valor in campos.items():
        setattr(tratamento, campo, valor)
    if identidade.is_dentista or dados.get("dentista_id"):
        tratamento.dentista_id = _dentista_responsavel(identidade, dados)
    tratamento.odontograma.tocar()
    salvar_alteracoes("Erro ao atualizar o tratamento.")
    return tratamento


def remover_tratamento(identidade, tratamento_id):
    _exigir_edicao(identidade)
    tratamento = _obter_tratamento(tratamento_id)
    odontograma = tratamento.odontograma
    odontograma.tratamentos.remove(tratamento)
    odontograma.tocar()
    salvar_alteracoes("Erro ao excluir o tratamento.")
    return odontograma


def atualizar_observacoes(identidade, odontograma_id, texto):
    _exigir_edicao(identidade)
    odontograma = _obter_odontograma(odontograma_id)
    texto = (texto or "").strip()
    if len(texto) > TAMANHO_OBSERVACOES_GERAIS:
        raise ErroValidacao(
            erros={"observacoes_gerais": f"As observações devem ter no máximo {TAMANHO_OBSERVACOES_GERAIS} caracteres."}
        )
    odontograma.observacoes_gerais = texto or None
    odontograma.tocar()
    salvar_alteracoes("Erro ao salvar as observações.")
    return odontograma


def tratamentos_do_dente(odontograma_id, numero_dente):
    if not numero_dente_valido(numero_dente):
        raise ErroValidacao(erros={"numero_dente": "Número de dente inválido."})
    tratamentos = (
        TratamentoDente.query.filter_by(odontograma_id=odontograma_id, numero_dente=int(numero_dente))
        .order_by(TratamentoDente.data_tratamento.desc(), TratamentoDente.id.desc())
        .all()
    )
    return [t.to_dict() for t in tratamentos]
