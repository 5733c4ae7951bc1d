# cadastro_service.py
# Cadastro de responsáveis e crianças.
#
# Regra central: um responsável ativo mantém sempre pelo menos uma criança
# ativa. Toda operação que desativa, remove ou transfere uma criança passa
# por _garantir_outra_crianca_ativa antes de gravar.
import re
from datetime import date, datetime, timedelta

from flask import current_app
from itsdangerous import URLSafeTimedSerializer, SignatureExpired, BadSignature
from sqlalchemy import or_

from extensions import db
from erros import (
    ErroDominio,
    ErroValidacao,
    ErroConflito,
    ErroNaoEncontrado,
    ErroAutorizacao,
)
from models import Responsavel, Crianca, PARENTESCOS, IDADE_MAXIMA_CRIANCA, calcular_idade
from utils import (
    limpar_cpf,
    limpar_telefone,
    normalizar_email,
    gerar_hash_senha,
    verificar_senha,
    parse_data,
    parse_id,
    salvar_alteracoes,
)
from auth_service import validar_nova_senha
import email_service

VALIDADE_VERIFICACAO = timedelta(hours=24)
SALT_VERIFICACAO = "verificacao-email"
EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MENSAGEM_ULTIMA_CRIANCA = "O responsável deve manter pelo menos uma criança ativa."


def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=SALT_VERIFICACAO)


def _texto(dados, campo):
    return (dados.get(campo) or "").strip()


# --- Validações ---

def _validar_dados_responsavel(dados, erros):
    limpos = {
        "nome": _texto(dados, "nome"),
        "cpf": limpar_cpf(_texto(dados, "cpf")),
        "telefone": limpar_telefone(_texto(dados, "telefone")),
        "email": normalizar_email(_texto(dados, "email")),
        "endereco": _texto(dados, "endereco"),
    }
    for campo, rotulo in (
        ("nome", "Nome"), ("cpf", "CPF"), ("telefone", "Telefone"),
        ("email", "E-mail"), ("endereco", "Endereço"),
    ):
        if not limpos[campo]:
            erros[campo] = f"{rotulo} é obrigatório."
    if limpos["email"] and not EMAIL_REGEX.match(limpos["email"]):
        erros["email"] = "E-mail inválido."
    return limpos


def _validar_dados_crianca(dados, erros, prefixo="crianca"):
    nome = _texto(dados, "nome")
    cpf = limpar_cpf(_texto(dados, "cpf"))
    parentesco = _texto(dados, "parentesco")
    data_nascimento = dados.get("data_nascimento")

    if not nome:
        erros[f"{prefixo}_nome"] = "Nome da criança é obrigatório."
    if not cpf:
        erros[f"{prefixo}_cpf"] = "CPF da criança é obrigatório."
    if parentesco not in PARENTESCOS:
        erros[f"{prefixo}_parentesco"] = "Parentesco inválido."

    if not isinstance(data_nascimento, date):
        try:
            data_nascimento = parse_data(data_nascimento)
        except ErroValidacao:
            data_nascimento = None
    if data_nascimento is None:
        erros[f"{prefixo}_data_nascimento"] = "Data de nascimento inválida."
    elif data_nascimento > date.today():
        erros[f"{prefixo}_data_nascimento"] = "A data de nascimento não pode ser futura."
    elif calcular_idade(data_nascimento) >= IDADE_MAXIMA_CRIANCA:
        erros[f"{prefixo}_data_nascimento"] = f"A criança deve ter menos de {IDADE_MAXIMA_CRIANCA} anos."

    return {"nome": nome, "cpf": cpf, "parentesco": parentesco, "data_nascimento": data_nascimento}


def _checar_unicidade_responsavel(limpos, ignorar_id=None):
    conflitos = {}
    for campo in ("cpf", "email", "telefone"):
        valor = limpos.get(campo)
        if not valor:
            continue
        query = Responsavel.query.filter(getattr(Responsavel, campo) == valor)
        if ignorar_id is not None:
            query = query.filter(Responsavel.id != ignorar_id)
        if query.first():
            conflitos[campo] = {
                "cpf": "Este CPF já está cadastrado.",
                "email": "Este e-mail já está cadastrado.",
                "telefone": "Este telefone já está cadastrado.",
            }[campo]
    if conflitos:
        raise ErroConflito(erros=conflitos, mensagem=" ".join(conflitos.values()))


def _checar_cpfs_criancas(cpfs_por_id):
    """
    `cpfs_por_id` é uma lista de pares (id_da_crianca ou None, cpf).
    Rejeita CPFs repetidos na própria lista e CPFs já usados por outra criança.
    """
    vistos = set()
    for crianca_id, cpf in cpfs_por_id:
        if cpf in vistos:
            raise ErroConflito(f"O CPF {cpf} foi informado para mais de uma criança.")
        vistos.add(cpf)
        query = Crianca.query.filter(Crianca.cpf == cpf)
        if crianca_id is not None:
            query = query.filter(Crianca.id != crianca_id)
        if query.first():
            raise ErroConflito(f"Já existe uma criança cadastrada com o CPF {cpf}.")


def _garantir_outra_crianca_ativa(responsavel, crianca):
    outras = [c for c in responsavel.criancas if c.ativa and c.id != crianca.id]
    if not outras:
        raise ErroConflito(MENSAGEM_ULTIMA_CRIANCA)


# --- Cadastro público ---

def registrar_responsavel(dados, criancas):
    """
    Cria o responsável (inativo, e-mail não verificado) e suas crianças numa
    única transação e envia o e-mail de verificação.
    """
    erros = {}
    limpos = _validar_dados_responsavel(dados, erros)
    senha = dados.get("senha") or ""
    try:
        validar_nova_senha(senha, dados.get("confirmar_senha"))
    except ErroValidacao as e:
        erros.update(e.erros)

    if not criancas:
        erros["criancas"] = "Cadastre pelo menos uma criança."
    criancas_limpas = [
        _validar_dados_crianca(c, erros, prefixo=f"crianca_{i}") for i, c in enumerate(criancas or [])
    ]
    if erros:
        raise ErroValidacao(erros=erros)

    _checar_unicidade_responsavel(limpos)
    _checar_cpfs_criancas([(None, c["cpf"]) for c in criancas_limpas])

    responsavel = Responsavel(
        senha_hash=gerar_hash_senha(senha),
        ativo=False,
        email_verificado=False,
        token_verificacao=_serializer().dumps(limpos["email"]),
        data_cadastro=datetime.now(),
        **limpos,
    )
    for c in criancas_limpas:
        responsavel.criancas.append(Crianca(ativa=True, **c))

    db.session.add(responsavel)
    salvar_alteracoes("Erro ao realizar o cadastro. Tente novamente.")
    current_app.logger.info("Responsável %s cadastrado com %d criança(s)", responsavel.id, len(criancas_limpas))

    email_service.enviar_email_verificacao(responsavel, responsavel.token_verificacao)
    return responsavel


def verificar_email(token):
    """Devolve 'sucesso', 'expirado' ou 'invalido'."""
    if not token:
        return "invalido"
    responsavel = Responsavel.query.filter_by(token_verificacao=token).first()
    if responsavel is None:
        return "invalido"

    try:
        _serializer().loads(token, max_age=int(VALIDADE_VERIFICACAO.total_seconds()))
    except SignatureExpired:
        return "expirado"
    except BadSignature:
        return "invalido"
    if datetime.now() > responsavel.data_cadastro + VALIDADE_VERIFICACAO:
        return "expirado"

    responsavel.email_verificado = True
    responsavel.ativo = True
    responsavel.token_verificacao = None
    salvar_alteracoes()
    current_app.logger.info("E-mail do responsável %s verificado", responsavel.id)

    email_service.enviar_email_boas_vindas(responsavel)
    return "sucesso"


# --- Crianças ---

def obter_crianca_autorizada(identidade, crianca_id):
    crianca = db.session.get(Crianca, crianca_id)
    if crianca is None:
        raise ErroNaoEncontrado("Criança não encontrada.")
    if identidade.is_admin:
        return crianca
    if identidade.is_responsavel and crianca.responsavel_id == identidade.usuario_id:
        return crianca
    raise ErroAutorizacao("Você não tem permissão para alterar esta criança.")


def cadastrar_crianca(identidade, dados, responsavel_id=None):
    if identidade.is_responsavel:
        responsavel_id = identidade.usuario_id
    elif not identidade.is_admin:
        raise ErroAutorizacao()
    responsavel = db.session.get(Responsavel, responsavel_id) if responsavel_id else None
    if responsavel is None:
        raise ErroNaoEncontrado("Responsável não encontrado.")

    erros = {}
    limpos = _validar_dados_crianca(dados, erros)
    if erros:
        raise ErroValidacao(erros=erros)
    _checar_cpfs_criancas([(None, limpos["cpf"])])

    crianca = Crianca(ativa=True, **limpos)
    responsavel.criancas.append(crianca)
    salvar_alteracoes()
    return crianca


def editar_crianca(identidade, crianca_id, dados):
    crianca = obter_crianca_autorizada(identidade, crianca_id)
    if not crianca.ativa:
        raise ErroValidacao("Não é possível editar uma criança inativa.")

    erros = {}
    limpos = _validar_dados_crianca(dados, erros)
    if erros:
        raise ErroValidacao(erros=erros)
    _checar_cpfs_criancas([(crianca.id, limpos["cpf"])])

    novo_responsavel_id = dados.get("responsavel_id") if identidade.is_admin else None
    if novo_responsavel_id:
        novo_responsavel_id = parse_id(novo_responsavel_id, "responsavel_id", "Responsável inválido.")
    if novo_responsavel_id and novo_responsavel_id != crianca.responsavel_id:
        novo_responsavel = db.session.get(Responsavel, novo_responsavel_id)
        if novo_responsavel is None:
            raise ErroNaoEncontrado("Responsável não encontrado.")
        _garantir_outra_crianca_ativa(crianca.responsavel, crianca)
        crianca.responsavel = novo_responsavel

    for campo, valor in limpos.items():
        setattr(crianca, campo, valor)
    salvar_alteracoes()
    return crianca


def alterar_status_crianca(identidade, crianca_id, ativar):
    crianca = obter_crianca_autorizada(identidade, crianca_id)
    if not ativar and crianca.ativa:
        _garantir_outra_crianca_ativa(crianca.responsavel, crianca)
    crianca.ativa = bool(ativar)
    salvar_alteracoes()
    return crianca


def desativar_crianca(identidade, crianca_id):
    return alterar_status_crianca(identidade, crianca_id, False)


def remover_crianca(identidade, crianca_id):
    if not identidade.is_admin:
        raise ErroAutorizacao()
    crianca = obter_crianca_autorizada(identidade, crianca_id)
    if crianca.ativa:
        _garantir_outra_crianca_ativa(crianca.responsavel, crianca)
    responsavel = crianca.responsavel
    responsavel.criancas.remove(crianca)
    salvar_alteracoes()
    return responsavel


# --- Perfil do responsável ---

def atualizar_perfil_responsavel(responsavel_id, dados, criancas=None):
    """
    Atualiza nome/telefone/endereço, troca de senha opcional e a lista de
    crianças numa única transação. E-mail, CPF e status não são alterados aqui.

    `criancas`: lista de dicts; itens com 'id' atualizam, sem 'id' criam, e
    crianças ativas que não aparecem na lista são desativadas.
    """
    responsavel = db.session.get(Responsavel, responsavel_id)
    if responsavel is None:
        raise ErroNaoEncontrado("Responsável não encontrado.")

    erros = {}
    nome = _texto(dados, "nome")
    telefone = limpar_telefone(_texto(dados, "telefone"))
    endereco = _texto(dados, "endereco")
    if not nome:
        erros["nome"] = "Nome é obrigatório."
    if not telefone:
        erros["telefone"] = "Telefone é obrigatório."
    if not endereco:
        erros["endereco"] = "Endereço é obrigatório."

    nova_senha = dados.get("nova_senha")
    if nova_senha:
        if not verificar_senha(dados.get("senha_atual"), responsavel.senha_hash):
            erros["senha_atual"] = "Senha atual incorreta."
        else:
            try:
                validar_nova_senha(nova_senha, dados.get("confirmar_senha"), campo="nova_senha")
            except ErroValidacao as e:
                erros.update(e.erros)

    criancas_limpas = []
    if criancas is not None:
        for i, c in enumerate(criancas):
            limpos = _validar_dados_crianca(c, erros, prefixo=f"crianca_{i}")
            limpos["id"] = parse_id(c["id"], f"crianca_{i}_id") if c.get("id") else None
            criancas_limpas.append(limpos)
    if erros:
        raise ErroValidacao(erros=erros)

    _checar_unicidade_responsavel({"telefone": telefone}, ignorar_id=responsavel.id)

    existentes = {c.id: c for c in responsavel.criancas}
    for limpos in criancas_limpas:
        if limpos["id"] is not None and limpos["id"] not in existentes:
            raise ErroAutorizacao("Você não tem permissão para alterar esta criança.")
    _checar_cpfs_criancas([(c["id"], c["cpf"]) for c in criancas_limpas])

    try:
        responsavel.nome = nome
        responsavel.telefone = telefone
        responsavel.endereco = endereco
        if nova_senha:
            responsavel.senha_hash = gerar_hash_senha(nova_senha)

        if criancas is not None:
            enviados = set()
            for limpos in criancas_limpas:
                crianca_id = limpos.pop("id")
                if crianca_id is None:
                    responsavel.criancas.append(Crianca(ativa=True, **limpos))
                    continue
                enviados.add(crianca_id)
                crianca = existentes[crianca_id]
                for campo, valor in limpos.items():
                    setattr(crianca, campo, valor)
            for crianca_id, crianca in existentes.items():
                if crianca_id not in enviados:
                    crianca.ativa = False

            if responsavel.ativo and not any(c.ativa for c in responsavel.criancas):
                raise ErroConflito(MENSAGEM_ULTIMA_CRIANCA)
    except ErroDominio:
        db.session.rollback()
        raise

    salvar_alteracoes("Erro ao atualizar o perfil. Tente novamente.")
    return responsavel


# --- Administração de responsáveis ---

def listar_responsaveis(busca=None, status=None):
    query = Responsavel.query
    if busca:
        termo = f"%{busca.strip()}%"
        query = query.filter(
            or_(
                Responsavel.nome.ilike(termo),
                Responsavel.email.ilike(termo),
                Responsavel.cpf.ilike(f"%{limpar_cpf(busca) or busca.strip()}%"),
            )
        )
    if status == "ativos":
        query = query.filter(Responsavel.ativo.is_(True))
    elif status == "inativos":
        query = query.filter(Responsavel.ativo.is_(False))
    return query.order_by(Responsavel.nome).all()


def obter_responsavel(responsavel_id):
    responsavel = db.session.get(Responsavel, responsavel_id)
    if responsavel is None:
        raise ErroNaoEncontrado("Responsável não encontrado.")
    return responsavel


def admin_atualizar_responsavel(responsavel_id, dados):
    responsavel = obter_responsavel(responsavel_id)
    erros = {}
    limpos = _validar_dados_responsavel(dados, erros)
    if erros:
        raise ErroValidacao(erros=erros)
    _checar_unicidade_responsavel(limpos, ignorar_id=responsavel.id)

    ativo = bool(dados.get("ativo"))
    if ativo and not responsavel.criancas_ativas:
        raise ErroConflito("Não é possível ativar um responsável sem crianças ativas.")

    for campo, valor in limpos.items():
        setattr(responsavel, campo, valor)
    responsavel.ativo = ativo
    salvar_alteracoes()
    return responsavel


def alternar_status_responsavel(responsavel_id):
    responsavel = obter_responsavel(responsavel_id)
    if not responsavel.ativo and not responsavel.criancas_ativas:
        raise ErroConflito("Não é possível ativar um responsável sem crianças ativas.")
    responsavel.ativo = not responsavel.ativo
    salvar_alteracoes()
    return responsavel


def excluir_responsavel(responsavel_id):
    responsavel = obter_responsavel(responsavel_id)
    nome = responsavel.nome
    db.session.delete(responsavel)
    salvar_alteracoes()
    return nome
