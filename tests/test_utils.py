from datetime import time

import pytest

from erros import ErroValidacao
from escala_service import normalizar_mes
from odontograma_service import numero_dente_valido
from utils import (
    gerar_hash_senha,
    verificar_senha,
    gerar_token_seguro,
    gerar_senha_aleatoria,
    limpar_cpf,
    limpar_telefone,
    normalizar_email,
    parse_hora,
    autorizar,
    Identidade,
    PAPEL_ADMIN,
    PAPEL_DENTISTA,
    PAPEL_RESPONSAVEL,
)


@pytest.mark.parametrize("senha", ["12345678", "çãõ-acentuada", "x" * 60])
def test_senha_confere_com_o_proprio_hash(app, senha):
    assert verificar_senha(senha, gerar_hash_senha(senha))


def test_senha_diferente_nao_confere(app):
    assert not verificar_senha("outra-senha", gerar_hash_senha("senha-original"))


def test_hash_usa_sal_por_senha(app):
    assert gerar_hash_senha("mesma-senha") != gerar_hash_senha("mesma-senha")


@pytest.mark.parametrize("hash_invalido", ["", None, "nao-e-um-hash", "5e884898da28047151d0e56f8dc6292773603d0d"])
def test_hash_malformado_nao_confere(app, hash_invalido):
    assert not verificar_senha("qualquer", hash_invalido)


def test_token_seguro_tem_32_caracteres_url_safe():
    token = gerar_token_seguro()
    assert len(token) == 32
    assert all(c.isalnum() or c in "-_" for c in token)
    assert gerar_token_seguro() != token


def test_senha_aleatoria():
    assert len(gerar_senha_aleatoria()) == 10
    assert gerar_senha_aleatoria(16).isalnum()


def test_limpeza_de_documentos():
    assert limpar_cpf("123.456.789-09") == "12345678909"
    assert limpar_telefone("(86) 99999-0000") == "86999990000"
    assert limpar_cpf("") is None
    assert normalizar_email("  Maria@Example.COM ") == "maria@example.com"


def test_parse_hora():
    assert parse_hora("08:00") == time(8, 0)
    assert parse_hora("14:30:00") == time(14, 30)
    with pytest.raises(ErroValidacao):
        parse_hora("25:00")
    with pytest.raises(ErroValidacao):
        parse_hora("manhã")


@pytest.mark.parametrize(
    "ano, mes, esperado",
    [(2025, 0, (2024, 12)), (2025, 13, (2026, 1)), (2025, 6, (2025, 6)), (2025, -1, (2024, 11))],
)
def test_normalizar_mes(ano, mes, esperado):
    assert normalizar_mes(ano, mes) == esperado


@pytest.mark.parametrize("numero", [11, 18, 28, 38, 48, 51, 55, 65, 75, 85])
def test_dentes_validos(numero):
    assert numero_dente_valido(numero)


@pytest.mark.parametrize("numero", [10, 19, 29, 49, 56, 86, 90, 9, "abc", None])
def test_dentes_invalidos(numero):
    assert not numero_dente_valido(numero)


def test_autorizar_exige_papel_listado():
    admin = Identidade(PAPEL_ADMIN, 1, "Admin", "admin@example.com")
    dentista = Identidade(PAPEL_DENTISTA, 2, "Dentista", "d@example.com")
    assert autorizar(admin, PAPEL_ADMIN)
    assert autorizar(dentista, PAPEL_ADMIN, PAPEL_DENTISTA)
    assert not autorizar(admin, PAPEL_RESPONSAVEL)
    assert not autorizar(None, PAPEL_RESPONSAVEL)
