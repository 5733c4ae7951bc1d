import itertools
from datetime import date, datetime, timedelta, time

import pytest

from app import create_app
from extensions import db as _db, mail
from models import Responsavel, Crianca, Dentista, Administrador, EscalaMensalDentista
from utils import gerar_hash_senha, Identidade

SENHA_PADRAO = "senha-segura-123"

_sequencia = itertools.count(1)


def _numero(digitos=11):
    return str(next(_sequencia)).zfill(digitos)


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "SECRET_KEY": "chave-de-teste",
            "BCRYPT_LOG_ROUNDS": 4,
            "MAIL_SUPPRESS_SEND": True,
            "MAIL_DEFAULT_SENDER": "nao-responda@piodonto.test",
            "BASE_URL": "http://piodonto.test",
        }
    )
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def outbox(app):
    with mail.record_messages() as enviados:
        yield enviados


@pytest.fixture
def novo_responsavel(db):
    def fabrica(ativo=True, verificado=True, criancas=1, **campos):
        responsavel = Responsavel(
            nome=campos.pop("nome", "Maria da Silva"),
            cpf=campos.pop("cpf", _numero()),
            telefone=campos.pop("telefone", "86" + _numero(9)),
            email=campos.pop("email", f"responsavel{_numero(4)}@example.com"),
            endereco=campos.pop("endereco", "Rua das Flores, 10"),
            senha_hash=gerar_hash_senha(campos.pop("senha", SENHA_PADRAO)),
            ativo=ativo,
            email_verificado=verificado,
            **campos,
        )
        for i in range(criancas):
            responsavel.criancas.append(
                Crianca(
                    nome=f"Criança {i + 1}",
                    cpf=_numero(),
                    data_nascimento=date.today() - timedelta(days=365 * 6 + i),
                    parentesco="Mãe",
                    ativa=True,
                )
            )
        db.session.add(responsavel)
        db.session.commit()
        return responsavel

    return fabrica


@pytest.fixture
def novo_dentista(db):
    def fabrica(ativo=True, **campos):
        dentista = Dentista(
            nome=campos.pop("nome", "Dr. João Souza"),
            cpf=campos.pop("cpf", _numero()),
            cro=campos.pop("cro", "PI-" + _numero(5)),
            email=campos.pop("email", f"dentista{_numero(4)}@example.com"),
            telefone=campos.pop("telefone", "86" + _numero(9)),
            senha_hash=gerar_hash_senha(campos.pop("senha", SENHA_PADRAO)),
            ativo=ativo,
            **campos,
        )
        db.session.add(dentista)
        db.session.commit()
        return dentista

    return fabrica


@pytest.fixture
def novo_admin(db):
    def fabrica(email="admin@piodonto.test", senha=SENHA_PADRAO):
        admin = Administrador(nome="Administrador", email=email, senha_hash=gerar_hash_senha(senha))
        db.session.add(admin)
        db.session.commit()
        return admin

    return fabrica


@pytest.fixture
def nova_escala(db):
    def fabrica(dentista, dia=None, inicio=time(8, 0)):
        dia = dia or date.today() + timedelta(days=7)
        fim = (datetime.combine(dia, inicio) + timedelta(hours=1)).time()
        escala = EscalaMensalDentista(dentista_id=dentista.id, data=dia, hora_inicio=inicio, hora_fim=fim)
        db.session.add(escala)
        db.session.commit()
        return escala

    return fabrica


@pytest.fixture
def dia_futuro():
    return date.today() + timedelta(days=7)


def identidade_de(usuario, papel):
    return Identidade(papel=papel, usuario_id=usuario.id, nome=usuario.nome, email=usuario.email)


@pytest.fixture
def identidade():
    return identidade_de


@pytest.fixture
def logar(client):
    def _logar(usuario, papel, lembrar_me=False, expira_em=None):
        with client.session_transaction() as sess:
            sess["logged_in"] = True
            sess["role"] = papel
            sess["user_id"] = usuario.id
            sess["username"] = usuario.nome
            sess["email"] = usuario.email
            sess["lembrar_me"] = lembrar_me
            sess["expira_em"] = expira_em or (datetime.now() + timedelta(hours=8)).timestamp()
        return client

    return _logar


@pytest.fixture
def senha_padrao():
    return SENHA_PADRAO
