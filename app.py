# ===================================================================
# PARTE 1: Importações de Bibliotecas
# ===================================================================
import os
from datetime import timedelta

from dotenv import load_dotenv
load_dotenv()

import click
from flask import Flask, render_template, redirect, url_for, flash, jsonify

from extensions import db, bcrypt, mail, migrate
from erros import ErroDominio
from utils import (
    renovar_sessao,
    identidade_atual,
    requisicao_ajax,
    gerar_hash_senha,
    normalizar_email,
    data_br_filter,
    PAGINA_INICIAL_POR_PAPEL,
)


def _env_bool(nome, padrao=False):
    valor = os.environ.get(nome)
    if valor is None:
        return padrao
    return valor.lower() in ("true", "on", "1")


def create_app(config=None):
    # ===================================================================
    # PARTE 2: Configuração da Aplicação e Inicialização das Extensões
    # ===================================================================
    app = Flask(__name__)
    basedir = os.path.abspath(os.path.dirname(__file__))

    database_url = os.environ.get("DATABASE_URL")
    if database_url and database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url or "sqlite:///" + os.path.join(basedir, "pi_odonto.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "troque-esta-chave-em-producao")
    app.config["BASE_URL"] = os.environ.get("BASE_URL", "http://localhost:5000")
    app.config["BCRYPT_LOG_ROUNDS"] = int(os.environ.get("BCRYPT_LOG_ROUNDS", 12))

    # Cookie único de sessão com o papel do usuário
    app.config["SESSION_COOKIE_NAME"] = "PiOdontoAuth"
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = _env_bool("SESSION_COOKIE_SECURE")
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=30)

    app.config["MAIL_SERVER"] = os.environ.get("MAIL_SERVER", "smtp.gmail.com")
    app.config["MAIL_PORT"] = int(os.environ.get("MAIL_PORT", 587))
    app.config["MAIL_USE_TLS"] = _env_bool("MAIL_USE_TLS", True)
    app.config["MAIL_USERNAME"] = os.environ.get("MAIL_USERNAME")
    app.config["MAIL_PASSWORD"] = os.environ.get("MAIL_PASSWORD")
    app.config["MAIL_DEFAULT_SENDER"] = os.environ.get("MAIL_DEFAULT_SENDER", os.environ.get("MAIL_USERNAME"))

    if config:
        app.config.update(config)

    app.jinja_env.filters["data_br"] = data_br_filter

    db.init_app(app)
    bcrypt.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)

    # ===================================================================
    # PARTE 3: Modelos, Sessão e Tratamento de Erros
    # ===================================================================
    import models  # noqa: F401  registra as tabelas no metadata

    app.before_request(renovar_sessao)

    @app.context_processor
    def injetar_identidade():
        return {"identidade": identidade_atual()}

    @app.errorhandler(ErroDominio)
    def tratar_erro_dominio(erro):
        if requisicao_ajax():
            return jsonify(erro.to_dict()), erro.status_code
        flash(erro.mensagem, "danger")
        return redirect(url_for("index"))

    @app.errorhandler(404)
    def pagina_nao_encontrada(erro):
        if requisicao_ajax():
            return jsonify({"success": False, "message": "Registro não encontrado."}), 404
        return render_template("404.html"), 404

    @app.route("/")
    def index():
        identidade = identidade_atual()
        if identidade is not None:
            return redirect(url_for(PAGINA_INICIAL_POR_PAPEL[identidade.papel]))
        return render_template("index.html")

    # ===================================================================
    # PARTE 4: Comandos CLI
    # ===================================================================
    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Banco de dados inicializado.")

    @app.cli.command("create-admin")
    @click.option("--nome", prompt="Nome do administrador")
    @click.option("--email", prompt="E-mail do administrador")
    @click.option("--senha", prompt="Senha", hide_input=True, confirmation_prompt=True)
    def create_admin_command(nome, email, senha):
        from models import Administrador

        email = normalizar_email(email)
        if Administrador.query.filter_by(email=email).first():
            print(f"Erro: já existe um administrador com o e-mail '{email}'.")
            return
        db.session.add(Administrador(nome=nome.strip(), email=email, senha_hash=gerar_hash_senha(senha)))
        db.session.commit()
        print(f"Administrador '{email}' criado com sucesso.")

    @app.cli.command("limpar-tokens")
    def limpar_tokens_command():
        from auth_service import limpar_tokens_expirados

        removidos = limpar_tokens_expirados()
        print(f"{removidos} token(s) de recuperação de senha removido(s).")

    # ===================================================================
    # PARTE 5: Registro dos Blueprints
    # ===================================================================
    from auth_routes import auth_bp
    from responsavel_routes import responsavel_bp
    from perfil_routes import perfil_bp
    from agendamento_routes import agendamento_bp
    from odontograma_routes import odontograma_bp
    from admin_routes import admin_bp
    from admin_dentista_routes import admin_dentista_bp
    from admin_escala_routes import admin_escala_bp
    from dentista_routes import dentista_bp
    from voluntario_routes import voluntario_bp
    from atendimento_routes import atendimento_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(responsavel_bp)
    app.register_blueprint(perfil_bp)
    app.register_blueprint(agendamento_bp)
    app.register_blueprint(odontograma_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(admin_dentista_bp)
    app.register_blueprint(admin_escala_bp)
    app.register_blueprint(dentista_bp)
    app.register_blueprint(voluntario_bp)
    app.register_blueprint(atendimento_bp)

    return app


if __name__ == "__main__":
    create_app().run(debug=_env_bool("FLASK_DEBUG"))
