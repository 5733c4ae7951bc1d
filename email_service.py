# email_service.py
# Envio de e-mails da clínica. Falhas de envio são registradas no log
# e nunca interrompem a operação que disparou o e-mail.
from flask import current_app
from flask_mail import Message

from extensions import mail


def _base_url():
    return current_app.config.get("BASE_URL", "http://localhost:5000").rstrip("/")


def enviar_email(assunto, destinatario, corpo):
    msg = Message(assunto, recipients=[destinatario])
    msg.body = corpo
    try:
        mail.send(msg)
    except Exception:
        # SMTP fora do ar ou mal configurado
        current_app.logger.exception("Erro ao enviar e-mail '%s' para %s", assunto, destinatario)
        return False
    current_app.logger.info("E-mail '%s' enviado para %s", assunto, destinatario)
    return True


def enviar_email_verificacao(responsavel, token):
    link = f"{_base_url()}/Responsavel/VerificarEmail?token={token}"
    corpo = f"""Olá {responsavel.nome},

Obrigado por se cadastrar no Pi Odonto!

Para ativar a sua conta, confirme o seu e-mail acessando o link abaixo. O link expira em 24 horas:
{link}

Se você não fez este cadastro, ignore este e-mail.

Atenciosamente,
Equipe Pi Odonto
"""
    return enviar_email("Confirme seu cadastro - Pi Odonto", responsavel.email, corpo)


def enviar_email_boas_vindas(responsavel):
    corpo = f"""Olá {responsavel.nome},

Seu e-mail foi confirmado e sua conta no Pi Odonto está ativa.
Agora você já pode acessar o sistema e agendar consultas para as suas crianças:
{_base_url()}/Login

Atenciosamente,
Equipe Pi Odonto
"""
    return enviar_email("Bem-vindo ao Pi Odonto!", responsavel.email, corpo)


def enviar_email_recuperacao_senha(email, nome, token):
    link = f"{_base_url()}/Auth/RedefinirSenha?token={token}"
    corpo = f"""Olá {nome},

Recebemos uma solicitação para redefinir a sua senha no Pi Odonto.

Para criar uma nova senha, acesse o link abaixo. Este link expira em 1 hora e só pode ser usado uma vez:
{link}

Se você não solicitou esta alteração, ignore este e-mail. Sua senha não será alterada.

Atenciosamente,
Equipe Pi Odonto
"""
    return enviar_email("Recuperação de senha - Pi Odonto", email, corpo)


def enviar_email_boas_vindas_dentista(dentista, senha_temporaria):
    corpo = f"""Olá Dr(a). {dentista.nome},

Seu acesso ao Pi Odonto como dentista foi criado.

E-mail: {dentista.email}
Senha temporária: {senha_temporaria}

Acesse {_base_url()}/Auth/DentistaLogin e altere a sua senha em "Meu Perfil".

Atenciosamente,
Equipe Pi Odonto
"""
    return enviar_email("Bem-vindo à equipe Pi Odonto!", dentista.email, corpo)
