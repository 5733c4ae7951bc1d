# erros.py
# Erros de domínio levantados pelos serviços e traduzidos pelas rotas
# em flash + redirect (páginas) ou JSON (endpoints AJAX).


class ErroDominio(Exception):
    status_code = 400
    mensagem_padrao = "Não foi possível concluir a operação."

    def __init__(self, mensagem=None, erros=None):
        self.mensagem = mensagem or self.mensagem_padrao
        self.erros = erros or {}
        super().__init__(self.mensagem)

    def to_dict(self):
        dados = {"success": False, "message": self.mensagem}
        if self.erros:
            dados["errors"] = self.erros
        return dados


class ErroValidacao(ErroDominio):
    """Entrada ausente ou inválida. `erros` guarda as mensagens por campo."""
    status_code = 400
    mensagem_padrao = "Verifique os dados informados."

    def __init__(self, mensagem=None, erros=None):
        if mensagem is None and erros:
            mensagem = " ".join(erros.values())
        super().__init__(mensagem, erros)


class ErroAutenticacao(ErroDominio):
    status_code = 401
    mensagem_padrao = "E-mail ou senha inválidos."


class ErroAutorizacao(ErroDominio):
    status_code = 403
    mensagem_padrao = "Você não tem permissão para acessar esta página."


class ErroConflito(ErroDominio):
    status_code = 409
    mensagem_padrao = "O registro conflita com dados já cadastrados."


class ErroNaoEncontrado(ErroDominio):
    status_code = 404
    mensagem_padrao = "Registro não encontrado."


class ErroPersistencia(ErroDominio):
    status_code = 500
    mensagem_padrao = "Ocorreu um erro ao salvar os dados. Tente novamente."
