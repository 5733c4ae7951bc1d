# models.py

from datetime import datetime, date, timedelta
from extensions import db


PARENTESCOS = [
    "Pai", "Mãe", "Avô", "Avó", "Tio", "Tia", "Padrasto", "Madrasta", "Tutor Legal",
]

FACES_DENTE = ["Oclusal", "Vestibular", "Lingual", "Mesial", "Distal"]

# A ordem da lista é a ordem permitida das transições
STATUS_TRATAMENTO = ["Planejado", "Em Andamento", "Concluído"]

STATUS_SOLICITACAO = ["Pendente", "Aprovado", "Rejeitado"]

DIAS_SEMANA = ["Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado", "Domingo"]

IDADE_MAXIMA_CRIANCA = 18


def calcular_idade(data_nascimento, referencia=None):
    hoje = referencia or date.today()
    anos = hoje.year - data_nascimento.year
    if (hoje.month, hoje.day) < (data_nascimento.month, data_nascimento.day):
        anos -= 1
    return anos


class Log(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.now)
    username = db.Column(db.String(120), nullable=False)
    action = db.Column(db.String(255), nullable=False)
    ip_address = db.Column(db.String(45))


class Administrador(db.Model):
    __tablename__ = "administrador"
    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False)
    senha_hash = db.Column(db.String(128), nullable=False)
    ativo = db.Column(db.Boolean, nullable=False, default=True)
    data_cadastro = db.Column(db.DateTime, nullable=False, default=datetime.now)


class Responsavel(db.Model):
    __tablename__ = "responsavel"
    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False)
    cpf = db.Column(db.String(14), unique=True, nullable=False)
    telefone = db.Column(db.String(20), unique=True, nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False)
    endereco = db.Column(db.String(200), nullable=False)
    senha_hash = db.Column(db.String(128), nullable=False)
    ativo = db.Column(db.Boolean, nullable=False, default=False)
    email_verificado = db.Column(db.Boolean, nullable=False, default=False)
    token_verificacao = db.Column(db.String(255), nullable=True)
    data_cadastro = db.Column(db.DateTime, nullable=False, default=datetime.now)
    data_atualizacao = db.Column(db.DateTime, nullable=True, onupdate=datetime.now)

    criancas = db.relationship(
        "Crianca",
        backref="responsavel",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Crianca.nome",
    )

    @property
    def criancas_ativas(self):
        return [c for c in self.criancas if c.ativa]

    def __repr__(self):
        return f"<Responsavel {self.email}>"


class Crianca(db.Model):
    __tablename__ = "crianca"
    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False)
    cpf = db.Column(db.String(14), unique=True, nullable=False)
    data_nascimento = db.Column(db.Date, nullable=False)
    parentesco = db.Column(db.String(20), nullable=False)
    ativa = db.Column(db.Boolean, nullable=False, default=True)
    responsavel_id = db.Column(
        db.Integer, db.ForeignKey("responsavel.id", ondelete="CASCADE"), nullable=False
    )

    odontograma = db.relationship(
        "Odontograma",
        backref="crianca",
        uselist=False,
        cascade="all, delete-orphan",
    )
    agendamentos = db.relationship(
        "Agendamento",
        backref="crianca",
        lazy=True,
        cascade="all, delete-orphan",
    )
    atendimentos = db.relationship(
        "Atendimento",
        backref="crianca",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def idade(self):
        return calcular_idade(self.data_nascimento)


class EscalaTrabalho(db.Model):
    __tablename__ = "escala_trabalho"
    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False)
    descricao = db.Column(db.String(255), nullable=True)

    # Ao remover a escala, os dentistas ficam sem escala (id_escala = NULL)
    dentistas = db.relationship("Dentista", backref="escala_trabalho", lazy=True)


class Dentista(db.Model):
    __tablename__ = "dentista"
    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False)
    cpf = db.Column(db.String(14), unique=True, nullable=False)
    cro = db.Column(db.String(20), unique=True, nullable=False)
    endereco = db.Column(db.String(200), nullable=True)
    email = db.Column(db.String(100), unique=True, nullable=False)
    telefone = db.Column(db.String(20), nullable=True)
    senha_hash = db.Column(db.String(128), nullable=False)
    ativo = db.Column(db.Boolean, nullable=False, default=True)
    escala_trabalho_id = db.Column(
        db.Integer, db.ForeignKey("escala_trabalho.id", ondelete="SET NULL"), nullable=True
    )
    data_cadastro = db.Column(db.DateTime, nullable=False, default=datetime.now)

    escalas = db.relationship(
        "EscalaMensalDentista",
        backref="dentista",
        lazy=True,
        cascade="all, delete-orphan",
    )
    disponibilidades = db.relationship(
        "DisponibilidadeDentista",
        backref="dentista",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="DisponibilidadeDentista.hora_inicio",
    )
    agendamentos = db.relationship("Agendamento", backref="dentista", lazy=True)
    atendimentos = db.relationship("Atendimento", backref="dentista", lazy=True)
    tratamentos = db.relationship("TratamentoDente", backref="dentista", lazy=True)


class EscalaMensalDentista(db.Model):
    __tablename__ = "escala_mensal_dentista"
    id = db.Column(db.Integer, primary_key=True)
    dentista_id = db.Column(db.Integer, db.ForeignKey("dentista.id"), nullable=False)
    data = db.Column(db.Date, nullable=False)
    hora_inicio = db.Column(db.Time, nullable=False)
    hora_fim = db.Column(db.Time, nullable=False)
    ativo = db.Column(db.Boolean, nullable=False, default=True)
    data_cadastro = db.Column(db.DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        db.UniqueConstraint("dentista_id", "data", "hora_inicio", name="uq_escala_dentista_horario"),
    )

    @property
    def horario_formatado(self):
        return f"{self.hora_inicio.strftime('%H:%M')} - {self.hora_fim.strftime('%H:%M')}"


class Agendamento(db.Model):
    __tablename__ = "agendamento"
    id = db.Column(db.Integer, primary_key=True)
    data = db.Column(db.Date, nullable=False)
    horario = db.Column(db.Time, nullable=False)
    dentista_id = db.Column(db.Integer, db.ForeignKey("dentista.id"), nullable=False)
    crianca_id = db.Column(
        db.Integer, db.ForeignKey("crianca.id", ondelete="CASCADE"), nullable=False
    )
    data_cadastro = db.Column(db.DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        db.UniqueConstraint("dentista_id", "data", "horario", name="uq_agendamento_dentista_horario"),
    )

    # Ao cancelar a consulta, o atendimento registrado continua sem o vínculo
    atendimentos = db.relationship("Atendimento", backref="agendamento", lazy=True)


class DisponibilidadeDentista(db.Model):
    __tablename__ = "disponibilidade_dentista"
    id = db.Column(db.Integer, primary_key=True)
    dentista_id = db.Column(
        db.Integer, db.ForeignKey("dentista.id", ondelete="CASCADE"), nullable=False
    )
    dia_semana = db.Column(db.String(20), nullable=False)
    hora_inicio = db.Column(db.Time, nullable=False)
    hora_fim = db.Column(db.Time, nullable=False)
    ativo = db.Column(db.Boolean, nullable=False, default=True)
    data_cadastro = db.Column(db.DateTime, nullable=False, default=datetime.now)

    
    def horario_formatado(self):
        return f"{self.hora_inicio.strftime('%H:%M')} - {self.hora_fim.strftime('%H:%M')}"


class Atendimento(db.Model):
    __tablename__ = "atendimento"
    id = db.Column(db.Integer, primary_key=True)
    data = db.Column(db.Date, nullable=False)
    horario = db.Column(db.Time, nullable=False)
    duracao_minutos = db.Column(db.Integer, nullable=False, default=30)
    observacao = db.Column(db.String(100), nullable=True)
    crianca_id = db.Column(
        db.Integer, db.ForeignKey("crianca.id", ondelete="CASCADE"), nullable=False
    )
    dentista_id = db.Column(db.Integer, db.ForeignKey("dentista.id"), nullable=False)
    agendamento_id = db.Column(
        db.Integer, db.ForeignKey("agendamento.id", ondelete="SET NULL"), nullable=True
    )
    data_cadastro = db.Column(db.DateTime, nullable=False, default=datetime.now)


class Odontograma(db.Model):
    __tablename__ = "odontograma"
    id = db.Column(db.Integer, primary_key=True)
    crianca_id = db.Column(
        db.Integer, db.ForeignKey("crianca.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    data_criacao = db.Column(db.DateTime, nullable=False, default=datetime.now)
    data_atualizacao = db.Column(db.DateTime, nullable=False, default=datetime.now)
    observacoes_gerais = db.Column(db.String(500), nullable=True)

    tratamentos = db.relationship(
        "TratamentoDente",
        backref="odontograma",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TratamentoDente.numero_dente",
    )

    def tocar(self):
        """Atualiza a data de modificação sem nunca retroceder."""
        agora = datetime.now()
        if self.data_atualizacao and self.data_atualizacao > agora:
            agora = self.data_atualizacao
        self.data_atualizacao = agora

    def tratamentos_por_dente(self):
        agrupados = {}
        for tratamento in self.tratamentos:
            agrupados.setdefault(tratamento.numero_dente, []).append(tratamento)
        return agrupados


class TratamentoDente(db.Model):
    __tablename__ = "tratamento_dente"
    id = db.Column(db.Integer, primary_key=True)
    odontograma_id = db.Column(
        db.Integer, db.ForeignKey("odontograma.id", ondelete="CASCADE"), nullable=False
    )
    numero_dente = db.Column(db.Integer, nullable=False)
    tipo_tratamento = db.Column(db.String(50), nullable=False)
    face = db.Column(db.String(20), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="Planejado")
    data_tratamento = db.Column(db.Date, nullable=True)
    observacao = db.Column(db.String(300), nullable=True)
    dentista_id = db.Column(
        db.Integer, db.ForeignKey("dentista.id", ondelete="SET NULL"), nullable=True
    )

    def to_dict(self):
        return {
            "id": self.id,
            "numeroDente": self.numero_dente,
            "tipoTratamento": self.tipo_tratamento,
            "face": self.face,
            "status": self.status,
            "dataTratamento": self.data_tratamento.isoformat() if self.data_tratamento else None,
            "observacao": self.observacao,
            "dentista": self.dentista.nome if self.dentista else None,
        }


class RecuperacaoSenhaToken(db.Model):
    __tablename__ = "recuperacao_senha_token"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(100), nullable=False)
    token = db.Column(db.String(64), unique=True, nullable=False)
    data_criacao = db.Column(db.DateTime, nullable=False, default=datetime.now)
    data_expiracao = db.Column(db.DateTime, nullable=False)
    usado = db.Column(db.Boolean, nullable=False, default=False)

    VALIDADE = timedelta(hours=1)

    @property
    def valido(self):
        return not self.usado and self.data_expiracao > datetime.now()


class SolicitacaoVoluntario(db.Model):
    __tablename__ = "solicitacao_voluntario"
    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False)
    telefone = db.Column(db.String(20), nullable=False)
    cro = db.Column(db.String(20), nullable=False)
    cpf = db.Column(db.String(14), unique=True, nullable=False)
    endereco = db.Column(db.String(200), nullable=True)
    mensagem = db.Column(db.String(1000), nullable=True)
    data_envio = db.Column(db.DateTime, nullable=False, default=datetime.now)
    status = db.Column(db.String(20), nullable=False, default="Pendente")
    visualizado = db.Column(db.Boolean, nullable=False, default=False)
    data_resposta = db.Column(db.DateTime, nullable=True)
    observacao_admin = db.Column(db.String(500), nullable=True)
